"""Local store — durable SQLite persistence for caches, history, views and bookmarks.

Five independent collections:
  - Responses: search responses keyed by normalized query (TTL-gated reads)
  - Entities: single sequences keyed by number (TTL-gated reads)
  - History: append-only search log, deduplicated when read
  - Views: one insert-or-bump ledger row per sequence
  - Bookmarks: user-curated, survive ``clear_caches``

Expiry is checked at read time only; expired rows are left on disk.
All storage failures surface as PersistenceError; the caller decides
whether to ignore them.
"""

import logging
import math
from collections.abc import Callable, Iterator
from datetime import datetime, timedelta, timezone
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ValidationError
from sqlalchemy import delete, func, select
from sqlalchemy.dialects.sqlite import insert
from sqlalchemy.exc import SQLAlchemyError

from oeis_tui.database import close_db, init_db, make_engine, make_session_factory
from oeis_tui.errors import PersistenceError
from oeis_tui.models import Bookmark, CachedSearch, CachedSequence, SearchHistory, ViewedSequence
from oeis_tui.orchestrator.schemas import (
    BookmarkEntry,
    CacheStats,
    HistoryEntry,
    RecentView,
    SearchResponse,
    Sequence,
    ViewRecord,
)

logger = logging.getLogger(__name__)


class Collection(str, Enum):
    RESPONSES = "responses"
    ENTITIES = "entities"
    HISTORY = "history"
    VIEWS = "views"
    BOOKMARKS = "bookmarks"


CACHE_COLLECTIONS = (Collection.RESPONSES, Collection.ENTITIES)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def normalize_query(query: str) -> str:
    """Cache key for a query: trimmed, single-spaced, lowercase."""
    return " ".join(query.split()).lower()


def _to_db(moment: datetime) -> datetime:
    # SQLite has no timezone support; rows hold naive UTC.
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc).replace(tzinfo=None)
    return moment


def _from_db(moment: datetime) -> datetime:
    return moment.replace(tzinfo=timezone.utc)


class LocalStore:
    """Single-owner persistent store. Not thread-safe — use from the update loop only."""

    def __init__(self, db_path: Path | str, clock: Callable[[], datetime] = utcnow):
        self._engine = make_engine(db_path)
        self._sessions = make_session_factory(self._engine)
        self._clock = clock
        try:
            init_db(self._engine)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to open local store: {e}") from e

    def close(self):
        close_db(self._engine)

    def _now(self) -> datetime:
        return _to_db(self._clock())

    # ═══════════════ CACHE COLLECTIONS ═══════════════

    def get(self, collection: Collection, key, max_age_days: float | None) -> BaseModel | None:
        """Read a cached payload, or None when absent or older than ``max_age_days``.

        ``max_age_days`` of None or infinity disables expiry. A row that
        cannot be deserialized raises PersistenceError instead of reading
        as a miss.
        """
        model, payload_type = self._cache_table(collection)
        try:
            with self._sessions() as session:
                row = session.get(model, self._cache_key(collection, key))
        except SQLAlchemyError as e:
            raise PersistenceError(f"Cache read failed: {e}") from e

        if row is None:
            return None
        if self._is_expired(row.cached_at, max_age_days):
            logger.debug("Cache EXPIRED | %s | key=%s", collection.value, key)
            return None

        raw = row.response if collection is Collection.RESPONSES else row.data
        try:
            payload = payload_type.model_validate_json(raw)
        except ValidationError as e:
            raise PersistenceError(f"Corrupt {collection.value} record for {key!r}") from e
        logger.debug("Cache HIT | %s | key=%s", collection.value, key)
        return payload

    def put(self, collection: Collection, key, payload: BaseModel):
        """Unconditional upsert; the last write wins."""
        model, _ = self._cache_table(collection)
        serialized = payload.model_dump_json()
        now = self._now()

        if collection is Collection.RESPONSES:
            values = {"query": self._cache_key(collection, key), "response": serialized, "cached_at": now}
            stmt = insert(model).values(**values)
            stmt = stmt.on_conflict_do_update(
                index_elements=[model.query],
                set_={"response": stmt.excluded.response, "cached_at": stmt.excluded.cached_at},
            )
        else:
            values = {"number": self._cache_key(collection, key), "data": serialized, "cached_at": now}
            stmt = insert(model).values(**values)
            stmt = stmt.on_conflict_do_update(
                index_elements=[model.number],
                set_={"data": stmt.excluded.data, "cached_at": stmt.excluded.cached_at},
            )
        self._execute(stmt, f"Cache write failed ({collection.value})")

    def cache_search(self, query: str, response: SearchResponse):
        self.put(Collection.RESPONSES, query, response)

    def get_cached_search(self, query: str, max_age_days: float | None) -> SearchResponse | None:
        return self.get(Collection.RESPONSES, query, max_age_days)

    def cache_sequence(self, sequence: Sequence):
        self.put(Collection.ENTITIES, sequence.number, sequence)

    def get_cached_sequence(self, number: int, max_age_days: float | None) -> Sequence | None:
        return self.get(Collection.ENTITIES, number, max_age_days)

    def clear_caches(self):
        """Empty both cache collections. History, views and bookmarks are kept."""
        try:
            with self._sessions.begin() as session:
                session.execute(delete(CachedSearch))
                session.execute(delete(CachedSequence))
        except SQLAlchemyError as e:
            raise PersistenceError(f"Cache clear failed: {e}") from e
        logger.info("Caches cleared")

    # ═══════════════ HISTORY ═══════════════

    def append(self, collection: Collection, entry: str | HistoryEntry):
        """Append to an append-only collection (only History is one)."""
        if collection is not Collection.HISTORY:
            raise ValueError(f"{collection.value} is not append-only")

        if isinstance(entry, HistoryEntry):
            query, searched_at = entry.query, _to_db(entry.searched_at)
        else:
            query, searched_at = entry, self._now()
        self._execute(
            insert(SearchHistory).values(query=query, searched_at=searched_at),
            "History write failed",
        )

    def add_search_history(self, query: str):
        self.append(Collection.HISTORY, query)

    def history(self, limit: int) -> list[HistoryEntry]:
        """Distinct queries, most recently searched first."""
        last_searched = func.max(SearchHistory.searched_at).label("last_searched")
        stmt = (
            select(SearchHistory.query, last_searched)
            .group_by(SearchHistory.query)
            .order_by(last_searched.desc())
            .limit(limit)
        )
        return [
            HistoryEntry(query=query, searched_at=_from_db(searched_at))
            for query, searched_at in self._rows(stmt, "History read failed")
        ]

    # ═══════════════ VIEWS ═══════════════

    def increment(self, number: int):
        """Insert-or-bump the view record for ``number`` in a single statement."""
        stmt = insert(ViewedSequence).values(number=number, viewed_at=self._now(), view_count=1)
        stmt = stmt.on_conflict_do_update(
            index_elements=[ViewedSequence.number],
            set_={
                "viewed_at": stmt.excluded.viewed_at,
                "view_count": ViewedSequence.view_count + 1,
            },
        )
        self._execute(stmt, "View write failed")

    def record_view(self, number: int):
        self.increment(number)

    def view_record(self, number: int) -> ViewRecord | None:
        try:
            with self._sessions() as session:
                row = session.get(ViewedSequence, number)
        except SQLAlchemyError as e:
            raise PersistenceError(f"View read failed: {e}") from e
        if row is None:
            return None
        return ViewRecord(number=row.number, viewed_at=_from_db(row.viewed_at), view_count=row.view_count)

    def recently_viewed(self, limit: int) -> list[RecentView]:
        """Most recently viewed sequences that have a readable cached copy."""
        return list(self._iter_recent(limit))

    def _iter_recent(self, limit: int) -> Iterator[RecentView]:
        stmt = (
            select(
                ViewedSequence.number,
                ViewedSequence.view_count,
                ViewedSequence.viewed_at,
                CachedSequence.data,
            )
            .outerjoin(CachedSequence, CachedSequence.number == ViewedSequence.number)
            .order_by(ViewedSequence.viewed_at.desc())
            .limit(limit)
        )
        for number, view_count, viewed_at, data in self._rows(stmt, "Recents read failed"):
            if not data:
                continue
            try:
                name = Sequence.model_validate_json(data).name
            except ValidationError:
                logger.debug("Skipping recent A%06d | cached sequence unreadable", number)
                continue
            yield RecentView(
                number=number,
                name=name,
                view_count=view_count,
                viewed_at=_from_db(viewed_at),
            )

    # ═══════════════ BOOKMARKS ═══════════════

    def upsert_bookmark(self, number: int, notes: str | None = None):
        stmt = insert(Bookmark).values(number=number, bookmarked_at=self._now(), notes=notes)
        stmt = stmt.on_conflict_do_update(
            index_elements=[Bookmark.number],
            set_={"bookmarked_at": stmt.excluded.bookmarked_at, "notes": stmt.excluded.notes},
        )
        self._execute(stmt, "Bookmark write failed")

    def remove_bookmark(self, number: int):
        self._execute(delete(Bookmark).where(Bookmark.number == number), "Bookmark delete failed")

    def is_bookmarked(self, number: int) -> bool:
        try:
            with self._sessions() as session:
                return session.get(Bookmark, number) is not None
        except SQLAlchemyError as e:
            raise PersistenceError(f"Bookmark read failed: {e}") from e

    def bookmarks(self) -> list[BookmarkEntry]:
        stmt = select(Bookmark.number, Bookmark.bookmarked_at, Bookmark.notes).order_by(
            Bookmark.bookmarked_at.desc()
        )
        return [
            BookmarkEntry(number=number, bookmarked_at=_from_db(bookmarked_at), notes=notes)
            for number, bookmarked_at, notes in self._rows(stmt, "Bookmarks read failed")
        ]

    # ═══════════════ STATS ═══════════════

    def stats(self) -> CacheStats:
        try:
            with self._sessions() as session:
                def count(model) -> int:
                    return session.scalar(select(func.count()).select_from(model)) or 0

                return CacheStats(
                    cached_searches=count(CachedSearch),
                    cached_sequences=count(CachedSequence),
                    total_searches=count(SearchHistory),
                    viewed_sequences=count(ViewedSequence),
                    bookmarked_sequences=count(Bookmark),
                )
        except SQLAlchemyError as e:
            raise PersistenceError(f"Stats read failed: {e}") from e

    # ═══════════════ INTERNALS ═══════════════

    @staticmethod
    def _cache_table(collection: Collection):
        if collection is Collection.RESPONSES:
            return CachedSearch, SearchResponse
        if collection is Collection.ENTITIES:
            return CachedSequence, Sequence
        raise ValueError(f"{collection.value} is not a cache collection")

    @staticmethod
    def _cache_key(collection: Collection, key):
        if collection is Collection.RESPONSES:
            return normalize_query(str(key))
        return int(key)

    def _is_expired(self, cached_at: datetime, max_age_days: float | None) -> bool:
        if max_age_days is None or math.isinf(max_age_days):
            return False
        age = self._now() - cached_at
        return age > timedelta(days=max_age_days)

    def _execute(self, stmt, failure: str):
        try:
            with self._sessions.begin() as session:
                session.execute(stmt)
        except SQLAlchemyError as e:
            raise PersistenceError(f"{failure}: {e}") from e

    def _rows(self, stmt, failure: str) -> Iterator[tuple]:
        """Stream result rows lazily; the session stays open while iterating."""
        try:
            with self._sessions() as session:
                yield from session.execute(stmt)
        except SQLAlchemyError as e:
            raise PersistenceError(f"{failure}: {e}") from e
