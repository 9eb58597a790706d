"""Tests for the local SQLite store — TTL reads, upserts, history, views, bookmarks."""

import math
from datetime import datetime, timezone

import pytest

from oeis_tui.database import make_engine, make_session_factory
from oeis_tui.errors import PersistenceError
from oeis_tui.models import CachedSequence
from oeis_tui.orchestrator.schemas import HistoryEntry, SearchResponse, Sequence
from oeis_tui.services.store import Collection, LocalStore, normalize_query


def make_sequence(number: int, name: str) -> Sequence:
    return Sequence(number=number, name=name, data="1,2,3")


def write_corrupt_sequence(db_path, number: int):
    """Insert an unreadable sequence row behind the store's back."""
    engine = make_engine(db_path)
    sessions = make_session_factory(engine)
    with sessions.begin() as session:
        session.add(CachedSequence(number=number, data="{not json", cached_at=datetime(2026, 1, 1)))
    engine.dispose()


class TestNormalizeQuery:
    def test_trims_and_collapses_whitespace(self):
        assert normalize_query("  Fibonacci   Numbers ") == "fibonacci numbers"

    def test_already_normal(self):
        assert normalize_query("1,2,3,5,8") == "1,2,3,5,8"


class TestCacheTTL:
    def test_infinite_max_age_never_expires(self, store, clock, fibonacci):
        store.put(Collection.ENTITIES, 45, fibonacci)
        clock.advance(days=10_000)
        assert store.get(Collection.ENTITIES, 45, math.inf) == fibonacci
        assert store.get(Collection.ENTITIES, 45, None) == fibonacci

    def test_zero_max_age_expires_after_any_time(self, store, clock, fibonacci):
        store.put(Collection.ENTITIES, 45, fibonacci)
        clock.advance(seconds=1)
        assert store.get(Collection.ENTITIES, 45, 0) is None

    def test_within_max_age_is_fresh(self, store, clock, fibonacci):
        store.put(Collection.ENTITIES, 45, fibonacci)
        clock.advance(days=29)
        assert store.get_cached_sequence(45, 30) == fibonacci

    def test_400_day_old_entity_is_stale_at_365(self, store, clock, fibonacci):
        store.put(Collection.ENTITIES, 45, fibonacci)
        clock.advance(days=400)
        assert store.get(Collection.ENTITIES, 45, 365) is None

    def test_expired_rows_stay_on_disk(self, store, clock, fibonacci):
        store.cache_sequence(fibonacci)
        clock.advance(days=400)
        assert store.get_cached_sequence(45, 365) is None
        assert store.stats().cached_sequences == 1

    def test_miss_returns_none(self, store):
        assert store.get(Collection.ENTITIES, 999, None) is None
        assert store.get(Collection.RESPONSES, "nothing", None) is None


class TestCacheWrites:
    def test_last_write_wins(self, store):
        store.put(Collection.ENTITIES, 45, make_sequence(45, name="first"))
        store.put(Collection.ENTITIES, 45, make_sequence(45, name="second"))
        assert store.get(Collection.ENTITIES, 45, None).name == "second"
        assert store.stats().cached_sequences == 1

    def test_rewrite_refreshes_timestamp(self, store, clock, fibonacci):
        store.cache_sequence(fibonacci)
        clock.advance(days=20)
        store.cache_sequence(fibonacci)
        clock.advance(days=20)
        assert store.get_cached_sequence(45, 30) == fibonacci

    def test_search_key_is_normalized(self, store, fibonacci):
        response = SearchResponse(count=1, results=[fibonacci])
        store.cache_search("Fibonacci  Numbers", response)
        assert store.get_cached_search("  fibonacci numbers", None) == response

    def test_corrupt_record_raises(self, store, db_path):
        write_corrupt_sequence(db_path, 7)
        with pytest.raises(PersistenceError):
            store.get(Collection.ENTITIES, 7, None)

    def test_non_cache_collection_rejected(self, store, fibonacci):
        with pytest.raises(ValueError):
            store.get(Collection.BOOKMARKS, 45, None)
        with pytest.raises(ValueError):
            store.put(Collection.HISTORY, 45, fibonacci)


class TestClearCaches:
    def test_clear_keeps_history_views_and_bookmarks(self, store, fibonacci):
        store.cache_sequence(fibonacci)
        store.cache_search("fibonacci", SearchResponse(count=1, results=[fibonacci]))
        store.add_search_history("fibonacci")
        store.record_view(45)
        store.upsert_bookmark(45)

        store.clear_caches()

        stats = store.stats()
        assert stats.cached_searches == 0
        assert stats.cached_sequences == 0
        assert stats.total_searches == 1
        assert stats.viewed_sequences == 1
        assert stats.bookmarked_sequences == 1
        assert store.is_bookmarked(45)


class TestHistory:
    def test_distinct_queries_most_recent_first(self, store, clock):
        store.add_search_history("fibonacci")
        clock.advance(minutes=1)
        store.add_search_history("primes")
        clock.advance(minutes=1)
        store.add_search_history("fibonacci")

        queries = [entry.query for entry in store.history(10)]
        assert queries == ["fibonacci", "primes"]
        assert store.stats().total_searches == 3

    def test_limit(self, store, clock):
        for q in ("a", "b", "c", "d"):
            store.add_search_history(q)
            clock.advance(seconds=1)
        assert [entry.query for entry in store.history(2)] == ["d", "c"]

    def test_append_explicit_entry(self, store):
        at = datetime(2025, 6, 1, 8, 30, tzinfo=timezone.utc)
        store.append(Collection.HISTORY, HistoryEntry(query="catalan", searched_at=at))
        assert store.history(5) == [HistoryEntry(query="catalan", searched_at=at)]

    def test_append_rejects_other_collections(self, store):
        with pytest.raises(ValueError):
            store.append(Collection.VIEWS, "fibonacci")


class TestViews:
    def test_increment_counts_and_keeps_latest_time(self, store, clock):
        for _ in range(3):
            clock.advance(minutes=5)
            store.increment(45)

        record = store.view_record(45)
        assert record.view_count == 3
        assert record.viewed_at == clock.now

    def test_unknown_number(self, store):
        assert store.view_record(12345) is None

    def test_recently_viewed_order_and_names(self, store, clock, fibonacci, primes):
        store.cache_sequence(fibonacci)
        store.cache_sequence(primes)
        store.record_view(45)
        clock.advance(minutes=1)
        store.record_view(40)

        recents = store.recently_viewed(10)
        assert [r.number for r in recents] == [40, 45]
        assert recents[0].name == "The prime numbers."
        assert recents[1].view_count == 1

    def test_recently_viewed_skips_missing_and_corrupt(self, store, clock, db_path, fibonacci):
        store.cache_sequence(fibonacci)
        write_corrupt_sequence(db_path, 7)
        store.record_view(45)
        clock.advance(minutes=1)
        store.record_view(99)  # never cached
        clock.advance(minutes=1)
        store.record_view(7)

        assert [r.number for r in store.recently_viewed(10)] == [45]


class TestBookmarks:
    def test_toggle_round_trip(self, store):
        assert not store.is_bookmarked(45)
        store.upsert_bookmark(45)
        assert store.is_bookmarked(45)
        store.remove_bookmark(45)
        assert not store.is_bookmarked(45)

    def test_upsert_updates_notes(self, store):
        store.upsert_bookmark(45, notes="golden ratio")
        store.upsert_bookmark(45, notes="rabbits")
        entries = store.bookmarks()
        assert len(entries) == 1
        assert entries[0].notes == "rabbits"

    def test_most_recent_first(self, store, clock):
        store.upsert_bookmark(45)
        clock.advance(minutes=1)
        store.upsert_bookmark(40)
        assert [b.number for b in store.bookmarks()] == [40, 45]

    def test_listed_without_cached_copy(self, store):
        store.upsert_bookmark(12345)
        assert [b.number for b in store.bookmarks()] == [12345]


class TestStoreOpen:
    def test_reopen_keeps_data(self, db_path, clock, fibonacci):
        first = LocalStore(db_path, clock=clock)
        first.cache_sequence(fibonacci)
        first.upsert_bookmark(45)
        first.close()

        second = LocalStore(db_path, clock=clock)
        try:
            assert second.get_cached_sequence(45, None) == fibonacci
            assert second.is_bookmarked(45)
        finally:
            second.close()

    def test_unopenable_path_raises(self, tmp_path):
        with pytest.raises(PersistenceError):
            LocalStore(tmp_path / "missing-dir" / "store.db")
