"""Application state — single source of truth read by the presentation layer.

User actions start jobs on the supervisor; ``tick()`` polls finished jobs
once per frame and folds their outcomes in. Store writes after a fetch are
best-effort side effects: a failure is logged and skipped, never shown.
The recents/bookmarks/history lists are projections that are refreshed
explicitly after each mutation.
Webcam mode auto-advances from ``tick()`` on the RandomPick slot.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any, TypeVar

from oeis_tui.config import Settings, settings as default_settings
from oeis_tui.errors import PersistenceError
from oeis_tui.orchestrator.schemas import (
    BFileEntry,
    BookmarkEntry,
    CacheStats,
    HistoryEntry,
    RecentView,
    SearchQuery,
    SearchResponse,
    Sequence,
    SequenceCategory,
    WebcamInterval,
)
from oeis_tui.services.jobs import (
    Cancelled,
    ExtendedFetchJob,
    Failure,
    FetchOneJob,
    JobSupervisor,
    OutcomeEvent,
    RandomJob,
    SearchJob,
    SearchKind,
    Slot,
    Success,
    WebcamJob,
)
from oeis_tui.services.store import LocalStore, utcnow

logger = logging.getLogger(__name__)

T = TypeVar("T")

_FAILURE_PREFIX = {
    SearchKind.INITIAL: "Search failed",
    SearchKind.NEXT_PAGE: "Failed to load next page",
    SearchKind.PREVIOUS_PAGE: "Failed to load previous page",
}

_PANIC_MESSAGE = {
    SearchKind.INITIAL: "Search task panicked",
    SearchKind.NEXT_PAGE: "Next page task panicked",
    SearchKind.PREVIOUS_PAGE: "Previous page task panicked",
}

# Single-sequence jobs share the RandomPick slot.
_SINGLE_FAILURE_PREFIX = {
    RandomJob: "Failed to load random sequence",
    FetchOneJob: "Failed to load sequence",
    WebcamJob: "Error loading sequence",
}

_SINGLE_PANIC_MESSAGE = {
    RandomJob: "Random sequence task panicked",
    FetchOneJob: "Sequence lookup task panicked",
    WebcamJob: "Webcam task panicked",
}


@dataclass(frozen=True)
class StateSnapshot:
    """Read-only view of the state handed to the renderer each tick."""
    busy: MappingProxyType
    search_results: tuple[Sequence, ...] = ()
    result_count: int = 0
    current_query: SearchQuery | None = None
    current_sequence: Sequence | None = None
    bfile_data: tuple[BFileEntry, ...] | None = None
    bfile_error: str | None = None
    error_message: str | None = None
    last_search_time: float | None = None
    recent_sequences: tuple[RecentView, ...] = ()
    bookmarks: tuple[BookmarkEntry, ...] = ()
    history: tuple[HistoryEntry, ...] = ()
    webcam_active: bool = False
    webcam_category: SequenceCategory = SequenceCategory.ALL
    webcam_interval: WebcamInterval = WebcamInterval.MANUAL

    @property
    def searching(self) -> bool:
        return any(self.busy.values())


@dataclass
class ApplicationState:
    store: LocalStore
    supervisor: JobSupervisor
    settings: Settings = field(default_factory=lambda: default_settings)
    clock: Callable[[], datetime] = utcnow

    search_results: list[Sequence] = field(default_factory=list)
    result_count: int = 0
    current_query: SearchQuery | None = None
    current_sequence: Sequence | None = None
    bfile_data: list[BFileEntry] | None = None
    bfile_error: str | None = None
    error_message: str | None = None
    last_search_time: float | None = None
    recent_sequences: list[RecentView] = field(default_factory=list)
    bookmarks: list[BookmarkEntry] = field(default_factory=list)
    history: list[HistoryEntry] = field(default_factory=list)

    webcam_active: bool = False
    webcam_category: SequenceCategory = SequenceCategory.ALL
    webcam_interval: WebcamInterval = WebcamInterval.MANUAL
    webcam_last_update: datetime | None = None

    def __post_init__(self):
        self.refresh_recents()
        self.refresh_bookmarks()
        self.refresh_history()

    # ═══════════════ TICK ═══════════════

    def tick(self) -> StateSnapshot:
        """Fold finished jobs into the state and return a snapshot for rendering."""
        for event in self.supervisor.poll():
            self._apply(event)
        self._advance_webcam()
        return self.snapshot()

    def snapshot(self) -> StateSnapshot:
        return StateSnapshot(
            busy=MappingProxyType(self.supervisor.busy()),
            search_results=tuple(self.search_results),
            result_count=self.result_count,
            current_query=self.current_query,
            current_sequence=self.current_sequence,
            bfile_data=tuple(self.bfile_data) if self.bfile_data is not None else None,
            bfile_error=self.bfile_error,
            error_message=self.error_message,
            last_search_time=self.last_search_time,
            recent_sequences=tuple(self.recent_sequences),
            bookmarks=tuple(self.bookmarks),
            history=tuple(self.history),
            webcam_active=self.webcam_active,
            webcam_category=self.webcam_category,
            webcam_interval=self.webcam_interval,
        )

    @property
    def searching(self) -> bool:
        return any(self.supervisor.busy().values())

    # ═══════════════ USER ACTIONS ═══════════════

    def perform_search(self, text: str):
        """Search for ``text``; a fresh cached response is used without a network call."""
        if not text.strip():
            return

        query = SearchQuery(query=text.strip())
        cached = self._read_quietly(
            lambda: self.store.get_cached_search(query.query, self.settings.cache_max_age_days)
        )
        if cached is not None:
            logger.info("Search served from cache | query=%s", query.query[:80])
            self.supervisor.cancel(Slot.SEARCH)
            self.error_message = None
            self._show_results(cached, elapsed=0.0)
            self.result_count = cached.count
            self.current_query = query
            self._write_quietly("history", lambda: self.store.add_search_history(query.query))
            self.refresh_history()
            return

        self._spawn_search(query, SearchKind.INITIAL)

    def next_page(self):
        if self.current_query is not None:
            self._spawn_search(self.current_query.next_page(self.settings.results_per_page), SearchKind.NEXT_PAGE)

    def previous_page(self):
        if self.current_query is not None and self.current_query.start > 0:
            self._spawn_search(
                self.current_query.prev_page(self.settings.results_per_page), SearchKind.PREVIOUS_PAGE,
            )

    def start_random(self):
        self.error_message = None
        self.supervisor.start(Slot.RANDOM, RandomJob())

    def load_sequence(self, number: int):
        """Open a sequence by number, from cache when fresh, else fetch it on the RandomPick slot."""
        cached = self._read_quietly(
            lambda: self.store.get_cached_sequence(number, self.settings.cache_max_age_days)
        )
        if cached is not None:
            self.open_sequence(cached)
            return
        self.error_message = None
        self.supervisor.start(Slot.RANDOM, FetchOneJob(number=number))

    def load_bookmark(self, index: int):
        if 0 <= index < len(self.bookmarks):
            self.load_sequence(self.bookmarks[index].number)

    def view_result(self, index: int):
        if 0 <= index < len(self.search_results):
            self.open_sequence(self.search_results[index])

    def open_sequence(self, sequence: Sequence):
        """Show ``sequence`` in detail, record the view and write it through to the cache."""
        self.clear_extended()
        self.current_sequence = sequence
        self._write_quietly("view", lambda: self.store.record_view(sequence.number))
        self._write_quietly("sequence cache", lambda: self.store.cache_sequence(sequence))
        self.refresh_recents()

    def start_extended_fetch(self):
        if self.current_sequence is None:
            return
        self.bfile_data = None
        self.bfile_error = None
        self.supervisor.start(Slot.EXTENDED, ExtendedFetchJob(number=self.current_sequence.number))

    def clear_extended(self):
        self.bfile_data = None
        self.bfile_error = None
        self.supervisor.cancel(Slot.EXTENDED)

    def toggle_bookmark(self, notes: str | None = None):
        if self.current_sequence is None:
            return
        number = self.current_sequence.number
        if self.is_bookmarked(number):
            self._write_quietly("bookmark", lambda: self.store.remove_bookmark(number))
        else:
            self._write_quietly("bookmark", lambda: self.store.upsert_bookmark(number, notes))
        self.refresh_bookmarks()

    def is_bookmarked(self, number: int) -> bool:
        return bool(self._read_quietly(lambda: self.store.is_bookmarked(number)))

    def clear_cache(self):
        self._write_quietly("cache clear", self.store.clear_caches)
        self.refresh_recents()

    def cache_stats(self) -> CacheStats:
        return self._read_quietly(self.store.stats) or CacheStats()

    # ═══════════════ WEBCAM ═══════════════

    def start_webcam(
        self,
        category: SequenceCategory | None = None,
        interval: WebcamInterval | None = None,
    ):
        """Enter webcam mode and load the first pick at once."""
        self.webcam_active = True
        if category is not None:
            self.webcam_category = category
        if interval is not None:
            self.webcam_interval = interval
        self.webcam_next()

    def stop_webcam(self):
        self.webcam_active = False
        self.webcam_last_update = None

    def set_webcam_category(self, category: SequenceCategory):
        self.webcam_category = category

    def set_webcam_interval(self, interval: WebcamInterval):
        self.webcam_interval = interval

    def webcam_next(self):
        self.error_message = None
        self.supervisor.start(Slot.RANDOM, WebcamJob(category=self.webcam_category))

    def _advance_webcam(self):
        """Start the next pick once the interval has elapsed and the slot is idle."""
        period = self.webcam_interval.seconds
        if not self.webcam_active or period is None or self.webcam_last_update is None:
            return
        if self.supervisor.is_busy(Slot.RANDOM):
            return
        if (self.clock() - self.webcam_last_update).total_seconds() >= period:
            self.webcam_next()

    # ═══════════════ PROJECTIONS ═══════════════

    def refresh_recents(self):
        self.recent_sequences = self._read_quietly(
            lambda: self.store.recently_viewed(self.settings.recent_limit)
        ) or []

    def refresh_bookmarks(self):
        self.bookmarks = self._read_quietly(self.store.bookmarks) or []

    def refresh_history(self):
        self.history = self._read_quietly(
            lambda: self.store.history(self.settings.history_limit)
        ) or []

    # ═══════════════ OUTCOMES ═══════════════

    def _spawn_search(self, query: SearchQuery, kind: SearchKind):
        if kind in (SearchKind.NEXT_PAGE, SearchKind.PREVIOUS_PAGE):
            self.current_query = query
        self.error_message = None
        self.supervisor.start(
            Slot.SEARCH, SearchJob(query=query, kind=kind, page_size=self.settings.results_per_page),
        )

    def _apply(self, event: OutcomeEvent):
        if event.slot is Slot.SEARCH:
            self._apply_search(event)
        elif event.slot is Slot.RANDOM:
            self._apply_single(event)
        else:
            self._apply_extended(event)

    def _apply_search(self, event: OutcomeEvent):
        job: SearchJob = event.job
        outcome = event.outcome

        if isinstance(outcome, Success):
            response: SearchResponse = outcome.payload
            self.error_message = None
            self._show_results(response, event.elapsed)
            self.current_query = job.query
            if job.kind is SearchKind.INITIAL:
                self.result_count = response.count
                self._write_quietly("search cache", lambda: self.store.cache_search(job.query.query, response))
                self._write_quietly("history", lambda: self.store.add_search_history(job.query.query))
                self.refresh_history()
        elif isinstance(outcome, Failure):
            self.error_message = f"{_FAILURE_PREFIX[job.kind]}: {outcome.message}"
        elif isinstance(outcome, Cancelled) and outcome.panicked:
            self.error_message = _PANIC_MESSAGE[job.kind]

    def _apply_single(self, event: OutcomeEvent):
        job = event.job
        outcome = event.outcome
        if isinstance(job, WebcamJob):
            # The countdown restarts after every pick, failed or not.
            self.webcam_last_update = self.clock()

        if isinstance(outcome, Success):
            sequence: Sequence | None = outcome.payload
            if sequence is None:
                self.error_message = self._not_found_message(job)
                return
            self.error_message = None
            if isinstance(job, WebcamJob):
                self._show_webcam_sequence(sequence)
                return
            if isinstance(job, RandomJob):
                self.last_search_time = event.elapsed
            self.open_sequence(sequence)
        elif isinstance(outcome, Failure):
            self.error_message = f"{_SINGLE_FAILURE_PREFIX[type(job)]}: {outcome.message}"
        elif isinstance(outcome, Cancelled) and outcome.panicked:
            self.error_message = _SINGLE_PANIC_MESSAGE[type(job)]

    @staticmethod
    def _not_found_message(job) -> str:
        if isinstance(job, FetchOneJob):
            return f"Sequence A{job.number:06d} not found"
        if isinstance(job, WebcamJob):
            if job.category is SequenceCategory.ALL:
                return "No sequence found"
            return "No sequences found in this category"
        return "No random sequence found"

    def _show_webcam_sequence(self, sequence: Sequence):
        """Webcam picks are shown and cached but not counted as views."""
        self.clear_extended()
        self.current_sequence = sequence
        self._write_quietly("sequence cache", lambda: self.store.cache_sequence(sequence))

    def _apply_extended(self, event: OutcomeEvent):
        outcome = event.outcome
        if isinstance(outcome, Success):
            self.bfile_data = list(outcome.payload)
            self.bfile_error = None
        elif isinstance(outcome, Failure):
            self.bfile_data = None
            self.bfile_error = f"B-file not available: {outcome.message}"
        else:
            self.bfile_data = None
            self.bfile_error = f"B-file fetch failed: {outcome.message}"

    def _show_results(self, response: SearchResponse, elapsed: float):
        self.search_results = list(response.results)
        self.last_search_time = elapsed

    # ═══════════════ BEST-EFFORT STORE ACCESS ═══════════════

    @staticmethod
    def _write_quietly(what: str, write: Callable[[], Any]):
        try:
            write()
        except PersistenceError as e:
            logger.debug("Store %s write skipped: %s", what, str(e)[:100])

    @staticmethod
    def _read_quietly(read: Callable[[], T]) -> T | None:
        try:
            return read()
        except PersistenceError as e:
            logger.debug("Store read treated as miss: %s", str(e)[:100])
            return None
