"""Job supervisor — single-flight background network jobs, polled per render tick.

Slots:
  - Search: initial searches and page turns
  - RandomPick: one sequence (random pick, lookup by number, webcam pick)
  - ExtendedFetch: B-file terms for one sequence

Each slot holds at most one running job. Starting a job in an occupied slot
cancels the old task and swaps in the new handle at once, so the old
result can never be observed by ``poll``. ``poll`` never blocks: it only
inspects tasks that are already done and turns each into one outcome value.
"""

import asyncio
import logging
import random
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar

from oeis_tui.errors import CollaboratorError, TaskAbnormalTermination
from oeis_tui.orchestrator.schemas import SearchQuery, SequenceCategory

logger = logging.getLogger(__name__)


class Slot(str, Enum):
    SEARCH = "search"
    RANDOM = "random"
    EXTENDED = "extended"


class SearchKind(str, Enum):
    """Page context of a search job."""
    INITIAL = "initial"
    NEXT_PAGE = "next_page"
    PREVIOUS_PAGE = "previous_page"


# ═══════════════ JOBS ═══════════════

@dataclass(frozen=True)
class SearchJob:
    query: SearchQuery
    kind: SearchKind = SearchKind.INITIAL
    page_size: int = 15

    slot: ClassVar[Slot] = Slot.SEARCH

    async def execute(self, fetcher) -> Any:
        return await fetcher.search(self.query, self.page_size)


@dataclass(frozen=True)
class RandomJob:
    slot: ClassVar[Slot] = Slot.RANDOM

    async def execute(self, fetcher) -> Any:
        return await fetcher.random_sequence()


@dataclass(frozen=True)
class FetchOneJob:
    number: int

    slot: ClassVar[Slot] = Slot.RANDOM

    async def execute(self, fetcher) -> Any:
        return await fetcher.fetch_one(self.number)


@dataclass(frozen=True)
class WebcamJob:
    """Next webcam pick: a random sequence, or a random member of a keyword category."""
    category: SequenceCategory = SequenceCategory.ALL

    slot: ClassVar[Slot] = Slot.RANDOM

    async def execute(self, fetcher) -> Any:
        if self.category is SequenceCategory.ALL:
            return await fetcher.random_sequence()
        response = await fetcher.fetch_by_category(self.category)
        return random.choice(response.results) if response.results else None


@dataclass(frozen=True)
class ExtendedFetchJob:
    number: int

    slot: ClassVar[Slot] = Slot.EXTENDED

    async def execute(self, fetcher) -> Any:
        return await fetcher.fetch_extended(self.number)


Job = SearchJob | RandomJob | FetchOneJob | WebcamJob | ExtendedFetchJob


# ═══════════════ OUTCOMES ═══════════════

@dataclass(frozen=True)
class Success:
    payload: Any
    tag: ClassVar[str] = "success"


@dataclass(frozen=True)
class Failure:
    """The fetcher reported an error (network, timeout, parse)."""
    error: CollaboratorError
    tag: ClassVar[str] = "collaborator"

    @property
    def message(self) -> str:
        return str(self.error)


@dataclass(frozen=True)
class Cancelled:
    """The task was aborted by the runtime or crashed."""
    error: TaskAbnormalTermination

    @property
    def tag(self) -> str:
        return self.error.tag

    @property
    def panicked(self) -> bool:
        return self.error.panicked

    @property
    def message(self) -> str:
        return str(self.error)


JobOutcome = Success | Failure | Cancelled


@dataclass(frozen=True)
class OutcomeEvent:
    slot: Slot
    job: Job
    outcome: JobOutcome
    elapsed: float


@dataclass
class RunningJob:
    slot: Slot
    job: Job
    task: asyncio.Task
    started_at: float = field(default_factory=time.monotonic)
    cancel_requested: bool = False


# ═══════════════ SUPERVISOR ═══════════════

class JobSupervisor:
    """Owns at most one running job per slot. Must be used from inside a running event loop."""

    def __init__(self, fetcher):
        self._fetcher = fetcher
        self._running: dict[Slot, RunningJob] = {}
        # Superseded tasks stay referenced until they finish draining.
        self._superseded: set[asyncio.Task] = set()

    def start(self, slot: Slot, job: Job):
        """Cancel whatever occupies ``slot`` and spawn ``job`` in its place."""
        if job.slot is not slot:
            raise ValueError(f"{type(job).__name__} belongs to slot {job.slot.value}, not {slot.value}")

        previous = self._running.pop(slot, None)
        if previous is not None:
            self._supersede(previous)

        task = asyncio.create_task(job.execute(self._fetcher), name=f"oeis-{slot.value}")
        self._running[slot] = RunningJob(slot=slot, job=job, task=task)
        logger.debug("Job started | slot=%s | job=%r", slot.value, job)

    def cancel(self, slot: Slot):
        """Signal cancellation. The slot stays busy until the task reports completion."""
        running = self._running.get(slot)
        if running is None:
            return
        running.cancel_requested = True
        running.task.cancel()
        logger.debug("Job cancel requested | slot=%s", slot.value)

    def is_busy(self, slot: Slot) -> bool:
        return slot in self._running

    def busy(self) -> dict[Slot, bool]:
        return {slot: slot in self._running for slot in Slot}

    def poll(self) -> list[OutcomeEvent]:
        """Collect outcomes of finished jobs without blocking."""
        events = []
        for slot in Slot:
            running = self._running.get(slot)
            if running is None or not running.task.done():
                continue

            del self._running[slot]
            elapsed = time.monotonic() - running.started_at
            outcome = self._classify(running)

            if running.cancel_requested:
                logger.debug(
                    "Job outcome discarded after cancel | slot=%s | outcome=%s",
                    slot.value, outcome.tag,
                )
                continue

            self._log_outcome(slot, outcome, elapsed)
            events.append(OutcomeEvent(slot=slot, job=running.job, outcome=outcome, elapsed=elapsed))
        return events

    async def shutdown(self, timeout: float = 0.5):
        """Cancel every task and wait briefly for them to finish.

        Finished but unpolled outcomes are classified and discarded so no
        task exception is left unretrieved.
        """
        running_jobs = list(self._running.values())
        self._running.clear()

        for running in running_jobs:
            if running.task.done():
                outcome = self._classify(running)
                logger.debug(
                    "Job outcome discarded at shutdown | slot=%s | outcome=%s",
                    running.slot.value, outcome.tag,
                )

        pending = [running.task for running in running_jobs if not running.task.done()]
        pending.extend(task for task in self._superseded if not task.done())
        for task in pending:
            task.cancel()
        if pending:
            done, still_pending = await asyncio.wait(pending, timeout=timeout)
            for task in done:
                if not task.cancelled():
                    task.exception()
            for task in still_pending:
                logger.debug("Job task did not cancel before shutdown: %r", task)
        self._superseded.clear()

    def _supersede(self, previous: RunningJob):
        previous.task.cancel()
        self._superseded.add(previous.task)
        slot = previous.slot

        def _discard(task: asyncio.Task):
            self._superseded.discard(task)
            outcome = self._classify(previous)
            logger.debug("Superseded job discarded | slot=%s | outcome=%s", slot.value, outcome.tag)

        previous.task.add_done_callback(_discard)

    @staticmethod
    def _classify(running: RunningJob) -> JobOutcome:
        task = running.task
        label = running.slot.value
        if task.cancelled():
            return Cancelled(TaskAbnormalTermination(f"{label} task was cancelled"))

        exc = task.exception()
        if exc is None:
            return Success(task.result())
        if isinstance(exc, CollaboratorError):
            return Failure(exc)
        error = TaskAbnormalTermination(f"{label} task panicked: {exc}", panicked=True)
        error.__cause__ = exc
        return Cancelled(error)

    @staticmethod
    def _log_outcome(slot: Slot, outcome: JobOutcome, elapsed: float):
        elapsed_ms = int(elapsed * 1000)
        if isinstance(outcome, Success):
            logger.info("Job OK | slot=%s | %dms", slot.value, elapsed_ms)
        elif isinstance(outcome, Failure):
            logger.warning("Job failed | slot=%s | %dms | %s", slot.value, elapsed_ms, outcome.message[:200])
        elif outcome.panicked:
            logger.error(
                "Job panicked | slot=%s | %dms | %s", slot.value, elapsed_ms, outcome.message[:200],
                exc_info=outcome.error.__cause__,
            )
        else:
            logger.warning("Job aborted | slot=%s | %dms", slot.value, elapsed_ms)
