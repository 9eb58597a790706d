"""oeis-tui runtime — wires the core together and drives the tick loop.

The presentation layer supplies a ``render`` callable that receives one
StateSnapshot per frame, and a ``should_quit`` predicate.
"""

import asyncio
import logging
import time
from collections.abc import Callable

from oeis_tui.config import Settings, settings as default_settings
from oeis_tui.integrations.oeis import OEISClient
from oeis_tui.orchestrator.state import ApplicationState, StateSnapshot
from oeis_tui.services.jobs import JobSupervisor
from oeis_tui.services.store import LocalStore
from oeis_tui.utils.paths import DB_FILE_NAME, LOG_FILE_NAME, config_file

logger = logging.getLogger("oeis_tui")


def configure_logging(cfg: Settings | None = None):
    """Log to a file in the data directory; stdout belongs to the terminal UI."""
    cfg = cfg or default_settings
    logging.basicConfig(
        level=cfg.log_level.upper(),
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        filename=config_file(LOG_FILE_NAME, cfg),
    )


def build_state(cfg: Settings | None = None) -> ApplicationState:
    """Create the store, client and supervisor. Call from inside the event loop."""
    cfg = cfg or default_settings
    store = LocalStore(config_file(DB_FILE_NAME, cfg))
    supervisor = JobSupervisor(OEISClient(cfg))
    logger.info(
        "oeis-tui starting | cache_max_age_days=%d | results_per_page=%d",
        cfg.cache_max_age_days, cfg.results_per_page,
    )
    return ApplicationState(store=store, supervisor=supervisor, settings=cfg)


async def run_loop(
    state: ApplicationState,
    render: Callable[[StateSnapshot], None],
    should_quit: Callable[[], bool],
):
    """Tick at a steady cadence until ``should_quit`` returns True, then shut down."""
    cfg = state.settings
    try:
        while True:
            frame_start = time.monotonic()
            snapshot = state.tick()
            render(snapshot)
            if should_quit():
                return

            frame_ms = cfg.fast_frame_ms if snapshot.searching else cfg.frame_ms
            remaining = frame_ms / 1000 - (time.monotonic() - frame_start)
            # Always yield so background jobs make progress.
            await asyncio.sleep(max(remaining, 0))
    finally:
        await state.supervisor.shutdown()
        state.store.close()
        logger.info("oeis-tui shutting down")
