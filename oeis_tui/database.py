"""SQLite engine and session management for the local store.

Uses SQLAlchemy 2.0 in synchronous mode: the store has a single owner (the
update loop) and is never touched from background tasks.
"""

import logging
from pathlib import Path

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

logger = logging.getLogger(__name__)


def make_engine(db_path: Path | str) -> Engine:
    """Create an engine for the SQLite file at ``db_path``."""
    return create_engine(f"sqlite:///{db_path}", echo=False)


def make_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(engine, expire_on_commit=False)


def init_db(engine: Engine) -> None:
    """Create tables if they don't exist."""
    from oeis_tui.models import Base

    Base.metadata.create_all(engine)
    logger.info("Local store initialized | url=%s", engine.url)


def close_db(engine: Engine) -> None:
    """Dispose engine connections on shutdown."""
    engine.dispose()
    logger.info("Local store connections closed")
