"""SearchHistory model — append-only log of submitted queries."""

from datetime import datetime

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from oeis_tui.models.base import Base


class SearchHistory(Base):
    """One row per search; deduplicated only when read."""

    __tablename__ = "search_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    query: Mapped[str] = mapped_column(String(512), nullable=False)
    searched_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
