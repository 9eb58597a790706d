"""Bookmark model — user-curated sequences, exempt from cache clearing."""

from datetime import datetime

from sqlalchemy import DateTime, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from oeis_tui.models.base import Base


class Bookmark(Base):
    __tablename__ = "bookmarks"

    number: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    bookmarked_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
