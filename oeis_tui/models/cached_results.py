"""Cache tables — serialized search responses and single sequences.

Expiry is decided by the reader from ``cached_at``; rows are never evicted
in the background and stay until overwritten or cleared.
"""

from datetime import datetime

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from oeis_tui.models.base import Base


class CachedSearch(Base):
    """Search response keyed by normalized query text."""

    __tablename__ = "search_cache"

    query: Mapped[str] = mapped_column(String(512), primary_key=True)
    response: Mapped[str] = mapped_column(Text, nullable=False)
    cached_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class CachedSequence(Base):
    """Single sequence keyed by its OEIS number."""

    __tablename__ = "sequence_cache"

    number: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    data: Mapped[str] = mapped_column(Text, nullable=False)
    cached_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
