"""ViewedSequence model — per-sequence view ledger."""

from datetime import datetime

from sqlalchemy import DateTime, Integer
from sqlalchemy.orm import Mapped, mapped_column

from oeis_tui.models.base import Base


class ViewedSequence(Base):
    __tablename__ = "viewed_sequences"

    number: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    viewed_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    view_count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
