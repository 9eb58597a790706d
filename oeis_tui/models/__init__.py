"""SQLAlchemy ORM models."""

from oeis_tui.models.base import Base
from oeis_tui.models.bookmarks import Bookmark
from oeis_tui.models.cached_results import CachedSearch, CachedSequence
from oeis_tui.models.search_history import SearchHistory
from oeis_tui.models.viewed_sequences import ViewedSequence

__all__ = [
    "Base",
    "Bookmark",
    "CachedSearch",
    "CachedSequence",
    "SearchHistory",
    "ViewedSequence",
]
