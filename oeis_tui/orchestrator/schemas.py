"""Pydantic models shared by the client, the local store and the app state.

Split into: remote payloads, query builder, and store projections.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

OEIS_URL = "https://oeis.org"

# Returned as the count when a full page came back; the API gives no total.
MANY_RESULTS = 100


# ═══════════════ REMOTE PAYLOADS ═══════════════

class Sequence(BaseModel):
    """A single OEIS sequence with its metadata."""

    number: int
    id: str = ""
    data: str = ""
    name: str = ""
    offset: str = ""
    comment: list[str] = Field(default_factory=list)
    reference: list[str] = Field(default_factory=list)
    link: list[str] = Field(default_factory=list)
    formula: list[str] = Field(default_factory=list)
    example: list[str] = Field(default_factory=list)
    maple: list[str] = Field(default_factory=list)
    mathematica: list[str] = Field(default_factory=list)
    program: list[str] = Field(default_factory=list)
    xref: list[str] = Field(default_factory=list)
    keyword: str = ""
    author: str = ""
    created: str = ""
    time: str = ""
    references: int = 0
    revision: int = 0

    @property
    def a_number(self) -> str:
        return f"A{self.number:06d}"

    @property
    def url(self) -> str:
        return f"{OEIS_URL}/{self.a_number}"

    @property
    def b_file_url(self) -> str:
        return f"{OEIS_URL}/b{self.number:06d}.txt"

    def parse_data(self) -> list[str]:
        """Split the comma-separated terms; values stay strings (arbitrary precision)."""
        return [part.strip() for part in self.data.split(",") if part.strip()]

    def parse_offset(self) -> tuple[int, int]:
        """Return (start_index, first_index_of_1), defaulting to (0, 1)."""
        parts = self.offset.split(",")
        return _int_or(parts, 0, 0), _int_or(parts, 1, 1)

    def keywords(self) -> list[str]:
        return [k.strip() for k in self.keyword.split(",") if k.strip()]

    def has_keyword(self, keyword: str) -> bool:
        return keyword in self.keywords()


def _int_or(parts: list[str], index: int, default: int) -> int:
    try:
        return int(parts[index].strip())
    except (IndexError, ValueError):
        return default


class SearchResponse(BaseModel):
    """One page of search results with an estimated total."""

    count: int = 0
    results: list[Sequence] = Field(default_factory=list)


class BFileEntry(BaseModel):
    """One (index, value) pair from a B-file."""

    index: int
    value: str

    @classmethod
    def parse(cls, line: str) -> BFileEntry | None:
        """Parse an ``index value`` line. Comments, blanks and junk give None."""
        line = line.strip()
        if not line or line.startswith("#"):
            return None

        parts = line.split()
        if len(parts) < 2:
            return None
        try:
            index = int(parts[0])
        except ValueError:
            return None
        return cls(index=index, value=parts[1])


# ═══════════════ QUERY ═══════════════

class SearchQuery(BaseModel):
    """Search query builder with pagination offset."""

    query: str
    format: str = "json"
    start: int = 0

    def with_format(self, fmt: str) -> SearchQuery:
        return self.model_copy(update={"format": fmt})

    def with_start(self, start: int) -> SearchQuery:
        return self.model_copy(update={"start": start})

    def next_page(self, page_size: int) -> SearchQuery:
        return self.with_start(self.start + page_size)

    def prev_page(self, page_size: int) -> SearchQuery:
        return self.with_start(max(self.start - page_size, 0))

    def to_params(self) -> dict[str, str]:
        return {"q": self.query, "fmt": self.format, "start": str(self.start)}


# ═══════════════ WEBCAM ═══════════════

class SequenceCategory(str, Enum):
    """Pool the webcam picks from. ALL is a random pick over the whole encyclopedia."""
    ALL = "all"
    BEST = "best"
    NEEDING_TERMS = "needing_terms"
    RECENT = "recent"
    UNEDITED = "unedited"

    @property
    def query(self) -> str | None:
        return CATEGORY_QUERIES.get(self)


# No endpoint lists recent or unedited sequences, so both use keyword:new.
CATEGORY_QUERIES = {
    SequenceCategory.BEST: "keyword:nice",
    SequenceCategory.NEEDING_TERMS: "keyword:more",
    SequenceCategory.RECENT: "keyword:new",
    SequenceCategory.UNEDITED: "keyword:new",
}


class WebcamInterval(int, Enum):
    """Auto-advance period in seconds; MANUAL never advances on its own."""
    MANUAL = 0
    FIVE_SECONDS = 5
    TEN_SECONDS = 10
    TWENTY_SECONDS = 20
    THIRTY_SECONDS = 30
    ONE_MINUTE = 60

    @property
    def seconds(self) -> int | None:
        return self.value or None


# ═══════════════ STORE PROJECTIONS ═══════════════

class HistoryEntry(BaseModel):
    query: str
    searched_at: datetime


class ViewRecord(BaseModel):
    number: int
    viewed_at: datetime
    view_count: int


class RecentView(BaseModel):
    """A view record joined with the cached sequence name."""
    number: int
    name: str
    view_count: int
    viewed_at: datetime


class BookmarkEntry(BaseModel):
    number: int
    bookmarked_at: datetime
    notes: str | None = None


class CacheStats(BaseModel):
    """Row counts for each of the five collections."""
    cached_searches: int = 0
    cached_sequences: int = 0
    total_searches: int = 0
    viewed_sequences: int = 0
    bookmarked_sequences: int = 0
