"""Shared test fixtures and configuration."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from oeis_tui.config import Settings
from oeis_tui.orchestrator.schemas import BFileEntry, SearchResponse, Sequence
from oeis_tui.services.store import LocalStore


class FakeClock:
    """Manually advanced UTC clock for TTL tests."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class FakeFetcher:
    """Stand-in for OEISClient with per-query gates and scripted results.

    A result that is an exception instance is raised instead of returned.
    """

    def __init__(self):
        self.search_results: dict[str, object] = {}
        self.random_result: object = None
        self.one_results: dict[int, object] = {}
        self.category_results: dict[object, object] = {}
        self.extended_result: object = []
        self.gates: dict[str, asyncio.Event] = {}
        self.calls: list[tuple] = []

    def gate(self, key: str) -> asyncio.Event:
        self.gates[key] = asyncio.Event()
        return self.gates[key]

    async def _wait(self, key: str):
        gate = self.gates.get(key)
        if gate is not None:
            await gate.wait()

    @staticmethod
    def _resolve(result):
        if isinstance(result, BaseException):
            raise result
        return result

    async def search(self, query, page_size):
        self.calls.append(("search", query.query, query.start))
        await self._wait(query.query)
        return self._resolve(self.search_results.get(query.query, SearchResponse()))

    async def random_sequence(self):
        self.calls.append(("random",))
        await self._wait("random")
        return self._resolve(self.random_result)

    async def fetch_one(self, number):
        self.calls.append(("one", number))
        await self._wait("one")
        return self._resolve(self.one_results.get(number))

    async def fetch_by_category(self, category):
        self.calls.append(("category", category.query))
        await self._wait("category")
        return self._resolve(self.category_results.get(category, SearchResponse()))

    async def fetch_extended(self, number):
        self.calls.append(("extended", number))
        await self._wait("extended")
        return self._resolve(self.extended_result)


def make_sequence(number: int, name: str = "Test sequence", data: str = "1,2,3,4,5") -> Sequence:
    return Sequence(number=number, name=name, data=data, offset="0,1", keyword="nonn,easy")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "oeis_cache.db"


@pytest.fixture
def store(db_path, clock):
    svc = LocalStore(db_path, clock=clock)
    yield svc
    svc.close()


@pytest.fixture
def fetcher():
    return FakeFetcher()


@pytest.fixture
def test_settings():
    return Settings(cache_max_age_days=30, results_per_page=15, recent_limit=8, history_limit=20)


@pytest.fixture
def fibonacci():
    return make_sequence(45, name="Fibonacci numbers: F(n) = F(n-1) + F(n-2) with F(0) = 0 and F(1) = 1.",
                         data="0,1,1,2,3,5,8,13,21,34,55,89,144")


@pytest.fixture
def primes():
    return make_sequence(40, name="The prime numbers.", data="2,3,5,7,11,13,17,19,23,29")


@pytest.fixture
def sample_bfile():
    return [BFileEntry(index=0, value="0"), BFileEntry(index=1, value="1"), BFileEntry(index=2, value="1")]


@pytest.fixture
def sample_oeis_sequence():
    """Sample OEIS JSON record as returned by /search?fmt=json."""
    return {
        "number": 45,
        "id": "M0692 N0256",
        "data": "0,1,1,2,3,5,8,13,21,34,55,89,144,233,377,610",
        "name": "Fibonacci numbers: F(n) = F(n-1) + F(n-2) with F(0) = 0 and F(1) = 1.",
        "comment": ["Also called Lamé's sequence."],
        "reference": ["A. T. Benjamin and J. J. Quinn, Proofs that Really Count."],
        "formula": ["G.f.: x/(1-x-x^2)."],
        "xref": ["Cf. A000032, A000071."],
        "keyword": "core,nonn,nice,easy,hear,changed",
        "offset": "0,4",
        "author": "_N. J. A. Sloane_, Apr 30 1991",
        "references": 2345,
        "revision": 1234,
        "time": "2025-10-01T12:00:00-04:00",
        "created": "1991-04-30T03:00:00-04:00",
    }


@pytest.fixture
def sample_bfile_text():
    """Sample B-file body with a comment header and junk line."""
    return "# A000045 b-file\n0 0\n1 1\n2 1\n\n3 2\nnot-a-line\n4 3\n"
