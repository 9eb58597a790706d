"""OEIS web API integration (search JSON, single lookups, B-files).

Docs: https://oeis.org/wiki/JSON_Format,_Compressed_Files

Every failure (HTTP status, transport, timeout, malformed body) is raised
as CollaboratorError so the job supervisor can report it as a value.
"""

import json
import logging
import random
import time
from typing import Any

import httpx
from pydantic import ValidationError

from oeis_tui.config import Settings, settings as default_settings
from oeis_tui.errors import CollaboratorError
from oeis_tui.orchestrator.schemas import (
    MANY_RESULTS,
    BFileEntry,
    SearchQuery,
    SearchResponse,
    Sequence,
    SequenceCategory,
)

logger = logging.getLogger(__name__)

# Approximate size of the encyclopedia, used for random picks.
MAX_SEQUENCE_NUMBER = 370000


class OEISClient:
    """Async client for the OEIS web API."""

    def __init__(self, cfg: Settings | None = None):
        cfg = cfg or default_settings
        self.base_url = cfg.base_url.rstrip("/")
        self.timeout = cfg.request_timeout_seconds
        self.headers = {"User-Agent": cfg.user_agent}

    async def search(self, query: SearchQuery, page_size: int) -> SearchResponse:
        """Run a search and return one page with an estimated total count."""
        body = await self._get_text(f"{self.base_url}/search", query.to_params(), "search")

        if body.strip() == "null":
            # Too many or no results; only the text format says which.
            text = await self._get_text(
                f"{self.base_url}/search", query.with_format("txt").to_params(), "search txt",
            )
            raise self._extract_error(text)

        sequences = self._parse_sequences(body)
        # The API gives no total: a full page means "many more", else it is exact.
        count = MANY_RESULTS if len(sequences) >= page_size else len(sequences)
        logger.info(
            "OEIS search OK | results=%d | start=%d | query=%s",
            len(sequences), query.start, query.query[:80],
        )
        return SearchResponse(count=count, results=sequences)

    async def fetch_one(self, number: int) -> Sequence | None:
        """Fetch a single sequence by its number, or None if it does not exist."""
        response = await self.search(SearchQuery(query=f"id:A{number:06d}"), page_size=10)
        return response.results[0] if response.results else None

    async def get_sequence(self, a_number: str) -> Sequence | None:
        """Fetch by A-number (``"A000045"``, ``"a45"`` or ``"45"``)."""
        digits = a_number.strip().lstrip("Aa")
        try:
            number = int(digits)
        except ValueError as e:
            raise CollaboratorError(f"Invalid A-number format: {a_number!r}") from e
        return await self.fetch_one(number)

    async def random_sequence(self) -> Sequence | None:
        """Pick a random sequence number and fetch it."""
        number = random.randint(1, MAX_SEQUENCE_NUMBER - 1)
        logger.debug("OEIS random pick | A%06d", number)
        return await self.fetch_one(number)

    async def fetch_by_category(self, category: SequenceCategory) -> SearchResponse:
        """Fetch one page of a keyword category (webcam mode)."""
        if category.query is None:
            raise ValueError(f"{category.value} is not a keyword category")
        return await self.search(SearchQuery(query=category.query), page_size=10)

    async def fetch_extended(self, number: int) -> list[BFileEntry]:
        """Fetch the B-file (extended terms) for a sequence."""
        text = await self._get_text(f"{self.base_url}/b{number:06d}.txt", None, "b-file")

        entries = [entry for entry in map(BFileEntry.parse, text.splitlines()) if entry is not None]
        logger.info("OEIS b-file OK | A%06d | entries=%d", number, len(entries))
        return entries

    async def _get_text(self, url: str, params: dict[str, str] | None, label: str) -> str:
        start = time.monotonic()
        try:
            async with httpx.AsyncClient(timeout=self.timeout, headers=self.headers) as client:
                resp = await client.get(url, params=params)
        except httpx.TimeoutException as e:
            elapsed_ms = int((time.monotonic() - start) * 1000)
            logger.warning("OEIS %s timeout | %dms", label, elapsed_ms)
            raise CollaboratorError(f"Request to OEIS timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            elapsed_ms = int((time.monotonic() - start) * 1000)
            logger.error("OEIS %s error | %dms | %s", label, elapsed_ms, str(e)[:200])
            raise CollaboratorError(f"Failed to reach OEIS: {e}") from e

        elapsed_ms = int((time.monotonic() - start) * 1000)
        if resp.status_code != 200:
            logger.warning("OEIS %s | status=%d | %dms", label, resp.status_code, elapsed_ms)
            raise CollaboratorError(f"OEIS API returned error: {resp.status_code}")

        logger.debug("OEIS %s | status=200 | %dms", label, elapsed_ms)
        return resp.text

    def _parse_sequences(self, body: str) -> list[Sequence]:
        """Accept either a bare JSON array or an object with a ``results`` list."""
        try:
            data: Any = json.loads(body)
        except ValueError as e:
            logger.error("OEIS JSON parse error: %s", str(e)[:200])
            raise CollaboratorError("Failed to parse JSON response from OEIS API") from e

        if isinstance(data, dict):
            data = data.get("results") or []
        if not isinstance(data, list):
            raise CollaboratorError("Unexpected response shape from OEIS API")

        try:
            return [Sequence.model_validate(item) for item in data]
        except ValidationError as e:
            logger.error("OEIS sequence validation error: %s", str(e)[:200])
            raise CollaboratorError("Malformed sequence in OEIS response") from e

    @staticmethod
    def _extract_error(text: str) -> CollaboratorError:
        """Map the text-format page that accompanies a ``null`` body to a message."""
        lowered = text.lower()
        if "too many to show" in lowered or "please refine your search" in lowered:
            return CollaboratorError("Too many results. Please narrow your search.")
        if "no results" in lowered or "sorry, but the terms do not match" in lowered:
            return CollaboratorError("No results found.")
        return CollaboratorError("Unable to parse OEIS response")
