"""Tests for Pydantic schemas — sequence helpers, query paging, B-file lines."""

import pytest
from pydantic import ValidationError

from oeis_tui.orchestrator.schemas import (
    BFileEntry,
    SearchQuery,
    SearchResponse,
    Sequence,
    SequenceCategory,
    WebcamInterval,
)


class TestSequence:
    def test_minimal(self):
        seq = Sequence(number=45)
        assert seq.name == ""
        assert seq.comment == []
        assert seq.references == 0

    def test_number_required(self):
        with pytest.raises(ValidationError):
            Sequence(name="missing number")

    def test_identifiers_and_urls(self, sample_oeis_sequence):
        seq = Sequence(**sample_oeis_sequence)
        assert seq.a_number == "A000045"
        assert seq.url == "https://oeis.org/A000045"
        assert seq.b_file_url == "https://oeis.org/b000045.txt"

    def test_parse_data_keeps_big_terms_as_strings(self):
        seq = Sequence(number=1, data="1, 2,3,,99999999999999999999999")
        assert seq.parse_data() == ["1", "2", "3", "99999999999999999999999"]

    def test_parse_offset(self):
        assert Sequence(number=1, offset="1,3").parse_offset() == (1, 3)
        assert Sequence(number=1, offset="").parse_offset() == (0, 1)
        assert Sequence(number=1, offset="-2").parse_offset() == (-2, 1)
        assert Sequence(number=1, offset="x,y").parse_offset() == (0, 1)

    def test_keywords(self, sample_oeis_sequence):
        seq = Sequence(**sample_oeis_sequence)
        assert "nice" in seq.keywords()
        assert seq.has_keyword("easy")
        assert not seq.has_keyword("dead")


class TestSearchResponse:
    def test_defaults(self):
        response = SearchResponse()
        assert response.count == 0
        assert response.results == []

    def test_json_round_trip(self, sample_oeis_sequence):
        response = SearchResponse(count=1, results=[Sequence(**sample_oeis_sequence)])
        assert SearchResponse.model_validate_json(response.model_dump_json()) == response


class TestSearchQuery:
    def test_params(self):
        query = SearchQuery(query="1,1,2,3,5")
        assert query.to_params() == {"q": "1,1,2,3,5", "fmt": "json", "start": "0"}

    def test_paging(self):
        query = SearchQuery(query="primes")
        page2 = query.next_page(15)
        assert page2.start == 15
        assert page2.prev_page(15).start == 0
        assert query.start == 0

    def test_prev_page_clamps_at_zero(self):
        assert SearchQuery(query="primes", start=5).prev_page(15).start == 0

    def test_with_format(self):
        assert SearchQuery(query="primes").with_format("txt").to_params()["fmt"] == "txt"


class TestBFileEntry:
    def test_parse_valid(self):
        assert BFileEntry.parse("10 55") == BFileEntry(index=10, value="55")

    def test_parse_negative_and_extra_columns(self):
        assert BFileEntry.parse("  -1   7   extra ") == BFileEntry(index=-1, value="7")

    @pytest.mark.parametrize("line", ["", "   ", "# comment", "42", "x 1"])
    def test_parse_rejects(self, line):
        assert BFileEntry.parse(line) is None


class TestWebcamSettings:
    def test_category_queries(self):
        assert SequenceCategory.ALL.query is None
        assert SequenceCategory.BEST.query == "keyword:nice"
        assert SequenceCategory.NEEDING_TERMS.query == "keyword:more"
        assert SequenceCategory.RECENT.query == "keyword:new"

    def test_manual_interval_has_no_period(self):
        assert WebcamInterval.MANUAL.seconds is None
        assert WebcamInterval.THIRTY_SECONDS.seconds == 30
