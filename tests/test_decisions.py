"""Tests for structured court-decision search over an indexed case."""

from datetime import date

import pytest

from case_forensics.extract.decisions import CourtDecisionSearch
from case_forensics.index.store import SearchError
from case_forensics.models import CourtDecisionQuery


@pytest.fixture
def decisions(indexed):
    return CourtDecisionSearch(indexed)


def test_search_by_case_number(decisions):
    results = decisions.search_by_case_number("1-23/2024")

    assert [r.id for r in results] == ["1_3", "2_1"]
    assert all(r.relevance == 1.0 for r in results)


def test_search_by_judge_derives_fields(decisions):
    results = decisions.search_by_judge("Петрова")

    assert [r.id for r in results] == ["2_1"]
    fields = results[0].fields
    assert fields.document_type == "приговор"
    assert fields.judge == "Петрова Анна Сергеевна"
    assert fields.court_name == "Ленинский районный суд"
    assert fields.decision_date == date(2024, 3, 15)
    assert results[0].full_text.startswith("Приговор.")


def test_search_by_court(decisions):
    assert [r.id for r in decisions.search_by_court("районный суд")] == ["2_1"]


def test_document_type_is_filtered_after_parsing(decisions):
    query = CourtDecisionQuery(case_number="1-23/2024", document_type="постановление")
    assert [r.id for r in decisions.search_structured(query)] == ["1_3"]


def test_search_by_date_range(decisions):
    results = decisions.search_by_date_range(date(2024, 3, 1), date(2024, 3, 31))
    assert [r.id for r in results] == ["2_1"]

    assert decisions.search_by_date_range(date(2020, 1, 1), date(2020, 12, 31)) == []


def test_search_by_keywords(decisions):
    results = decisions.search_by_keywords(["суд постановил"])

    assert [r.id for r in results] == ["2_1"]
    assert 0.0 < results[0].relevance <= 1.0


def test_volume_filter_and_limit(decisions):
    query = CourtDecisionQuery(volume_numbers=[1], limit=2)
    assert [r.id for r in decisions.search_structured(query)] == ["1_1", "1_2"]


def test_empty_query_matches_every_page(decisions):
    assert len(decisions.search_structured(CourtDecisionQuery(limit=100))) == 5


def test_malformed_query_raises(decisions):
    with pytest.raises(SearchError):
        decisions.search_structured(CourtDecisionQuery(query='"unbalanced'))


def test_full_text_results_in_descending_relevance(decisions):
    results = decisions.search_structured(CourtDecisionQuery(query="протокол"))

    assert {r.id for r in results} == {"1_1", "2_2"}
    relevances = [r.relevance for r in results]
    assert relevances == sorted(relevances, reverse=True)
