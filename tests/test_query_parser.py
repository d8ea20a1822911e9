"""Tests for free-form query parsing."""

import pytest

from case_forensics.query.parser import (
    is_court_decision_query,
    parse_court_decision_query,
    parse_number_range,
    parse_search_query,
    to_fts_query,
)


def test_parse_number_range():
    assert parse_number_range("1-3,7") == [1, 2, 3, 7]
    assert parse_number_range("5") == [5]
    assert parse_number_range("2, 4,") == [2, 4]


def test_parse_number_range_rejects_garbage():
    with pytest.raises(ValueError):
        parse_number_range("a-b")


def test_to_fts_query_quotes_words():
    assert to_fts_query("протокол допроса, свидетеля!") == '"протокол" "допроса" "свидетеля"'
    assert to_fts_query('AND "OR" NEAR(') == '"AND" "OR" "NEAR"'
    assert to_fts_query("  ,. ") == ""


def test_parse_search_query_with_volume_directive():
    query = parse_search_query("том: 1-3,7 протокол допроса")

    assert query.volume_numbers == [1, 2, 3, 7]
    assert query.query == '"протокол" "допроса"'
    assert query.limit is None


def test_parse_search_query_english_directive_and_limit():
    query = parse_search_query("показания volume 2", limit=3)

    assert query.volume_numbers == [2]
    assert query.query == '"показания"'
    assert query.limit == 3


def test_parse_search_query_without_directive():
    query = parse_search_query("осмотр места происшествия")
    assert query.volume_numbers is None
    assert query.query == '"осмотр" "места" "происшествия"'


def test_is_court_decision_query():
    assert is_court_decision_query("Найти приговор по делу")
    assert is_court_decision_query("где суд постановил")
    assert not is_court_decision_query("протокол допроса свидетеля")


def test_is_court_decision_query_with_configured_keywords():
    assert is_court_decision_query("Протокол допроса", keywords=["протокол"])
    assert not is_court_decision_query("Найти приговор", keywords=["протокол"])


def test_parse_court_decision_query():
    query = parse_court_decision_query(
        "приговор судья Петрова Анна Сергеевна дело № 123/2024 Ленинский районный суд",
        limit=5,
    )

    assert query.case_number == "123/2024"
    assert query.judge == "Петрова Анна Сергеевна"
    assert query.court_name == "Ленинский районный суд"
    assert query.document_type == "приговор"
    assert query.query == '"приговор"'
    assert query.limit == 5


def test_parse_court_decision_query_with_volumes():
    query = parse_court_decision_query("решение суда том: 4")

    assert query.document_type == "решение суда"
    assert query.volume_numbers == [4]
    assert query.query == '"решение" "суда"'


def test_parse_court_decision_query_without_residual_text():
    query = parse_court_decision_query("дело 5-10")

    assert query.case_number == "5-10"
    assert query.query is None
    assert query.document_type is None
