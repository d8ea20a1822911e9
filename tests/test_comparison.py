"""Tests for document comparison and the suspicious pair sweep.

Tests cover:
- Text normalization, template removal and similarity scoring
- Matched fragments and their offsets
- Suspicion verdicts, reasons and review recommendations
- Grouping pages into per-author documents
"""

from unittest.mock import MagicMock

import pytest

from case_forensics.compare.attribution import AuthorRange, RangeAttribution
from case_forensics.compare.engine import (
    ROUTINE_REVIEW,
    ComparisonEngine,
    normalize_text,
    remove_templates,
    split_sentences,
    text_similarity,
)
from case_forensics.models import ComparisonOptions, DocumentRef, Page, PageMetadata

SENTENCE = (
    "Допрошенный в качестве свидетеля гражданин Петров показал, что в вечернее время "
    "находился у себя дома и никаких посторонних звуков со стороны соседней квартиры не слышал"
)

COPIED_TEXT = (SENTENCE + ". ") * 5

UNRELATED_TEXT = (
    "Осмотром установлено: дверь квартиры металлическая, замок без повреждений. "
    "В комнате обнаружены следы обуви, изъяты на дактилопленку. Окна закрыты."
)


def _doc(text, author="Следователь", volume=1, page=1):
    return DocumentRef(volume_number=volume, page_range=(page, page), author=author, text=text)


@pytest.fixture
def engine():
    return ComparisonEngine()


@pytest.fixture
def options():
    return ComparisonOptions(templates=["руководствуясь статьей"])


# ------------------------------------------------------------------ #
#  Text helpers                                                       #
# ------------------------------------------------------------------ #


def test_normalize_text():
    assert normalize_text("  Протокол, ДОПРОСА!\n свидетеля ") == "протокол допроса свидетеля"


def test_remove_templates_is_case_insensitive():
    text = "Руководствуясь статьей 299 УПК РФ, суд постановил"
    assert remove_templates(text, ["руководствуясь статьей"]) == " 299 УПК РФ, суд постановил"


def test_text_similarity_bounds():
    assert text_similarity("abc", "abc") == 100.0
    assert text_similarity("", "abc") == 0.0
    assert text_similarity("abc", "") == 0.0
    assert text_similarity("abcd", "abce") == 75.0


def test_text_similarity_is_symmetric():
    assert text_similarity(COPIED_TEXT, UNRELATED_TEXT) == text_similarity(
        UNRELATED_TEXT, COPIED_TEXT
    )


def test_split_sentences_offsets():
    text = "Первое предложение. Второе! Третье"
    sentences = split_sentences(text)

    assert [s for s, _, _ in sentences] == ["Первое предложение", "Второе", "Третье"]
    for sentence, start, end in sentences:
        assert text[start:end] == sentence


# ------------------------------------------------------------------ #
#  Pair comparison                                                    #
# ------------------------------------------------------------------ #


def test_identical_documents_are_suspicious(engine, options):
    comparison = engine.compare_documents(
        _doc(COPIED_TEXT), _doc(COPIED_TEXT, author="Прокурор", volume=2), options
    )

    assert comparison.text_similarity == 100.0
    assert comparison.is_suspicious
    assert "High textual overlap: 100.0%" in comparison.suspicious_reason
    assert comparison.human_review.startswith("CRITICAL")
    assert comparison.id == "1_1_vs_2_1"
    assert comparison.visual_similarity is None


def test_unrelated_documents_get_routine_review(engine, options):
    comparison = engine.compare_documents(
        _doc(COPIED_TEXT), _doc(UNRELATED_TEXT, author="Прокурор"), options
    )

    assert comparison.text_similarity < options.suspicious_text_threshold
    assert not comparison.is_suspicious
    assert comparison.suspicious_reason is None
    assert comparison.human_review == ROUTINE_REVIEW
    assert comparison.matched_fragments == []


def test_comparison_is_symmetric_in_similarity(engine, options):
    a, b = _doc(COPIED_TEXT), _doc(COPIED_TEXT[:300] + UNRELATED_TEXT, author="Прокурор")

    assert (
        engine.compare_documents(a, b, options).text_similarity
        == engine.compare_documents(b, a, options).text_similarity
    )


def test_matched_fragments_respect_min_length_and_offsets(engine, options):
    text2 = "Вводная часть. " + SENTENCE + ". Короткая фраза."
    fragments = engine.find_matched_fragments(COPIED_TEXT, text2, options)

    assert len(fragments) == 5
    for fragment in fragments:
        assert len(fragment.text) >= options.min_match_length
        start1, end1 = fragment.position1
        start2, end2 = fragment.position2
        assert COPIED_TEXT[start1:end1] == fragment.text
        assert text2[start2:end2] == SENTENCE


def test_short_sentences_never_match(engine):
    options = ComparisonOptions(min_match_length=1000)
    assert engine.find_matched_fragments(COPIED_TEXT, COPIED_TEXT, options) == []


def test_many_fragments_make_pair_suspicious(engine):
    options = ComparisonOptions(suspicious_text_threshold=101.0, ignore_templates=False)
    padding = " ".join(["Иная информация по делу."] * 200)
    comparison = engine.compare_documents(
        _doc(COPIED_TEXT), _doc(padding + " " + COPIED_TEXT, author="Прокурор"), options
    )

    assert len(comparison.matched_fragments) >= 5
    assert comparison.is_suspicious
    assert "matching fragments found" in comparison.suspicious_reason


def test_text_threshold_alone_makes_pair_suspicious(engine):
    options = ComparisonOptions(min_match_length=1000)
    comparison = engine.compare_documents(
        _doc(COPIED_TEXT), _doc(COPIED_TEXT, author="Прокурор", volume=2), options
    )

    assert comparison.matched_fragments == []
    assert comparison.visual_similarity is None
    assert comparison.text_similarity == 100.0
    assert comparison.is_suspicious


@pytest.mark.parametrize(
    "similarity, visual, fragments, expected",
    [
        (70.0, None, 0, True),
        (69.9, None, 0, False),
        (10.0, 70.0, 0, True),
        (10.0, 69.9, 0, False),
        (10.0, None, 5, True),
        (10.0, None, 4, False),
    ],
)
def test_suspicion_verdict(similarity, visual, fragments, expected):
    options = ComparisonOptions()
    assert ComparisonEngine.is_suspicious(similarity, visual, fragments, options) is expected


def test_visual_similarity_used_when_multimodal(options):
    comparator = MagicMock()
    comparator.compare.return_value = 95.0
    engine = ComparisonEngine(visual_comparator=comparator)
    options.use_multimodal = True

    doc1 = _doc(UNRELATED_TEXT)
    doc1.image_path = "a.png"
    doc2 = _doc(COPIED_TEXT, author="Прокурор")
    doc2.image_path = "b.png"
    comparison = engine.compare_documents(doc1, doc2, options)

    assert comparison.visual_similarity == 95.0
    assert comparison.text_similarity < options.suspicious_text_threshold
    assert comparison.matched_fragments == []
    assert comparison.is_suspicious
    assert "High visual overlap: 95.0%" in comparison.suspicious_reason


def test_visual_failure_degrades_to_none(options):
    comparator = MagicMock()
    comparator.compare.side_effect = RuntimeError("model unavailable")
    engine = ComparisonEngine(visual_comparator=comparator)

    doc1, doc2 = _doc("a"), _doc("b", author="Прокурор")
    doc1.image_path = doc2.image_path = "page.png"

    assert engine.compare_visually(doc1, doc2) is None


def test_visual_without_comparator(engine):
    assert engine.compare_visually(_doc("a"), _doc("b")) is None


def test_page_renderer_used_for_documents_without_images(tmp_path):
    comparator = MagicMock()
    comparator.compare.return_value = 50.0
    renderer = MagicMock(return_value=tmp_path / "page.png")
    engine = ComparisonEngine(visual_comparator=comparator, page_renderer=renderer)

    doc1, doc2 = _doc("a"), _doc("b", author="Прокурор", page=4)
    doc1.pdf_path = doc2.pdf_path = "/case/volume_1.pdf"

    assert engine.compare_visually(doc1, doc2) == 50.0
    renderer.assert_any_call("/case/volume_1.pdf", 4)


# ------------------------------------------------------------------ #
#  Grouping and sweep                                                 #
# ------------------------------------------------------------------ #


def _pages():
    texts = ["Страница один.", "Страница два.", COPIED_TEXT, "Страница четыре.", COPIED_TEXT]
    return [Page(volume_number=1, page_number=i, text=t) for i, t in enumerate(texts, start=1)]


def _attribution():
    return RangeAttribution(
        [
            AuthorRange(volume=1, start_page=1, end_page=3, author="Следователь"),
            AuthorRange(volume=1, start_page=5, end_page=5, author="Прокурор"),
        ]
    )


def test_group_documents_joins_consecutive_pages():
    groups = ComparisonEngine.group_documents(
        _pages(), _attribution(), volume_paths={1: "/case/volume_1.pdf"}
    )

    assert sorted(groups) == ["Прокурор", "Следователь"]
    investigator = groups["Следователь"][0]
    assert investigator.page_range == (1, 3)
    assert investigator.text.startswith("Страница один.\nСтраница два.")
    assert investigator.pdf_path == "/case/volume_1.pdf"
    # Page 4 has no author and is skipped
    assert groups["Прокурор"][0].page_range == (5, 5)


def test_group_documents_uses_stored_authors():
    pages = _pages()
    pages[0].metadata = PageMetadata(author="Следователь")
    pages[1].metadata = PageMetadata(author="Следователь")

    groups = ComparisonEngine.group_documents(pages)

    assert list(groups) == ["Следователь"]
    assert groups["Следователь"][0].page_range == (1, 2)


def test_find_suspicious_pairs(engine, options):
    comparisons = engine.find_suspicious_pairs(_pages(), options, attribution=_attribution())

    assert len(comparisons) == 1
    assert comparisons[0].document1.author == "Прокурор"
    assert comparisons[0].document2.author == "Следователь"
    assert comparisons[0].is_suspicious


def test_find_suspicious_pairs_needs_two_authors(engine, options):
    attribution = RangeAttribution(
        [AuthorRange(volume=1, start_page=1, end_page=5, author="Следователь")]
    )
    assert engine.find_suspicious_pairs(_pages(), options, attribution=attribution) == []
