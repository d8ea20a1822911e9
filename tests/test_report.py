"""Tests for markdown rendering."""

from datetime import date

from case_forensics.models import (
    CaseStatistics,
    Comparison,
    CourtDecisionResult,
    DecisionFields,
    DocumentRef,
    MatchedFragment,
    PageMetadata,
    PageType,
    Parties,
    SearchResult,
)
from case_forensics.output.report import (
    format_comparison,
    format_court_decision,
    format_search_result,
    format_statistics,
)


def test_search_result_excerpt_and_full():
    result = SearchResult(
        id="3_14",
        volume_number=3,
        page_number=14,
        text="слово " * 200,
        relevance=0.456,
        context="следующая страница",
        metadata=PageMetadata(document_type=PageType.TESTIMONY, author="Следователь"),
    )

    short = format_search_result(result)
    assert "# Volume 3, page 14" in short
    assert "**Relevance**: 45.6%" in short
    assert "**Page type**: testimony" in short
    assert short.endswith("...")
    assert "Context" not in short

    full = format_search_result(result, full=True)
    assert "### Context" in full
    assert "следующая страница" in full


def test_court_decision():
    result = CourtDecisionResult(
        id="2_1",
        volume_number=2,
        page_number=1,
        relevance=1.0,
        fields=DecisionFields(
            document_type="приговор",
            case_number="123/2024",
            decision_date=date(2024, 3, 15),
            judge="Петрова Анна Сергеевна",
            parties=Parties(defendant="Сидоров Семен Семенович"),
            decision="признать виновным",
        ),
        full_text="...",
    )

    text = format_court_decision(result)

    assert text.startswith("# приговор")
    assert "**Case number**: 123/2024" in text
    assert "**Date**: 2024-03-15" in text
    assert "- **Defendant**: Сидоров Семен Семенович" in text
    assert "Plaintiff" not in text
    assert "## Decision" in text


def test_comparison_truncates_fragments():
    doc1 = DocumentRef(volume_number=1, page_range=(1, 3), author="Следователь", text="a")
    doc2 = DocumentRef(volume_number=2, page_range=(5, 5), author="Прокурор", text="a")
    fragments = [MatchedFragment(f"фрагмент {i}", (i, i + 1), (i, i + 1)) for i in range(8)]
    comparison = Comparison(
        id="1_1_vs_2_5",
        document1=doc1,
        document2=doc2,
        text_similarity=93.4,
        matched_fragments=fragments,
        is_suspicious=True,
        human_review="CRITICAL: near-identical copy.",
        suspicious_reason="Possible copying.",
    )

    text = format_comparison(comparison, max_fragments=5)

    assert "# Следователь vs Прокурор" in text
    assert "pages 1-3" in text
    assert "- Text similarity: 93.4%" in text
    assert "- Suspicious: yes" in text
    assert "Visual similarity" not in text
    assert "- ... and 3 more" in text


def test_statistics():
    text = format_statistics(CaseStatistics(4, 120, 3, 1, 2))
    assert "- Volumes: 4" in text
    assert "- Pages: 120" in text
    assert "- Suspicious comparisons: 2" in text
