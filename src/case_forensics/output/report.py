"""Markdown rendering of search hits, court decisions and comparisons."""

import logging

from case_forensics.models import (
    CaseStatistics,
    Comparison,
    CourtDecisionResult,
    SearchResult,
)

logger = logging.getLogger(__name__)

EXCERPT_CHARS = 300


def _excerpt(text: str, limit: int = EXCERPT_CHARS) -> str:
    text = " ".join(text.split())
    return text if len(text) <= limit else text[:limit].rstrip() + "..."


def format_search_result(result: SearchResult, full: bool = False) -> str:
    """Render one search hit with its relevance and optional context."""
    lines = [
        f"# Volume {result.volume_number}, page {result.page_number}",
        "",
        f"**Relevance**: {result.relevance * 100:.1f}%",
    ]
    if result.metadata.document_type:
        lines.append(f"**Page type**: {result.metadata.document_type.value}")
    if result.metadata.author:
        lines.append(f"**Author**: {result.metadata.author}")
    lines += ["", "---", "", result.text if full else _excerpt(result.text)]
    if full and result.context:
        lines += ["", "---", "", "### Context", "", result.context]
    if result.image_path:
        lines += ["", f"Image: {result.image_path}"]
    return "\n".join(lines)


def format_court_decision(result: CourtDecisionResult) -> str:
    fields = result.fields
    lines = [f"# {fields.document_type}", ""]
    if fields.case_number:
        lines.append(f"**Case number**: {fields.case_number}")
    if fields.court_name:
        lines.append(f"**Court**: {fields.court_name}")
    if fields.decision_date:
        lines.append(f"**Date**: {fields.decision_date.isoformat()}")
    if fields.judge:
        lines.append(f"**Judge**: {fields.judge}")

    parties = fields.parties.to_dict()
    if parties:
        lines += ["", "## Parties"]
        lines += [f"- **{role.capitalize()}**: {name}" for role, name in parties.items()]
    if fields.decision:
        lines += ["", "## Decision", "", fields.decision]
    if fields.reasoning:
        lines += ["", "## Reasoning", "", _excerpt(fields.reasoning, 1000)]

    lines += [
        "",
        "---",
        f"*Volume {result.volume_number}, page {result.page_number}, "
        f"relevance {result.relevance * 100:.1f}%*",
    ]
    return "\n".join(lines)


def format_comparison(comparison: Comparison, max_fragments: int = 5) -> str:
    """Render one comparison: both documents, scores, verdict and fragments."""
    doc1, doc2 = comparison.document1, comparison.document2
    lines = [
        f"# {doc1.author} vs {doc2.author}",
        "",
        f"- Document 1: volume {doc1.volume_number}, "
        f"pages {doc1.page_range[0]}-{doc1.page_range[1]} ({doc1.author})",
        f"- Document 2: volume {doc2.volume_number}, "
        f"pages {doc2.page_range[0]}-{doc2.page_range[1]} ({doc2.author})",
        f"- Text similarity: {comparison.text_similarity:.1f}%",
    ]
    if comparison.visual_similarity is not None:
        lines.append(f"- Visual similarity: {comparison.visual_similarity:.1f}%")
    lines.append(f"- Matched fragments: {len(comparison.matched_fragments)}")
    lines.append(f"- Suspicious: {'yes' if comparison.is_suspicious else 'no'}")

    if comparison.suspicious_reason:
        lines += ["", f"**Reason**: {comparison.suspicious_reason}"]
    lines += ["", f"**Review**: {comparison.human_review}"]

    fragments = comparison.matched_fragments[:max_fragments]
    if fragments:
        lines += ["", "## Matched fragments"]
        for fragment in fragments:
            lines.append(
                f"- [{fragment.position1[0]}:{fragment.position1[1]}] / "
                f"[{fragment.position2[0]}:{fragment.position2[1]}] "
                f"{_excerpt(fragment.text, 200)}"
            )
        hidden = len(comparison.matched_fragments) - len(fragments)
        if hidden > 0:
            lines.append(f"- ... and {hidden} more")
    return "\n".join(lines)


def format_statistics(stats: CaseStatistics) -> str:
    return "\n".join(
        [
            "# Case statistics",
            "",
            f"- Volumes: {stats.total_volumes}",
            f"- Indexed volumes: {stats.indexed_volumes}",
            f"- Failed volumes: {stats.error_volumes}",
            f"- Pages: {stats.total_pages}",
            f"- Suspicious comparisons: {stats.suspicious_comparisons}",
        ]
    )
