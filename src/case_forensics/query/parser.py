"""Parse free-form user queries into search queries.

Supported directives:
  том: 1-3,7 / volume: 1-3,7   restrict the search to volumes

Court-decision queries are recognized by decision keywords; case
number, court and judge are pulled out of the text and the rest is
used as the full-text query.
"""

import re

from case_forensics.config import DEFAULT_COURT_KEYWORDS
from case_forensics.extract.patterns import FALLBACK_DOCUMENT_TYPES
from case_forensics.models import CourtDecisionQuery, SearchQuery

_VOLUME_DIRECTIVE_RE = re.compile(r"(?:том|volume)[:\s]+(\d+(?:\s*[-,]\s*\d+)*)", re.IGNORECASE)
_CASE_NUMBER_RE = re.compile(r"дело[:\s]*№?\s*(\d+[-/]\d+)", re.IGNORECASE)
_COURT_NAME_RE = re.compile(r"([А-ЯЁ][а-яё]+\s+[А-ЯЁа-яё][а-яё]+\s+(?i:суд))")
_JUDGE_RE = re.compile(
    r"(?i:судья)[:\s]+([А-ЯЁ][а-яё]+\s+[А-ЯЁ][а-яё]+\s+[А-ЯЁ][а-яё]+)"
)
_TOKEN_RE = re.compile(r"\w+")


def parse_number_range(text: str) -> list[int]:
    """Expand "1-5,7" into [1, 2, 3, 4, 5, 7].

    Raises:
        ValueError: If a part is not a number or a range of numbers.
    """
    numbers: list[int] = []
    for part in text.split(","):
        part = part.strip()
        if not part:
            continue
        if "-" in part:
            start, end = (int(x) for x in part.split("-", 1))
            numbers.extend(range(start, end + 1))
        else:
            numbers.append(int(part))
    return numbers


def to_fts_query(text: str) -> str:
    """Quote every word so free text is a valid FTS5 query (implicit AND)."""
    return " ".join(f'"{token}"' for token in _TOKEN_RE.findall(text))


def parse_search_query(text: str, limit: int | None = None) -> SearchQuery:
    volume_numbers = None
    match = _VOLUME_DIRECTIVE_RE.search(text)
    if match:
        volume_numbers = parse_number_range(re.sub(r"\s+", "", match.group(1)))
        text = text.replace(match.group(0), " ")
    return SearchQuery(
        query=to_fts_query(text),
        volume_numbers=volume_numbers,
        limit=limit,
    )


def is_court_decision_query(text: str, keywords: list[str] | None = None) -> bool:
    lower = text.lower()
    if keywords is None:
        keywords = DEFAULT_COURT_KEYWORDS
    return any(keyword.lower() in lower for keyword in keywords)


def parse_court_decision_query(text: str, limit: int = 10) -> CourtDecisionQuery:
    lower = text.lower()
    remaining = text

    def take(pattern: re.Pattern) -> str | None:
        nonlocal remaining
        match = pattern.search(remaining)
        if not match:
            return None
        remaining = remaining.replace(match.group(0), " ")
        return match.group(1)

    case_number = take(_CASE_NUMBER_RE)
    judge = take(_JUDGE_RE)
    court_name = take(_COURT_NAME_RE)

    document_type = None
    for keyword, doc_type in FALLBACK_DOCUMENT_TYPES:
        if keyword in lower:
            document_type = doc_type
            break

    volume_numbers = None
    match = _VOLUME_DIRECTIVE_RE.search(remaining)
    if match:
        volume_numbers = parse_number_range(re.sub(r"\s+", "", match.group(1)))
        remaining = remaining.replace(match.group(0), " ")

    return CourtDecisionQuery(
        query=to_fts_query(remaining) or None,
        case_number=case_number,
        court_name=court_name,
        judge=judge,
        document_type=document_type,
        volume_numbers=volume_numbers,
        limit=limit,
    )
