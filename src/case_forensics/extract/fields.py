"""Derive structured legal fields from the raw text of a page.

Each field is resolved independently by its pattern table in
``case_forensics.extract.patterns``: the first pattern that matches
wins and its capture group is the value.
"""

import logging
from datetime import date

from case_forensics.extract.patterns import (
    CASE_NUMBER_PATTERNS,
    COURT_NAME_PATTERNS,
    DATE_PATTERNS,
    DECISION_PATTERNS,
    DEFAULT_DOCUMENT_TYPE,
    FALLBACK_DOCUMENT_TYPES,
    JUDGE_PATTERNS,
    MONTHS,
    PAGE_TYPE_KEYWORDS,
    PARTY_PATTERNS,
    REASONING_PATTERNS,
    PatternTable,
)
from case_forensics.models import DecisionFields, PageType, Parties

logger = logging.getLogger(__name__)


def first_match(text: str, table: PatternTable) -> str | None:
    """Return the capture of the first matching pattern, stripped."""
    for pattern, group in table:
        match = pattern.search(text)
        if match:
            value = match.group(group).strip()
            if value:
                return value
    return None


def parse_date(text: str) -> date | None:
    """Find the first valid date in text.

    Supports "15 января 2024 года", "15.01.2024" and "2024-01-15".
    Matches that do not form a calendar date are skipped.
    """
    for pattern in DATE_PATTERNS:
        for match in pattern.finditer(text):
            month = match.group("month")
            if month.isdigit():
                month_number = int(month)
            else:
                month_number = MONTHS[month.lower()] + 1
            try:
                return date(int(match.group("year")), month_number, int(match.group("day")))
            except ValueError:
                logger.debug(f"Skipping invalid date {match.group(0)!r}")
    return None


def classify_page_type(text: str) -> PageType:
    """Tag a page as protocol, testimony, decision or other."""
    lower = text.lower()
    for page_type, keywords in PAGE_TYPE_KEYWORDS:
        if any(keyword in lower for keyword in keywords):
            return PageType(page_type)
    return PageType.OTHER


class FieldExtractor:
    """Extracts case number, date, court, judge, parties and decision text.

    Args:
        document_types: Ordered document-type keywords checked before
            the built-in fallback list.
    """

    def __init__(self, document_types: list[str] | None = None):
        self.document_types = list(document_types or [])

    def detect_document_type(self, text: str) -> str:
        lower = text.lower()
        for doc_type in self.document_types:
            if doc_type.lower() in lower:
                return doc_type
        for keyword, doc_type in FALLBACK_DOCUMENT_TYPES:
            if keyword in lower:
                return doc_type
        return DEFAULT_DOCUMENT_TYPE

    def extract_case_number(self, text: str) -> str | None:
        return first_match(text, CASE_NUMBER_PATTERNS)

    def extract_date(self, text: str) -> date | None:
        return parse_date(text)

    def extract_court_name(self, text: str) -> str | None:
        return first_match(text, COURT_NAME_PATTERNS)

    def extract_judge(self, text: str) -> str | None:
        return first_match(text, JUDGE_PATTERNS)

    def extract_parties(self, text: str) -> Parties:
        return Parties(
            **{role: first_match(text, table) for role, table in PARTY_PATTERNS.items()}
        )

    def extract_decision(self, text: str) -> str | None:
        return first_match(text, DECISION_PATTERNS)

    def extract_reasoning(self, text: str) -> str | None:
        return first_match(text, REASONING_PATTERNS)

    def classify_page_type(self, text: str) -> PageType:
        return classify_page_type(text)

    def parse(self, text: str) -> DecisionFields:
        """Derive every structured field of a page."""
        return DecisionFields(
            document_type=self.detect_document_type(text),
            case_number=self.extract_case_number(text),
            decision_date=self.extract_date(text),
            court_name=self.extract_court_name(text),
            judge=self.extract_judge(text),
            parties=self.extract_parties(text),
            decision=self.extract_decision(text),
            reasoning=self.extract_reasoning(text),
        )
