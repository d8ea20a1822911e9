"""Structured search for court decisions.

A structured query combines an optional full-text match with substring
filters on case number, court and judge. Every hit is parsed by the
FieldExtractor; derived document type and decision date are filtered
after parsing.
"""

import logging
import sqlite3
from datetime import date

from case_forensics.extract.fields import FieldExtractor
from case_forensics.index.store import IndexStore, SearchError, relevance_from_rank
from case_forensics.models import CourtDecisionQuery, CourtDecisionResult

logger = logging.getLogger(__name__)


class CourtDecisionSearch:
    def __init__(self, store: IndexStore, extractor: FieldExtractor | None = None):
        self.store = store
        self.extractor = extractor or FieldExtractor(store.config.court_document_types)

    def search_structured(self, query: CourtDecisionQuery) -> list[CourtDecisionResult]:
        """Run a structured court-decision search.

        Args:
            query: Filters; every filter that is set must hold

        Returns:
            Matching pages with their derived fields, in descending relevance.

        Raises:
            SearchError: If the full-text query is malformed.
        """
        conditions: list[str] = []
        params: list = []

        if query.query:
            sql = (
                "SELECT p.volume_number, p.page_number, p.text, p.image_path, "
                "bm25(legal_pages_fts) AS score FROM legal_pages_fts "
                "JOIN legal_pages p ON p.id = legal_pages_fts.rowid"
            )
            conditions.append("legal_pages_fts MATCH ?")
            params.append(query.query)
            order = "score DESC"
        else:
            sql = (
                "SELECT p.volume_number, p.page_number, p.text, p.image_path, "
                "0.0 AS score FROM legal_pages p"
            )
            order = "p.volume_number, p.page_number"

        for value in (query.case_number, query.court_name, query.judge):
            if value:
                conditions.append("p.text LIKE ?")
                params.append(f"%{value}%")

        if query.volume_numbers:
            placeholders = ", ".join("?" for _ in query.volume_numbers)
            conditions.append(f"p.volume_number IN ({placeholders})")
            params.extend(query.volume_numbers)

        if conditions:
            sql += " WHERE " + " AND ".join(conditions)
        sql += f" ORDER BY {order}"

        try:
            rows = self.store.conn.execute(sql, params).fetchall()
        except sqlite3.OperationalError as e:
            raise SearchError(f"Invalid decision query {query.query!r}: {e}") from e

        results = []
        for row in rows:
            fields = self.extractor.parse(row["text"])

            if query.document_type and fields.document_type != query.document_type:
                continue
            if query.date_range and not _in_range(fields.decision_date, query.date_range):
                continue

            results.append(
                CourtDecisionResult(
                    id=f"{row['volume_number']}_{row['page_number']}",
                    volume_number=row["volume_number"],
                    page_number=row["page_number"],
                    relevance=relevance_from_rank(row["score"]),
                    fields=fields,
                    full_text=row["text"],
                    image_path=row["image_path"],
                )
            )
            if len(results) >= query.limit:
                break

        logger.debug(f"Decision search returned {len(results)} results")
        return results

    def search_by_keywords(self, keywords: list[str]) -> list[CourtDecisionResult]:
        phrases = " OR ".join('"' + k.replace('"', '""') + '"' for k in keywords)
        return self.search_structured(CourtDecisionQuery(query=phrases))

    def search_by_case_number(self, case_number: str) -> list[CourtDecisionResult]:
        return self.search_structured(CourtDecisionQuery(case_number=case_number))

    def search_by_court(self, court_name: str) -> list[CourtDecisionResult]:
        return self.search_structured(CourtDecisionQuery(court_name=court_name))

    def search_by_judge(self, judge: str) -> list[CourtDecisionResult]:
        return self.search_structured(CourtDecisionQuery(judge=judge))

    def search_by_date_range(self, start: date, end: date) -> list[CourtDecisionResult]:
        return self.search_structured(CourtDecisionQuery(date_range=(start, end)))


def _in_range(value: date | None, date_range: tuple[date, date]) -> bool:
    if value is None:
        return False
    start, end = date_range
    return start <= value <= end
