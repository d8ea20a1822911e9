"""Persistent case index: volumes, pages, full-text search and comparisons.

update() walks a directory of volumes and indexes every volume that is
not yet completed. Progress is one increasing fraction with reserved
bands:

    0.0 - 0.1   scanning the directory
    0.1 - 0.9   volumes, proportionally
    0.9 - 1.0   suspicious-match sweep

All writes are upserts keyed by file path (volumes), (volume, page)
(pages) or id (comparisons), so re-running an update never duplicates
rows.
"""

import json
import logging
import sqlite3
from dataclasses import replace
from pathlib import Path
from typing import Iterator

from case_forensics.compare.attribution import AuthorAttribution
from case_forensics.compare.engine import ComparisonEngine
from case_forensics.config import Config
from case_forensics.index.schema import create_schema
from case_forensics.ingest.classifier import infer_volume_number
from case_forensics.ingest.processor import VolumeIngestor
from case_forensics.models import (
    CaseStatistics,
    Comparison,
    DocumentRef,
    DocumentType,
    IndexingProgress,
    IndexingStatus,
    MatchedFragment,
    Page,
    PageMetadata,
    Phase,
    SearchQuery,
    SearchResult,
    Volume,
    VolumeMetadata,
)

logger = logging.getLogger(__name__)

SCAN_BAND = 0.1
VOLUME_BAND = 0.8
SWEEP_START = SCAN_BAND + VOLUME_BAND


class SearchError(Exception):
    """Raised when a search query or filter cannot be executed."""


def discover_volumes(directory: Path) -> list[Path]:
    """All PDF files under a directory, recursively, in path order."""
    if not directory.is_dir():
        logger.warning(f"Volumes directory not found: {directory}")
        return []
    return sorted(
        path for path in directory.rglob("*")
        if path.is_file() and path.suffix.lower() == ".pdf"
    )


def relevance_from_rank(rank: float) -> float:
    """Map an FTS5 bm25 score to a relevance in (0, 1].

    Only the relative order of relevances is meaningful.
    """
    return 1 / (1 + abs(rank))


class IndexStore:
    """SQLite-backed index of one case.

    Args:
        config: Application configuration.
        ingestor: Ingestion session used by update(); created from the
            config when omitted.
        attribution: Author of each page, required for the suspicious
            match sweep unless pages already carry authors.
        comparison_engine: Engine used by the sweep.
    """

    def __init__(
        self,
        config: Config,
        ingestor: VolumeIngestor | None = None,
        attribution: AuthorAttribution | None = None,
        comparison_engine: ComparisonEngine | None = None,
    ):
        self.config = config
        self.ingestor = ingestor or VolumeIngestor(config)
        self.attribution = attribution
        self.comparison_engine = comparison_engine or ComparisonEngine(
            page_renderer=self.ingestor.convert_page_to_image,
            workers=config.comparison_workers,
        )

        index_path = Path(config.index_path)
        index_path.parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(str(index_path), check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA foreign_keys = ON")
        create_schema(self.conn)

    def __enter__(self) -> "IndexStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        self.ingestor.release_ocr()
        self.conn.close()

    # ------------------------------------------------------------------ #
    #  Writes                                                             #
    # ------------------------------------------------------------------ #

    def save_volume(self, volume: Volume) -> int:
        """Insert or replace a volume by file path. Returns its row id."""
        self.conn.execute(
            """
            INSERT INTO legal_volumes (
                volume_number, file_path, file_size, total_pages, document_type,
                metadata_json, indexing_status, indexing_progress
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(file_path) DO UPDATE SET
                volume_number = excluded.volume_number,
                file_size = excluded.file_size,
                total_pages = excluded.total_pages,
                document_type = excluded.document_type,
                metadata_json = excluded.metadata_json,
                indexing_status = excluded.indexing_status,
                indexing_progress = excluded.indexing_progress,
                updated_at = CURRENT_TIMESTAMP
            """,
            (
                volume.volume_number,
                volume.file_path,
                volume.file_size,
                volume.total_pages,
                volume.document_type.value,
                json.dumps(volume.metadata.to_dict(), ensure_ascii=False),
                volume.indexing_status.value,
                volume.indexing_progress,
            ),
        )
        row = self.conn.execute(
            "SELECT id FROM legal_volumes WHERE file_path = ?", (volume.file_path,)
        ).fetchone()
        self.conn.commit()
        return row["id"]

    def set_volume_status(
        self, file_path: str, status: IndexingStatus, progress: int
    ) -> None:
        self.conn.execute(
            """
            UPDATE legal_volumes
            SET indexing_status = ?, indexing_progress = ?, updated_at = CURRENT_TIMESTAMP
            WHERE file_path = ?
            """,
            (status.value, progress, file_path),
        )
        self.conn.commit()

    def save_page(self, volume_id: int, page: Page) -> None:
        """Insert or replace a page by (volume, page number). Not committed."""
        metadata = page.metadata
        self.conn.execute(
            """
            INSERT INTO legal_pages (
                volume_id, volume_number, page_number, text, image_path,
                ocr_confidence, author, document_type, metadata_json
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(volume_number, page_number) DO UPDATE SET
                volume_id = excluded.volume_id,
                text = excluded.text,
                image_path = excluded.image_path,
                ocr_confidence = excluded.ocr_confidence,
                author = excluded.author,
                document_type = excluded.document_type,
                metadata_json = excluded.metadata_json
            """,
            (
                volume_id,
                page.volume_number,
                page.page_number,
                page.text,
                page.image_path,
                page.ocr_confidence,
                metadata.author,
                metadata.document_type.value if metadata.document_type else None,
                json.dumps(metadata.to_dict(), ensure_ascii=False),
            ),
        )

    def delete_pages(self, volume_id: int) -> int:
        cursor = self.conn.execute("DELETE FROM legal_pages WHERE volume_id = ?", (volume_id,))
        self.conn.commit()
        return cursor.rowcount

    def save_comparison(self, comparison: Comparison) -> None:
        """Write a comparison, replacing any earlier one with the same id."""
        self.conn.execute(
            """
            INSERT INTO legal_comparisons (
                id, document1_json, document2_json, text_similarity, visual_similarity,
                matched_fragments_json, is_suspicious, suspicious_reason, human_review
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                comparison.id,
                json.dumps(comparison.document1.to_dict(), ensure_ascii=False),
                json.dumps(comparison.document2.to_dict(), ensure_ascii=False),
                comparison.text_similarity,
                comparison.visual_similarity,
                json.dumps(
                    [f.to_dict() for f in comparison.matched_fragments], ensure_ascii=False
                ),
                int(comparison.is_suspicious),
                comparison.suspicious_reason,
                comparison.human_review,
            ),
        )
        self.conn.commit()

    def clear_comparisons(self) -> int:
        cursor = self.conn.execute("DELETE FROM legal_comparisons")
        self.conn.commit()
        return cursor.rowcount

    # ------------------------------------------------------------------ #
    #  Indexing                                                           #
    # ------------------------------------------------------------------ #

    def _save_failed_volume(self, path: Path) -> None:
        try:
            file_size = path.stat().st_size
        except OSError:
            file_size = 0
        self.save_volume(
            Volume(
                volume_number=infer_volume_number(path),
                file_path=str(path),
                file_size=file_size,
                total_pages=0,
                indexing_status=IndexingStatus.ERROR,
            )
        )

    def _index_volume(
        self,
        path: Path,
        base: float,
        span: float,
        use_ocr: bool,
        use_multimodal: bool,
    ) -> Iterator[IndexingProgress]:
        try:
            volume = self.ingestor.get_volume_metadata(path)
        except Exception as e:
            logger.error(f"Failed to read volume {path}: {e}")
            self._save_failed_volume(path)
            yield IndexingProgress(
                phase=Phase.ERROR,
                fraction=base + span,
                message=f"Failed to read {path.name}: {e}",
            )
            return

        volume.indexing_status = IndexingStatus.PROCESSING
        volume_id = self.save_volume(volume)
        removed = self.delete_pages(volume_id)
        if removed:
            logger.info(f"Discarded {removed} pages of interrupted volume {path.name}")

        logger.info(
            f"Indexing volume {volume.volume_number} ({path.name}, "
            f"{volume.total_pages} pages, {volume.document_type.value})"
        )

        stream = self.ingestor.process_volume(volume, use_ocr, use_multimodal)
        progress = 0
        unsaved = 0
        finished = False
        try:
            for event in stream:
                if event.page is not None:
                    if self.attribution is not None:
                        event.page.metadata.author = self.attribution.author_for(
                            event.page.volume_number, event.page.page_number
                        )
                    self.save_page(volume_id, event.page)
                    unsaved += 1
                    if unsaved >= self.config.batch_size:
                        self.conn.commit()
                        unsaved = 0
                if event.total_pages:
                    progress = int(event.processed_pages / event.total_pages * 100)
                if event.phase == Phase.COMPLETED:
                    continue
                yield replace(event, fraction=base + span * event.fraction, page=None)

            self.conn.commit()
            self.set_volume_status(volume.file_path, IndexingStatus.COMPLETED, 100)
            finished = True
            logger.info(f"Volume {volume.volume_number} indexed")

        except Exception as e:
            logger.error(f"Failed to index volume {path}: {e}")
            self.conn.commit()
            self.set_volume_status(volume.file_path, IndexingStatus.ERROR, progress)
            finished = True
            yield IndexingProgress(
                phase=Phase.ERROR,
                fraction=base + span,
                message=f"Failed to index {path.name}: {e}",
                current_volume=volume.volume_number,
            )

        finally:
            stream.close()
            if not finished:
                # Interrupted: keep what was written, never report completed
                self.conn.commit()
                self.set_volume_status(volume.file_path, IndexingStatus.PROCESSING, progress)
                logger.warning(
                    f"Indexing of volume {volume.volume_number} interrupted at {progress}%"
                )

    def update(
        self,
        directory: Path | None = None,
        use_ocr: bool | None = None,
        use_multimodal: bool | None = None,
    ) -> Iterator[IndexingProgress]:
        """Index every volume under a directory that is not yet completed.

        A failure on one volume marks it ``error`` and indexing continues
        with the next. Closing the stream early leaves the current volume
        ``processing``.

        Args:
            directory: Volumes directory (default: config.volumes_directory)
            use_ocr: OCR pages without a text layer (default: config.enable_ocr)
            use_multimodal: Analyze page images (default: config.use_multimodal)

        Yields:
            IndexingProgress events; the last one is ``completed`` at 1.0.
        """
        directory = Path(directory or self.config.volumes_directory)
        use_ocr = self.config.enable_ocr if use_ocr is None else use_ocr
        use_multimodal = self.config.use_multimodal if use_multimodal is None else use_multimodal

        yield IndexingProgress(
            phase=Phase.SCANNING, fraction=0.0, message=f"Scanning {directory}..."
        )
        files = discover_volumes(directory)
        logger.info(f"Found {len(files)} PDF files in {directory}")
        yield IndexingProgress(
            phase=Phase.SCANNING,
            fraction=SCAN_BAND,
            message=f"Found {len(files)} PDF files",
        )

        span = VOLUME_BAND / len(files) if files else 0.0
        for i, path in enumerate(files):
            base = SCAN_BAND + span * i
            existing = self.get_volume(str(path))
            if existing is not None and existing.indexing_status == IndexingStatus.COMPLETED:
                logger.debug(f"Skipping already indexed volume {path.name}")
                continue
            yield from self._index_volume(path, base, span, use_ocr, use_multimodal)

        yield IndexingProgress(
            phase=Phase.ANALYZING,
            fraction=SWEEP_START,
            message="Searching for suspicious matches...",
        )
        found = self.find_suspicious_matches()

        stats = self.get_case_statistics()
        yield IndexingProgress(
            phase=Phase.COMPLETED,
            fraction=1.0,
            message=(
                f"Indexing complete: {stats.indexed_volumes}/{stats.total_volumes} volumes, "
                f"{stats.total_pages} pages, {found} suspicious matches"
            ),
        )

    def find_suspicious_matches(self) -> int:
        """Run the bulk comparison over all pages and persist suspicious pairs.

        Returns:
            Number of suspicious comparisons saved.
        """
        if self.config.suspicious_text_threshold <= 0:
            return 0

        pages = self.get_pages()
        if self.attribution is None and not any(p.metadata.author for p in pages):
            logger.warning(
                "No author attribution available, skipping suspicious match search"
            )
            return 0

        volume_paths = {v.volume_number: v.file_path for v in self.list_volumes()}
        comparisons = self.comparison_engine.find_suspicious_pairs(
            pages,
            self.config.comparison_options(),
            attribution=self.attribution,
            volume_paths=volume_paths,
        )
        # Results of an earlier sweep may rest on a different attribution
        self.clear_comparisons()
        for comparison in comparisons:
            self.save_comparison(comparison)
        return len(comparisons)

    # ------------------------------------------------------------------ #
    #  Reads                                                              #
    # ------------------------------------------------------------------ #

    @staticmethod
    def _row_to_volume(row: sqlite3.Row) -> Volume:
        return Volume(
            volume_number=row["volume_number"],
            file_path=row["file_path"],
            file_size=row["file_size"],
            total_pages=row["total_pages"],
            document_type=DocumentType(row["document_type"]),
            metadata=VolumeMetadata.from_dict(json.loads(row["metadata_json"] or "{}")),
            indexing_status=IndexingStatus(row["indexing_status"]),
            indexing_progress=row["indexing_progress"],
        )

    @staticmethod
    def _row_to_page(row: sqlite3.Row) -> Page:
        return Page(
            volume_number=row["volume_number"],
            page_number=row["page_number"],
            text=row["text"],
            image_path=row["image_path"],
            ocr_confidence=row["ocr_confidence"],
            metadata=PageMetadata.from_dict(json.loads(row["metadata_json"] or "{}")),
        )

    def get_volume(self, file_path: str) -> Volume | None:
        row = self.conn.execute(
            "SELECT * FROM legal_volumes WHERE file_path = ?", (file_path,)
        ).fetchone()
        return self._row_to_volume(row) if row else None

    def list_volumes(self) -> list[Volume]:
        rows = self.conn.execute(
            "SELECT * FROM legal_volumes ORDER BY volume_number, file_path"
        ).fetchall()
        return [self._row_to_volume(row) for row in rows]

    def get_pages(self, volume_number: int | None = None) -> list[Page]:
        if volume_number is None:
            rows = self.conn.execute(
                "SELECT * FROM legal_pages ORDER BY volume_number, page_number"
            ).fetchall()
        else:
            rows = self.conn.execute(
                "SELECT * FROM legal_pages WHERE volume_number = ? ORDER BY page_number",
                (volume_number,),
            ).fetchall()
        return [self._row_to_page(row) for row in rows]

    def _context(self, volume_number: int, page_number: int) -> str | None:
        if self.config.context_pages <= 0:
            return None
        rows = self.conn.execute(
            """
            SELECT text FROM legal_pages
            WHERE volume_number = ? AND page_number > ?
            ORDER BY page_number LIMIT ?
            """,
            (volume_number, page_number, self.config.context_pages),
        ).fetchall()
        return "\n\n".join(row["text"] for row in rows) or None

    def search(self, query: SearchQuery) -> list[SearchResult]:
        """Ranked full-text search over page text.

        Hits come back in descending relevance. Without query text,
        pages matching the filters are returned in page order with
        relevance 1.0.

        Raises:
            SearchError: If the query or a filter is malformed.
        """
        limit = query.limit or self.config.default_results
        conditions: list[str] = []
        params: list = []

        text = (query.query or "").strip()
        if text:
            if query.phrase:
                text = '"' + text.replace('"', '""') + '"'
            sql = (
                "SELECT p.*, bm25(legal_pages_fts) AS score FROM legal_pages_fts "
                "JOIN legal_pages p ON p.id = legal_pages_fts.rowid"
            )
            conditions.append("legal_pages_fts MATCH ?")
            params.append(text)
            order = "score DESC"
        else:
            sql = "SELECT p.*, 0.0 AS score FROM legal_pages p"
            order = "p.volume_number, p.page_number"

        if query.volume_numbers:
            placeholders = ", ".join("?" for _ in query.volume_numbers)
            conditions.append(f"p.volume_number IN ({placeholders})")
            params.extend(query.volume_numbers)
        if query.document_type:
            conditions.append("p.document_type = ?")
            params.append(query.document_type)

        if conditions:
            sql += " WHERE " + " AND ".join(conditions)
        sql += f" ORDER BY {order} LIMIT ?"
        params.append(limit)

        try:
            rows = self.conn.execute(sql, params).fetchall()
        except sqlite3.OperationalError as e:
            raise SearchError(f"Invalid search query {query.query!r}: {e}") from e

        results = []
        for row in rows:
            page = self._row_to_page(row)
            results.append(
                SearchResult(
                    id=f"{page.volume_number}_{page.page_number}",
                    volume_number=page.volume_number,
                    page_number=page.page_number,
                    text=page.text,
                    relevance=relevance_from_rank(row["score"]),
                    image_path=page.image_path,
                    context=self._context(page.volume_number, page.page_number),
                    metadata=page.metadata,
                )
            )
        logger.debug(f"Search {query.query!r} returned {len(results)} hits")
        return results

    def get_suspicious_comparisons(self) -> list[Comparison]:
        """Suspicious comparisons, highest text similarity first."""
        rows = self.conn.execute(
            """
            SELECT * FROM legal_comparisons
            WHERE is_suspicious = 1
            ORDER BY text_similarity DESC, id
            """
        ).fetchall()
        return [self._row_to_comparison(row) for row in rows]

    @staticmethod
    def _row_to_comparison(row: sqlite3.Row) -> Comparison:
        def document(data: dict) -> DocumentRef:
            return DocumentRef(
                volume_number=data["volumeNumber"],
                page_range=tuple(data["pageRange"]),
                author=data["author"],
                text=data["text"],
            )

        return Comparison(
            id=row["id"],
            document1=document(json.loads(row["document1_json"])),
            document2=document(json.loads(row["document2_json"])),
            text_similarity=row["text_similarity"],
            visual_similarity=row["visual_similarity"],
            matched_fragments=[
                MatchedFragment.from_dict(f) for f in json.loads(row["matched_fragments_json"])
            ],
            is_suspicious=bool(row["is_suspicious"]),
            suspicious_reason=row["suspicious_reason"],
            human_review=row["human_review"],
        )

    def get_case_statistics(self) -> CaseStatistics:
        volumes = self.conn.execute(
            """
            SELECT
                COUNT(*) AS total,
                COALESCE(SUM(indexing_status = 'completed'), 0) AS completed,
                COALESCE(SUM(indexing_status = 'error'), 0) AS failed
            FROM legal_volumes
            """
        ).fetchone()
        pages = self.conn.execute("SELECT COUNT(*) FROM legal_pages").fetchone()[0]
        suspicious = self.conn.execute(
            "SELECT COUNT(*) FROM legal_comparisons WHERE is_suspicious = 1"
        ).fetchone()[0]

        return CaseStatistics(
            total_volumes=volumes["total"],
            total_pages=pages,
            indexed_volumes=volumes["completed"],
            error_volumes=volumes["failed"],
            suspicious_comparisons=suspicious,
        )
