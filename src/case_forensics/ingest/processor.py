"""Volume ingestion: page text extraction with OCR fallback and caching.

A VolumeIngestor is one ingestion session. It owns the OCR engines
(acquired lazily, released on every exit path) and produces pages of a
volume as a lazily consumed stream of progress events.

Per page:
  1. Cached text is returned as-is
  2. Otherwise the PDF text layer is extracted with pdfplumber
  3. If that yields fewer than ``direct_text_min_chars`` characters and
     OCR is enabled, the page is rasterized and recognized
  4. The result is written to the text cache
"""

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Iterator

import pdfplumber

from case_forensics.compare.visual import PageAnalyzer
from case_forensics.config import Config
from case_forensics.extract.fields import classify_page_type
from case_forensics.ingest.classifier import IngestionError, read_volume_metadata
from case_forensics.ingest.ocr_engine import EngineFactory, EnginePool, TesseractEngine
from case_forensics.ingest.rasterize import PageRasterizer
from case_forensics.ingest.text_cache import TextCache
from case_forensics.models import (
    IndexingProgress,
    MultimodalAnalysis,
    OcrResult,
    Page,
    PageMetadata,
    PageType,
    Phase,
    Volume,
)

logger = logging.getLogger(__name__)


class VolumeIngestor:
    """Extracts pages from PDF volumes.

    Usable as a context manager; leaving the context releases the OCR
    engines. ``process_volume`` also releases them when its stream ends
    or is closed early.
    """

    def __init__(
        self,
        config: Config,
        engine_factory: EngineFactory | None = None,
        page_analyzer: PageAnalyzer | None = None,
        page_classifier: Callable[[str], PageType] | None = classify_page_type,
    ):
        self.config = config
        self.cache = TextCache(config.text_cache_dir)
        self.rasterizer = PageRasterizer(
            config.thumbnails_dir,
            dpi=config.rasterize_dpi,
            size=config.image_size,
        )
        self.page_analyzer = page_analyzer
        self.page_classifier = page_classifier
        self._engine_factory = engine_factory or (
            lambda language: TesseractEngine(language, config.tesseract_cmd)
        )
        self._pools: dict[str, EnginePool] = {}
        self._pools_lock = threading.Lock()

    def __enter__(self) -> "VolumeIngestor":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release_ocr()

    # ------------------------------------------------------------------ #
    #  OCR engine lifecycle                                               #
    # ------------------------------------------------------------------ #

    def init_ocr(self, language: str | None = None) -> EnginePool:
        """Get the engine pool for a language, creating it on first use."""
        language = language or self.config.ocr_language
        with self._pools_lock:
            pool = self._pools.get(language)
            if pool is None:
                pool = EnginePool(
                    self._engine_factory,
                    language,
                    size=self.config.parallel_processing,
                )
                self._pools[language] = pool
            return pool

    def release_ocr(self) -> None:
        """Close every OCR engine held by this session."""
        with self._pools_lock:
            pools, self._pools = self._pools, {}
        for pool in pools.values():
            pool.close()

    # ------------------------------------------------------------------ #
    #  Single-file operations                                             #
    # ------------------------------------------------------------------ #

    def get_volume_metadata(self, pdf_path: str | Path) -> Volume:
        return read_volume_metadata(Path(pdf_path))

    def convert_page_to_image(self, pdf_path: str | Path, page_number: int) -> Path:
        return self.rasterizer.convert_page_to_image(pdf_path, page_number)

    def _extract_direct(self, pdf_path: str | Path, page_number: int) -> str:
        with pdfplumber.open(pdf_path) as pdf:
            if not 1 <= page_number <= len(pdf.pages):
                raise IngestionError(
                    f"Page {page_number} out of range (1-{len(pdf.pages)})"
                )
            return pdf.pages[page_number - 1].extract_text() or ""

    def extract_text_from_page(
        self,
        pdf_path: str | Path,
        page_number: int,
        use_ocr: bool = True,
    ) -> OcrResult:
        """Extract the text of one page.

        Never raises: a failure yields empty text, confidence 0 and a
        warning.

        Args:
            pdf_path: Path to the PDF file
            page_number: Page to extract (1-indexed)
            use_ocr: Whether to OCR pages without a usable text layer

        Returns:
            OcrResult with confidence in [0, 1].
        """
        start_time = time.time()
        language = self.config.ocr_language

        cached = self.cache.get(pdf_path, page_number)
        if cached is not None:
            image = self.rasterizer.existing_image(pdf_path, page_number)
            return OcrResult(
                text=cached.text,
                confidence=cached.confidence,
                language=language,
                processing_time=time.time() - start_time,
                method="cache",
                image_path=str(image) if image else None,
            )

        try:
            text = self._extract_direct(pdf_path, page_number)
            confidence = 1.0
            method = "direct"
            image_path = None

            if len(text.strip()) < self.config.direct_text_min_chars and use_ocr:
                image = self.convert_page_to_image(pdf_path, page_number)
                pool = self.init_ocr(language)
                with pool.acquire() as engine:
                    text, raw_confidence = engine.recognize(image)
                confidence = min(1.0, max(0.0, raw_confidence / 100))
                method = "ocr"
                image_path = str(image)

            try:
                self.cache.put(pdf_path, page_number, text, confidence, method)
            except OSError as e:
                logger.warning(f"Failed to cache page {page_number} of {pdf_path}: {e}")

            return OcrResult(
                text=text,
                confidence=confidence,
                language=language,
                processing_time=time.time() - start_time,
                method=method,
                image_path=image_path,
            )

        except Exception as e:
            logger.warning(f"Failed to extract page {page_number} of {pdf_path}: {e}")
            return OcrResult(
                text="",
                confidence=0.0,
                language=language,
                processing_time=time.time() - start_time,
                method="failed",
                warnings=[f"Text extraction failed: {e}"],
            )

    def analyze_page_multimodal(
        self, pdf_path: str | Path, page_number: int
    ) -> MultimodalAnalysis | None:
        """Run the page analyzer on a page image, if one is configured."""
        if self.page_analyzer is None:
            logger.debug("No page analyzer configured, skipping multimodal analysis")
            return None

        try:
            image = self.convert_page_to_image(pdf_path, page_number)
            return self.page_analyzer.analyze(image)
        except Exception as e:
            logger.warning(f"Multimodal analysis failed for page {page_number} of {pdf_path}: {e}")
            return None

    # ------------------------------------------------------------------ #
    #  Volume processing                                                  #
    # ------------------------------------------------------------------ #

    def _build_page(self, volume: Volume, page_number: int, use_ocr: bool) -> Page:
        result = self.extract_text_from_page(volume.file_path, page_number, use_ocr)
        metadata = PageMetadata()
        if self.page_classifier and result.text.strip():
            metadata.document_type = self.page_classifier(result.text)
        return Page(
            volume_number=volume.volume_number,
            page_number=page_number,
            text=result.text,
            image_path=result.image_path,
            ocr_confidence=result.confidence,
            metadata=metadata,
        )

    def process_volume(
        self,
        volume: Volume,
        use_ocr: bool = True,
        use_multimodal: bool = False,
    ) -> Iterator[IndexingProgress]:
        """Extract every page of a volume, yielding progress events.

        Pages are extracted by a bounded worker pool and reported in page
        order; each ``ocr`` event carries its finished Page. Closing the
        stream early cancels queued pages and releases the OCR engines.

        Args:
            volume: Volume to process
            use_ocr: OCR pages without a usable text layer
            use_multimodal: Analyze every N-th page image

        Yields:
            IndexingProgress events: scanning, ocr (per page),
            analyzing (every N-th page), completed.
        """
        total = volume.total_pages
        number = volume.volume_number
        every_n = max(1, self.config.multimodal_every_n_pages)

        yield IndexingProgress(
            phase=Phase.SCANNING,
            fraction=0.0,
            message=f"Scanning volume {number}...",
            current_volume=number,
            total_pages=total,
        )

        workers = max(1, self.config.parallel_processing)
        window = workers * 2
        executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="page-ocr")
        pending: dict[int, Future] = {}
        next_page = 1

        try:
            for page_number in range(1, total + 1):
                while next_page <= total and len(pending) < window:
                    pending[next_page] = executor.submit(
                        self._build_page, volume, next_page, use_ocr
                    )
                    next_page += 1

                page = pending.pop(page_number).result()

                yield IndexingProgress(
                    phase=Phase.OCR,
                    fraction=page_number / total,
                    message=f"Processed page {page_number}/{total}",
                    current_volume=number,
                    current_page=page_number,
                    total_pages=total,
                    processed_pages=page_number,
                    page=page,
                )

                if use_multimodal and page_number % every_n == 0:
                    analysis = self.analyze_page_multimodal(volume.file_path, page_number)
                    if analysis is not None:
                        page.metadata.analysis = analysis.to_dict()
                    yield IndexingProgress(
                        phase=Phase.ANALYZING,
                        fraction=page_number / total,
                        message=f"Multimodal analysis of page {page_number}",
                        current_volume=number,
                        current_page=page_number,
                        total_pages=total,
                        processed_pages=page_number,
                        page=page,
                    )

            yield IndexingProgress(
                phase=Phase.COMPLETED,
                fraction=1.0,
                message=f"Volume {number} fully processed",
                current_volume=number,
                total_pages=total,
                processed_pages=total,
            )

        finally:
            for future in pending.values():
                future.cancel()
            executor.shutdown(wait=True)
            self.release_ocr()

    def clear_cache(self) -> dict:
        """Remove cached page text and rendered page images."""
        stats = {
            "text_entries": self.cache.clear(),
            "images": self.rasterizer.clear(),
        }
        logger.info(
            f"Cleared {stats['text_entries']} cached texts and {stats['images']} page images"
        )
        return stats
