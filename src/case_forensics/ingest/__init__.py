"""Ingestion pipeline: PDF volumes to pages of text.

This package reads case-file PDFs, extracts page text from the text
layer or by OCR, and caches the results.

Key modules:
- classifier: Volume metadata, volume numbers and text-layer classification
- processor: VolumeIngestor session and the per-volume progress stream
- ocr_engine: OCR engine protocol, Tesseract engine and engine pool
- rasterize: Page to PNG rendering in the thumbnail cache
- text_cache: On-disk cache of extracted page text
"""

from case_forensics.ingest.classifier import (
    IngestionError,
    detect_document_type,
    infer_volume_number,
    read_volume_metadata,
)
from case_forensics.ingest.ocr_engine import EnginePool, OcrEngine, TesseractEngine
from case_forensics.ingest.processor import VolumeIngestor
from case_forensics.ingest.rasterize import PageRasterizer, page_image_name
from case_forensics.ingest.text_cache import CachedText, TextCache

__all__ = [
    # Volumes
    "IngestionError",
    "detect_document_type",
    "infer_volume_number",
    "read_volume_metadata",
    # Session
    "VolumeIngestor",
    # OCR
    "EnginePool",
    "OcrEngine",
    "TesseractEngine",
    # Caches
    "CachedText",
    "PageRasterizer",
    "TextCache",
    "page_image_name",
]
