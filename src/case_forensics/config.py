"""Central configuration for the case forensics system."""

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from case_forensics.models import ComparisonOptions

# Load .env file from project root
load_dotenv()

# Standard legal formulas that appear in every document of a case and
# must not count as copying.
DEFAULT_LEGAL_TEMPLATES: list[str] = [
    "в соответствии со статьей",
    "руководствуясь статьей",
    "на основании изложенного",
    "установлено следующее",
    "принимая во внимание",
    "учитывая изложенное",
    "в судебном заседании",
    "выслушав участников",
]

DEFAULT_COURT_DOCUMENT_TYPES: list[str] = [
    "решение суда",
    "приговор",
    "определение",
    "постановление",
    "апелляционное определение",
    "кассационное определение",
]

DEFAULT_COURT_KEYWORDS: list[str] = [
    "решение суда",
    "приговор",
    "определение",
    "постановление",
    "апелляция",
    "кассация",
    "суд постановил",
    "суд решил",
    "суд определил",
    "найти решение",
    "поиск решения",
]


class Config(BaseModel):
    """All configuration for the case forensics system.

    Paths are relative to the working directory unless absolute.
    Directory locations can be overridden via environment or .env file.
    """

    # Paths
    volumes_directory: Path = Field(
        default=Path(os.getenv("CASE_VOLUMES_DIR", "./legal-volumes"))
    )
    cache_dir: Path = Field(
        default=Path(os.getenv("CASE_CACHE_DIR", ".case-forensics/cache"))
    )
    index_path: Path = Field(
        default=Path(os.getenv("CASE_INDEX_PATH", ".case-forensics/index.sqlite"))
    )
    attribution_path: Path | None = None

    # Indexing
    enable_ocr: bool = True
    ocr_language: str = Field(default=os.getenv("CASE_OCR_LANGUAGE", "rus"))
    tesseract_cmd: str | None = Field(default=os.getenv("CASE_TESSERACT_CMD"))
    batch_size: int = 10
    parallel_processing: int = 4
    use_multimodal: bool = False
    multimodal_every_n_pages: int = 10
    direct_text_min_chars: int = 50
    rasterize_dpi: int = 200
    image_size: tuple[int, int] = (1200, 1600)

    # Search
    default_results: int = 5
    context_pages: int = 3

    # Comparison
    suspicious_text_threshold: float = 70.0
    suspicious_visual_threshold: float = 70.0
    min_match_length: int = 100
    ignore_templates: bool = True
    legal_templates: list[str] = Field(
        default_factory=lambda: list(DEFAULT_LEGAL_TEMPLATES)
    )
    comparison_workers: int = 4

    # Court decisions
    court_document_types: list[str] = Field(
        default_factory=lambda: list(DEFAULT_COURT_DOCUMENT_TYPES)
    )
    court_keywords: list[str] = Field(
        default_factory=lambda: list(DEFAULT_COURT_KEYWORDS)
    )

    @property
    def text_cache_dir(self) -> Path:
        return self.cache_dir / "legal-docs" / "text-cache"

    @property
    def thumbnails_dir(self) -> Path:
        return self.cache_dir / "legal-docs" / "thumbnails"

    def comparison_options(self, use_multimodal: bool | None = None) -> ComparisonOptions:
        """Build comparison options from the configured thresholds."""
        return ComparisonOptions(
            min_match_length=self.min_match_length,
            suspicious_text_threshold=self.suspicious_text_threshold,
            suspicious_visual_threshold=self.suspicious_visual_threshold,
            use_multimodal=self.use_multimodal if use_multimodal is None else use_multimodal,
            ignore_templates=self.ignore_templates,
            templates=list(self.legal_templates),
        )
