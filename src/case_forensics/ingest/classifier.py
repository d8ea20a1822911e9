"""Read volume metadata and classify PDFs as scanned, text, or mixed.

Classification strategy (text layer density):
1. Extract the text layer of every page with pdfplumber
2. If total text < 100 chars -> SCANNED
3. If text per page < 50 chars -> SCANNED
4. If text per page > 500 chars -> TEXT
5. Otherwise -> MIXED

Volume numbers are inferred from the file name: the number after a
"том" token, then after a "volume" token, then the first digit run.
"""

import logging
import re
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pdfplumber

from case_forensics.models import DocumentType, Volume, VolumeMetadata

logger = logging.getLogger(__name__)

MIN_TEXT_CHARS = 100
SCANNED_CHARS_PER_PAGE = 50
TEXT_CHARS_PER_PAGE = 500

# Tried in order, first match wins.
VOLUME_NUMBER_PATTERNS: list[re.Pattern] = [
    re.compile(r"том[_\s-]*(\d+)", re.IGNORECASE),
    re.compile(r"volume[_\s-]*(\d+)", re.IGNORECASE),
    re.compile(r"(\d+)"),
]

# D:YYYYMMDDHHmmSSOHH'mm'
_PDF_DATE_RE = re.compile(
    r"^(?:D:)?(\d{4})(\d{2})?(\d{2})?(\d{2})?(\d{2})?(\d{2})?"
    r"(?:([Zz+\-])(\d{2})?'?(\d{2})?'?)?"
)


class IngestionError(Exception):
    """Raised when a file cannot be read as a PDF volume."""


def infer_volume_number(file_path: str | Path) -> int:
    """Infer the volume number from a file name.

    Args:
        file_path: Path to the PDF file.

    Returns:
        The first number captured by the volume patterns, or 0.
    """
    name = Path(file_path).stem
    for pattern in VOLUME_NUMBER_PATTERNS:
        match = pattern.search(name)
        if match:
            return int(match.group(1))
    return 0


def classify_text_density(text_length: int, page_count: int) -> DocumentType:
    """Classify a volume by how much text its text layer carries."""
    if text_length < MIN_TEXT_CHARS or page_count <= 0:
        return DocumentType.SCANNED

    per_page = text_length / page_count
    if per_page < SCANNED_CHARS_PER_PAGE:
        return DocumentType.SCANNED
    if per_page > TEXT_CHARS_PER_PAGE:
        return DocumentType.TEXT
    return DocumentType.MIXED


def parse_pdf_date(value) -> datetime | None:
    """Parse a PDF date string such as ``D:20240115093000+03'00'``.

    Returns None for missing or unparseable values.
    """
    if not value:
        return None
    if isinstance(value, bytes):
        value = value.decode("latin-1", errors="ignore")
    match = _PDF_DATE_RE.match(str(value).strip())
    if not match:
        return None

    year, month, day, hour, minute, second, sign, tz_h, tz_m = match.groups()
    try:
        parsed = datetime(
            int(year),
            int(month or 1),
            int(day or 1),
            int(hour or 0),
            int(minute or 0),
            int(second or 0),
        )
    except ValueError:
        return None

    if sign in ("+", "-"):
        offset = timedelta(hours=int(tz_h or 0), minutes=int(tz_m or 0))
        if sign == "-":
            offset = -offset
        parsed = parsed.replace(tzinfo=timezone(offset))
    elif sign in ("Z", "z"):
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _info_text(value) -> str | None:
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="ignore")
    if value is None:
        return None
    return str(value).strip() or None


def detect_document_type(pdf_path: Path) -> DocumentType:
    """Classify a PDF by the density of its text layer.

    Never raises: a file that cannot be parsed is treated as scanned.
    """
    try:
        with pdfplumber.open(pdf_path) as pdf:
            page_count = len(pdf.pages)
            text_length = 0
            for page in pdf.pages:
                text_length += len((page.extract_text() or "").strip())
    except Exception as e:
        logger.warning(f"Failed to classify {pdf_path.name}, assuming scanned: {e}")
        return DocumentType.SCANNED

    return classify_text_density(text_length, page_count)


def read_volume_metadata(pdf_path: Path) -> Volume:
    """Read file size, embedded metadata and page count of a PDF.

    Args:
        pdf_path: Path to the PDF file.

    Returns:
        A pending Volume.

    Raises:
        IngestionError: If the file does not exist or is not a readable PDF.
    """
    try:
        file_size = pdf_path.stat().st_size
        with pdfplumber.open(pdf_path) as pdf:
            page_count = len(pdf.pages)
            info = pdf.metadata or {}
    except Exception as e:
        raise IngestionError(f"Cannot read {pdf_path}: {e}") from e

    return Volume(
        volume_number=infer_volume_number(pdf_path),
        file_path=str(pdf_path),
        file_size=file_size,
        total_pages=page_count,
        document_type=detect_document_type(pdf_path),
        metadata=VolumeMetadata(
            title=_info_text(info.get("Title")),
            author=_info_text(info.get("Author")),
            creation_date=parse_pdf_date(info.get("CreationDate")),
            modification_date=parse_pdf_date(info.get("ModDate")),
        ),
    )
