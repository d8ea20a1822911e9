"""Data model shared by the ingestion, index and comparison stages.

Volumes and pages are produced by the ingestor and persisted by the
index store. Comparisons are produced by the comparison engine and
persisted back into the store. Search results are never persisted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Optional, Tuple


class DocumentType(str, Enum):
    SCANNED = "scanned"
    TEXT = "text"
    MIXED = "mixed"


class IndexingStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


class Phase(str, Enum):
    SCANNING = "scanning"
    OCR = "ocr"
    ANALYZING = "analyzing"
    COMPLETED = "completed"
    ERROR = "error"


class PageType(str, Enum):
    """Kind of document a single page belongs to."""

    PROTOCOL = "protocol"
    TESTIMONY = "testimony"
    DECISION = "decision"
    OTHER = "other"


def _iso(value: date | datetime | None) -> str | None:
    return value.isoformat() if value else None


def _parse_datetime(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _parse_date(value: str | None) -> date | None:
    return date.fromisoformat(value[:10]) if value else None


@dataclass
class VolumeMetadata:
    """Document information embedded in the PDF."""

    title: str | None = None
    author: str | None = None
    creation_date: datetime | None = None
    modification_date: datetime | None = None

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "author": self.author,
            "creationDate": _iso(self.creation_date),
            "modificationDate": _iso(self.modification_date),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "VolumeMetadata":
        return cls(
            title=data.get("title"),
            author=data.get("author"),
            creation_date=_parse_datetime(data.get("creationDate")),
            modification_date=_parse_datetime(data.get("modificationDate")),
        )


@dataclass
class Volume:
    """One case-file PDF.

    Attributes:
        volume_number: Number inferred from the file name (not unique)
        file_path: Path to the PDF, the identity key of the volume
        file_size: Size of the file in bytes
        total_pages: Number of pages in the PDF
        document_type: Whether the PDF carries a text layer
        metadata: Embedded title/author/dates
        indexing_status: Lifecycle state in the index
        indexing_progress: Percentage of pages processed (0-100)
    """

    volume_number: int
    file_path: str
    file_size: int
    total_pages: int
    document_type: DocumentType = DocumentType.SCANNED
    metadata: VolumeMetadata = field(default_factory=VolumeMetadata)
    indexing_status: IndexingStatus = IndexingStatus.PENDING
    indexing_progress: int = 0


@dataclass
class DetectedElement:
    """A visual element found on a page image by a page analyzer."""

    type: str
    bounding_box: Tuple[float, float, float, float]
    confidence: float

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "boundingBox": list(self.bounding_box),
            "confidence": self.confidence,
        }


@dataclass
class MultimodalAnalysis:
    """Result of analyzing one page image with a vision capability."""

    analysis: str
    detected_elements: list[DetectedElement] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "analysis": self.analysis,
            "detectedElements": [e.to_dict() for e in self.detected_elements],
        }


@dataclass
class PageMetadata:
    document_type: PageType | None = None
    author: str | None = None
    date: date | None = None
    analysis: dict | None = None

    def to_dict(self) -> dict:
        data: dict = {}
        if self.document_type:
            data["documentType"] = self.document_type.value
        if self.author:
            data["author"] = self.author
        if self.date:
            data["date"] = self.date.isoformat()
        if self.analysis:
            data["analysis"] = self.analysis
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "PageMetadata":
        doc_type = data.get("documentType")
        return cls(
            document_type=PageType(doc_type) if doc_type else None,
            author=data.get("author"),
            date=_parse_date(data.get("date")),
            analysis=data.get("analysis"),
        )


@dataclass
class Page:
    """One page of a volume with its extracted text."""

    volume_number: int
    page_number: int
    text: str
    image_path: str | None = None
    ocr_confidence: float | None = None
    metadata: PageMetadata = field(default_factory=PageMetadata)


@dataclass
class OcrResult:
    """Text extracted from a single page."""

    text: str
    confidence: float
    language: str
    processing_time: float = 0.0
    method: str = "direct"
    image_path: str | None = None
    warnings: list[str] = field(default_factory=list)


@dataclass
class IndexingProgress:
    """One event of an ingestion or indexing progress stream.

    ``fraction`` is in [0, 1]. ``page`` is set on ``ocr`` events once
    the page has been extracted so consumers can persist it.
    """

    phase: Phase
    fraction: float
    message: str
    current_volume: int | None = None
    current_page: int | None = None
    total_pages: int | None = None
    processed_pages: int = 0
    page: Optional[Page] = None


@dataclass
class ComparisonOptions:
    min_match_length: int = 100
    suspicious_text_threshold: float = 70.0
    suspicious_visual_threshold: float = 70.0
    use_multimodal: bool = False
    ignore_templates: bool = True
    templates: list[str] = field(default_factory=list)


@dataclass
class DocumentRef:
    """A span of pages attributed to a single author."""

    volume_number: int
    page_range: Tuple[int, int]
    author: str
    text: str
    pdf_path: str | None = None
    image_path: str | None = None

    def to_dict(self) -> dict:
        return {
            "volumeNumber": self.volume_number,
            "pageRange": list(self.page_range),
            "author": self.author,
            "text": self.text,
        }


@dataclass
class MatchedFragment:
    """A sentence of document 1 found nearly verbatim in document 2.

    Positions are (start, end) offsets into the original text of each side.
    """

    text: str
    position1: Tuple[int, int]
    position2: Tuple[int, int]

    def to_dict(self) -> dict:
        return {
            "text": self.text,
            "position1": list(self.position1),
            "position2": list(self.position2),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "MatchedFragment":
        return cls(
            text=data["text"],
            position1=tuple(data["position1"]),
            position2=tuple(data["position2"]),
        )


@dataclass
class Comparison:
    id: str
    document1: DocumentRef
    document2: DocumentRef
    text_similarity: float
    matched_fragments: list[MatchedFragment]
    is_suspicious: bool
    human_review: str
    visual_similarity: float | None = None
    suspicious_reason: str | None = None


@dataclass
class SearchQuery:
    query: str
    volume_numbers: list[int] | None = None
    document_type: str | None = None
    limit: int | None = None
    phrase: bool = False


@dataclass
class SearchResult:
    id: str
    volume_number: int
    page_number: int
    text: str
    relevance: float
    image_path: str | None = None
    context: str | None = None
    metadata: PageMetadata = field(default_factory=PageMetadata)


@dataclass
class CaseStatistics:
    total_volumes: int
    total_pages: int
    indexed_volumes: int
    error_volumes: int
    suspicious_comparisons: int


@dataclass
class Parties:
    """Participants named in a court document. Absent roles stay None."""

    plaintiff: str | None = None
    defendant: str | None = None
    prosecutor: str | None = None

    def to_dict(self) -> dict:
        return {k: v for k, v in vars(self).items() if v}


@dataclass
class DecisionFields:
    """Structured fields derived from the text of a court document."""

    document_type: str
    case_number: str | None = None
    decision_date: date | None = None
    court_name: str | None = None
    judge: str | None = None
    parties: Parties = field(default_factory=Parties)
    decision: str | None = None
    reasoning: str | None = None


@dataclass
class CourtDecisionQuery:
    """Filters for a structured court-decision search.

    Every filter that is set must hold; an empty query matches every page.
    """

    query: str | None = None
    case_number: str | None = None
    court_name: str | None = None
    judge: str | None = None
    document_type: str | None = None
    date_range: Tuple[date, date] | None = None
    volume_numbers: list[int] | None = None
    limit: int = 10


@dataclass
class CourtDecisionResult:
    id: str
    volume_number: int
    page_number: int
    relevance: float
    fields: DecisionFields
    full_text: str
    image_path: str | None = None
