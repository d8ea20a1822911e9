"""Tests for volume metadata and text-layer classification."""

from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from case_forensics.ingest.classifier import (
    IngestionError,
    classify_text_density,
    detect_document_type,
    infer_volume_number,
    parse_pdf_date,
    read_volume_metadata,
)
from case_forensics.models import DocumentType, IndexingStatus


def _mock_pdf(mock_pdfplumber, texts, metadata=None):
    pages = []
    for text in texts:
        page = MagicMock()
        page.extract_text.return_value = text
        pages.append(page)
    mock_pdfplumber.open.return_value.__enter__ = MagicMock(
        return_value=MagicMock(pages=pages, metadata=metadata or {})
    )
    mock_pdfplumber.open.return_value.__exit__ = MagicMock(return_value=False)


def test_volume_number_from_volume_token():
    assert infer_volume_number("case/volume_7.pdf") == 7


def test_volume_number_from_russian_token():
    assert infer_volume_number("Дело 2024 Том 12.pdf") == 12


def test_volume_number_prefers_volume_token_over_leading_digits():
    """Tokens are tried before any digit run, regardless of position."""
    assert infer_volume_number("2024_case_tom_x_volume-3.pdf") == 3


def test_volume_number_falls_back_to_first_digits():
    assert infer_volume_number("scan0042.pdf") == 42


def test_volume_number_defaults_to_zero():
    assert infer_volume_number("materials.pdf") == 0


def test_density_classification():
    assert classify_text_density(50, 1) == DocumentType.SCANNED
    assert classify_text_density(400, 10) == DocumentType.SCANNED
    assert classify_text_density(6000, 10) == DocumentType.TEXT
    assert classify_text_density(2000, 10) == DocumentType.MIXED
    assert classify_text_density(1000, 0) == DocumentType.SCANNED


def test_detect_text_document():
    with patch("case_forensics.ingest.classifier.pdfplumber") as mock_pdf:
        _mock_pdf(mock_pdf, ["Протокол допроса свидетеля. " * 40] * 3)
        assert detect_document_type(Path("fake/volume_1.pdf")) == DocumentType.TEXT


def test_detect_scanned_document():
    with patch("case_forensics.ingest.classifier.pdfplumber") as mock_pdf:
        _mock_pdf(mock_pdf, ["", "", None])
        assert detect_document_type(Path("fake/volume_1.pdf")) == DocumentType.SCANNED


def test_unparseable_pdf_defaults_to_scanned():
    with patch("case_forensics.ingest.classifier.pdfplumber") as mock_pdf:
        mock_pdf.open.side_effect = ValueError("not a PDF")
        assert detect_document_type(Path("fake/broken.pdf")) == DocumentType.SCANNED


def test_read_volume_metadata(tmp_path):
    pdf_path = tmp_path / "Том_5.pdf"
    pdf_path.write_bytes(b"%PDF-1.4 fake")

    with patch("case_forensics.ingest.classifier.pdfplumber") as mock_pdf:
        _mock_pdf(
            mock_pdf,
            ["x" * 600, "y" * 600],
            metadata={
                "Title": "Уголовное дело",
                "Author": b"Investigator",
                "CreationDate": "D:20240115093000+03'00'",
            },
        )
        volume = read_volume_metadata(pdf_path)

    assert volume.volume_number == 5
    assert volume.file_path == str(pdf_path)
    assert volume.file_size == len(b"%PDF-1.4 fake")
    assert volume.total_pages == 2
    assert volume.document_type == DocumentType.TEXT
    assert volume.indexing_status == IndexingStatus.PENDING
    assert volume.metadata.title == "Уголовное дело"
    assert volume.metadata.author == "Investigator"
    assert volume.metadata.creation_date.year == 2024
    assert volume.metadata.modification_date is None


def test_read_missing_file_raises(tmp_path):
    with pytest.raises(IngestionError):
        read_volume_metadata(tmp_path / "missing.pdf")


def test_parse_pdf_date_with_offset():
    parsed = parse_pdf_date("D:20240115093000+03'00'")
    assert parsed == datetime(2024, 1, 15, 9, 30, tzinfo=timezone(timedelta(hours=3)))


def test_parse_pdf_date_invalid():
    assert parse_pdf_date("not a date") is None
    assert parse_pdf_date(None) is None
    assert parse_pdf_date("D:20241340") is None
