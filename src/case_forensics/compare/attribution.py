"""Author attribution of pages.

Bulk comparison needs to know who wrote each page (investigator,
prosecutor, ...). This is an external input: attribution comes from an
explicit list of page ranges, never from the page content.
"""

import logging
from pathlib import Path
from typing import Protocol

from pydantic import BaseModel, Field, TypeAdapter, model_validator

logger = logging.getLogger(__name__)


class AuthorAttribution(Protocol):
    def author_for(self, volume_number: int, page_number: int) -> str | None:
        ...


class AuthorRange(BaseModel):
    """Pages ``start_page``..``end_page`` (inclusive) of a volume by one author."""

    volume: int
    start_page: int = Field(ge=1)
    end_page: int = Field(ge=1)
    author: str = Field(min_length=1)

    @model_validator(mode="after")
    def _check_order(self) -> "AuthorRange":
        if self.end_page < self.start_page:
            raise ValueError(
                f"end_page {self.end_page} precedes start_page {self.start_page}"
            )
        return self


class RangeAttribution:
    """Attribution from explicit page ranges. The first matching range wins."""

    def __init__(self, ranges: list[AuthorRange]):
        self.ranges = list(ranges)

    def author_for(self, volume_number: int, page_number: int) -> str | None:
        for r in self.ranges:
            if r.volume == volume_number and r.start_page <= page_number <= r.end_page:
                return r.author
        return None

    @property
    def authors(self) -> list[str]:
        return sorted({r.author for r in self.ranges})


_RANGES = TypeAdapter(list[AuthorRange])


def load_attribution(path: Path) -> RangeAttribution:
    """Load author ranges from a JSON file.

    The file holds a list of ``{"volume", "start_page", "end_page",
    "author"}`` objects.

    Raises:
        FileNotFoundError: If the file does not exist.
        pydantic.ValidationError: If an entry is malformed.
    """
    ranges = _RANGES.validate_json(Path(path).read_bytes())
    attribution = RangeAttribution(ranges)
    logger.info(
        f"Loaded {len(ranges)} author ranges for {len(attribution.authors)} authors from {path}"
    )
    return attribution
