"""Rasterize PDF pages to PNG images in the thumbnail cache.

Image names are derived from the PDF path and page number only, so
rendering the same page twice reuses the first image.
"""

import hashlib
import logging
import os
import tempfile
from pathlib import Path

from pdf2image import convert_from_path

logger = logging.getLogger(__name__)


def page_image_name(pdf_path: str | Path, page_number: int) -> str:
    """Deterministic file name of a rasterized page."""
    pdf_path = Path(pdf_path)
    path_hash = hashlib.md5(str(pdf_path).encode("utf-8")).hexdigest()[:8]
    return f"{pdf_path.stem}_{path_hash}_p{page_number:04d}.png"


class PageRasterizer:
    """Renders single PDF pages at a fixed density and size."""

    def __init__(
        self,
        output_dir: Path,
        dpi: int = 200,
        size: tuple[int, int] | None = (1200, 1600),
    ):
        self.output_dir = output_dir
        self.dpi = dpi
        self.size = size
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def image_path(self, pdf_path: str | Path, page_number: int) -> Path:
        return self.output_dir / page_image_name(pdf_path, page_number)

    def existing_image(self, pdf_path: str | Path, page_number: int) -> Path | None:
        path = self.image_path(pdf_path, page_number)
        return path if path.exists() else None

    def convert_page_to_image(self, pdf_path: str | Path, page_number: int) -> Path:
        """Render one page to PNG, or return the already rendered image.

        Args:
            pdf_path: Path to the PDF file
            page_number: Page to render (1-indexed)

        Returns:
            Path of the PNG image.

        Raises:
            RuntimeError: If the renderer produced no image for the page.
        """
        target = self.image_path(pdf_path, page_number)
        if target.exists():
            return target

        images = convert_from_path(
            str(pdf_path),
            dpi=self.dpi,
            first_page=page_number,
            last_page=page_number,
            size=self.size,
        )
        if not images:
            raise RuntimeError(f"No image rendered for page {page_number} of {pdf_path}")

        fd, tmp_name = tempfile.mkstemp(dir=self.output_dir, suffix=".png")
        os.close(fd)
        try:
            images[0].save(tmp_name, format="PNG")
            os.replace(tmp_name, target)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        logger.debug(f"Rendered {Path(pdf_path).name} page {page_number} -> {target.name}")
        return target

    def clear(self) -> int:
        removed = 0
        for image in self.output_dir.glob("*.png"):
            image.unlink()
            removed += 1
        return removed
