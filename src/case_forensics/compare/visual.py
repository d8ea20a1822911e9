"""Pluggable vision capabilities.

The comparison engine and the ingestor consume these through protocols
only. PerceptualHashComparator is a local adapter that compares page
layouts by average hash; nothing is wired in by default.
"""

import logging
from pathlib import Path
from typing import Protocol

import numpy as np
from PIL import Image

from case_forensics.models import MultimodalAnalysis

logger = logging.getLogger(__name__)


class VisualComparator(Protocol):
    """Image pair -> visual similarity percentage (0-100), or None."""

    def compare(self, image1: Path, image2: Path) -> float | None:
        ...


class PageAnalyzer(Protocol):
    """Vision capability that describes a page image."""

    def analyze(self, image_path: Path) -> MultimodalAnalysis:
        ...


class PerceptualHashComparator:
    """Compares page layouts by average hash.

    Both images are resized to ``hash_size`` x ``hash_size`` grayscale,
    thresholded at their mean, and compared by hamming similarity.
    """

    def __init__(self, hash_size: int = 32):
        self.hash_size = hash_size

    def average_hash(self, image_path: Path) -> np.ndarray:
        with Image.open(image_path) as img:
            small = img.resize(
                (self.hash_size, self.hash_size), Image.Resampling.LANCZOS
            ).convert("L")
        pixels = np.array(small).flatten()
        return pixels > pixels.mean()

    def compare(self, image1: Path, image2: Path) -> float | None:
        try:
            hash1 = self.average_hash(image1)
            hash2 = self.average_hash(image2)
        except OSError as e:
            logger.warning(f"Failed to hash page images {image1} / {image2}: {e}")
            return None

        matching = int(np.count_nonzero(hash1 == hash2))
        return round(matching / hash1.size * 100, 2)
