"""On-disk cache of extracted page text.

Entries are keyed by an MD5 of ``"<path>:<page>"``, independent of the
file content, so concurrent writers of the same key write the same
entry. Writes go through a temp file and ``os.replace``: the last
writer wins and readers never see a partial entry.
"""

import hashlib
import json
import logging
import os
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)


def cache_key(pdf_path: str | Path, page_number: int) -> str:
    return hashlib.md5(f"{pdf_path}:{page_number}".encode("utf-8")).hexdigest()


@dataclass
class CachedText:
    text: str
    confidence: float
    method: str


class TextCache:
    """Cached page text with the confidence it was extracted with."""

    def __init__(self, cache_dir: Path):
        self.cache_dir = cache_dir
        self.cache_dir.mkdir(parents=True, exist_ok=True)

    def path_for(self, pdf_path: str | Path, page_number: int) -> Path:
        return self.cache_dir / f"{cache_key(pdf_path, page_number)}.json"

    def get(self, pdf_path: str | Path, page_number: int) -> CachedText | None:
        path = self.path_for(pdf_path, page_number)
        if not path.exists():
            return None

        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable cache entry {path.name}: {e}")
            return None

        return CachedText(
            text=data.get("text", ""),
            # Entries written without a confidence predate confidence tracking
            confidence=float(data.get("confidence", 1.0)),
            method=data.get("method", "cache"),
        )

    def put(
        self,
        pdf_path: str | Path,
        page_number: int,
        text: str,
        confidence: float,
        method: str,
    ) -> None:
        path = self.path_for(pdf_path, page_number)
        payload = json.dumps(
            {"text": text, "confidence": confidence, "method": method},
            ensure_ascii=False,
        )

        fd, tmp_name = tempfile.mkstemp(dir=self.cache_dir, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_name, path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def clear(self) -> int:
        """Delete every cache entry. Returns the number removed."""
        removed = 0
        if not self.cache_dir.exists():
            return removed
        for entry in self.cache_dir.iterdir():
            if entry.is_dir():
                shutil.rmtree(entry)
            else:
                entry.unlink()
            removed += 1
        return removed
