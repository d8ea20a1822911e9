"""OCR engine handles and the pool that owns them.

An engine is an exclusively used handle: one caller at a time. The
EnginePool hands out engines one per worker, creating them lazily up
to its size, and closes them all on release.
"""

import logging
import queue
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator, Protocol

import pytesseract
from PIL import Image

logger = logging.getLogger(__name__)


class OcrEngine(Protocol):
    """Recognizes text on a page image."""

    language: str

    def recognize(self, image_path: Path) -> tuple[str, float]:
        """Return (text, confidence) with confidence in 0-100."""
        ...

    def close(self) -> None:
        ...


class TesseractEngine:
    """OCR engine backed by the Tesseract binary via pytesseract.

    Confidence is the mean of the word-level confidences reported by
    ``image_to_data``, on Tesseract's native 0-100 scale.
    """

    def __init__(self, language: str = "rus", tesseract_cmd: str | None = None):
        self.language = language
        if tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = tesseract_cmd

    def recognize(self, image_path: Path) -> tuple[str, float]:
        with Image.open(image_path) as image:
            text = pytesseract.image_to_string(image, lang=self.language) or ""
            data = pytesseract.image_to_data(
                image, lang=self.language, output_type=pytesseract.Output.DICT
            )

        confidences = []
        for raw_conf, token in zip(data.get("conf", []), data.get("text", [])):
            if not (token or "").strip():
                continue
            try:
                conf = float(raw_conf)
            except (TypeError, ValueError):
                continue
            if conf >= 0:
                confidences.append(conf)

        confidence = sum(confidences) / len(confidences) if confidences else 0.0
        return text, confidence

    def close(self) -> None:
        # Each pytesseract call runs its own process; nothing is held open.
        pass


EngineFactory = Callable[[str], OcrEngine]


class EnginePool:
    """Bounded pool of OCR engines for one language.

    Engines are created on demand until ``size`` exist; after that,
    ``acquire`` blocks until another worker returns one.

    Attributes:
        language: OCR language of every engine in the pool
        size: Maximum number of engines
    """

    def __init__(self, factory: EngineFactory, language: str, size: int = 1):
        self.language = language
        self.size = max(1, size)
        self._factory = factory
        self._idle: queue.Queue[OcrEngine] = queue.Queue()
        self._engines: list[OcrEngine] = []
        self._lock = threading.Lock()
        self._closed = False

    @property
    def created(self) -> int:
        return len(self._engines)

    def _checkout(self) -> OcrEngine:
        try:
            return self._idle.get_nowait()
        except queue.Empty:
            pass

        with self._lock:
            if self._closed:
                raise RuntimeError("OCR engine pool is closed")
            if len(self._engines) < self.size:
                engine = self._factory(self.language)
                self._engines.append(engine)
                logger.debug(
                    f"Created OCR engine {len(self._engines)}/{self.size} ({self.language})"
                )
                return engine

        return self._idle.get()

    @contextmanager
    def acquire(self) -> Iterator[OcrEngine]:
        """Check out an engine for exclusive use."""
        engine = self._checkout()
        try:
            yield engine
        finally:
            self._idle.put(engine)

    def close(self) -> None:
        """Close every engine the pool created."""
        with self._lock:
            self._closed = True
            engines, self._engines = self._engines, []

        for engine in engines:
            try:
                engine.close()
            except Exception as e:
                logger.warning(f"Failed to close OCR engine: {e}")

        while not self._idle.empty():
            self._idle.get_nowait()

        if engines:
            logger.debug(f"Released {len(engines)} OCR engine(s) ({self.language})")
