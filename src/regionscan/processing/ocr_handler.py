# src/regionscan/processing/ocr_handler.py

"""
Adapters between the scan pipeline and a text-recognition engine.

The pipeline only knows the TextRecognizer protocol: hand over a prepared
image, get back RecognizedLine objects whose boxes are normalized with a
top-left origin. Engine specifics (decoders, coordinate conventions, model
loading) stay inside the adapter. EasyOcrRecognizer wraps the 'easyocr'
library; RecognizerPool hands out one recognizer per in-flight scan for
engines that must not be shared between threads.
"""

import logging
import queue
import threading
from contextlib import contextmanager
from typing import Any, Callable, Iterator, List, Optional, Protocol, Sequence

import numpy as np

from regionscan.processing.types import ImageBuffer, NormalizedRegion, RecognizedLine
from regionscan.utils.errors import RecognitionError

logger = logging.getLogger(__name__)

# Characters the engine may emit in digits-only mode.
DIGITS_ALLOWLIST = "0123456789.,-"

QUALITY_MODES = ("fast", "accurate")


class TextRecognizer(Protocol):
    supports_region_hint: bool

    def recognize(
        self,
        image: ImageBuffer,
        region_hint: Optional[NormalizedRegion],
        digits_only: bool,
    ) -> List[RecognizedLine]:
        ...


def quad_to_region(quad: Sequence[Sequence[float]], image_width: int, image_height: int) -> NormalizedRegion:
    """
    Converts a pixel quadrilateral into a normalized axis-aligned box.

    easyocr reports four corner points; rotated text produces a skewed quad,
    so the box spans the extremes of all four.
    """
    xs = [float(point[0]) for point in quad]
    ys = [float(point[1]) for point in quad]
    x0 = min(max(min(xs), 0.0), image_width)
    x1 = min(max(max(xs), 0.0), image_width)
    y0 = min(max(min(ys), 0.0), image_height)
    y1 = min(max(max(ys), 0.0), image_height)
    return NormalizedRegion(
        x=x0 / image_width,
        y=y0 / image_height,
        width=(x1 - x0) / image_width,
        height=(y1 - y0) / image_height,
    )


class EasyOcrRecognizer:
    """
    TextRecognizer backed by easyocr.Reader.

    The reader is created on first use because loading the models is slow.
    Creation is guarded by a lock so concurrent scans share one reader.
    """

    supports_region_hint = False

    def __init__(
        self,
        languages: Sequence[str] = ("en",),
        gpu: bool = False,
        quality: str = "accurate",
        language_correction: bool = False,
        min_confidence: float = 0.0,
        reader: Any = None,
    ):
        if quality not in QUALITY_MODES:
            raise ValueError(f"Unknown quality mode {quality!r}, expected one of {QUALITY_MODES}")
        self.languages = list(languages)
        self.gpu = gpu
        self.quality = quality
        self.language_correction = language_correction
        self.min_confidence = min_confidence
        self._reader = reader
        self._lock = threading.Lock()

    def _get_reader(self):
        if self._reader is not None:
            return self._reader
        with self._lock:
            if self._reader is None:
                logger.info(f"Initializing easyocr.Reader for {self.languages} (gpu={self.gpu})...")
                try:
                    import easyocr

                    self._reader = easyocr.Reader(self.languages, gpu=self.gpu)
                except Exception as e:
                    raise RecognitionError("Could not initialize easyocr.Reader", stage="recognize", cause=e) from e
                logger.info("easyocr.Reader initialized successfully.")
        return self._reader

    def decoder_for(self, digits_only: bool) -> str:
        """
        Picks the easyocr decoder.

        Digits-only always uses the literal greedy decoder: dictionary
        correction turns "0" into "O" and "1" into "l".
        """
        if digits_only or self.quality == "fast":
            return "greedy"
        if self.language_correction:
            return "wordbeamsearch"
        return "beamsearch"

    def recognize(
        self,
        image: ImageBuffer,
        region_hint: Optional[NormalizedRegion],
        digits_only: bool,
    ) -> List[RecognizedLine]:
        if image.is_empty:
            logger.warning("recognize called with an empty image.")
            return []

        reader = self._get_reader()
        kwargs = {
            "detail": 1,
            "paragraph": False,
            "decoder": self.decoder_for(digits_only),
        }
        if digits_only:
            kwargs["allowlist"] = DIGITS_ALLOWLIST

        if region_hint is not None:
            logger.debug("easyocr has no region-of-interest support; the hint is applied during assembly.")

        pixels = np.ascontiguousarray(image.pixels)
        try:
            # The result is a list of (quad, text, confidence)
            results = reader.readtext(pixels, **kwargs)
        except Exception as e:
            raise RecognitionError("easyocr.readtext failed", stage="recognize", cause=e) from e

        lines: List[RecognizedLine] = []
        for (quad, text, confidence) in results:
            if not text or not text.strip():
                continue
            if confidence < self.min_confidence:
                logger.debug(f"Discarding OCR result with low confidence: '{text}' ({confidence:.2f})")
                continue
            box = quad_to_region(quad, image.width, image.height)
            lines.append(RecognizedLine(text=text, bounding_box=box, confidence=float(confidence)))

        logger.info(f"OCR complete. Kept {len(lines)} of {len(results)} text lines.")
        return lines


class RecognizerPool:
    """
    A fixed set of recognizers lent out one per scan.

    Behaves like a single TextRecognizer. A scan that finds every instance
    busy waits for one to be returned.
    """

    def __init__(self, factory: Callable[[], TextRecognizer], size: int = 1):
        if size < 1:
            raise ValueError("RecognizerPool needs at least one recognizer")
        self.size = size
        self._idle: "queue.Queue[TextRecognizer]" = queue.Queue()
        recognizers = [factory() for _ in range(size)]
        for recognizer in recognizers:
            self._idle.put(recognizer)
        self.supports_region_hint = all(getattr(r, "supports_region_hint", False) for r in recognizers)

    @contextmanager
    def acquire(self) -> Iterator[TextRecognizer]:
        recognizer = self._idle.get()
        try:
            yield recognizer
        finally:
            self._idle.put(recognizer)

    def recognize(
        self,
        image: ImageBuffer,
        region_hint: Optional[NormalizedRegion],
        digits_only: bool,
    ) -> List[RecognizedLine]:
        with self.acquire() as recognizer:
            return recognizer.recognize(image, region_hint, digits_only)
