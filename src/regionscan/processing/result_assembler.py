# src/regionscan/processing/result_assembler.py

"""
Turns recognized lines into the text handed back to the caller.

Lines are optionally restricted to a region, put in reading order, joined,
and filtered to the digit character class. If the pipeline produced a debug
image it is written to a temporary file so the caller can see what the
recognizer saw. A failed debug write is logged and dropped, never raised.
"""

import logging
import os
import tempfile
import time
from pathlib import Path
from typing import Iterable, List, Optional, Union

import cv2

from regionscan.processing.types import ImageBuffer, NormalizedRegion, RecognizedLine, ScanResult
from regionscan.utils.errors import EncodingError

logger = logging.getLogger(__name__)

DIGIT_CHARACTERS = frozenset("0123456789.,-")
DEFAULT_JPEG_QUALITY = 90


def filter_to_region(lines: Iterable[RecognizedLine], region: NormalizedRegion) -> List[RecognizedLine]:
    return [line for line in lines if line.bounding_box.intersects(region)]


def reading_order(lines: Iterable[RecognizedLine]) -> List[RecognizedLine]:
    """Sorts lines top of the image first, then left to right."""
    return sorted(lines, key=lambda line: (line.bounding_box.y, line.bounding_box.x))


def filter_digits(text: str) -> str:
    """
    Keeps digits and '.', ',', '-' on every line.

    Lines left empty by the filter are dropped, so labels and sign-offs do
    not leave blank lines behind.
    """
    kept = []
    for line in text.split("\n"):
        digits = "".join(ch for ch in line if ch in DIGIT_CHARACTERS)
        if digits:
            kept.append(digits)
    return "\n".join(kept)


def write_debug_image(
    image: ImageBuffer,
    directory: Union[str, Path, None] = None,
    jpeg_quality: int = DEFAULT_JPEG_QUALITY,
) -> Optional[str]:
    """
    Encodes the image as JPEG into a fresh temporary file.

    Returns:
        The file path, or None when encoding or writing failed.
    """
    if image.is_empty:
        logger.warning("Skipping debug image: buffer is empty.")
        return None

    path = None
    try:
        ok, encoded = cv2.imencode(".jpg", image.pixels, [cv2.IMWRITE_JPEG_QUALITY, int(jpeg_quality)])
        if not ok:
            raise EncodingError("cv2.imencode rejected the debug image", stage="assemble")

        if directory is not None:
            Path(directory).mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            prefix=f"processed_{int(time.time() * 1000)}_",
            suffix=".jpg",
            dir=directory,
            delete=False,
        ) as handle:
            path = handle.name
            handle.write(encoded.tobytes())
    except (OSError, cv2.error, EncodingError) as e:
        logger.warning(f"Could not write debug image: {e}")
        if path is not None and os.path.exists(path):
            try:
                os.remove(path)
            except OSError:
                logger.debug(f"Could not remove partial debug image {path}")
        return None

    logger.info(f"Debug image written to {path}")
    return path


def assemble(
    lines: Iterable[RecognizedLine],
    region: Optional[NormalizedRegion],
    digits_only: bool,
    debug_image: Optional[ImageBuffer] = None,
    debug_dir: Union[str, Path, None] = None,
    jpeg_quality: int = DEFAULT_JPEG_QUALITY,
) -> ScanResult:
    """
    Builds the ScanResult for a finished recognition.

    Args:
        lines: Lines from the recognizer, boxes normalized top-left.
        region: Keep only lines intersecting this region. Pass None when the
                engine already restricted itself or the image was cropped.
        digits_only: Filter the text to digits and '.', ',', '-'.
        debug_image: Image to persist for inspection, if any.
        debug_dir: Directory for the debug image; the system temp dir if None.
        jpeg_quality: JPEG quality of the debug image.

    Returns:
        A ScanResult. Empty input gives empty text, never an error.
    """
    selected = list(lines)
    if region is not None:
        before = len(selected)
        selected = filter_to_region(selected, region)
        logger.debug(f"Region filter kept {len(selected)} of {before} lines.")

    texts = [line.text.strip() for line in reading_order(selected)]
    text = "\n".join(t for t in texts if t)
    if digits_only:
        text = filter_digits(text)

    debug_path = None
    if debug_image is not None:
        debug_path = write_debug_image(debug_image, debug_dir, jpeg_quality)

    return ScanResult(text=text, debug_image_path=debug_path)
