# src/regionscan/processing/orientation.py

"""
Physically rotates pixel data so that it matches its orientation tag.

Normalized regions are defined on the upright image, so this has to run
before any region is mapped to pixels.
"""

import logging

import cv2
import numpy as np

from regionscan.processing.types import ImageBuffer, Orientation

logger = logging.getLogger(__name__)


def _transverse(pixels: np.ndarray) -> np.ndarray:
    return cv2.transpose(cv2.flip(pixels, -1))


# Each entry turns stored pixels into the upright view for that EXIF value.
_TRANSFORMS = {
    Orientation.MIRROR_HORIZONTAL: lambda p: cv2.flip(p, 1),
    Orientation.ROTATE_180: lambda p: cv2.rotate(p, cv2.ROTATE_180),
    Orientation.MIRROR_VERTICAL: lambda p: cv2.flip(p, 0),
    Orientation.TRANSPOSE: cv2.transpose,
    Orientation.ROTATE_90: lambda p: cv2.rotate(p, cv2.ROTATE_90_CLOCKWISE),
    Orientation.TRANSVERSE: _transverse,
    Orientation.ROTATE_270: lambda p: cv2.rotate(p, cv2.ROTATE_90_COUNTERCLOCKWISE),
}


def normalize_orientation(buffer: ImageBuffer) -> ImageBuffer:
    """
    Returns an upright copy of the buffer.

    UPRIGHT buffers are copied unchanged. The orientation was resolved with
    Orientation.from_tag, so unknown metadata has already become UPRIGHT.
    """
    orientation = Orientation.from_tag(buffer.orientation)
    transform = _TRANSFORMS.get(orientation)

    if transform is None or buffer.is_empty:
        return buffer.replace_pixels(buffer.pixels.copy(), orientation=Orientation.UPRIGHT)

    upright = np.ascontiguousarray(transform(buffer.pixels))
    logger.info(
        f"Normalized orientation {orientation.name}: "
        f"{buffer.width}x{buffer.height} -> {upright.shape[1]}x{upright.shape[0]}"
    )
    return buffer.replace_pixels(upright, orientation=Orientation.UPRIGHT)
