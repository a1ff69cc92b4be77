# src/regionscan/capture/image_loader.py

"""
Decodes photographed documents from disk into ImageBuffers.

Pixels are decoded with OpenCV with its own EXIF handling switched off; the
orientation tag is read separately with Pillow and carried on the buffer so
that the orientation normalizer applies it exactly once.
"""

import logging
import os
from typing import Optional
from urllib.parse import unquote

import cv2
import numpy as np
from PIL import Image, UnidentifiedImageError

from regionscan.processing.types import ImageBuffer, Orientation
from regionscan.utils.errors import InvalidInputError

logger = logging.getLogger(__name__)

FILE_URI_PREFIX = "file://"
EXIF_ORIENTATION_TAG = 0x0112


def strip_uri_prefix(path: str) -> str:
    """Turns 'file:///tmp/a%20b.jpg' into '/tmp/a b.jpg'; plain paths pass through."""
    if path.startswith(FILE_URI_PREFIX):
        return unquote(path[len(FILE_URI_PREFIX):])
    return path


def read_orientation_tag(path: str) -> Optional[int]:
    """
    Reads the EXIF orientation of an image file.

    Returns None when the file has no EXIF data or it cannot be read;
    a broken tag must not stop the scan.
    """
    try:
        with Image.open(path) as image:
            value = image.getexif().get(EXIF_ORIENTATION_TAG)
    except (OSError, UnidentifiedImageError, Image.DecompressionBombError, ValueError, SyntaxError) as e:
        logger.warning(f"Error reading EXIF orientation from {path}: {e}")
        return None
    return value


def load_image(path: str) -> ImageBuffer:
    """
    Loads an encoded image into a BGR ImageBuffer tagged with its orientation.

    Raises:
        InvalidInputError: The file is missing or cannot be decoded.
    """
    clean_path = strip_uri_prefix(path)
    if not os.path.isfile(clean_path):
        raise InvalidInputError(f"Could not load image from path: {clean_path}", stage="decode")

    pixels = cv2.imread(clean_path, cv2.IMREAD_COLOR | cv2.IMREAD_IGNORE_ORIENTATION)
    if pixels is None:
        # cv2.imread cannot open non-ASCII paths on some platforms.
        data = np.fromfile(clean_path, dtype=np.uint8)
        pixels = cv2.imdecode(data, cv2.IMREAD_COLOR | cv2.IMREAD_IGNORE_ORIENTATION) if data.size else None
    if pixels is None:
        raise InvalidInputError(f"Could not decode image: {clean_path}", stage="decode")

    orientation = Orientation.from_tag(read_orientation_tag(clean_path))
    logger.info(f"Loaded {clean_path}: {pixels.shape[1]}x{pixels.shape[0]}, orientation {orientation.name}")
    return ImageBuffer(pixels=pixels, orientation=orientation, color_layout="BGR")
