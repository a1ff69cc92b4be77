# src/regionscan/processing/region_mapper.py

"""
Maps a normalized region of interest onto the pixel grid of an upright image.

Rounding is half-away-from-zero so that a region like x=0.25 on a 10 px wide
image lands on the same pixel regardless of platform float formatting.
"""

import logging
import math

from regionscan.processing.types import NormalizedRegion, PixelRegion
from regionscan.utils.errors import InvalidRegionError

logger = logging.getLogger(__name__)


def round_half_away(value: float) -> int:
    """Rounds to the nearest integer, ties away from zero."""
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def map_region(region: NormalizedRegion, image_width: int, image_height: int) -> PixelRegion:
    """
    Converts a normalized region into a clamped pixel rectangle.

    Args:
        region: Region in fractions of the upright image.
        image_width: Width of the upright image in pixels.
        image_height: Height of the upright image in pixels.

    Returns:
        A PixelRegion with x, y inside the image and the far edges clamped
        to the image bounds.

    Raises:
        InvalidRegionError: The image has no area, the region starts outside
            the image, or the clamped rectangle collapses to zero pixels.
    """
    if image_width <= 0 or image_height <= 0:
        raise InvalidRegionError(f"Image has no area: {image_width}x{image_height}")
    region.validate()

    raw_x = round_half_away(region.x * image_width)
    raw_y = round_half_away(region.y * image_height)
    if raw_x >= image_width or raw_y >= image_height:
        raise InvalidRegionError(
            f"Region {region} starts outside a {image_width}x{image_height} image"
        )

    start_x = min(max(raw_x, 0), image_width - 1)
    start_y = min(max(raw_y, 0), image_height - 1)
    width = min(round_half_away(region.width * image_width), image_width - start_x)
    height = min(round_half_away(region.height * image_height), image_height - start_y)

    if width <= 0 or height <= 0:
        raise InvalidRegionError(
            f"Region {region} collapses to {width}x{height} px on a {image_width}x{image_height} image"
        )

    pixel_region = PixelRegion(x=start_x, y=start_y, width=width, height=height)
    logger.debug(f"Mapped {region} on {image_width}x{image_height} to {pixel_region}")
    return pixel_region
