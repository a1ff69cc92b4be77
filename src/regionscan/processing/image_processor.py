# src/regionscan/processing/image_processor.py

"""
Implements the image enhancement pipeline for RegionScan.

This module prepares an upright image (or the region of interest cut out of
it) for text recognition. The stages always run in the same order:

1. Normalize colour (drop alpha).
2. Crop to the requested pixel region.
3. Upscale small crops so the short side reaches the recognition threshold.
4. Sharpen with a local-contrast kernel.
5. Apply a contrast/brightness adjustment that keeps mid-gray in place.
6. Apply an S-shaped tone curve (digits only).
7. Finish with an unsharp mask.

Every stage is deterministic and tolerates 1x1 or blank inputs.
"""

import logging
from typing import Optional

import cv2
import numpy as np

from regionscan.processing.types import ImageBuffer, PixelRegion, ScanOptions
from regionscan.utils.errors import CropError

logger = logging.getLogger(__name__)

# --- Constants for Processing ---
# Recognition accuracy drops sharply when the short side of the text area is
# below this many pixels.
MIN_RECOGNITION_SIDE = 640
# Upper bound on the long side after upscaling, for very thin strips.
MAX_UPSCALED_SIDE = 8192

SHARPEN_AMOUNT_TEXT = 0.5
SHARPEN_AMOUNT_DIGITS = 1.0

CONTRAST_RANGE_TEXT = (1.0, 2.0)
CONTRAST_RANGE_DIGITS = (1.0, 2.5)
# Extra brightness added on top of the mid-gray preserving offset.
BRIGHTNESS_BIAS_TEXT = 0.0
BRIGHTNESS_BIAS_DIGITS = 12.0

# Steepness of the logistic tone curve. Higher values push midtones apart harder.
TONE_CURVE_STEEPNESS = 6.0

UNSHARP_SIGMA = 2.0
UNSHARP_AMOUNT_TEXT = 0.5
UNSHARP_AMOUNT_DIGITS = 1.0

MAX_VALUE = 255.0


def _to_bgr(pixels: np.ndarray) -> np.ndarray:
    # Alpha carries nothing useful for recognition.
    if pixels.ndim == 3 and pixels.shape[2] == 4:
        return cv2.cvtColor(pixels, cv2.COLOR_BGRA2BGR)
    return pixels


def crop(pixels: np.ndarray, region: Optional[PixelRegion]) -> np.ndarray:
    """Extracts exactly the pixel rectangle, or passes the whole image through."""
    if region is None:
        return pixels

    height, width = pixels.shape[:2]
    if (
        region.x < 0
        or region.y < 0
        or region.width <= 0
        or region.height <= 0
        or region.x + region.width > width
        or region.y + region.height > height
    ):
        raise CropError(f"Cannot crop {region} from a {width}x{height} buffer", stage="crop")

    return pixels[region.y:region.y + region.height, region.x:region.x + region.width].copy()


def upscale_if_small(pixels: np.ndarray, min_side: int = MIN_RECOGNITION_SIDE) -> np.ndarray:
    """
    Scales the image uniformly so its short side reaches min_side.

    Never downscales. Cubic interpolation keeps stroke edges smooth.
    """
    height, width = pixels.shape[:2]
    short_side = min(width, height)
    if short_side == 0 or short_side >= min_side:
        return pixels

    scale = min_side / short_side
    long_side = max(width, height)
    capped = long_side * scale > MAX_UPSCALED_SIDE
    if capped:
        scale = MAX_UPSCALED_SIDE / long_side
        if scale <= 1.0:
            return pixels

    new_width = round(width * scale)
    new_height = round(height * scale)
    if not capped:
        # The short side lands exactly on the threshold, whatever the float error.
        if width <= height:
            new_width = min_side
        else:
            new_height = min_side

    logger.debug(f"Upscaling {width}x{height} by {scale:.3f} to {new_width}x{new_height}")
    return cv2.resize(pixels, (new_width, new_height), interpolation=cv2.INTER_CUBIC)


def sharpen(pixels: np.ndarray, amount: float) -> np.ndarray:
    """Applies a 3x3 Laplacian sharpening kernel whose weights sum to one."""
    if amount <= 0:
        return pixels
    kernel = np.array(
        [[0.0, -amount, 0.0],
         [-amount, 1.0 + 4.0 * amount, -amount],
         [0.0, -amount, 0.0]],
        dtype=np.float32,
    )
    return cv2.filter2D(pixels, -1, kernel, borderType=cv2.BORDER_REPLICATE)


def contrast_lut(scale: float, bias: float) -> np.ndarray:
    """
    Builds the lookup table for output = input * scale + offset.

    The offset keeps mid-gray approximately fixed, plus a brightness bias.
    """
    offset = (1.0 - scale) * MAX_VALUE / 2.0 + bias
    values = np.arange(256, dtype=np.float32) * scale + offset
    return np.clip(np.rint(values), 0, 255).astype(np.uint8)


def adjust_contrast(pixels: np.ndarray, contrast: float, digits_only: bool) -> np.ndarray:
    low, high = CONTRAST_RANGE_DIGITS if digits_only else CONTRAST_RANGE_TEXT
    scale = min(max(contrast, low), high)
    bias = BRIGHTNESS_BIAS_DIGITS if digits_only else BRIGHTNESS_BIAS_TEXT
    if scale == 1.0 and bias == 0.0:
        return pixels
    return cv2.LUT(pixels, contrast_lut(scale, bias))


def tone_curve_lut(steepness: float = TONE_CURVE_STEEPNESS) -> np.ndarray:
    """
    Builds a logistic S-curve LUT rescaled so 0 and 255 map to themselves.
    """
    t = np.linspace(0.0, 1.0, 256)
    sigmoid = 1.0 / (1.0 + np.exp(-steepness * (t - 0.5)))
    low, high = sigmoid[0], sigmoid[-1]
    curve = (sigmoid - low) / (high - low) * MAX_VALUE
    return np.clip(np.rint(curve), 0, 255).astype(np.uint8)


def apply_tone_curve(pixels: np.ndarray) -> np.ndarray:
    return cv2.LUT(pixels, tone_curve_lut())


def unsharp_mask(pixels: np.ndarray, amount: float, sigma: float = UNSHARP_SIGMA) -> np.ndarray:
    if amount <= 0:
        return pixels
    blurred = cv2.GaussianBlur(pixels, (0, 0), sigmaX=sigma, sigmaY=sigma)
    return cv2.addWeighted(pixels, 1.0 + amount, blurred, -amount, 0)


def process_image_for_ocr(
    buffer: ImageBuffer,
    region: Optional[PixelRegion],
    options: ScanOptions,
) -> ImageBuffer:
    """
    Runs the full enhancement chain over an upright buffer.

    Args:
        buffer: Upright image. Grayscale, BGR and BGRA layouts are accepted.
        region: Pixel rectangle to crop first, or None for the whole image.
        options: Scan options; digits_only selects the stronger settings
                 and enables the tone curve.

    Returns:
        A new ImageBuffer ready for the recognizer. The input is untouched.

    Raises:
        CropError: The region does not fit the buffer.
    """
    pixels = _to_bgr(buffer.pixels)
    layout = "BGR" if buffer.color_layout == "BGRA" else buffer.color_layout

    pixels = crop(pixels, region)
    if pixels.size == 0:
        logger.warning("Enhancer received an empty image; passing it through.")
        return buffer.replace_pixels(pixels.copy(), color_layout=layout)

    digits = options.digits_only
    original_size = (pixels.shape[1], pixels.shape[0])

    pixels = upscale_if_small(pixels)
    pixels = sharpen(pixels, SHARPEN_AMOUNT_DIGITS if digits else SHARPEN_AMOUNT_TEXT)
    pixels = adjust_contrast(pixels, options.contrast, digits)
    if digits:
        pixels = apply_tone_curve(pixels)
    pixels = unsharp_mask(pixels, UNSHARP_AMOUNT_DIGITS if digits else UNSHARP_AMOUNT_TEXT)

    logger.info(
        f"Enhanced {original_size[0]}x{original_size[1]} -> {pixels.shape[1]}x{pixels.shape[0]} "
        f"(digits_only={digits}, contrast={options.contrast})"
    )
    return buffer.replace_pixels(np.ascontiguousarray(pixels), color_layout=layout)
