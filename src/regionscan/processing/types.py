# src/regionscan/processing/types.py

"""
Value types shared by every stage of the scan pipeline.

Regions, options and results are frozen dataclasses. ImageBuffer owns its
pixel array; stages build a new buffer instead of modifying the one they
were given.
"""

import json
import logging
import math
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Union
from urllib.parse import unquote, urlparse

import numpy as np

from regionscan.utils.errors import InvalidInputError, InvalidRegionError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NormalizedRegion:
    """A rectangle in fractions of the upright image, origin top-left."""

    x: float
    y: float
    width: float
    height: float

    @classmethod
    def from_bottom_left(cls, x: float, y: float, width: float, height: float) -> "NormalizedRegion":
        """Converts a rectangle whose y axis starts at the bottom edge."""
        return cls(x=x, y=1.0 - y - height, width=width, height=height)

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    def validate(self) -> "NormalizedRegion":
        """
        Rejects regions that can never describe an area of an image.

        Values slightly outside [0, 1] are tolerated here; the region mapper
        clamps them against the actual image.
        """
        values = (self.x, self.y, self.width, self.height)
        if not all(math.isfinite(v) for v in values):
            raise InvalidRegionError(f"Region has non-finite coordinates: {self}")
        if self.width <= 0 or self.height <= 0:
            raise InvalidRegionError(f"Region has no area: {self}")
        return self

    def intersects(self, other: "NormalizedRegion") -> bool:
        return (
            self.x < other.right
            and other.x < self.right
            and self.y < other.bottom
            and other.y < self.bottom
        )

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


@dataclass(frozen=True)
class PixelRegion:
    """A rectangle in absolute pixels of the upright image."""

    x: int
    y: int
    width: int
    height: int


class Orientation(Enum):
    """EXIF orientation values describing how stored pixels must be turned upright."""

    UPRIGHT = 1
    MIRROR_HORIZONTAL = 2
    ROTATE_180 = 3
    MIRROR_VERTICAL = 4
    TRANSPOSE = 5
    ROTATE_90 = 6
    TRANSVERSE = 7
    ROTATE_270 = 8

    @classmethod
    def from_tag(cls, tag: Union[int, str, "Orientation", None]) -> "Orientation":
        """
        Resolves an EXIF value or a camera orientation name.

        Malformed metadata must never abort a scan, so anything unrecognised
        resolves to UPRIGHT.
        """
        if isinstance(tag, Orientation):
            return tag
        if tag is None:
            return cls.UPRIGHT
        if isinstance(tag, str):
            resolved = _CAMERA_ORIENTATIONS.get(tag.strip().lower())
            if resolved is None:
                logger.debug(f"Unknown orientation name {tag!r}, treating as upright.")
                return cls.UPRIGHT
            return resolved
        try:
            return cls(int(tag))
        except (TypeError, ValueError):
            logger.debug(f"Unknown orientation tag {tag!r}, treating as upright.")
            return cls.UPRIGHT

    @property
    def swaps_axes(self) -> bool:
        return self in (Orientation.TRANSPOSE, Orientation.ROTATE_90, Orientation.TRANSVERSE, Orientation.ROTATE_270)


_CAMERA_ORIENTATIONS = {
    "portrait": Orientation.UPRIGHT,
    "up": Orientation.UPRIGHT,
    "portrait-upside-down": Orientation.ROTATE_180,
    "landscape-left": Orientation.ROTATE_90,
    "landscape-right": Orientation.ROTATE_270,
}


@dataclass(frozen=True, eq=False)
class ImageBuffer:
    """Pixel data plus the metadata needed to interpret it."""

    pixels: np.ndarray
    orientation: Orientation = Orientation.UPRIGHT
    color_layout: str = "BGR"

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def channels(self) -> int:
        return 1 if self.pixels.ndim == 2 else int(self.pixels.shape[2])

    @property
    def stride(self) -> int:
        """Bytes per row of the underlying array."""
        return int(self.pixels.strides[0])

    @property
    def is_empty(self) -> bool:
        return self.pixels.size == 0

    def replace_pixels(self, pixels: np.ndarray, **changes: Any) -> "ImageBuffer":
        return replace(self, pixels=pixels, **changes)


@dataclass(frozen=True)
class ScanOptions:
    digits_only: bool = False
    contrast: float = 1.0
    use_region: bool = True

    def __post_init__(self):
        if not math.isfinite(self.contrast) or self.contrast < 0:
            raise InvalidInputError(f"Contrast must be a finite value >= 0, got {self.contrast}")


@dataclass(frozen=True)
class RecognizedLine:
    text: str
    bounding_box: NormalizedRegion
    confidence: float = 1.0


@dataclass(frozen=True)
class ScanResult:
    """
    Terminal value of a scan.

    debug_image_path is a plain filesystem path; the output format turns it
    into a file URI. The pipeline never deletes the file it points to.
    """

    text: str
    debug_image_path: Optional[str] = field(default=None)

    @property
    def debug_image_uri(self) -> str:
        if not self.debug_image_path:
            return ""
        return Path(self.debug_image_path).resolve().as_uri()

    def to_dict(self) -> Dict[str, str]:
        return {"text": self.text, "croppedImagePath": self.debug_image_uri}

    def to_output(self, region_used: bool) -> str:
        """
        Serializes the result for the caller.

        Plain text unless a region was used or a debug image exists, in which
        case a JSON object carrying both is returned.
        """
        if region_used or self.debug_image_path:
            return json.dumps(self.to_dict(), ensure_ascii=False)
        return self.text

    @classmethod
    def parse_output(cls, raw: str) -> "ScanResult":
        """Reads either output form back, trying JSON first."""
        try:
            payload = json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            return cls(text=raw)
        if not isinstance(payload, dict) or "text" not in payload:
            return cls(text=raw)
        uri = payload.get("croppedImagePath") or ""
        path = None
        if uri:
            parsed = urlparse(uri)
            path = unquote(parsed.path) if parsed.scheme == "file" else uri
        return cls(text=str(payload["text"]), debug_image_path=path)
