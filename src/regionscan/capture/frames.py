# src/regionscan/capture/frames.py

"""
Live frame representation handed over by a capture layer.

A camera or screen grabber delivers a Frame; the frame scanner converts it
into an ImageBuffer. RawFrame is the in-process implementation used by the
screen capture module and by callers that already hold raw bytes.
"""

from dataclasses import dataclass
from typing import Protocol

PIXEL_FORMATS = ("yuv", "rgb", "bgra", "unknown")


class Frame(Protocol):
    @property
    def is_valid(self) -> bool: ...

    @property
    def width(self) -> int: ...

    @property
    def height(self) -> int: ...

    @property
    def bytes_per_row(self) -> int: ...

    @property
    def pixel_format(self) -> str: ...

    @property
    def orientation(self) -> str: ...

    def to_array_buffer(self) -> bytes: ...


@dataclass(frozen=True)
class RawFrame:
    """
    A frame backed by a bytes object.

    For 'yuv' frames the data is NV12: a full-resolution Y plane followed by
    an interleaved half-resolution UV plane, both using bytes_per_row.
    """

    data: bytes
    width: int
    height: int
    bytes_per_row: int
    pixel_format: str = "bgra"
    orientation: str = "portrait"
    is_valid: bool = True
    timestamp: float = 0.0

    def to_array_buffer(self) -> bytes:
        return self.data

    @classmethod
    def invalid(cls) -> "RawFrame":
        return cls(data=b"", width=0, height=0, bytes_per_row=0, pixel_format="unknown", is_valid=False)
