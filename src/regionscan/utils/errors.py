# src/regionscan/utils/errors.py

"""
Error taxonomy for RegionScan.

Every failure that terminates a scan is a ScanError. The stage name and the
underlying exception travel with it so the caller can tell where a scan died
without parsing messages.
"""

from typing import Optional


class ScanError(Exception):
    """Base class for all scan failures."""

    def __init__(self, message: str, stage: Optional[str] = None, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.stage = stage
        self.cause = cause

    def __str__(self) -> str:
        text = self.message
        if self.stage:
            text = f"[{self.stage}] {text}"
        if self.cause is not None:
            text = f"{text} (caused by {type(self.cause).__name__}: {self.cause})"
        return text


class InvalidInputError(ScanError):
    """Unreadable file, degenerate region, bad options or an unusable frame."""


class InvalidRegionError(InvalidInputError):
    """A normalized region that cannot be mapped onto the image."""


class InvalidFrameError(InvalidInputError):
    """A live frame flagged invalid by the capture layer."""


class CropError(InvalidInputError):
    """A pixel region that does not fit the buffer it is cropped from."""


class RecognitionError(ScanError):
    """The text-recognition engine failed or could not be initialized."""


class EncodingError(ScanError):
    """A debug image could not be encoded or written."""


class FrameScanNotImplementedError(ScanError, NotImplementedError):
    """The frame path does not support this frame on this platform."""
