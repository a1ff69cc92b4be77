# src/regionscan/app_logic/state_machine.py

"""
Defines the state machine for scanning live frames.

Each frame scan request walks Idle -> Validating -> Adapting -> Recognizing
and ends in Done or Failed. Validating is the early exit: a frame the
capture layer already flagged unusable never reaches the recognizer.
Adapting turns the platform frame into the ImageBuffer shape the recognizer
expects. No file is read or written on this path.
"""

import asyncio
import logging
from enum import Enum, auto
from typing import List, Optional

import cv2
import numpy as np

from regionscan.capture.frames import Frame
from regionscan.processing.image_processor import process_image_for_ocr
from regionscan.processing.ocr_handler import TextRecognizer
from regionscan.processing.orientation import normalize_orientation
from regionscan.processing.result_assembler import assemble
from regionscan.processing.types import ImageBuffer, NormalizedRegion, Orientation, ScanOptions
from regionscan.utils.errors import (
    FrameScanNotImplementedError,
    InvalidFrameError,
    InvalidInputError,
    RecognitionError,
    ScanError,
)

logger = logging.getLogger(__name__)


class FrameScanState(Enum):
    """Enumeration for the states of a single frame scan."""
    IDLE = auto()
    VALIDATING = auto()
    ADAPTING = auto()
    RECOGNIZING = auto()
    DONE = auto()
    FAILED = auto()


def _frame_pixels(frame: Frame, channels: int, rows: int) -> np.ndarray:
    """Reads rows of the frame buffer, dropping any stride padding."""
    row_bytes = frame.width * channels
    stride = frame.bytes_per_row or row_bytes
    if stride < row_bytes:
        raise InvalidFrameError(f"Row stride {stride} is shorter than a {frame.width}px row")

    data = np.frombuffer(frame.to_array_buffer(), dtype=np.uint8)
    needed = stride * (rows - 1) + row_bytes
    if data.size < needed:
        raise InvalidFrameError(f"Frame buffer holds {data.size} bytes, expected at least {needed}")

    if data.size < stride * rows:
        # The last row may come without its padding.
        data = np.concatenate([data, np.zeros(stride * rows - data.size, dtype=np.uint8)])
    rows_view = np.ascontiguousarray(data[:stride * rows].reshape(rows, stride)[:, :row_bytes])
    if channels > 1:
        return rows_view.reshape(rows, frame.width, channels)
    return rows_view


def adapt_frame(frame: Frame) -> ImageBuffer:
    """
    Converts a live frame into a BGR ImageBuffer tagged with its orientation.

    Raises:
        InvalidFrameError: The frame dimensions or buffer size are inconsistent.
        FrameScanNotImplementedError: The pixel format is not supported.
    """
    if frame.width <= 0 or frame.height <= 0:
        raise InvalidFrameError(f"Frame has no area: {frame.width}x{frame.height}")

    pixel_format = (frame.pixel_format or "unknown").lower()
    if pixel_format == "bgra":
        pixels = cv2.cvtColor(_frame_pixels(frame, 4, frame.height), cv2.COLOR_BGRA2BGR)
    elif pixel_format == "rgb":
        pixels = cv2.cvtColor(_frame_pixels(frame, 3, frame.height), cv2.COLOR_RGB2BGR)
    elif pixel_format == "yuv":
        if frame.width % 2 or frame.height % 2:
            raise InvalidFrameError("NV12 frames need even dimensions")
        planes = _frame_pixels(frame, 1, frame.height * 3 // 2)
        pixels = cv2.cvtColor(np.ascontiguousarray(planes), cv2.COLOR_YUV2BGR_NV12)
    else:
        raise FrameScanNotImplementedError(
            f"Frame scanning is not implemented for pixel format '{frame.pixel_format}'"
        )

    return ImageBuffer(
        pixels=np.ascontiguousarray(pixels),
        orientation=Orientation.from_tag(frame.orientation),
        color_layout="BGR",
    )


class FrameScanStateMachine:
    """
    Runs one frame scan request and records every state it passes through.

    The optional region is an extension point: it is handed to the
    recognizer as a hint and used to filter lines, without cropping.
    """

    def __init__(
        self,
        recognizer: TextRecognizer,
        enhance: bool = False,
        options: Optional[ScanOptions] = None,
    ):
        self._recognizer = recognizer
        self._enhance = enhance
        self._options = options or ScanOptions()
        self._state = FrameScanState.IDLE
        self.history: List[FrameScanState] = [FrameScanState.IDLE]
        self.error: Optional[ScanError] = None

    @property
    def state(self) -> FrameScanState:
        return self._state

    def _set_state(self, new_state: FrameScanState):
        """Sets and logs the scan state."""
        if self._state != new_state:
            logger.debug(f"Frame scan transition: {self._state.name} -> {new_state.name}")
            self._state = new_state
            self.history.append(new_state)

    def run(self, frame: Frame, region: Optional[NormalizedRegion] = None) -> str:
        if self._state != FrameScanState.IDLE:
            raise RuntimeError(f"Frame scan already ran (state {self._state.name})")

        try:
            self._set_state(FrameScanState.VALIDATING)
            if not frame.is_valid:
                raise InvalidFrameError("Invalid frame", stage="validate")
            if region is not None:
                region.validate()

            self._set_state(FrameScanState.ADAPTING)
            buffer = normalize_orientation(adapt_frame(frame))
            if self._enhance:
                buffer = process_image_for_ocr(buffer, None, self._options)

            self._set_state(FrameScanState.RECOGNIZING)
            digits_only = self._options.digits_only
            try:
                lines = self._recognizer.recognize(buffer, region, digits_only)
            except ScanError:
                raise
            except Exception as e:
                raise RecognitionError("Recognition failed", stage="recognizing", cause=e) from e

            filter_region = None
            if region is not None and not getattr(self._recognizer, "supports_region_hint", False):
                filter_region = region
            result = assemble(lines, filter_region, digits_only)
        except ScanError as e:
            if e.stage is None:
                e.stage = self._state.name.lower()
            self.error = e
            self._set_state(FrameScanState.FAILED)
            logger.warning(f"Frame scan failed: {e}")
            raise
        except cv2.error as e:
            error = InvalidInputError("Frame could not be converted", stage=self._state.name.lower(), cause=e)
            self.error = error
            self._set_state(FrameScanState.FAILED)
            raise error from e

        self._set_state(FrameScanState.DONE)
        return result.text


class FrameScanner:
    """Entry point for live-frame scans; every call gets its own state machine."""

    def __init__(self, recognizer: TextRecognizer, enhance: bool = False, options: Optional[ScanOptions] = None):
        self.recognizer = recognizer
        self.enhance = enhance
        self.options = options

    def create_session(self) -> FrameScanStateMachine:
        return FrameScanStateMachine(self.recognizer, enhance=self.enhance, options=self.options)

    def scan_frame(self, frame: Frame, region: Optional[NormalizedRegion] = None) -> str:
        return self.create_session().run(frame, region)

    async def scan_frame_async(self, frame: Frame, region: Optional[NormalizedRegion] = None) -> str:
        return await asyncio.to_thread(self.scan_frame, frame, region)
