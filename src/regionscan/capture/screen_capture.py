# src/regionscan/capture/screen_capture.py

"""
Live frame source backed by the 'mss' screen capture library.

Grabs an area of the screen and wraps the raw BGRA pixels in a RawFrame,
so the frame scanner can run on whatever is currently displayed.
"""

import logging
import time
from typing import Tuple

import mss
import mss.exception

from regionscan.capture.frames import RawFrame

logger = logging.getLogger(__name__)


def capture_screen_frame(bbox: Tuple[int, int, int, int]) -> RawFrame:
    """
    Captures a specific area of the screen as a live frame.

    Args:
        bbox: (x, y, width, height) in screen pixels.

    Returns:
        A BGRA RawFrame. The frame is flagged invalid when the box has no
        area or the capture fails, which the frame scanner rejects before
        any recognition happens.
    """
    x, y, w, h = bbox

    if w <= 0 or h <= 0:
        logger.warning(f"Screen capture requested for an empty area: {bbox}")
        return RawFrame.invalid()

    try:
        monitor = {"top": y, "left": x, "width": w, "height": h}

        with mss.mss() as sct:
            sct_img = sct.grab(monitor)
            return RawFrame(
                data=bytes(sct_img.bgra),
                width=sct_img.width,
                height=sct_img.height,
                bytes_per_row=sct_img.width * 4,
                pixel_format="bgra",
                timestamp=time.time(),
            )
    except mss.exception.ScreenShotError as e:
        logger.error(f"Error during screen capture: {e}")
        return RawFrame.invalid()
