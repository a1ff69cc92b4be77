# src/regionscan/utils/clipboard.py

"""
A simple wrapper module for the 'pyperclip' library.

Copies recognized text to the system clipboard. A missing clipboard mechanism
is logged, not raised: the scan result is still printed.
"""

import logging

import pyperclip

logger = logging.getLogger(__name__)


def copy_to_clipboard(text: str) -> bool:
    """
    Copies the given text to the system clipboard.

    Args:
        text: The recognized text.

    Returns:
        True if the text reached the clipboard.
    """
    if not isinstance(text, str) or not text:
        logger.warning("Nothing to copy: recognized text is empty.")
        return False

    try:
        pyperclip.copy(text)
    except pyperclip.PyperclipException as e:
        # Headless systems, or Linux without xclip/xsel installed.
        logger.error(f"Failed to copy text to clipboard. pyperclip error: {e}")
        return False

    logger.info(f"Copied {len(text)} characters to the system clipboard.")
    return True
