#!/usr/bin/env python3
# src/regionscan/main.py

"""
Command-line entry point for RegionScan.

Scans a photographed document (optionally only a region of it) or a live area
of the screen, and prints the recognized text. Output is plain text, or a
JSON object with the text and the debug image URI when a region was used.
"""

import argparse
import logging
import sys
from typing import List, Optional

from regionscan.app_logic.scan_pipeline import RegionScanner
from regionscan.app_logic.state_machine import FrameScanner
from regionscan.capture.screen_capture import capture_screen_frame
from regionscan.processing.ocr_handler import EasyOcrRecognizer, RecognizerPool, TextRecognizer
from regionscan.processing.types import NormalizedRegion, ScanOptions
from regionscan.utils.clipboard import copy_to_clipboard
from regionscan.utils.config import ConfigManager, get_config
from regionscan.utils.errors import ScanError

logger = logging.getLogger(__name__)


def setup_logging(level: str = "INFO"):
    """Configures basic logging for the application."""
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        stream=sys.stderr,
    )
    # Reduce verbosity from libraries that use logging
    logging.getLogger("easyocr").setLevel(logging.WARNING)
    logging.getLogger("PIL").setLevel(logging.WARNING)


def build_recognizer(config: ConfigManager) -> TextRecognizer:
    """Creates the recognizer (or a pool of them) described by the configuration."""

    def factory() -> EasyOcrRecognizer:
        return EasyOcrRecognizer(
            languages=config.get("ocr_languages", ["en"]),
            gpu=bool(config.get("ocr_gpu", False)),
            quality=config.get("ocr_quality", "accurate"),
            language_correction=bool(config.get("ocr_language_correction", False)),
            min_confidence=float(config.get("ocr_min_confidence", 0.0)),
        )

    pool_size = int(config.get("recognizer_pool_size", 1))
    if pool_size > 1:
        return RecognizerPool(factory, size=pool_size)
    return factory()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="regionscan",
        description="Recognize text in a region of a photographed document.",
    )
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("image", nargs="?", help="Image path or file:// URI")
    source.add_argument(
        "--screen",
        nargs=4,
        type=int,
        metavar=("LEFT", "TOP", "WIDTH", "HEIGHT"),
        help="Scan a live frame grabbed from this screen area instead of a file",
    )
    parser.add_argument(
        "--region",
        nargs=4,
        type=float,
        metavar=("X", "Y", "WIDTH", "HEIGHT"),
        help="Normalized region of interest (fractions of the upright image)",
    )
    parser.add_argument("--digits-only", action="store_true", help="Favour digits over words")
    parser.add_argument("--contrast", type=float, default=1.0, help="Contrast factor (default: 1.0)")
    parser.add_argument(
        "--no-crop",
        action="store_true",
        help="Do not crop to the region; use it only to filter recognized lines",
    )
    parser.add_argument("--debug-dir", help="Directory for the processed debug image")
    parser.add_argument("--copy", action="store_true", help="Copy the recognized text to the clipboard")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def main(argv: Optional[List[str]] = None, recognizer: Optional[TextRecognizer] = None) -> int:
    """Main execution function for RegionScan."""
    args = build_parser().parse_args(argv)
    config = get_config()
    setup_logging("DEBUG" if args.verbose else config.get("log_level", "INFO"))

    try:
        options = ScanOptions(
            digits_only=args.digits_only,
            contrast=args.contrast,
            use_region=not args.no_crop,
        )
        region = NormalizedRegion(*args.region) if args.region else None
        recognizer = recognizer or build_recognizer(config)

        if args.screen:
            frame = capture_screen_frame(tuple(args.screen))
            scanner = FrameScanner(recognizer, options=options)
            text = scanner.scan_frame(frame, region)
            output = text
        else:
            scanner = RegionScanner(
                recognizer=recognizer,
                debug_dir=args.debug_dir or config.get("debug_image_dir"),
                debug_image_quality=int(config.get("debug_image_quality", 90)),
            )
            result = scanner.scan_image(args.image, region, options)
            text = result.text
            output = result.to_output(region_used=region is not None)
    except ScanError as e:
        logger.error(f"Scan failed: {e}")
        return 1

    print(output)
    if args.copy:
        copy_to_clipboard(text)
    return 0


if __name__ == '__main__':
    sys.exit(main())
