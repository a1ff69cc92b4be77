# src/regionscan/__init__.py

"""
RegionScan: text recognition restricted to a region of a photographed document.

This package maps a normalized region onto an image, turns the image upright,
crops and enhances it, runs a text-recognition engine over the result and
assembles the recognized lines into text.
"""

__version__ = "0.1.0"

from regionscan.app_logic.scan_pipeline import RegionScanner
from regionscan.app_logic.state_machine import FrameScanner
from regionscan.processing.types import NormalizedRegion, ScanOptions, ScanResult

__all__ = ["FrameScanner", "NormalizedRegion", "RegionScanner", "ScanOptions", "ScanResult"]
