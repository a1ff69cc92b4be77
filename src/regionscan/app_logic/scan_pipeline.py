# src/regionscan/app_logic/scan_pipeline.py

"""
Orchestrates a file-based region scan.

decode -> orient -> map -> enhance -> recognize -> assemble

Stages run one after another inside a scan; separate scans share nothing
but the recognizer, which is passed in explicitly. A failing stage ends the
scan with a ScanError naming that stage. Nothing is retried.
"""

import asyncio
import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional, Union

import cv2

from regionscan.capture.image_loader import load_image
from regionscan.processing.image_processor import process_image_for_ocr
from regionscan.processing.ocr_handler import TextRecognizer
from regionscan.processing.orientation import normalize_orientation
from regionscan.processing.region_mapper import map_region
from regionscan.processing.result_assembler import DEFAULT_JPEG_QUALITY, assemble
from regionscan.processing.types import NormalizedRegion, ScanOptions, ScanResult
from regionscan.utils.errors import RecognitionError, ScanError

logger = logging.getLogger(__name__)


@contextmanager
def scan_stage(name: str) -> Iterator[None]:
    """Labels failures raised inside a stage with the stage name."""
    try:
        yield
    except ScanError as e:
        if e.stage is None:
            e.stage = name
        raise
    except (cv2.error, ValueError, MemoryError) as e:
        raise ScanError(f"Stage '{name}' failed", stage=name, cause=e) from e


@dataclass
class RegionScanner:
    """
    Runs region scans against a recognizer.

    Attributes:
        recognizer: Engine adapter shared by every scan of this scanner.
        debug_dir: Where debug images go; the system temp dir if None.
        debug_images: True/False forces debug images on/off. None writes one
            whenever a region was used or the contrast was changed.
        debug_image_quality: JPEG quality of debug images.
    """

    recognizer: TextRecognizer
    debug_dir: Optional[Union[str, Path]] = None
    debug_images: Optional[bool] = None
    debug_image_quality: int = DEFAULT_JPEG_QUALITY

    def _wants_debug_image(self, region_used: bool, options: ScanOptions) -> bool:
        if self.debug_images is not None:
            return self.debug_images
        return region_used or options.contrast != 1.0

    def scan_image(
        self,
        path: str,
        region: Optional[NormalizedRegion] = None,
        options: Optional[ScanOptions] = None,
    ) -> ScanResult:
        """
        Scans an image file, optionally restricted to a region.

        With options.use_region the region is cropped before enhancement.
        Without it the whole image is enhanced and the region only narrows
        the recognizer (when it supports hints) and filters its lines.

        Raises:
            ScanError: Any stage failed; the error names the stage.
        """
        options = options or ScanOptions()
        started = time.perf_counter()
        logger.info(f"Scanning {path} region={region} options={options}")

        with scan_stage("decode"):
            buffer = load_image(path)

        with scan_stage("orient"):
            buffer = normalize_orientation(buffer)

        crop_region = None
        hint = None
        if region is not None:
            with scan_stage("map"):
                region.validate()
                if options.use_region:
                    crop_region = map_region(region, buffer.width, buffer.height)
                    logger.info(f"Region {region.to_dict()} -> pixels {crop_region}")
                else:
                    hint = region

        with scan_stage("enhance"):
            enhanced = process_image_for_ocr(buffer, crop_region, options)

        with scan_stage("recognize"):
            try:
                lines = self.recognizer.recognize(enhanced, hint, options.digits_only)
            except ScanError:
                raise
            except Exception as e:
                raise RecognitionError("Recognition failed", stage="recognize", cause=e) from e

        region_used = region is not None
        with scan_stage("assemble"):
            filter_region = None
            if hint is not None and not getattr(self.recognizer, "supports_region_hint", False):
                filter_region = hint
            result = assemble(
                lines,
                filter_region,
                options.digits_only,
                debug_image=enhanced if self._wants_debug_image(region_used, options) else None,
                debug_dir=self.debug_dir,
                jpeg_quality=self.debug_image_quality,
            )

        elapsed = time.perf_counter() - started
        logger.info(f"Scan of {path} finished in {elapsed:.2f}s with {len(result.text)} characters.")
        return result

    def scan_image_output(
        self,
        path: str,
        region: Optional[NormalizedRegion] = None,
        options: Optional[ScanOptions] = None,
    ) -> str:
        """Scans and serializes: JSON when a region or debug image is involved, else plain text."""
        result = self.scan_image(path, region, options)
        return result.to_output(region_used=region is not None)

    async def scan_image_async(
        self,
        path: str,
        region: Optional[NormalizedRegion] = None,
        options: Optional[ScanOptions] = None,
    ) -> ScanResult:
        """Runs scan_image in a worker thread so other scans keep going."""
        return await asyncio.to_thread(self.scan_image, path, region, options)
