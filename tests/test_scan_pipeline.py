import asyncio
import json

import cv2
import numpy as np
import pytest
from PIL import Image

from regionscan.app_logic.scan_pipeline import RegionScanner
from regionscan.capture.image_loader import load_image, read_orientation_tag, strip_uri_prefix
from regionscan.processing.types import NormalizedRegion, Orientation, ScanOptions, ScanResult
from regionscan.utils.errors import InvalidInputError, InvalidRegionError, RecognitionError, ScanError
from fakes import FailingRecognizer, FakeRecognizer, line

DOCUMENT_REGION = NormalizedRegion(x=0.1, y=0.3, width=0.8, height=0.2)


@pytest.fixture
def document_path(tmp_path):
    pixels = np.full((2000, 1000, 3), 230, dtype=np.uint8)
    cv2.putText(pixels, "42.50", (150, 720), cv2.FONT_HERSHEY_SIMPLEX, 3, (20, 20, 20), 6)
    path = tmp_path / "document.png"
    assert cv2.imwrite(str(path), pixels)
    return path


def test_region_scan_end_to_end(document_path, tmp_path):
    recognizer = FakeRecognizer([line("Total 42.50", x=0.1, y=0.6), line("Invoice 7", x=0.1, y=0.2)])
    scanner = RegionScanner(recognizer=recognizer, debug_dir=tmp_path / "debug")

    output = scanner.scan_image_output(str(document_path), DOCUMENT_REGION, ScanOptions(contrast=1.0))

    call = recognizer.calls[0]
    assert (call["image"].width, call["image"].height) == (1280, 640)
    assert call["region_hint"] is None
    assert call["digits_only"] is False
    payload = json.loads(output)
    assert payload["text"] == "Invoice 7\nTotal 42.50"
    assert payload["croppedImagePath"].startswith("file://")
    debug_path = ScanResult.parse_output(output).debug_image_path
    assert cv2.imread(debug_path).shape[:2] == (640, 1280)


def test_whole_image_scan_returns_plain_text(document_path):
    recognizer = FakeRecognizer([line("hello", 0.1, 0.1)])
    scanner = RegionScanner(recognizer=recognizer)

    output = scanner.scan_image_output(f"file://{document_path}")

    assert output == "hello"
    assert (recognizer.calls[0]["image"].width, recognizer.calls[0]["image"].height) == (1000, 2000)


def test_digits_only_is_passed_to_engine_and_filtered(document_path, tmp_path):
    recognizer = FakeRecognizer([line("Total: $42.50", 0.0, 0.1), line("Thanks!", 0.0, 0.5)])
    scanner = RegionScanner(recognizer=recognizer, debug_images=False)

    result = scanner.scan_image(str(document_path), DOCUMENT_REGION, ScanOptions(digits_only=True, contrast=2.0))

    assert recognizer.calls[0]["digits_only"] is True
    assert result == ScanResult(text="42.50", debug_image_path=None)


def test_region_without_crop_filters_recognized_lines(document_path):
    recognizer = FakeRecognizer([line("header", 0.1, 0.05), line("42.50", 0.1, 0.35)])
    scanner = RegionScanner(recognizer=recognizer, debug_images=False)

    result = scanner.scan_image(str(document_path), DOCUMENT_REGION, ScanOptions(use_region=False))

    call = recognizer.calls[0]
    assert call["region_hint"] == DOCUMENT_REGION
    assert (call["image"].width, call["image"].height) == (1000, 2000)
    assert result.text == "42.50"


def test_engine_with_region_support_is_trusted(document_path):
    recognizer = FakeRecognizer([line("header", 0.1, 0.05)], supports_region_hint=True)
    scanner = RegionScanner(recognizer=recognizer, debug_images=False)

    result = scanner.scan_image(str(document_path), DOCUMENT_REGION, ScanOptions(use_region=False))

    assert result.text == "header"


def test_invalid_region_fails_before_recognition(document_path):
    recognizer = FakeRecognizer([line("never", 0.1, 0.1)])
    scanner = RegionScanner(recognizer=recognizer)

    with pytest.raises(InvalidRegionError) as excinfo:
        scanner.scan_image(str(document_path), NormalizedRegion(x=1.0, y=0.0, width=0.5, height=0.5))

    assert excinfo.value.stage == "map"
    assert recognizer.calls == []


def test_missing_file_is_invalid_input(tmp_path):
    scanner = RegionScanner(recognizer=FakeRecognizer())

    with pytest.raises(InvalidInputError) as excinfo:
        scanner.scan_image(str(tmp_path / "missing.jpg"))

    assert excinfo.value.stage == "decode"


def test_undecodable_file_is_invalid_input(tmp_path):
    path = tmp_path / "broken.jpg"
    path.write_bytes(b"not an image")

    with pytest.raises(InvalidInputError):
        RegionScanner(recognizer=FakeRecognizer()).scan_image(str(path))


def test_recognition_failure_propagates_with_stage(document_path):
    scanner = RegionScanner(recognizer=FailingRecognizer(RecognitionError("engine timed out")))

    with pytest.raises(RecognitionError) as excinfo:
        scanner.scan_image(str(document_path), DOCUMENT_REGION)

    assert excinfo.value.stage == "recognize"


@pytest.mark.parametrize(
    "engine_error",
    [TimeoutError("engine timed out"), RuntimeError("engine crashed"), OSError("model missing"), ValueError("bad input")],
)
def test_engine_exceptions_become_recognition_errors(document_path, engine_error):
    scanner = RegionScanner(recognizer=FailingRecognizer(engine_error))

    with pytest.raises(RecognitionError) as excinfo:
        scanner.scan_image(str(document_path), DOCUMENT_REGION)

    assert excinfo.value.stage == "recognize"
    assert excinfo.value.cause is engine_error


def test_opencv_errors_are_wrapped_with_stage(document_path, monkeypatch):
    def broken(*args, **kwargs):
        raise cv2.error("resize exploded")

    monkeypatch.setattr("regionscan.app_logic.scan_pipeline.process_image_for_ocr", broken)

    with pytest.raises(ScanError) as excinfo:
        RegionScanner(recognizer=FakeRecognizer()).scan_image(str(document_path), DOCUMENT_REGION)

    assert excinfo.value.stage == "enhance"
    assert isinstance(excinfo.value.cause, cv2.error)


def test_concurrent_async_scans(document_path):
    recognizer = FakeRecognizer([line("12", 0.1, 0.1)])
    scanner = RegionScanner(recognizer=recognizer, debug_images=False)

    async def run_all():
        return await asyncio.gather(
            scanner.scan_image_async(str(document_path), DOCUMENT_REGION, ScanOptions(digits_only=True)),
            scanner.scan_image_async(str(document_path)),
        )

    first, second = asyncio.run(run_all())

    assert first.text == "12"
    assert second.text == "12"
    assert len(recognizer.calls) == 2


def test_exif_rotation_is_applied_before_region_mapping(tmp_path):
    # Stored landscape 400x200; EXIF 6 means the upright view is 200x400.
    stored = Image.new("RGB", (400, 200), (255, 255, 255))
    exif = Image.Exif()
    exif[0x0112] = 6
    path = tmp_path / "rotated.jpg"
    stored.save(path, exif=exif)
    recognizer = FakeRecognizer()

    RegionScanner(recognizer=recognizer, debug_images=False).scan_image(
        str(path), NormalizedRegion(x=0.0, y=0.0, width=1.0, height=0.5)
    )

    image = recognizer.calls[0]["image"]
    # Upright crop is 200x200, upscaled to 640x640.
    assert (image.width, image.height) == (640, 640)


def test_loader_keeps_orientation_for_the_normalizer(tmp_path):
    stored = Image.new("RGB", (40, 20), (0, 0, 0))
    exif = Image.Exif()
    exif[0x0112] = 8
    path = tmp_path / "rotated.jpg"
    stored.save(path, exif=exif)

    buffer = load_image(str(path))

    assert read_orientation_tag(str(path)) == 8
    assert buffer.orientation is Orientation.ROTATE_270
    assert (buffer.width, buffer.height) == (40, 20)


def test_loader_tolerates_missing_exif(document_path):
    assert read_orientation_tag(str(document_path)) is None
    assert load_image(str(document_path)).orientation is Orientation.UPRIGHT


def test_loader_tolerates_images_too_large_for_exif_reading(document_path, monkeypatch):
    def refuse(*args, **kwargs):
        raise Image.DecompressionBombError("image exceeds pixel limit")

    monkeypatch.setattr("regionscan.capture.image_loader.Image.open", refuse)

    assert read_orientation_tag(str(document_path)) is None
    buffer = load_image(str(document_path))
    assert buffer.orientation is Orientation.UPRIGHT
    assert not buffer.is_empty


def test_strip_uri_prefix():
    assert strip_uri_prefix("file:///tmp/photo%201.jpg") == "/tmp/photo 1.jpg"
    assert strip_uri_prefix("/tmp/photo.jpg") == "/tmp/photo.jpg"


def test_negative_contrast_is_rejected():
    with pytest.raises(InvalidInputError):
        ScanOptions(contrast=-1.0)
