"""Pytest configuration shared across the suite."""

from __future__ import annotations

import numpy as np
import pytest

from regionscan.utils import config as config_module


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    monkeypatch.setenv(config_module.CONFIG_DIR_ENV, str(tmp_path / "config"))
    config_module.reset_config()
    yield
    config_module.reset_config()


@pytest.fixture
def gradient_image() -> np.ndarray:
    """A smooth horizontal ramp, 3 channels, large enough to skip upscaling."""
    ramp = np.linspace(40, 215, 800, dtype=np.float32)
    gray = np.tile(ramp, (700, 1))
    return np.dstack([gray, gray, gray]).astype(np.uint8)
