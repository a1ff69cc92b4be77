# src/regionscan/utils/config.py

"""
RegionScan settings stored as JSON in the per-user config directory.

The CLI reads the recognition engine (languages, GPU, decoder quality,
confidence floor, pool size), where debug JPEGs go and the log level from
here. Keys missing from the file fall back to DEFAULT_CONFIG.
"""

import json
import logging
import os
import sys
from pathlib import Path
from typing import Optional

# Constants
APP_NAME = "regionscan"
CONFIG_FILE_NAME = "config.json"
CONFIG_DIR_ENV = "REGIONSCAN_CONFIG_DIR"

# Default settings for the application
DEFAULT_CONFIG = {
    "ocr_languages": ["en"],
    "ocr_gpu": False,
    "ocr_quality": "accurate",
    "ocr_language_correction": False,
    "ocr_min_confidence": 0.0,
    "recognizer_pool_size": 1,
    "debug_image_dir": None,
    "debug_image_quality": 90,
    "log_level": "INFO",
}

# Set up a logger for this module
logger = logging.getLogger(__name__)


def get_config_dir() -> Path:
    """
    Returns the directory holding config.json.

    REGIONSCAN_CONFIG_DIR wins when set; otherwise the platform's usual
    per-user location is used.

    Returns:
        Path: The absolute path to the configuration directory.
    """
    override = os.environ.get(CONFIG_DIR_ENV)
    if override:
        return Path(override)
    if sys.platform == "win32":
        # Windows: %APPDATA%/regionscan
        return Path.home() / "AppData" / "Roaming" / APP_NAME
    elif sys.platform == "darwin":
        # macOS: ~/Library/Application Support/regionscan
        return Path.home() / "Library" / "Application Support" / APP_NAME
    else:
        # Linux/other: ~/.config/regionscan
        return Path.home() / ".config" / APP_NAME


class ConfigManager:
    """
    Loads and persists RegionScan settings.

    Settings are loaded from a file on creation and saved when changed. A
    missing file is created with defaults; a corrupted one is logged and
    ignored.
    """

    def __init__(self, config_dir: Optional[Path] = None):
        self.config_dir = Path(config_dir) if config_dir is not None else get_config_dir()
        self.config_path = self.config_dir / CONFIG_FILE_NAME
        self.config = {}
        self.load_config()

    def load_config(self):
        """
        Loads configuration from the JSON file. If the file doesn't exist or is
        invalid, defaults are used.
        """
        # Start with defaults, then override with user's config
        self.config = DEFAULT_CONFIG.copy()

        if not self.config_path.exists():
            logger.info(f"Config file not found. Creating default config at: {self.config_path}")
            self.save_config()
            return

        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                user_config = json.load(f)
            if not isinstance(user_config, dict):
                raise ValueError("top-level JSON value is not an object")
            self.config.update(user_config)
            logger.info(f"Successfully loaded configuration from {self.config_path}")
        except json.JSONDecodeError:
            logger.error(
                f"Could not decode JSON from {self.config_path}. "
                "Using default configuration. The corrupted file will be overwritten on next save."
            )
        except (OSError, ValueError) as e:
            logger.error(f"An unexpected error occurred while loading config: {e}. Using defaults.")

    def save_config(self):
        """
        Saves the current configuration to the JSON file.
        """
        try:
            self.config_dir.mkdir(parents=True, exist_ok=True)
            with open(self.config_path, 'w', encoding='utf-8') as f:
                json.dump(self.config, f, indent=4, sort_keys=True)
            logger.info(f"Configuration saved to {self.config_path}")
        except OSError as e:
            logger.error(f"Failed to save configuration to {self.config_path}: {e}")

    def get(self, key: str, default=None):
        """
        Retrieves a configuration value.

        Args:
            key (str): The configuration key to retrieve.
            default: The value to return if the key is not found.

        Returns:
            The value associated with the key, or the default value.
        """
        return self.config.get(key, default)

    def set(self, key: str, value):
        """
        Sets a configuration value and saves the configuration to the file.
        """
        self.config[key] = value
        self.save_config()


_config_manager: Optional[ConfigManager] = None


def get_config() -> ConfigManager:
    """Returns the shared ConfigManager, creating it on first use."""
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager


def reset_config():
    """Drops the shared ConfigManager so the next get_config() reloads from disk."""
    global _config_manager
    _config_manager = None
