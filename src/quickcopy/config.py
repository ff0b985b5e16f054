# -*- coding: utf-8 -*-
"""
src/quickcopy/config.py

Module for handling application configuration.

This module defines default settings for QuickCopy, such as the global hotkey,
capture dimensions and feedback timings. It loads user-defined settings from a
configuration file (config.ini), creating one with default values on the
first run, and builds the value objects the pipeline is constructed with.
"""

import configparser
import logging
import platform
from pathlib import Path
from typing import List, Optional

from .core.image_processor import PreprocessOptions
from .core.pipeline import PipelineSettings

logger = logging.getLogger(__name__)

# --- Constants ---
APP_NAME = "QuickCopy"
DEFAULT_CONFIG_FILENAME = "config.ini"
DEFAULT_HISTORY_FILENAME = "history.json"
DEFAULT_HOTKEY = "<ctrl>+<alt>+c"


def get_app_dir() -> Path:
    """
    Gets the application's data directory in a cross-platform way.

    - Windows: %APPDATA%/QuickCopy
    - macOS: ~/Library/Application Support/QuickCopy
    - Linux: ~/.config/QuickCopy

    Returns:
        Path: A Path object to the application's data directory.
    """
    if platform.system() == "Windows":
        app_dir = Path.home() / "AppData" / "Roaming" / APP_NAME
    elif platform.system() == "Darwin":  # macOS
        app_dir = Path.home() / "Library" / "Application Support" / APP_NAME
    else:  # Linux and other Unix-like
        app_dir = Path.home() / ".config" / APP_NAME

    app_dir.mkdir(parents=True, exist_ok=True)
    return app_dir


class Config:
    """
    Manages application configuration by loading defaults and overriding
    them with settings from a user-specific config file.
    """

    def __init__(self, app_dir: Optional[Path] = None):
        """
        Args:
            app_dir (Optional[Path]): Directory holding config.ini, history and
                log files. Defaults to the per-user application directory.
        """
        self.parser = configparser.ConfigParser()
        self.app_dir = Path(app_dir) if app_dir is not None else get_app_dir()
        self.app_dir.mkdir(parents=True, exist_ok=True)
        self.config_file_path = self.app_dir / DEFAULT_CONFIG_FILENAME

        self._load_defaults()
        self._load_from_file()

    def _load_defaults(self):
        """Sets the default configuration values in the parser object."""
        self.parser["General"] = {
            "hotkey": DEFAULT_HOTKEY,
            "log_level": "INFO",
            "log_to_file": "False",
            "use_fake_recognizer": "False",
        }
        self.parser["Capture"] = {
            "camera_index": "-1",
            "monitor_index": "1",
            "target_width": "1920",
            "target_height": "1080",
            "capture_timeout": "5.0",
        }
        self.parser["Processing"] = {
            "max_image_width": "1920",
            "max_image_height": "1080",
            "jpeg_quality": "90",
            "min_confidence": "0.3",
            "languages": "en",
            "use_gpu": "False",
            "rotation": "0",
            "grayscale": "False",
            "sharpen_strength": "0.0",
            "binarize_threshold": "",
            "recognition_timeout": "10.0",
        }
        self.parser["Feedback"] = {
            "freeze_duration": "0.5",
            "settle_delay": "0.5",
            "preview_char_limit": "30",
        }
        self.parser["History"] = {
            "max_items": "10",
            "persist": "True",
        }

    def _load_from_file(self):
        """
        Loads settings from the config.ini file, overriding defaults.
        If the file doesn't exist, it will be created with default values.
        """
        if not self.config_file_path.exists():
            self._save_defaults()
        else:
            self.parser.read(self.config_file_path)

    def _save_defaults(self):
        """Saves the current (default) configuration to the config file."""
        try:
            with open(self.config_file_path, 'w') as configfile:
                configfile.write(f"# {APP_NAME} Configuration File\n")
                configfile.write("# You can edit these values. Restart the app for changes to take effect.\n\n")
                self.parser.write(configfile)
        except IOError as e:
            # Non-critical: the defaults stay in memory.
            logger.error(f"Could not write to config file at {self.config_file_path}: {e}")

    # --- General ---

    @property
    def hotkey(self) -> str:
        """The global hotkey combination that triggers a scan."""
        return self.parser.get("General", "hotkey", fallback=DEFAULT_HOTKEY)

    @property
    def log_level(self) -> str:
        return self.parser.get("General", "log_level", fallback="INFO").upper()

    @property
    def log_to_file(self) -> bool:
        return self.parser.getboolean("General", "log_to_file", fallback=False)

    @property
    def use_fake_recognizer(self) -> bool:
        """Run with the scripted recognizer instead of EasyOCR."""
        return self.parser.getboolean("General", "use_fake_recognizer", fallback=False)

    # --- Capture ---

    @property
    def camera_index(self) -> Optional[int]:
        """Camera to try first; None (configured as -1) skips the camera."""
        index = self.parser.getint("Capture", "camera_index", fallback=-1)
        return index if index >= 0 else None

    @property
    def monitor_index(self) -> int:
        return self.parser.getint("Capture", "monitor_index", fallback=1)

    @property
    def target_width(self) -> int:
        return self.parser.getint("Capture", "target_width", fallback=1920)

    @property
    def target_height(self) -> int:
        return self.parser.getint("Capture", "target_height", fallback=1080)

    @property
    def capture_timeout(self) -> float:
        return self.parser.getfloat("Capture", "capture_timeout", fallback=5.0)

    # --- Processing ---

    @property
    def max_image_width(self) -> int:
        return self.parser.getint("Processing", "max_image_width", fallback=1920)

    @property
    def max_image_height(self) -> int:
        return self.parser.getint("Processing", "max_image_height", fallback=1080)

    @property
    def jpeg_quality(self) -> int:
        return self.parser.getint("Processing", "jpeg_quality", fallback=90)

    @property
    def min_confidence(self) -> float:
        """Advisory minimum block confidence (0-1); reported, never filtered on."""
        return self.parser.getfloat("Processing", "min_confidence", fallback=0.3)

    @property
    def languages(self) -> List[str]:
        raw = self.parser.get("Processing", "languages", fallback="en")
        return [lang.strip() for lang in raw.split(",") if lang.strip()] or ["en"]

    @property
    def use_gpu(self) -> bool:
        return self.parser.getboolean("Processing", "use_gpu", fallback=False)

    @property
    def rotation(self) -> int:
        return self.parser.getint("Processing", "rotation", fallback=0)

    @property
    def grayscale(self) -> bool:
        return self.parser.getboolean("Processing", "grayscale", fallback=False)

    @property
    def sharpen_strength(self) -> float:
        return self.parser.getfloat("Processing", "sharpen_strength", fallback=0.0)

    @property
    def binarize_threshold(self) -> Optional[float]:
        """Luminance cut-off for binarization; empty disables it."""
        raw = self.parser.get("Processing", "binarize_threshold", fallback="").strip()
        return float(raw) if raw else None

    @property
    def recognition_timeout(self) -> float:
        return self.parser.getfloat("Processing", "recognition_timeout", fallback=10.0)

    # --- Feedback ---

    @property
    def freeze_duration(self) -> float:
        return self.parser.getfloat("Feedback", "freeze_duration", fallback=0.5)

    @property
    def settle_delay(self) -> float:
        return self.parser.getfloat("Feedback", "settle_delay", fallback=0.5)

    @property
    def preview_char_limit(self) -> int:
        return self.parser.getint("Feedback", "preview_char_limit", fallback=30)

    # --- History ---

    @property
    def max_history_items(self) -> int:
        return self.parser.getint("History", "max_items", fallback=10)

    @property
    def history_path(self) -> Optional[Path]:
        """Where history is persisted, or None when persistence is off."""
        if not self.parser.getboolean("History", "persist", fallback=True):
            return None
        return self.app_dir / DEFAULT_HISTORY_FILENAME

    # --- Value objects for the pipeline ---

    def preprocess_options(self) -> PreprocessOptions:
        return PreprocessOptions(
            max_width=self.max_image_width,
            max_height=self.max_image_height,
            rotation=self.rotation,
            grayscale=self.grayscale,
            sharpen_strength=self.sharpen_strength,
            binarize_threshold=self.binarize_threshold,
        )

    def pipeline_settings(self, display_width: Optional[int] = None,
                          display_height: Optional[int] = None) -> PipelineSettings:
        return PipelineSettings(
            jpeg_quality=self.jpeg_quality,
            min_confidence=self.min_confidence,
            freeze_duration=self.freeze_duration,
            settle_delay=self.settle_delay,
            preview_char_limit=self.preview_char_limit,
            display_width=display_width,
            display_height=display_height,
            capture_timeout=self.capture_timeout,
            recognition_timeout=self.recognition_timeout,
            preprocess=self.preprocess_options(),
        )
