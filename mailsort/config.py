# Config
"""
Configuration for the mailsort classifier.

Values are read from the environment (the CLI loads a ``.env`` file first),
so every knob can be overridden without touching code.
"""

import os
from pathlib import Path
from typing import Optional


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value not in (None, "") else default


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value not in (None, "") else default


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value in (None, ""):
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_path(name: str) -> Optional[Path]:
    value = os.getenv(name)
    return Path(value) if value else None


class Settings:
    def __init__(self) -> None:
        # Logging
        self.log_level = os.getenv("LOG_LEVEL", "INFO").upper()
        self.dev_mode = _env_bool("DEV_MODE", False)
        self.log_file_path = _env_path("LOG_FILE_PATH")

        # Extraction service (Gemini)
        self.gemini_api_key = os.getenv("GEMINI_API_KEY")
        self.gemini_model = os.getenv("GEMINI_MODEL", "gemini-1.5-pro")
        self.extraction_max_attempts = _env_int("EXTRACTION_MAX_ATTEMPTS", 4)
        self.extraction_base_delay = _env_float("EXTRACTION_BASE_DELAY", 5.0)
        self.extraction_min_delay = _env_float("EXTRACTION_MIN_DELAY", 3.0)
        self.extraction_jitter = _env_float("EXTRACTION_JITTER", 1.0)
        self.extraction_timeout = _env_float("EXTRACTION_TIMEOUT", 180.0)
        self.progress_phase_interval = _env_float("PROGRESS_PHASE_INTERVAL", 4.0)

        # Batch engine
        self.pacing_interval = _env_float("PACING_INTERVAL", 8.5)

        # Google Drive
        self.drive_credentials_path = _env_path("DRIVE_CREDENTIALS_PATH") or Path("credentials.json")
        self.drive_token_path = _env_path("DRIVE_TOKEN_PATH") or Path("token.json")
        self.drive_input_folder_id = os.getenv("DRIVE_INPUT_FOLDER_ID")
        self.drive_archive_folder_id = os.getenv("DRIVE_ARCHIVE_FOLDER_ID")
        self.drive_page_size = _env_int("DRIVE_PAGE_SIZE", 100)

        if self.extraction_max_attempts < 1:
            raise ValueError("extraction_max_attempts must be at least 1")
        if self.pacing_interval < 0:
            raise ValueError("pacing_interval must not be negative")

    def get_log_file_path(self) -> Optional[Path]:
        if self.log_file_path:
            self.log_file_path.parent.mkdir(parents=True, exist_ok=True)
        return self.log_file_path


# Singleton instance
_settings = None

def get_settings():
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next call re-reads the environment."""
    global _settings
    _settings = None
