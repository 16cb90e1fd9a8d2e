"""
Tests for configuration module.
"""

from pathlib import Path

import pytest

from mailsort.config import Settings, get_settings, reset_settings


class TestSettings:
    """Test the Settings configuration class."""

    def test_default_settings(self, monkeypatch):
        """Test default settings initialization."""
        for name in ("LOG_LEVEL", "PACING_INTERVAL", "EXTRACTION_MAX_ATTEMPTS", "GEMINI_MODEL"):
            monkeypatch.delenv(name, raising=False)

        settings = Settings()

        assert settings.log_level == "INFO"
        assert settings.gemini_model == "gemini-1.5-pro"
        assert settings.extraction_max_attempts == 4
        assert settings.extraction_base_delay == 5.0
        assert settings.extraction_min_delay == 3.0
        assert settings.pacing_interval == 8.5

    def test_settings_from_env(self, monkeypatch):
        """Test loading settings from environment variables."""
        monkeypatch.setenv("LOG_LEVEL", "debug")
        monkeypatch.setenv("PACING_INTERVAL", "2.5")
        monkeypatch.setenv("EXTRACTION_MAX_ATTEMPTS", "6")
        monkeypatch.setenv("DEV_MODE", "true")
        monkeypatch.setenv("DRIVE_INPUT_FOLDER_ID", "folder-123")

        settings = Settings()

        assert settings.log_level == "DEBUG"
        assert settings.pacing_interval == 2.5
        assert settings.extraction_max_attempts == 6
        assert settings.dev_mode is True
        assert settings.drive_input_folder_id == "folder-123"

    def test_max_attempts_validation(self, monkeypatch):
        """Test that at least one extraction attempt is required."""
        monkeypatch.setenv("EXTRACTION_MAX_ATTEMPTS", "0")
        with pytest.raises(ValueError, match="extraction_max_attempts"):
            Settings()

    def test_pacing_validation(self, monkeypatch):
        """Test that pacing cannot be negative."""
        monkeypatch.setenv("PACING_INTERVAL", "-1")
        with pytest.raises(ValueError, match="pacing_interval"):
            Settings()

    def test_log_file_path_creates_directory(self, monkeypatch, tmp_path):
        """Test that asking for the log file path creates its directory."""
        log_file = tmp_path / "logs" / "nested" / "mailsort.log"
        monkeypatch.setenv("LOG_FILE_PATH", str(log_file))

        settings = Settings()

        assert settings.get_log_file_path() == Path(log_file)
        assert log_file.parent.is_dir()


class TestGetSettings:
    """Test the settings singleton."""

    def test_cached_instance(self):
        """Test that get_settings returns the same instance."""
        assert get_settings() is get_settings()

    def test_reset_rereads_environment(self, monkeypatch):
        """Test that reset_settings picks up new environment values."""
        monkeypatch.setenv("PACING_INTERVAL", "1")
        first = get_settings()
        monkeypatch.setenv("PACING_INTERVAL", "3")
        reset_settings()

        second = get_settings()

        assert first is not second
        assert second.pacing_interval == 3.0
