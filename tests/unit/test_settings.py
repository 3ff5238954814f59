"""Unit tests for settings loading."""

import logging
from pathlib import Path

import pytest
from pydantic import ValidationError

from config.settings import Settings, configure_logging, get_settings


class TestSettings:
    """Tests for defaults, environment overrides and validation."""

    def test_defaults(self, monkeypatch):
        for name in ("DEFAULT_FEE_RATE_BPS", "LOG_LEVEL", "STORAGE_DIR"):
            monkeypatch.delenv(name, raising=False)

        settings = Settings(_env_file=None)

        assert settings.default_fee_rate_bps == 0
        assert settings.max_fee_rate_bps == 5_000
        assert settings.auto_deploy_idle is True
        assert settings.default_donation_preset == "balanced"
        assert settings.migration_deadline_seconds == 1_200
        assert settings.storage_dir == Path(".cache/donation_vaults")

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("DEFAULT_FEE_RATE_BPS", "250")
        monkeypatch.setenv("AUTO_DEPLOY_IDLE", "false")
        monkeypatch.setenv("STORAGE_DIR", "/tmp/runs")

        settings = Settings(_env_file=None)

        assert settings.default_fee_rate_bps == 250
        assert settings.auto_deploy_idle is False
        assert settings.storage_dir == Path("/tmp/runs")

    def test_normalization(self):
        settings = Settings(_env_file=None, default_donation_preset=" Focused ", log_level="debug")

        assert settings.default_donation_preset == "focused"
        assert settings.log_level == "DEBUG"

    def test_invalid_values(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, log_level="chatty")
        with pytest.raises(ValidationError):
            Settings(_env_file=None, default_fee_rate_bps=10_001)
        with pytest.raises(ValidationError):
            Settings(_env_file=None, migration_deadline_seconds=0)

    def test_ensure_storage_dir(self, tmp_path):
        settings = Settings(_env_file=None, storage_dir=tmp_path / "a" / "b")

        path = settings.ensure_storage_dir()

        assert path.is_dir()

    def test_get_settings_is_cached(self):
        get_settings.cache_clear()
        try:
            assert get_settings() is get_settings()
        finally:
            get_settings.cache_clear()

    def test_configure_logging(self, settings):
        configure_logging(settings)
        assert logging.getLevelName(settings.log_level) == logging.INFO
