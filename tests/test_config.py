"""Tests for settings loading."""
import pytest
from pydantic import ValidationError

from eplq.config import Settings, get_settings
from eplq.shared.protocol import ScanMode


class TestSettings:
    """Test defaults and environment overrides."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("EPLQ_SEARCH__SCAN_MODE", raising=False)
        settings = Settings()

        assert settings.crypto.default_passphrase == "EPLQ-2024-Privacy-Key"
        assert settings.search.collection == "encrypted_pois"
        assert settings.search.scan_mode is ScanMode.FULL
        assert settings.search.max_workers == 1
        assert settings.logging.level == "INFO"

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("EPLQ_SEARCH__SCAN_MODE", "region")
        monkeypatch.setenv("EPLQ_SEARCH__MAX_WORKERS", "4")
        monkeypatch.setenv("EPLQ_CRYPTO__DEFAULT_PASSPHRASE", "other")

        settings = Settings()

        assert settings.search.scan_mode is ScanMode.REGION
        assert settings.search.max_workers == 4
        assert settings.crypto.default_passphrase == "other"

    def test_rejects_bad_worker_count(self, monkeypatch):
        monkeypatch.setenv("EPLQ_SEARCH__MAX_WORKERS", "0")

        with pytest.raises(ValidationError):
            Settings()

    def test_get_settings_is_cached(self):
        get_settings.cache_clear()
        try:
            assert get_settings() is get_settings()
        finally:
            get_settings.cache_clear()
