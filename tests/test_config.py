"""Tests for environment-driven settings."""

import pytest

from varstore.config import Settings, get_settings, reset_settings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("VARSTORE_LOG_LEVEL", "VARSTORE_NOTIFY_WORKERS", "VARSTORE_PARSE_CACHE_SIZE"):
        monkeypatch.delenv(name, raising=False)
    reset_settings()
    yield
    reset_settings()


class TestSettings:
    def test_defaults(self):
        settings = Settings.from_env()
        assert settings.log_level == "WARNING"
        assert settings.notify_workers == 1
        assert settings.parse_cache_size == 256

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("VARSTORE_LOG_LEVEL", "debug")
        monkeypatch.setenv("VARSTORE_NOTIFY_WORKERS", "4")
        monkeypatch.setenv("VARSTORE_PARSE_CACHE_SIZE", "16")

        settings = Settings.from_env()
        assert settings.log_level == "DEBUG"
        assert settings.notify_workers == 4
        assert settings.parse_cache_size == 16

    def test_values_are_clamped(self, monkeypatch):
        monkeypatch.setenv("VARSTORE_NOTIFY_WORKERS", "0")
        monkeypatch.setenv("VARSTORE_PARSE_CACHE_SIZE", "-5")

        settings = Settings.from_env()
        assert settings.notify_workers == 1
        assert settings.parse_cache_size == 0

    def test_blank_value_uses_default(self, monkeypatch):
        monkeypatch.setenv("VARSTORE_NOTIFY_WORKERS", " ")
        assert Settings.from_env().notify_workers == 1

    def test_invalid_integer(self, monkeypatch):
        monkeypatch.setenv("VARSTORE_NOTIFY_WORKERS", "many")
        with pytest.raises(ValueError, match="VARSTORE_NOTIFY_WORKERS"):
            Settings.from_env()


class TestGetSettings:
    def test_cached(self):
        assert get_settings() is get_settings()

    def test_reset_rereads_environment(self, monkeypatch):
        assert get_settings().parse_cache_size == 256
        monkeypatch.setenv("VARSTORE_PARSE_CACHE_SIZE", "8")
        assert get_settings().parse_cache_size == 256

        reset_settings()
        assert get_settings().parse_cache_size == 8
