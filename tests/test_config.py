"""
Tests for environment-driven settings.
"""
from app.core.config import DEFAULT_PRESETS_PATH, get_settings, clear_settings_cache


class TestSettings:

    def test_defaults(self, monkeypatch):
        """Unset environment gives the built-in settings."""
        for name in ("WATER_LOG_LEVEL", "WATER_PRESETS_PATH", "WATER_API_PREFIX", "WATER_MIN_MEASURABLE_DOSE_G"):
            monkeypatch.delenv(name, raising=False)
        settings = get_settings()
        assert settings.log_level == "INFO"
        assert settings.presets_path == DEFAULT_PRESETS_PATH
        assert settings.api_prefix == "/api/water"
        assert settings.min_measurable_dose_g == 0.01

    def test_environment_overrides(self, monkeypatch):
        """WATER_* variables override each setting; the log level is upper-cased."""
        monkeypatch.setenv("WATER_LOG_LEVEL", "debug")
        monkeypatch.setenv("WATER_API_PREFIX", "/water")
        monkeypatch.setenv("WATER_MIN_MEASURABLE_DOSE_G", "0.1")
        settings = get_settings()
        assert settings.log_level == "DEBUG"
        assert settings.api_prefix == "/water"
        assert settings.min_measurable_dose_g == 0.1

    def test_invalid_float_uses_default(self, monkeypatch):
        """A non-numeric dose threshold falls back to 0.01 g."""
        monkeypatch.setenv("WATER_MIN_MEASURABLE_DOSE_G", "lots")
        assert get_settings().min_measurable_dose_g == 0.01

    def test_settings_are_cached_until_cleared(self, monkeypatch):
        """Settings are read once until the cache is cleared."""
        monkeypatch.setenv("WATER_API_PREFIX", "/one")
        assert get_settings().api_prefix == "/one"
        monkeypatch.setenv("WATER_API_PREFIX", "/two")
        assert get_settings().api_prefix == "/one"
        clear_settings_cache()
        assert get_settings().api_prefix == "/two"
