"""
Application settings read from environment variables.
"""
from typing import Optional
from dataclasses import dataclass
import os
import logging

logger = logging.getLogger(__name__)

DEFAULT_PRESETS_PATH = os.path.join(
    os.path.dirname(__file__), "..", "data", "water_presets.json"
)


@dataclass(frozen=True)
class Settings:
    log_level: str = "INFO"
    presets_path: str = DEFAULT_PRESETS_PATH
    api_prefix: str = "/api/water"
    min_measurable_dose_g: float = 0.01


_settings_cache: Optional[Settings] = None


def _float_env(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"[Config] Invalid {name}={raw!r}, using {default}")
        return default


def load_settings() -> Settings:
    """Build settings from WATER_* environment variables."""
    return Settings(
        log_level=os.environ.get("WATER_LOG_LEVEL", "INFO").upper(),
        presets_path=os.environ.get("WATER_PRESETS_PATH") or DEFAULT_PRESETS_PATH,
        api_prefix=os.environ.get("WATER_API_PREFIX", "/api/water"),
        min_measurable_dose_g=_float_env("WATER_MIN_MEASURABLE_DOSE_G", 0.01),
    )


def get_settings() -> Settings:
    global _settings_cache
    if _settings_cache is None:
        _settings_cache = load_settings()
    return _settings_cache


def clear_settings_cache():
    """Clear the cache so the next call re-reads the environment."""
    global _settings_cache
    _settings_cache = None
