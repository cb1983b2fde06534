import pytest

from app.core.config import clear_settings_cache
from app.services.water_presets import clear_water_presets_cache


@pytest.fixture(autouse=True)
def fresh_caches():
    """Settings and presets are re-read for every test."""
    clear_settings_cache()
    clear_water_presets_cache()
    yield
    clear_settings_cache()
    clear_water_presets_cache()
