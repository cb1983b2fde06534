"""
Water Preset Catalog.

Built-in source waters and brewing targets loaded from data/water_presets.json,
plus the helpers used around saving named profiles: brew method filtering,
name validation and alkalinity to bicarbonate conversion.

The catalog is cached in memory after the first read; call
clear_water_presets_cache() after changing the file or WATER_PRESETS_PATH.
"""
from typing import Dict, List, Optional, Iterable, Mapping, Any
from dataclasses import dataclass
import json
import re
import logging

from app.core.config import get_settings
from app.services.water_rules import ION_FIELDS, HCO3_TO_CACO3, CACO3_TO_HCO3
from app.services.water_minerals import WaterChemistryError
from app.services.water_calculator import coerce_number, round_half_up

logger = logging.getLogger(__name__)

BREW_METHODS = ("filter", "espresso")
CUSTOM_PRESET_KEY = "custom"

_water_presets_cache = None


class UnknownPresetError(WaterChemistryError):
    """Raised when a source or target preset key is not in the catalog."""

    def __init__(self, kind: str, key: str):
        super().__init__(f"Unknown {kind} preset: {key}")
        self.kind = kind
        self.key = key


def clear_water_presets_cache():
    """Clear the cache to reload presets on next call."""
    global _water_presets_cache
    _water_presets_cache = None


def load_water_presets() -> Dict:
    """Load the preset catalog from JSON file."""
    global _water_presets_cache
    if _water_presets_cache is not None:
        return _water_presets_cache

    path = get_settings().presets_path
    try:
        with open(path, "r", encoding="utf-8") as f:
            _water_presets_cache = json.load(f)
            logger.info(
                f"[Presets] Loaded {len(_water_presets_cache.get('source_presets', {}))} source and "
                f"{len(_water_presets_cache.get('target_presets', {}))} target presets from {path}"
            )
            return _water_presets_cache
    except Exception as e:
        logger.error(f"Error loading water presets from {path}: {e}")
        return {
            "source_presets": {
                "distilled": dict({"label": "Distilled / RO"}, **{ion: 0 for ion in ION_FIELDS}),
            },
            "target_presets": {},
            "non_editable_target_keys": [],
        }


# =============================================================================
# SOURCE PRESETS
# =============================================================================

def list_source_presets() -> Dict[str, Dict]:
    return dict(load_water_presets().get("source_presets", {}))


def get_source_profile(key: str) -> Dict[str, float]:
    """7-ion profile of a built-in source water."""
    preset = list_source_presets().get(key)
    if preset is None:
        raise UnknownPresetError("source", key)
    return {ion: coerce_number(preset.get(ion)) for ion in ION_FIELDS}


# =============================================================================
# TARGET PRESETS
# =============================================================================

def builtin_target_keys() -> List[str]:
    return list(load_water_presets().get("target_presets", {}).keys())


def reserved_target_keys() -> set:
    return set(builtin_target_keys()) | {CUSTOM_PRESET_KEY}


def is_target_editable(key: str) -> bool:
    return key not in load_water_presets().get("non_editable_target_keys", [])


def normalize_brew_method(method: Optional[str]) -> str:
    return "espresso" if (method or "").strip().lower() == "espresso" else "filter"


def infer_brew_method(key: str, profile: Optional[Mapping[str, Any]]) -> str:
    """
    Brew method a target is meant for.

    Explicit brew_method wins; otherwise Espresso Aficionados keys (eaf-) and
    anything mentioning espresso in its key, label or description is espresso.
    """
    profile = profile or {}
    if profile.get("brew_method") in BREW_METHODS:
        return profile["brew_method"]
    if isinstance(key, str) and (key.startswith("eaf-") or "espresso" in key):
        return "espresso"
    label = str(profile.get("label") or "").lower()
    description = str(profile.get("description") or "").lower()
    if "espresso" in label or "espresso" in description:
        return "espresso"
    return "filter"


def supports_brew_method(key: str, profile: Optional[Mapping[str, Any]], method: str) -> bool:
    brew_method = normalize_brew_method(method)
    profile = profile or {}
    allowed = profile.get("brew_methods")
    if isinstance(allowed, list):
        return brew_method in {normalize_brew_method(m) for m in allowed}
    return infer_brew_method(key, profile) == brew_method


def list_target_presets(brew_method: Optional[str] = None) -> Dict[str, Dict]:
    """Target presets, optionally only those suited to a brew method."""
    presets = dict(load_water_presets().get("target_presets", {}))
    if brew_method is None:
        return presets
    return {
        key: profile for key, profile in presets.items()
        if supports_brew_method(key, profile, brew_method)
    }


def get_target_profile(key: str) -> Dict[str, Any]:
    if key == CUSTOM_PRESET_KEY:
        raise UnknownPresetError("target", key)
    preset = load_water_presets().get("target_presets", {}).get(key)
    if preset is None:
        raise UnknownPresetError("target", key)
    return dict(preset)


# =============================================================================
# PROFILE NAMING
# =============================================================================

@dataclass
class ProfileNameCheck:
    ok: bool
    key: str = ""
    name: str = ""
    code: Optional[str] = None  # empty | invalid | reserved | duplicate
    message: Optional[str] = None
    empty: bool = False


def slugify(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", (name or "").lower().strip()).strip("-")


def validate_profile_name(
    raw_name: Optional[str],
    builtin_keys: Iterable[str] = (),
    existing_keys: Iterable[str] = (),
    existing_labels: Iterable[str] = (),
    allow_empty: bool = False,
) -> ProfileNameCheck:
    """
    Check a user-supplied profile name before saving.

    Returns a ProfileNameCheck with the slug key on success, or a code and
    message for empty, invalid (no usable characters), reserved (a built-in
    key) or duplicate (existing key or case-insensitive label) names.
    """
    name = (raw_name or "").strip()
    if not name:
        if allow_empty:
            return ProfileNameCheck(ok=True, empty=True)
        return ProfileNameCheck(ok=False, code="empty", message="Enter a profile name.")

    key = slugify(name)
    if not key:
        return ProfileNameCheck(ok=False, code="invalid", message="Enter a valid name.")

    if key in set(builtin_keys):
        return ProfileNameCheck(
            ok=False, code="reserved", message="That name is reserved. Choose a different name."
        )

    duplicate = ProfileNameCheck(
        ok=False, code="duplicate", message="A profile with this name already exists."
    )
    if key in set(existing_keys):
        return duplicate
    if name.lower() in {label.lower() for label in existing_labels}:
        return duplicate

    return ProfileNameCheck(ok=True, key=key, name=name)


def validate_target_profile_name(
    raw_name: Optional[str],
    custom_profiles: Optional[Mapping[str, Mapping[str, Any]]] = None,
    allow_empty: bool = False,
) -> ProfileNameCheck:
    """Validate a new target name against built-in and already saved targets."""
    custom_profiles = custom_profiles or {}
    labels = [p.get("label", "") for p in list_target_presets().values()]
    labels += [p.get("label", "") for p in custom_profiles.values()]
    return validate_profile_name(
        raw_name,
        builtin_keys=reserved_target_keys(),
        existing_keys=custom_profiles.keys(),
        existing_labels=[label for label in labels if label],
        allow_empty=allow_empty,
    )


# =============================================================================
# ALKALINITY <-> BICARBONATE
# =============================================================================

def stable_bicarbonate_from_alkalinity(alkalinity: Any, existing_bicarbonate: Any = 0) -> float:
    """
    Bicarbonate (mg/L, 1 decimal) for an alkalinity as CaCO3.

    Keeps the existing bicarbonate when it already rounds to the same
    alkalinity so editing a profile does not drift its stored value.
    """
    alk_rounded = round_half_up(coerce_number(alkalinity))
    candidate = round_half_up(alk_rounded * CACO3_TO_HCO3 * 10) / 10
    existing = round_half_up(coerce_number(existing_bicarbonate) * 10) / 10
    if round_half_up(existing * HCO3_TO_CACO3) == alk_rounded:
        return existing
    return candidate
