"""
Tests for the preset catalog, brew method filtering and profile naming.
"""
import json
import pytest
from app.services.water_rules import ION_FIELDS
from app.services.water_presets import (
    UnknownPresetError,
    load_water_presets,
    list_source_presets,
    list_target_presets,
    get_source_profile,
    get_target_profile,
    builtin_target_keys,
    reserved_target_keys,
    is_target_editable,
    infer_brew_method,
    supports_brew_method,
    slugify,
    validate_profile_name,
    validate_target_profile_name,
    stable_bicarbonate_from_alkalinity,
)


class TestPresetCatalog:

    def test_source_presets(self):
        """Built-in source waters load with all ions."""
        assert list(list_source_presets()) == ["distilled", "soft-tap", "hard-tap"]
        assert get_source_profile("hard-tap")["bicarbonate"] == 120
        assert get_source_profile("distilled") == {ion: 0.0 for ion in ION_FIELDS}

    def test_target_presets(self):
        """Built-in targets load in catalog order."""
        keys = builtin_target_keys()
        assert keys[0] == "sca"
        assert "eaf-holy-water" in keys
        assert get_target_profile("sca")["calcium"] == 51
        assert get_target_profile("eaf-rpavlis")["bicarbonate"] == 60.9

    def test_unknown_preset_raises(self):
        """Unknown keys and the custom placeholder raise UnknownPresetError."""
        with pytest.raises(UnknownPresetError):
            get_source_profile("sparkling")
        with pytest.raises(UnknownPresetError):
            get_target_profile("custom")

    def test_reserved_and_editable(self):
        """SCA and Rao are locked; builtins and custom are reserved."""
        assert "custom" in reserved_target_keys()
        assert "sca" in reserved_target_keys()
        assert is_target_editable("sca") is False
        assert is_target_editable("rao") is False
        assert is_target_editable("lotus-light-bright") is True

    def test_catalog_is_cached(self):
        """The catalog is loaded once."""
        assert load_water_presets() is load_water_presets()

    def test_custom_presets_path(self, monkeypatch, tmp_path):
        """WATER_PRESETS_PATH points at another catalog."""
        path = tmp_path / "presets.json"
        path.write_text(json.dumps({
            "source_presets": {"well": {"label": "Well", "calcium": 80}},
            "target_presets": {},
        }))
        monkeypatch.setenv("WATER_PRESETS_PATH", str(path))
        assert list(list_source_presets()) == ["well"]
        assert get_source_profile("well")["calcium"] == 80
        assert get_source_profile("well")["sodium"] == 0

    def test_missing_presets_file_falls_back(self, monkeypatch, tmp_path):
        """A missing catalog falls back to distilled water only."""
        monkeypatch.setenv("WATER_PRESETS_PATH", str(tmp_path / "missing.json"))
        assert list_target_presets() == {}
        assert get_source_profile("distilled") == {ion: 0.0 for ion in ION_FIELDS}


class TestBrewMethod:

    def test_espresso_presets(self):
        """Espresso filter keeps explicit and inferred espresso targets."""
        espresso = list_target_presets("espresso")
        assert "lotus-light-bright-espresso" in espresso
        assert "hendon-espresso" in espresso
        assert "eaf-rpavlis" in espresso
        assert "eaf-melbourne-water" in espresso
        assert "sca" not in espresso
        assert "eaf-holy-water" not in espresso

    def test_filter_presets(self):
        """Filter keeps everything not marked espresso."""
        filter_presets = list_target_presets("filter")
        assert "sca" in filter_presets
        assert "eaf-holy-water" in filter_presets
        assert "eaf-bh-water-4" in filter_presets
        assert "eaf-rpavlis" not in filter_presets

    def test_inference(self):
        """Brew method is inferred from key, label or description."""
        assert infer_brew_method("mine", {"label": "My Espresso Water"}) == "espresso"
        assert infer_brew_method("mine", {"description": "for ESPRESSO shots"}) == "espresso"
        assert infer_brew_method("eaf-new", {}) == "espresso"
        assert infer_brew_method("eaf-new", {"brew_method": "filter"}) == "filter"
        assert infer_brew_method("mine", None) == "filter"

    def test_explicit_method_list(self):
        """An explicit brew_methods list wins over inference."""
        profile = {"brew_methods": ["Espresso"]}
        assert supports_brew_method("mine", profile, "espresso") is True
        assert supports_brew_method("mine", profile, "filter") is False
        # unknown methods normalise to filter
        assert supports_brew_method("mine", {}, "pour-over") is True


class TestProfileNames:

    def test_slugify(self):
        """Names become lowercase dash-separated keys."""
        assert slugify("  My Water #1 ") == "my-water-1"
        assert slugify("Fam's 29th Wave") == "fam-s-29th-wave"
        assert slugify("!!!") == ""

    def test_empty(self):
        """Blank names are rejected unless empty is allowed."""
        check = validate_profile_name("   ")
        assert check.ok is False
        assert check.code == "empty"
        assert check.message == "Enter a profile name."
        assert validate_profile_name("", allow_empty=True).empty is True

    def test_invalid(self):
        """Names with no usable characters are invalid."""
        check = validate_profile_name("!!!")
        assert check.code == "invalid"
        assert check.message == "Enter a valid name."

    def test_reserved(self):
        """Built-in keys and custom cannot be reused."""
        check = validate_target_profile_name("SCA")
        assert check.code == "reserved"
        assert check.message == "That name is reserved. Choose a different name."
        assert validate_target_profile_name("Custom").code == "reserved"

    def test_duplicate_label(self):
        """Names clashing with an existing label are duplicates."""
        check = validate_target_profile_name("holy water")
        assert check.code == "duplicate"
        assert check.message == "A profile with this name already exists."

    def test_duplicate_saved_key(self):
        """Names clashing with a saved target key are duplicates."""
        check = validate_target_profile_name("My Water", {"my-water": {"label": "Mine"}})
        assert check.code == "duplicate"

    def test_valid_name(self):
        """Valid names come back trimmed with their key."""
        check = validate_target_profile_name("  Sunday Brew ")
        assert check.ok is True
        assert check.key == "sunday-brew"
        assert check.name == "Sunday Brew"


class TestStableBicarbonate:

    def test_converts_alkalinity(self):
        """40 mg/L as CaCO3 is 48.8 mg/L bicarbonate."""
        assert stable_bicarbonate_from_alkalinity(40) == 48.8

    def test_keeps_existing_value_with_same_alkalinity(self):
        """An existing value that rounds to the same KH is kept."""
        assert stable_bicarbonate_from_alkalinity(40, 48.7) == 48.7
        assert stable_bicarbonate_from_alkalinity(40.4, 48.7) == 48.7

    def test_replaces_drifted_value(self):
        """An existing value with a different KH is replaced."""
        assert stable_bicarbonate_from_alkalinity(40, 50) == 48.8

    def test_invalid_input(self):
        """Missing alkalinity gives 0."""
        assert stable_bicarbonate_from_alkalinity(None, None) == 0.0
