"""
Tests for the mineral registry and brand concentrates.
"""
import pytest
from dataclasses import FrozenInstanceError
from app.services.water_rules import ION_FIELDS
from app.services.water_minerals import (
    MINERAL_DB,
    BRAND_CONCENTRATES,
    LOTUS_CONCENTRATE_IDS,
    UnknownMineralError,
    WaterChemistryError,
    get_mineral,
    require_mineral,
    get_ion_yield,
    list_minerals,
    get_concentrate,
    require_concentrate,
    list_concentrates,
)


class TestMineralDatabase:
    """Tests for the static mineral definitions."""

    def test_eight_minerals_registered(self):
        """All eight salts are registered in declaration order."""
        assert [m.id for m in list_minerals()] == [
            "calcium-chloride",
            "epsom-salt",
            "baking-soda",
            "potassium-bicarbonate",
            "magnesium-chloride",
            "gypsum",
            "potassium-chloride",
            "sodium-chloride",
        ]

    def test_yields_are_fractions_of_tracked_ions(self):
        """Every yield is in (0, 1] and each mineral touches one or two ions."""
        for mineral in MINERAL_DB.values():
            assert 1 <= len(mineral.ion_yield) <= 2, mineral.id
            for ion, fraction in mineral.ion_yield.items():
                assert ion in ION_FIELDS
                assert 0 < fraction <= 1, f"{mineral.id}:{ion}"

    def test_yield_mass_never_exceeds_salt_mass(self):
        """Ion yields of a salt sum to at most 1, within atomic-weight rounding (NaCl: 58.443 vs 58.44)."""
        for mineral in MINERAL_DB.values():
            assert sum(mineral.ion_yield.values()) <= 1.0 + 1e-4, mineral.id

    def test_calcium_chloride_yields(self):
        """CaCl2·2H2O yields about 27% calcium by mass."""
        mineral = get_mineral("calcium-chloride")
        assert mineral.ion_yield["calcium"] == pytest.approx(0.2725, abs=1e-3)
        assert mineral.ion_yield["chloride"] == pytest.approx(2 * 35.453 / 147.01)

    def test_epsom_salt_includes_hydration_water(self):
        """MgSO4·7H2O: water of hydration adds mass but no ions."""
        mineral = get_mineral("epsom-salt")
        assert mineral.molecular_weight == 246.47
        assert mineral.ion_yield["magnesium"] == pytest.approx(0.0986, abs=1e-3)

    def test_minerals_are_immutable(self):
        """Mineral records cannot be modified at runtime."""
        mineral = get_mineral("gypsum")
        with pytest.raises(FrozenInstanceError):
            mineral.molecular_weight = 1.0


class TestMineralLookup:
    """Permissive and strict lookups."""

    def test_unknown_mineral_returns_none(self):
        """Permissive lookup returns None for unknown ids."""
        assert get_mineral("unobtainium") is None
        assert get_mineral(None) is None

    def test_unknown_yield_is_zero(self):
        """Unknown minerals and untracked ions yield nothing."""
        assert get_ion_yield("unobtainium", "calcium") == 0.0
        assert get_ion_yield("epsom-salt", "calcium") == 0.0

    def test_require_mineral_raises(self):
        """Strict lookup raises UnknownMineralError carrying the id."""
        with pytest.raises(UnknownMineralError) as exc:
            require_mineral("unobtainium")
        assert exc.value.mineral_id == "unobtainium"
        assert isinstance(exc.value, WaterChemistryError)

    def test_to_dict(self):
        """Serialized minerals keep formula and ion yields."""
        data = require_mineral("baking-soda").to_dict()
        assert data["formula"] == "NaHCO3"
        assert set(data["ion_yield"]) == {"sodium", "bicarbonate"}


class TestBrandConcentrates:

    def test_lotus_concentrates_map_to_registered_minerals(self):
        """Each Lotus concentrate points at a registered salt."""
        assert len(LOTUS_CONCENTRATE_IDS) == 4
        for concentrate in list_concentrates():
            assert get_mineral(concentrate.mineral_id) is not None
            assert concentrate.grams_per_ml > 0

    def test_lookup(self):
        """Concentrates are found by id; unknown ids are None or raise."""
        assert get_concentrate("brand:lotus:calcium").grams_per_ml == 0.1757
        assert get_concentrate("brand:other") is None
        with pytest.raises(UnknownMineralError):
            require_concentrate("brand:other")

    def test_registry_keys_match_ids(self):
        """Registry keys match each concentrate's id."""
        for key, concentrate in BRAND_CONCENTRATES.items():
            assert key == concentrate.id
