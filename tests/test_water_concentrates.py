"""
Tests for concentrate dosing and DIY solubility checks.
"""
import pytest
from app.services.water_concentrates import apply_concentrates, check_diy_concentrate


class TestApplyConcentrates:

    def test_concentrate_replaces_mineral_grams(self):
        """A selected concentrate takes over its mineral's dose."""
        doses = {"calcium-chloride": 1.757, "epsom-salt": 0.5}
        plan = apply_concentrates(doses, ["brand:lotus:calcium"])

        assert plan.mineral_grams == {"calcium-chloride": 0.0, "epsom-salt": 0.5}
        assert len(plan.concentrates) == 1
        dose = plan.concentrates[0]
        assert dose.ml == pytest.approx(10.0)
        assert dose.drops == 149  # 10 mL / 0.067 mL per round drop
        assert dose.grams_equivalent == 1.757
        # input plan is left untouched
        assert doses["calcium-chloride"] == 1.757

    def test_straight_dropper(self):
        """Straight-tip droppers give smaller drops, so more of them."""
        plan = apply_concentrates({"calcium-chloride": 1.757}, ["brand:lotus:calcium"], dropper="straight")
        assert plan.concentrates[0].drops == 267
        assert plan.concentrates[0].dropper == "straight"

    def test_unknown_dropper_falls_back_to_round(self):
        """An unknown dropper uses the round tip and warns."""
        plan = apply_concentrates({"calcium-chloride": 1.757}, ["brand:lotus:calcium"], dropper="pipette")
        assert plan.concentrates[0].dropper == "round"
        assert plan.warnings

    def test_zero_dose_gives_zero_drops(self):
        """A zero dose is zero mL and zero drops."""
        plan = apply_concentrates({"baking-soda": 0.0}, ["brand:lotus:sodium-bicarbonate"])
        assert plan.concentrates[0].ml == 0
        assert plan.concentrates[0].drops == 0

    def test_concentrate_without_matching_dose_is_skipped(self):
        """Concentrates whose mineral is not dosed are left out."""
        plan = apply_concentrates({"epsom-salt": 0.5}, ["brand:lotus:magnesium"])
        assert plan.concentrates == []
        assert plan.mineral_grams == {"epsom-salt": 0.5}

    def test_unknown_concentrate_is_a_warning(self):
        """Unknown concentrate ids become warnings, not errors."""
        plan = apply_concentrates({"epsom-salt": 0.5}, ["brand:other:magnesium"])
        assert plan.concentrates == []
        assert plan.warnings == ["Unknown concentrate: brand:other:magnesium"]

    def test_to_dict(self):
        """Plans serialize with concentrate mL and zeroed mineral grams."""
        data = apply_concentrates({"potassium-bicarbonate": 0.1164}, ["brand:lotus:potassium-bicarbonate"]).to_dict()
        assert data["concentrates"][0]["ml"] == pytest.approx(1.0)
        assert data["mineral_grams"]["potassium-bicarbonate"] == 0.0


class TestDiyConcentrate:

    def test_over_solubility_warns(self):
        """Baking soda at 100 g/L is past its ~96 g/L limit."""
        warning = check_diy_concentrate("baking-soda", 10, 100)
        assert warning is not None
        assert warning.startswith("Baking Soda at 100 g/L exceeds")

    def test_within_solubility(self):
        """Stocks under the limit pass without a warning."""
        assert check_diy_concentrate("baking-soda", 9, 100) is None
        assert check_diy_concentrate("calcium-chloride", 50, 100) is None

    def test_gypsum_barely_dissolves(self):
        """Gypsum warns even at 10 g/L."""
        assert check_diy_concentrate("gypsum", 1, 100) is not None

    def test_unchecked_inputs(self):
        """Unknown salts and empty stocks are not checked."""
        assert check_diy_concentrate("unobtainium", 10, 100) is None
        assert check_diy_concentrate("baking-soda", 10, 0) is None
        assert check_diy_concentrate("baking-soda", 0, 100) is None
