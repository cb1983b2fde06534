"""
Deterministic chemistry constants and brewing-water thresholds.

This module centralizes constants so the dosing and range logic can remain
deterministic, auditable, and consistent across services and tests.
"""

ION_FIELDS = ["calcium", "magnesium", "potassium", "sodium", "sulfate", "chloride", "bicarbonate"]

ION_LABELS = {
    "calcium": "Ca",
    "magnesium": "Mg",
    "potassium": "K",
    "sodium": "Na",
    "sulfate": "SO4",
    "chloride": "Cl",
    "bicarbonate": "HCO3",
}

# Atomic / ionic weights (g/mol)
ATOMIC_WEIGHTS = {
    "calcium": 40.078,
    "magnesium": 24.305,
    "sodium": 22.99,
    "potassium": 39.098,
    "chloride": 35.453,
    "sulfate": 96.06,
    "bicarbonate": 61.017,
}

MW_CACO3 = 100.09
EQ_WEIGHT_CACO3 = 50.045

CA_TO_CACO3 = MW_CACO3 / ATOMIC_WEIGHTS["calcium"]
MG_TO_CACO3 = MW_CACO3 / ATOMIC_WEIGHTS["magnesium"]
HCO3_TO_CACO3 = EQ_WEIGHT_CACO3 / ATOMIC_WEIGHTS["bicarbonate"]
CACO3_TO_HCO3 = ATOMIC_WEIGHTS["bicarbonate"] / EQ_WEIGHT_CACO3

GALLONS_TO_LITERS = 3.78541

# Doses below this (grams, full volume) cannot be weighed on a kitchen scale.
MIN_MEASURABLE_DOSE_G = 0.01

# Mineral roles
CALCIUM_SOURCE_IDS = ("calcium-chloride", "gypsum")
MAGNESIUM_SOURCE_IDS = ("epsom-salt", "magnesium-chloride")
ALKALINITY_SOURCE_IDS = ("baking-soda", "potassium-bicarbonate")

DEFAULT_CALCIUM_SOURCE = "calcium-chloride"
DEFAULT_MAGNESIUM_SOURCE = "epsom-salt"
DEFAULT_ALKALINITY_SOURCE = "potassium-bicarbonate"

DEFAULT_SELECTED_MINERALS = ["calcium-chloride", "epsom-salt", "baking-soda", "potassium-bicarbonate"]

# =============================================================================
# Range bands: (preferred_min, preferred_max, warn_min, warn_max, danger_min, danger_max)
# =============================================================================

TDS_BANDS = (75, 250, 50, 300, 25, 400)
KH_BANDS = (40, 70, 20, 120, 10, 180)
GH_BANDS = (50, 175, 25, 220, 10, 280)
CALCIUM_BANDS = (17, 85, 10, 110, 5, 150)
MAGNESIUM_BANDS = (5, 30, 2, 45, 1, 70)

# Max-only thresholds: (preferred_max, warn_max, danger_max)
SODIUM_MAX_DEFAULT = (10, 30, 45)
SODIUM_MAX_BAKING_SODA = (25, 40, 60)

CHLORIDE_MAX_DEFAULT = (30, 50, 100)
CHLORIDE_MAX_CHLORIDE_SOURCES = (90, 130, 180)

SULFATE_INFO_RANGE = (5, 75)
POTASSIUM_INFO_MAX = 20
SO4_CL_RATIO_RANGE = (0.50, 2.00)

RANGE_SEVERITY_ORDER = {"danger": 0, "warn": 1, "info": 2}

# Approximate solubility limits (g/L at ~25C); only used to warn on DIY stock strength.
MINERAL_SOLUBILITY_G_PER_L_25C_APPROX = {
    "calcium-chloride": 700,
    "epsom-salt": 700,
    "baking-soda": 96,
    "potassium-bicarbonate": 330,
    "magnesium-chloride": 560,
    "gypsum": 2,
    "potassium-chloride": 340,
    "sodium-chloride": 360,
}

# Lotus Coffee Water Drops dropper volumes (mL per drop)
LOTUS_DROPPER_ML = {
    "round": 0.067,
    "straight": 0.0375,
}
