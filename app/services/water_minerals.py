"""
Mineral salt registry for brewing-water dosing.

Each mineral carries the grams of each ion released per gram of salt
dissolved. Yields are precomputed from atomic weights over the molecular
weight of the salt as sold (hydration water included), because hydration
water adds mass but no ions.
"""
from typing import Dict, List, Optional
from dataclasses import dataclass
import logging

from app.services.water_rules import ATOMIC_WEIGHTS

logger = logging.getLogger(__name__)


class WaterChemistryError(Exception):
    """Base class for water chemistry lookup errors."""
    pass


class UnknownMineralError(WaterChemistryError):
    """Raised by strict lookups when a mineral or concentrate id is not registered."""

    def __init__(self, mineral_id: str):
        super().__init__(f"Unknown mineral: {mineral_id}")
        self.mineral_id = mineral_id


@dataclass(frozen=True)
class Mineral:
    """Immutable mineral salt definition."""
    id: str
    name: str
    formula: str
    molecular_weight: float  # g/mol
    ion_yield: Dict[str, float]  # g ion per g salt
    description: str = ""

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "name": self.name,
            "formula": self.formula,
            "molecular_weight": self.molecular_weight,
            "ion_yield": dict(self.ion_yield),
            "description": self.description,
        }


@dataclass(frozen=True)
class BrandConcentrate:
    """Fixed-strength liquid concentrate expressed as grams of an equivalent salt per mL."""
    id: str
    name: str
    mineral_id: str
    formula: str
    grams_per_ml: float
    description: str = ""

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "name": self.name,
            "mineral_id": self.mineral_id,
            "formula": self.formula,
            "grams_per_ml": self.grams_per_ml,
            "description": self.description,
        }


def _yield(ion: str, mw: float, count: int = 1) -> float:
    return count * ATOMIC_WEIGHTS[ion] / mw


MINERAL_DB: Dict[str, Mineral] = {
    "calcium-chloride": Mineral(
        id="calcium-chloride",
        name="Calcium Chloride",
        formula="CaCl2·2H2O",
        molecular_weight=147.01,
        ion_yield={
            "calcium": _yield("calcium", 147.01),
            "chloride": _yield("chloride", 147.01, 2),
        },
        description="Adds calcium and chloride. Increases sweetness and body.",
    ),
    "epsom-salt": Mineral(
        id="epsom-salt",
        name="Epsom Salt",
        formula="MgSO4·7H2O",
        molecular_weight=246.47,
        ion_yield={
            "magnesium": _yield("magnesium", 246.47),
            "sulfate": _yield("sulfate", 246.47),
        },
        description="Adds magnesium and sulfate. Enhances fruity notes and clarity.",
    ),
    "baking-soda": Mineral(
        id="baking-soda",
        name="Baking Soda",
        formula="NaHCO3",
        molecular_weight=84.007,
        ion_yield={
            "sodium": _yield("sodium", 84.007),
            "bicarbonate": _yield("bicarbonate", 84.007),
        },
        description="Adds sodium and bicarbonate (alkalinity/KH). Buffers acidity.",
    ),
    "potassium-bicarbonate": Mineral(
        id="potassium-bicarbonate",
        name="Potassium Bicarbonate",
        formula="KHCO3",
        molecular_weight=100.115,
        ion_yield={
            "potassium": _yield("potassium", 100.115),
            "bicarbonate": _yield("bicarbonate", 100.115),
        },
        description="Sodium-free alkalinity source. Adds potassium and bicarbonate.",
    ),
    "magnesium-chloride": Mineral(
        id="magnesium-chloride",
        name="Magnesium Chloride",
        formula="MgCl2·6H2O",
        molecular_weight=203.30,
        ion_yield={
            "magnesium": _yield("magnesium", 203.30),
            "chloride": _yield("chloride", 203.30, 2),
        },
        description="Adds magnesium and chloride. Fruity notes with added body.",
    ),
    "gypsum": Mineral(
        id="gypsum",
        name="Gypsum",
        formula="CaSO4·2H2O",
        molecular_weight=172.17,
        ion_yield={
            "calcium": _yield("calcium", 172.17),
            "sulfate": _yield("sulfate", 172.17),
        },
        description="Adds calcium and sulfate. Sweetness with crisp clarity.",
    ),
    "potassium-chloride": Mineral(
        id="potassium-chloride",
        name="Potassium Chloride",
        formula="KCl",
        molecular_weight=74.551,
        ion_yield={
            "potassium": _yield("potassium", 74.551),
            "chloride": _yield("chloride", 74.551),
        },
        description="Adds potassium and chloride. Salt substitute, adds body.",
    ),
    "sodium-chloride": Mineral(
        id="sodium-chloride",
        name="Sodium Chloride",
        formula="NaCl",
        molecular_weight=58.44,
        ion_yield={
            "sodium": _yield("sodium", 58.44),
            "chloride": _yield("chloride", 58.44),
        },
        description="Table salt. Adds sodium and chloride. Small amounts enhance sweetness.",
    ),
}

# Lotus Coffee Water Drops, derived from the official round-tip dropper recipes.
BRAND_CONCENTRATES: Dict[str, BrandConcentrate] = {
    "brand:lotus:calcium": BrandConcentrate(
        id="brand:lotus:calcium",
        name="Calcium",
        mineral_id="calcium-chloride",
        formula="CaCl2·2H2O",
        grams_per_ml=0.1757,
        description="~119.7 mg/mL hardness as CaCO3 (~47.9 mg/mL Ca). Source: calcium chloride.",
    ),
    "brand:lotus:magnesium": BrandConcentrate(
        id="brand:lotus:magnesium",
        name="Magnesium",
        mineral_id="magnesium-chloride",
        formula="MgCl2·6H2O",
        grams_per_ml=0.2430,
        description="~119.7 mg/mL hardness as CaCO3 (~29.1 mg/mL Mg). Source: magnesium chloride.",
    ),
    "brand:lotus:sodium-bicarbonate": BrandConcentrate(
        id="brand:lotus:sodium-bicarbonate",
        name="Sodium Bicarbonate",
        mineral_id="baking-soda",
        formula="NaHCO3",
        grams_per_ml=0.0977,
        description="~58.2 mg/mL alkalinity as CaCO3 (~26.7 mg/mL Na). Source: sodium bicarbonate.",
    ),
    "brand:lotus:potassium-bicarbonate": BrandConcentrate(
        id="brand:lotus:potassium-bicarbonate",
        name="Potassium Bicarbonate",
        mineral_id="potassium-bicarbonate",
        formula="KHCO3",
        grams_per_ml=0.1164,
        description="~58.2 mg/mL alkalinity as CaCO3 (~45.5 mg/mL K). Source: potassium bicarbonate.",
    ),
}

LOTUS_CONCENTRATE_IDS = [cid for cid in BRAND_CONCENTRATES if cid.startswith("brand:lotus:")]


def get_mineral(mineral_id: Optional[str]) -> Optional[Mineral]:
    """Return the mineral for an id, or None when the id is not registered."""
    if not mineral_id:
        return None
    return MINERAL_DB.get(mineral_id)


def require_mineral(mineral_id: str) -> Mineral:
    """Strict lookup for callers that must reject stale or misspelled ids."""
    mineral = get_mineral(mineral_id)
    if mineral is None:
        raise UnknownMineralError(mineral_id)
    return mineral


def get_ion_yield(mineral_id: Optional[str], ion: str) -> float:
    """Grams of `ion` per gram of mineral; 0 when the mineral or ion is absent."""
    mineral = get_mineral(mineral_id)
    if mineral is None:
        return 0.0
    return mineral.ion_yield.get(ion, 0.0)


def list_minerals() -> List[Mineral]:
    return list(MINERAL_DB.values())


def get_concentrate(concentrate_id: Optional[str]) -> Optional[BrandConcentrate]:
    if not concentrate_id:
        return None
    return BRAND_CONCENTRATES.get(concentrate_id)


def require_concentrate(concentrate_id: str) -> BrandConcentrate:
    concentrate = get_concentrate(concentrate_id)
    if concentrate is None:
        raise UnknownMineralError(concentrate_id)
    return concentrate


def list_concentrates() -> List[BrandConcentrate]:
    return list(BRAND_CONCENTRATES.values())
