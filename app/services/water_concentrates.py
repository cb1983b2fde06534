"""
Liquid concentrate dosing.

Converts mineral doses (grams) into volumes of ready-made brand concentrates
(Lotus Coffee Water Drops) and checks DIY stock solutions against approximate
solubility limits.
"""
from typing import Dict, List, Optional, Iterable
from dataclasses import dataclass, field
import logging

from app.services.water_rules import (
    LOTUS_DROPPER_ML,
    MINERAL_SOLUBILITY_G_PER_L_25C_APPROX,
)
from app.services.water_minerals import get_concentrate, get_mineral
from app.services.water_calculator import round_half_up

logger = logging.getLogger(__name__)


@dataclass
class ConcentrateDose:
    concentrate_id: str
    mineral_id: str
    name: str
    grams_equivalent: float
    ml: float
    drops: int
    dropper: str

    def to_dict(self) -> Dict:
        return {
            "concentrate_id": self.concentrate_id,
            "mineral_id": self.mineral_id,
            "name": self.name,
            "grams_equivalent": self.grams_equivalent,
            "ml": self.ml,
            "drops": self.drops,
            "dropper": self.dropper,
        }


@dataclass
class ConcentratePlan:
    """Display grams per mineral after concentrates take over their share."""
    mineral_grams: Dict[str, float]
    concentrates: List[ConcentrateDose] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "mineral_grams": dict(self.mineral_grams),
            "concentrates": [c.to_dict() for c in self.concentrates],
            "warnings": list(self.warnings),
        }


def apply_concentrates(
    doses_grams: Dict[str, float],
    selected_concentrate_ids: Iterable[str],
    dropper: str = "round",
) -> ConcentratePlan:
    """
    Replace mineral doses with concentrate volumes where a concentrate is selected.

    When a concentrate and the mineral it is made from are both selected, the
    concentrate wins: its volume is reported and the mineral's grams drop to 0.
    Unknown concentrate ids are skipped with a warning.

    Args:
        doses_grams: Total grams per mineral id (from the dosing solver)
        selected_concentrate_ids: Concentrates the user has on hand
        dropper: "round" or "straight" tip, sets mL per drop

    Returns:
        ConcentratePlan with adjusted mineral grams and concentrate doses
    """
    mineral_grams = dict(doses_grams or {})
    plan = ConcentratePlan(mineral_grams=mineral_grams)

    drop_ml = LOTUS_DROPPER_ML.get(dropper)
    if drop_ml is None:
        plan.warnings.append(f"Unknown dropper '{dropper}', using round tip.")
        dropper = "round"
        drop_ml = LOTUS_DROPPER_ML["round"]

    for concentrate_id in selected_concentrate_ids or []:
        concentrate = get_concentrate(concentrate_id)
        if concentrate is None:
            logger.warning(f"[Concentrates] Unknown concentrate '{concentrate_id}' skipped")
            plan.warnings.append(f"Unknown concentrate: {concentrate_id}")
            continue
        if concentrate.mineral_id not in mineral_grams:
            continue

        grams = mineral_grams[concentrate.mineral_id]
        ml = grams / concentrate.grams_per_ml if grams > 0 else 0.0
        plan.concentrates.append(ConcentrateDose(
            concentrate_id=concentrate.id,
            mineral_id=concentrate.mineral_id,
            name=concentrate.name,
            grams_equivalent=grams,
            ml=ml,
            drops=round_half_up(ml / drop_ml) if ml > 0 else 0,
            dropper=dropper,
        ))
        mineral_grams[concentrate.mineral_id] = 0.0

    return plan


def check_diy_concentrate(mineral_id: str, grams: float, water_ml: float) -> Optional[str]:
    """
    Warn when a DIY stock solution is likely stronger than the salt can dissolve.

    Returns a warning string, or None when the strength is within the
    approximate 25°C solubility limit (or the input cannot be checked).
    """
    limit = MINERAL_SOLUBILITY_G_PER_L_25C_APPROX.get(mineral_id)
    if limit is None or not water_ml or water_ml <= 0 or not grams or grams <= 0:
        return None

    grams_per_liter = grams / (water_ml / 1000)
    if grams_per_liter <= limit:
        return None

    mineral = get_mineral(mineral_id)
    name = mineral.name if mineral else mineral_id
    return (
        f"{name} at {grams_per_liter:.0f} g/L exceeds its approximate solubility "
        f"(~{limit} g/L at 25°C) and may not fully dissolve."
    )
