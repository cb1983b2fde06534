"""
Pydantic schemas for the Water Chemistry module.
"""
from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from enum import Enum

from app.services.water_rules import DEFAULT_SELECTED_MINERALS


# ==================== ENUMS ====================

class VolumeUnitEnum(str, Enum):
    """Batch volume units."""
    LITERS = "liters"
    GALLONS = "gallons"


class DropperEnum(str, Enum):
    """Concentrate dropper tips."""
    ROUND = "round"
    STRAIGHT = "straight"


class BrewMethodEnum(str, Enum):
    FILTER = "filter"
    ESPRESSO = "espresso"


# ==================== INPUT SCHEMAS ====================

class WaterProfileInput(BaseModel):
    """Seven tracked ions in mg/L."""
    calcium: float = Field(default=0, ge=0, description="Ca mg/L")
    magnesium: float = Field(default=0, ge=0, description="Mg mg/L")
    potassium: float = Field(default=0, ge=0, description="K mg/L")
    sodium: float = Field(default=0, ge=0, description="Na mg/L")
    sulfate: float = Field(default=0, ge=0, description="SO4 mg/L")
    chloride: float = Field(default=0, ge=0, description="Cl mg/L")
    bicarbonate: float = Field(default=0, ge=0, description="HCO3 mg/L")


class TargetInput(BaseModel):
    """Ca/Mg/alkalinity target, optionally with explicit ions."""
    calcium: float = Field(default=0, ge=0, description="Ca mg/L")
    magnesium: float = Field(default=0, ge=0, description="Mg mg/L")
    alkalinity: float = Field(default=0, ge=0, description="Alkalinity mg/L as CaCO3")
    potassium: Optional[float] = Field(None, ge=0, description="K mg/L")
    sodium: Optional[float] = Field(None, ge=0, description="Na mg/L")
    sulfate: Optional[float] = Field(None, ge=0, description="SO4 mg/L")
    chloride: Optional[float] = Field(None, ge=0, description="Cl mg/L")
    bicarbonate: Optional[float] = Field(None, ge=0, description="HCO3 mg/L")


class MineralRolesInput(BaseModel):
    """Explicit role assignment; overrides selected_minerals when given."""
    calcium_source_id: Optional[str] = None
    magnesium_source_id: Optional[str] = None
    alkalinity_source_ids: List[str] = Field(default_factory=list)


class WaterCalculateRequest(BaseModel):
    """Request schema for a dosing calculation."""
    source: Optional[WaterProfileInput] = Field(None, description="Inline source water")
    source_preset: Optional[str] = Field(None, description="Built-in source preset key")
    target: Optional[TargetInput] = Field(None, description="Inline target")
    target_preset: Optional[str] = Field(None, description="Built-in target preset key")

    roles: Optional[MineralRolesInput] = None
    selected_minerals: List[str] = Field(default_factory=lambda: list(DEFAULT_SELECTED_MINERALS))

    volume: float = Field(default=1.0, ge=0, description="Batch volume")
    unit: VolumeUnitEnum = VolumeUnitEnum.LITERS

    include_advanced: bool = Field(default=True, description="Run chloride, sulfate, potassium and ratio checks")
    concentrate_ids: List[str] = Field(default_factory=list, description="Brand concentrates on hand")
    dropper: DropperEnum = DropperEnum.ROUND


class ExpandProfileRequest(BaseModel):
    source: Optional[WaterProfileInput] = None
    source_preset: Optional[str] = None
    target: Optional[TargetInput] = None
    target_preset: Optional[str] = None
    roles: Optional[MineralRolesInput] = None
    selected_minerals: List[str] = Field(default_factory=lambda: list(DEFAULT_SELECTED_MINERALS))
    label: Optional[str] = Field(None, max_length=100, description="Return a stored target snapshot under this label")
    description: str = Field(default="", max_length=500)


class EvaluateRequest(BaseModel):
    profile: WaterProfileInput
    include_advanced: bool = True
    roles: Optional[MineralRolesInput] = None
    selected_minerals: List[str] = Field(default_factory=lambda: list(DEFAULT_SELECTED_MINERALS))


class MetricsRequest(BaseModel):
    profile: WaterProfileInput


class DiyConcentrateRequest(BaseModel):
    """A home-made stock solution: grams of one salt dissolved in water_ml of water."""
    mineral_id: str
    grams: float = Field(..., ge=0, description="Grams of salt in the stock")
    water_ml: float = Field(..., gt=0, description="Water used for the stock, mL")


class ProfileNameRequest(BaseModel):
    name: Optional[str] = Field(None, max_length=100)
    custom_profiles: Dict[str, Dict[str, Any]] = Field(default_factory=dict, description="Saved targets keyed by slug")
    allow_empty: bool = False


# ==================== RESPONSE SCHEMAS ====================

class MetricsResponse(BaseModel):
    gh: float = Field(..., description="General hardness mg/L as CaCO3")
    kh: float = Field(..., description="Alkalinity mg/L as CaCO3")
    tds: float = Field(..., description="Sum of tracked ions mg/L")
    sulfate_chloride_ratio: Optional[float] = None


class MineralDose(BaseModel):
    mineral_id: str
    name: str
    grams: float
    grams_per_liter: float


class ConcentrateDose(BaseModel):
    concentrate_id: str
    mineral_id: str
    name: str
    grams_equivalent: float
    ml: float
    drops: int
    dropper: str


class RangeFinding(BaseModel):
    severity: str
    message: str
    metric: str = ""


class WaterCalculateResponse(BaseModel):
    """Response schema for a dosing calculation."""
    volume_liters: float
    volume_ok: bool
    doses: List[MineralDose]
    concentrates: List[ConcentrateDose] = []
    final_profile: Dict[str, float]
    metrics: Optional[MetricsResponse] = None
    target_deltas: Dict[str, Optional[float]] = {}
    target_delta_text: Dict[str, str] = {}
    advisories: List[str] = []
    warnings: List[str] = []
    findings: List[RangeFinding] = []


class ExpandProfileResponse(BaseModel):
    profile: Dict[str, int]
    metrics: MetricsResponse
    stored_profile: Optional[Dict[str, Any]] = None


class EvaluateResponse(BaseModel):
    findings: List[RangeFinding]
    metrics: MetricsResponse


class DiyConcentrateResponse(BaseModel):
    mineral_id: str
    grams_per_liter: float
    solubility_g_per_l: Optional[float] = None
    ok: bool
    warning: Optional[str] = None


class ProfileNameResponse(BaseModel):
    ok: bool
    key: str = ""
    name: str = ""
    code: Optional[str] = None
    message: Optional[str] = None
    empty: bool = False
