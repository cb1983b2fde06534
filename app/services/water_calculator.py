"""
Water Chemistry Calculator Service.

Calculates mineral dosing recipes for brewing water based on:
- Source water analysis (ions already present, mg/L)
- Target hardness and alkalinity (Ca, Mg, alkalinity as CaCO3)
- Selected mineral roles (calcium, magnesium and alkalinity sources)
- Batch volume

Methodology:
1. Convert source bicarbonate to alkalinity as CaCO3
2. Calculate deltas (target - source), floored at zero since salts can only be added
3. Convert each delta into grams of the salt assigned to that role
4. Zero out doses too small to weigh, then back-calculate the final ion profile
5. Derive GH, KH, TDS and the SO4:Cl ratio from the final profile

All functions are pure: no I/O, no shared mutable state.
"""
from typing import Dict, List, Optional, Mapping, Iterable, Any
from dataclasses import dataclass, field
import math
import logging

from app.services.water_rules import (
    ION_FIELDS,
    CA_TO_CACO3,
    MG_TO_CACO3,
    HCO3_TO_CACO3,
    MW_CACO3,
    GALLONS_TO_LITERS,
    MIN_MEASURABLE_DOSE_G,
    ALKALINITY_SOURCE_IDS,
    CALCIUM_SOURCE_IDS,
    MAGNESIUM_SOURCE_IDS,
    DEFAULT_ALKALINITY_SOURCE,
    DEFAULT_CALCIUM_SOURCE,
    DEFAULT_MAGNESIUM_SOURCE,
)
from app.services.water_minerals import get_mineral, get_ion_yield

logger = logging.getLogger(__name__)


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass
class WaterMetrics:
    """Derived water metrics, mg/L (GH and KH as CaCO3)."""
    gh: float = 0.0
    kh: float = 0.0
    # Sum of tracked ions, not a conductivity or TDS-meter reading.
    tds: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return {"gh": self.gh, "kh": self.kh, "tds": self.tds}


@dataclass
class DosingTarget:
    """Simplified target: Ca and Mg in mg/L, alkalinity in mg/L as CaCO3."""
    calcium: float = 0.0
    magnesium: float = 0.0
    alkalinity: float = 0.0
    # Optional explicit ions, used to split alkalinity between two buffers
    sodium: Optional[float] = None
    potassium: Optional[float] = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "DosingTarget":
        sodium = data.get("sodium")
        potassium = data.get("potassium")
        return cls(
            calcium=coerce_number(data.get("calcium")),
            magnesium=coerce_number(data.get("magnesium")),
            alkalinity=coerce_number(data.get("alkalinity")),
            sodium=coerce_number(sodium) if sodium is not None else None,
            potassium=coerce_number(potassium) if potassium is not None else None,
        )


@dataclass
class MineralRoles:
    """Which mineral supplies each dosing role."""
    calcium_source_id: Optional[str] = None
    magnesium_source_id: Optional[str] = None
    alkalinity_source_ids: List[str] = field(default_factory=list)

    def __post_init__(self):
        """Keep each buffer salt once, in order; other ids cannot supply alkalinity."""
        self.alkalinity_source_ids = enabled_role_sources(self.alkalinity_source_ids, ALKALINITY_SOURCE_IDS)

    @classmethod
    def from_selected_minerals(cls, selected: Iterable[str]) -> "MineralRoles":
        """Build roles from the minerals a user has on hand, applying the tie-break policy."""
        selected = list(selected or [])
        return cls(
            calcium_source_id=resolve_calcium_source([m for m in CALCIUM_SOURCE_IDS if m in selected]),
            magnesium_source_id=resolve_magnesium_source([m for m in MAGNESIUM_SOURCE_IDS if m in selected]),
            alkalinity_source_ids=[m for m in ALKALINITY_SOURCE_IDS if m in selected],
        )

    @property
    def effective_alkalinity_source(self) -> Optional[str]:
        return resolve_alkalinity_source(self.alkalinity_source_ids)


@dataclass
class DosingResult:
    """Dose plan plus the chemistry it produces."""
    doses_grams: Dict[str, float]
    doses_per_liter: Dict[str, float]
    final_profile: Dict[str, float]
    volume_liters: float
    metrics: Optional[WaterMetrics] = None
    sulfate_chloride_ratio: Optional[float] = None
    raw_deltas: Dict[str, float] = field(default_factory=dict)
    advisories: List[str] = field(default_factory=list)

    @property
    def volume_ok(self) -> bool:
        return self.volume_liters > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "doses_grams": dict(self.doses_grams),
            "doses_per_liter": dict(self.doses_per_liter),
            "final_profile": dict(self.final_profile),
            "volume_liters": self.volume_liters,
            "metrics": self.metrics.to_dict() if self.metrics else None,
            "sulfate_chloride_ratio": self.sulfate_chloride_ratio,
            "raw_deltas": dict(self.raw_deltas),
            "advisories": list(self.advisories),
        }


# =============================================================================
# INPUT COERCION
# =============================================================================

def coerce_number(value: Any) -> float:
    """Return value as a finite float, or 0.0 for missing, non-numeric or non-finite input."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def normalize_profile(profile: Optional[Mapping[str, Any]]) -> Dict[str, float]:
    """Total 7-ion profile with missing, invalid or negative values set to 0."""
    profile = profile or {}
    return {ion: max(0.0, coerce_number(profile.get(ion))) for ion in ION_FIELDS}


def empty_profile() -> Dict[str, float]:
    return {ion: 0.0 for ion in ION_FIELDS}


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up."""
    return int(math.floor(value + 0.5))


def to_liters(volume: Any, unit: str = "liters") -> float:
    """Convert a batch volume to litres; gallons use 3.78541 L/gal."""
    value = coerce_number(volume)
    if (unit or "").lower() in ("gallons", "gallon", "gal"):
        return value * GALLONS_TO_LITERS
    return value


# =============================================================================
# DEFAULT RESOLUTION (tie-break policy when several sources are enabled)
# =============================================================================

def enabled_role_sources(source_ids: Iterable[str], candidates) -> List[str]:
    """Distinct ids from `source_ids` that can fill this role, in caller order."""
    enabled = []
    for mineral_id in source_ids or []:
        if mineral_id in candidates and mineral_id not in enabled:
            enabled.append(mineral_id)
    return enabled


def _resolve_role(source_ids: Iterable[str], candidates, default: str) -> Optional[str]:
    sources = enabled_role_sources(source_ids, candidates)
    if not sources:
        return None
    if len(sources) == 1:
        return sources[0]
    return default


def resolve_alkalinity_source(source_ids: Iterable[str]) -> Optional[str]:
    """
    Single alkalinity source for contexts that can only use one buffer.

    None when no buffer salt is enabled, the only one when one is enabled,
    potassium-bicarbonate when both are (keeps sodium out by default).
    Duplicates and ids that are not buffer salts are ignored.
    """
    return _resolve_role(source_ids, ALKALINITY_SOURCE_IDS, DEFAULT_ALKALINITY_SOURCE)


def resolve_calcium_source(source_ids: Iterable[str]) -> Optional[str]:
    """Single calcium source; calcium-chloride wins when both are enabled."""
    return _resolve_role(source_ids, CALCIUM_SOURCE_IDS, DEFAULT_CALCIUM_SOURCE)


def resolve_magnesium_source(source_ids: Iterable[str]) -> Optional[str]:
    """Single magnesium source; epsom-salt wins when both are enabled."""
    return _resolve_role(source_ids, MAGNESIUM_SOURCE_IDS, DEFAULT_MAGNESIUM_SOURCE)


# =============================================================================
# ION CONTRIBUTION AND METRICS
# =============================================================================

def compute_ion_contribution(doses_g_per_l: Mapping[str, Any]) -> Dict[str, float]:
    """
    Convert mineral doses (g/L) into ion concentrations (mg/L).

    Unknown mineral ids contribute nothing.
    """
    ions = empty_profile()
    for mineral_id, grams in (doses_g_per_l or {}).items():
        grams = coerce_number(grams)
        if grams <= 0:
            continue
        mineral = get_mineral(mineral_id)
        if mineral is None:
            logger.debug(f"[Ion Contribution] Skipping unknown mineral '{mineral_id}'")
            continue
        for ion, fraction in mineral.ion_yield.items():
            ions[ion] += grams * fraction * 1000  # g/L -> mg/L
    return ions


def compute_metrics(profile: Optional[Mapping[str, Any]]) -> WaterMetrics:
    """
    Calculate GH, KH and TDS from an ion profile.

    GH = Ca x (100.09/40.078) + Mg x (100.09/24.305)
    KH = HCO3 x (50.045/61.017)
    TDS = sum of the seven tracked ions (ion-sum approximation)
    """
    ions = normalize_profile(profile)
    gh = ions["calcium"] * CA_TO_CACO3 + ions["magnesium"] * MG_TO_CACO3
    kh = ions["bicarbonate"] * HCO3_TO_CACO3
    tds = sum(ions[ion] for ion in ION_FIELDS)
    return WaterMetrics(gh=gh, kh=kh, tds=tds)


def compute_sulfate_chloride_ratio(profile: Optional[Mapping[str, Any]]) -> Optional[float]:
    """SO4:Cl ratio, or None when chloride is 0 (ratio unavailable)."""
    ions = normalize_profile(profile)
    if ions["chloride"] <= 0:
        return None
    return ions["sulfate"] / ions["chloride"]


def alkalinity_factor(mineral_id: Optional[str]) -> float:
    """
    mg of buffer salt per mg/L of alkalinity as CaCO3.

    One bicarbonate per formula unit, two equivalents per mole of CaCO3.
    """
    mineral = get_mineral(mineral_id)
    if mineral is None or mineral.ion_yield.get("bicarbonate", 0) <= 0:
        return 0.0
    return 2 * mineral.molecular_weight / MW_CACO3


def source_alkalinity(profile: Optional[Mapping[str, Any]]) -> float:
    """Alkalinity as CaCO3 carried by the source bicarbonate."""
    return normalize_profile(profile)["bicarbonate"] * HCO3_TO_CACO3


# =============================================================================
# DOSING SOLVER
# =============================================================================

def split_alkalinity_delta(
    source: Mapping[str, Any],
    target: DosingTarget,
    source_ids: Iterable[str],
) -> Dict[str, float]:
    """
    Share of the alkalinity delta assigned to each enabled buffer salt.

    With both baking-soda and potassium-bicarbonate enabled the split follows
    the target's explicit sodium and potassium deltas against the source. If
    only one delta is positive it takes everything; with neither (or no
    explicit values) everything goes to potassium-bicarbonate.
    """
    sources = enabled_role_sources(source_ids, ALKALINITY_SOURCE_IDS)
    if not sources:
        return {}
    if len(sources) == 1:
        return {sources[0]: 1.0}

    ions = normalize_profile(source)
    delta_na = 0.0
    delta_k = 0.0
    if target.sodium is not None:
        delta_na = max(0.0, target.sodium - ions["sodium"])
    if target.potassium is not None:
        delta_k = max(0.0, target.potassium - ions["potassium"])

    if delta_na > 0 and delta_k > 0:
        total = delta_na + delta_k
        return {
            "baking-soda": delta_na / total,
            "potassium-bicarbonate": delta_k / total,
        }
    if delta_na > 0:
        return {"baking-soda": 1.0}
    return {DEFAULT_ALKALINITY_SOURCE: 1.0}


def _format_amount(value: float) -> str:
    return f"{round(value, 2):g}"


def _role_doses_per_liter(
    delta_ca: float,
    delta_mg: float,
    delta_alk: float,
    roles: MineralRoles,
    alkalinity_shares: Mapping[str, float],
) -> Dict[str, float]:
    """Grams per litre of each role salt for already-floored deltas."""
    doses: Dict[str, float] = {}

    ca_fraction = get_ion_yield(roles.calcium_source_id, "calcium")
    if ca_fraction > 0:
        doses[roles.calcium_source_id] = doses.get(roles.calcium_source_id, 0.0) + (delta_ca / ca_fraction) / 1000

    mg_fraction = get_ion_yield(roles.magnesium_source_id, "magnesium")
    if mg_fraction > 0:
        doses[roles.magnesium_source_id] = doses.get(roles.magnesium_source_id, 0.0) + (delta_mg / mg_fraction) / 1000

    for mineral_id, share in alkalinity_shares.items():
        grams = (delta_alk * share * alkalinity_factor(mineral_id)) / 1000
        doses[mineral_id] = doses.get(mineral_id, 0.0) + grams

    return doses


def solve_dosing(
    source: Optional[Mapping[str, Any]],
    target: Any,
    roles: MineralRoles,
    volume_liters: Any,
    min_dose_g: float = MIN_MEASURABLE_DOSE_G,
) -> DosingResult:
    """
    Compute the mineral doses that move source water to the target.

    Args:
        source: Source water ions in mg/L
        target: DosingTarget or mapping with calcium, magnesium, alkalinity
                (and optionally sodium/potassium to split two buffers)
        roles: Mineral assigned to each role
        volume_liters: Batch volume in litres
        min_dose_g: Totals below this are zeroed for both display and chemistry

    Returns:
        DosingResult with total grams, grams per litre, the final profile,
        derived metrics and advisories. Never raises for domain conditions.
    """
    source_ions = normalize_profile(source)
    if not isinstance(target, DosingTarget):
        target = DosingTarget.from_mapping(target or {})
    roles = roles or MineralRoles()
    volume = coerce_number(volume_liters)

    role_ids = []
    for mineral_id in [roles.calcium_source_id, roles.magnesium_source_id, *roles.alkalinity_source_ids]:
        if mineral_id and mineral_id not in role_ids and get_mineral(mineral_id) is not None:
            role_ids.append(mineral_id)

    if volume <= 0:
        logger.info(f"[Dosing] Volume {volume_liters!r} is not positive, returning empty dose plan")
        return DosingResult(
            doses_grams={mineral_id: 0.0 for mineral_id in role_ids},
            doses_per_liter={mineral_id: 0.0 for mineral_id in role_ids},
            final_profile=dict(source_ions),
            volume_liters=0.0,
        )

    src_alk = source_alkalinity(source_ions)
    raw_delta_ca = target.calcium - source_ions["calcium"]
    raw_delta_mg = target.magnesium - source_ions["magnesium"]
    raw_delta_alk = target.alkalinity - src_alk
    delta_ca = max(0.0, raw_delta_ca)
    delta_mg = max(0.0, raw_delta_mg)
    delta_alk = max(0.0, raw_delta_alk)

    advisories = []
    if raw_delta_ca < 0:
        advisories.append(
            f"Your source water already exceeds the target for Calcium "
            f"({_format_amount(source_ions['calcium'])} vs {_format_amount(target.calcium)} mg/L)."
        )
    if raw_delta_mg < 0:
        advisories.append(
            f"Your source water already exceeds the target for Magnesium "
            f"({_format_amount(source_ions['magnesium'])} vs {_format_amount(target.magnesium)} mg/L)."
        )
    if raw_delta_alk < 0:
        advisories.append(
            f"Your source water already exceeds the target for Alkalinity "
            f"({round_half_up(src_alk)} vs {_format_amount(target.alkalinity)} mg/L as CaCO3)."
        )

    if delta_ca > 0 and get_ion_yield(roles.calcium_source_id, "calcium") <= 0:
        advisories.append("You need a calcium source (Calcium Chloride or Gypsum) to add calcium.")
    if delta_mg > 0 and get_ion_yield(roles.magnesium_source_id, "magnesium") <= 0:
        advisories.append("You need a magnesium source (Epsom Salt or Magnesium Chloride) to add magnesium.")

    alkalinity_shares = split_alkalinity_delta(source_ions, target, roles.alkalinity_source_ids)
    if delta_alk > 0 and not alkalinity_shares:
        advisories.append("You need an alkalinity source (Baking Soda or Potassium Bicarbonate) to add alkalinity.")

    per_liter = _role_doses_per_liter(delta_ca, delta_mg, delta_alk, roles, alkalinity_shares)
    for mineral_id in role_ids:
        per_liter.setdefault(mineral_id, 0.0)

    doses_grams = {}
    for mineral_id, grams_per_l in per_liter.items():
        total = grams_per_l * volume
        if total < min_dose_g:
            # zeroed per litre too, before ions are back-calculated
            per_liter[mineral_id] = 0.0
            total = 0.0
        doses_grams[mineral_id] = total

    added = compute_ion_contribution(per_liter)
    final_profile = {ion: source_ions[ion] + added[ion] for ion in ION_FIELDS}
    metrics = compute_metrics(final_profile)
    ratio = compute_sulfate_chloride_ratio(final_profile)

    logger.info(
        f"[Dosing] {volume:.2f} L: deltas Ca={delta_ca:.1f} Mg={delta_mg:.1f} Alk={delta_alk:.1f} -> "
        + ", ".join(f"{k}={v:.3f} g" for k, v in doses_grams.items())
    )

    return DosingResult(
        doses_grams=doses_grams,
        doses_per_liter=per_liter,
        final_profile=final_profile,
        volume_liters=volume,
        metrics=metrics,
        sulfate_chloride_ratio=ratio,
        raw_deltas={
            "calcium": raw_delta_ca,
            "magnesium": raw_delta_mg,
            "alkalinity": raw_delta_alk,
        },
        advisories=advisories,
    )


# =============================================================================
# PROFILE EXPANSION
# =============================================================================

def has_explicit_ions(target: Optional[Mapping[str, Any]]) -> bool:
    """True when all seven ion fields are present and finite."""
    if not target:
        return False
    for ion in ION_FIELDS:
        value = target.get(ion)
        if value is None or isinstance(value, bool):
            return False
        try:
            if not math.isfinite(float(value)):
                return False
        except (TypeError, ValueError):
            return False
    return True


def expand_profile(
    target: Optional[Mapping[str, Any]],
    source: Optional[Mapping[str, Any]],
    roles: MineralRoles,
) -> Dict[str, int]:
    """
    Full 7-ion profile (integer mg/L) for a target, in 1 L concentration space.

    Explicit-ion targets are returned as-is (rounded). Simplified Ca/Mg/Alk
    targets are built as source water plus the salts the current roles would
    add, using a single effective alkalinity source. The result is a
    point-in-time snapshot of the source and roles it was computed with.
    """
    if has_explicit_ions(target):
        return {ion: round_half_up(float(target[ion])) for ion in ION_FIELDS}

    source_ions = normalize_profile(source)
    dosing_target = DosingTarget.from_mapping(target or {})
    roles = roles or MineralRoles()

    delta_ca = max(0.0, dosing_target.calcium - source_ions["calcium"])
    delta_mg = max(0.0, dosing_target.magnesium - source_ions["magnesium"])
    delta_alk = max(0.0, dosing_target.alkalinity - source_alkalinity(source_ions))

    alk_source = roles.effective_alkalinity_source
    shares = {alk_source: 1.0} if alkalinity_factor(alk_source) > 0 else {}
    per_liter = _role_doses_per_liter(delta_ca, delta_mg, delta_alk, roles, shares)

    added = compute_ion_contribution(per_liter)
    return {ion: round_half_up(source_ions[ion] + added[ion]) for ion in ION_FIELDS}


def build_stored_target_profile(
    label: str,
    ions: Mapping[str, Any],
    description: str = "",
    alkalinity: Optional[float] = None,
) -> Dict[str, Any]:
    """Snapshot a computed profile as a reusable named target (explicit ions)."""
    normalized = {ion: round_half_up(coerce_number((ions or {}).get(ion))) for ion in ION_FIELDS}
    metrics = compute_metrics(normalized)
    stored = {
        "label": label,
        "calcium": normalized["calcium"],
        "magnesium": normalized["magnesium"],
        "alkalinity": round_half_up(alkalinity) if alkalinity is not None else round_half_up(metrics.kh),
    }
    for ion in ("potassium", "sodium", "sulfate", "chloride", "bicarbonate"):
        stored[ion] = normalized[ion]
    stored["description"] = description or ""
    return stored


# =============================================================================
# DELTA FORMATTING
# =============================================================================

def round_delta(delta: Any, decimals: int = 0) -> Optional[float]:
    """Round a change against a baseline; None when not finite, never -0."""
    if delta is None or isinstance(delta, bool):
        return None
    try:
        value = float(delta)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(value):
        return None
    p = 10 ** decimals if decimals > 0 else 1
    rounded = math.floor(value * p + 0.5) / p
    if decimals <= 0:
        rounded = float(int(rounded))
    return rounded + 0.0  # -0.0 + 0.0 == 0.0


def format_delta(delta: Any, decimals: int = 0) -> str:
    """Signed delta text: '+3', '-1.5', '0' or an em dash when unavailable."""
    rounded = round_delta(delta, decimals)
    if rounded is None:
        return "—"
    if decimals > 0:
        magnitude = f"{abs(rounded):.{decimals}f}"
    else:
        magnitude = str(int(abs(rounded)))
    if rounded > 0:
        return "+" + magnitude
    if rounded < 0:
        return "-" + magnitude
    return f"{0:.{decimals}f}" if decimals > 0 else "0"
