"""
Water profile range evaluation.

Flags values outside commonly recommended brewing bands at three tiers:
- danger: outside the danger band
- warn: outside the warn band
- info: outside the preferred band (or an advanced heuristic)

Sodium and chloride thresholds are raised when the active minerals inherently
add those ions (baking soda for sodium, chloride salts for chloride).
"""
from typing import Dict, List, Optional, Mapping, Any
from dataclasses import dataclass, field
import logging

from app.services.water_rules import (
    TDS_BANDS,
    KH_BANDS,
    GH_BANDS,
    CALCIUM_BANDS,
    MAGNESIUM_BANDS,
    SODIUM_MAX_DEFAULT,
    SODIUM_MAX_BAKING_SODA,
    CHLORIDE_MAX_DEFAULT,
    CHLORIDE_MAX_CHLORIDE_SOURCES,
    SULFATE_INFO_RANGE,
    POTASSIUM_INFO_MAX,
    SO4_CL_RATIO_RANGE,
    RANGE_SEVERITY_ORDER,
    ALKALINITY_SOURCE_IDS,
)
from app.services.water_calculator import (
    enabled_role_sources,
    WaterMetrics,
    MineralRoles,
    normalize_profile,
    compute_metrics,
    compute_sulfate_chloride_ratio,
    resolve_alkalinity_source,
    round_half_up,
)

logger = logging.getLogger(__name__)


@dataclass
class RangeFinding:
    severity: str  # danger | warn | info
    message: str
    metric: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {"severity": self.severity, "message": self.message, "metric": self.metric}


@dataclass
class RangeContext:
    """Context flags that adjust which checks run and where thresholds sit."""
    include_advanced: bool = True
    alkalinity_source_ids: List[str] = field(default_factory=list)
    calcium_source_id: Optional[str] = None
    magnesium_source_id: Optional[str] = None

    def __post_init__(self):
        self.alkalinity_source_ids = enabled_role_sources(self.alkalinity_source_ids, ALKALINITY_SOURCE_IDS)

    @classmethod
    def from_roles(cls, roles: MineralRoles, include_advanced: bool = True) -> "RangeContext":
        return cls(
            include_advanced=include_advanced,
            alkalinity_source_ids=list(roles.alkalinity_source_ids),
            calcium_source_id=roles.calcium_source_id,
            magnesium_source_id=roles.magnesium_source_id,
        )

    @property
    def alkalinity_source(self) -> Optional[str]:
        return resolve_alkalinity_source(self.alkalinity_source_ids)

    @property
    def chloride_heavy(self) -> bool:
        return (
            self.calcium_source_id == "calcium-chloride"
            or self.magnesium_source_id == "magnesium-chloride"
        )


@dataclass
class RangeEvaluation:
    findings: List[RangeFinding]
    metrics: WaterMetrics
    sulfate_chloride_ratio: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "findings": [f.to_dict() for f in self.findings],
            "metrics": self.metrics.to_dict(),
            "sulfate_chloride_ratio": self.sulfate_chloride_ratio,
        }


def _format_number(value: float) -> str:
    """Render like a plain number: 300 not 300.0, 12.5 stays 12.5."""
    if float(value).is_integer():
        return str(int(value))
    return str(value)


def format_band(
    minimum: Optional[float],
    maximum: Optional[float],
    unit: str = "",
) -> str:
    suffix = f" {unit}" if unit else ""
    if minimum is not None and maximum is not None:
        return f"{_format_number(minimum)}-{_format_number(maximum)}{suffix}"
    if minimum is not None:
        return f">={_format_number(minimum)}{suffix}"
    if maximum is not None:
        return f"<={_format_number(maximum)}{suffix}"
    return "n/a"


def _round_one_decimal(value: float) -> float:
    return round_half_up(value * 10) / 10


def add_band_finding(
    findings: List[RangeFinding],
    label: str,
    value: float,
    unit: str,
    preferred_min: Optional[float],
    preferred_max: Optional[float],
    warn_min: Optional[float],
    warn_max: Optional[float],
    danger_min: Optional[float],
    danger_max: Optional[float],
) -> Optional[RangeFinding]:
    """
    Append at most one finding for `value` against a three-tier band.

    Any bound may be None (one-sided band). The direction is "low" when the
    value sits below any applicable low bound, otherwise "high". Returns the
    finding appended, or None when the value is inside the preferred band.
    """
    if value is None:
        return None
    value_text = _format_number(_round_one_decimal(value)) + (f" {unit}" if unit else "")
    preferred_band = format_band(preferred_min, preferred_max, unit)
    is_low = (
        (preferred_min is not None and value < preferred_min)
        or (warn_min is not None and value < warn_min)
        or (danger_min is not None and value < danger_min)
    )
    direction = "low" if is_low else "high"

    finding = None
    if (danger_min is not None and value < danger_min) or (danger_max is not None and value > danger_max):
        finding = RangeFinding(
            "danger", f"{label} is too {direction} at {value_text} (recommended {preferred_band}).", label
        )
    elif (warn_min is not None and value < warn_min) or (warn_max is not None and value > warn_max):
        finding = RangeFinding(
            "warn", f"{label} is too {direction} at {value_text} (recommended {preferred_band}).", label
        )
    elif (preferred_min is not None and value < preferred_min) or (preferred_max is not None and value > preferred_max):
        finding = RangeFinding(
            "info", f"{label} is slightly {direction} at {value_text} (recommended {preferred_band}).", label
        )

    if finding is not None:
        findings.append(finding)
    return finding


def _add_max_only(findings: List[RangeFinding], label: str, value: float, thresholds) -> None:
    preferred_max, warn_max, danger_max = thresholds
    add_band_finding(findings, label, value, "mg/L", None, preferred_max, None, warn_max, None, danger_max)


def evaluate_ranges(
    profile: Optional[Mapping[str, Any]],
    context: Optional[RangeContext] = None,
) -> List[RangeFinding]:
    """
    Evaluate a water profile against brewing bands.

    Args:
        profile: Ion concentrations in mg/L (missing or invalid values read as 0)
        context: Advanced toggle and active mineral sources

    Returns:
        Findings sorted danger, warn, info (stable within a tier)
    """
    context = context or RangeContext()
    ions = normalize_profile(profile)
    metrics = compute_metrics(ions)
    findings: List[RangeFinding] = []

    add_band_finding(findings, "TDS", metrics.tds, "mg/L", *TDS_BANDS)
    add_band_finding(findings, "KH", metrics.kh, "mg/L as CaCO3", *KH_BANDS)
    add_band_finding(findings, "GH", metrics.gh, "mg/L as CaCO3", *GH_BANDS)
    add_band_finding(findings, "Calcium", ions["calcium"], "mg/L", *CALCIUM_BANDS)
    add_band_finding(findings, "Magnesium", ions["magnesium"], "mg/L", *MAGNESIUM_BANDS)

    sodium_thresholds = SODIUM_MAX_BAKING_SODA if context.alkalinity_source == "baking-soda" else SODIUM_MAX_DEFAULT
    _add_max_only(findings, "Sodium", ions["sodium"], sodium_thresholds)

    if context.include_advanced:
        chloride_thresholds = CHLORIDE_MAX_CHLORIDE_SOURCES if context.chloride_heavy else CHLORIDE_MAX_DEFAULT
        _add_max_only(findings, "Chloride", ions["chloride"], chloride_thresholds)

        sulfate_min, sulfate_max = SULFATE_INFO_RANGE
        sulfate = ions["sulfate"]
        if sulfate < sulfate_min or sulfate > sulfate_max:
            direction = "low" if sulfate < sulfate_min else "high"
            findings.append(RangeFinding(
                "info",
                f"Sulfate is {direction} at {_format_number(_round_one_decimal(sulfate))} mg/L "
                f"(heuristic {sulfate_min}-{sulfate_max} mg/L).",
                "Sulfate",
            ))

        if ions["potassium"] > POTASSIUM_INFO_MAX:
            findings.append(RangeFinding(
                "info",
                f"Potassium is high at {_format_number(_round_one_decimal(ions['potassium']))} mg/L "
                f"(heuristic <={POTASSIUM_INFO_MAX} mg/L).",
                "Potassium",
            ))

        ratio = compute_sulfate_chloride_ratio(ions)
        ratio_min, ratio_max = SO4_CL_RATIO_RANGE
        if ratio is None:
            findings.append(RangeFinding("info", "SO4:Cl ratio unavailable (chloride is 0).", "SO4:Cl"))
        elif ratio < ratio_min or ratio > ratio_max:
            direction = "low" if ratio < ratio_min else "high"
            findings.append(RangeFinding(
                "info",
                f"SO4:Cl ratio is {direction} at {ratio:.2f} (heuristic {ratio_min:.2f}-{ratio_max:.2f}).",
                "SO4:Cl",
            ))

    # stable within a tier
    findings = sorted(findings, key=lambda f: RANGE_SEVERITY_ORDER.get(f.severity, 99))
    logger.debug(f"[Ranges] {len(findings)} findings (advanced={context.include_advanced})")
    return findings


def evaluate_water_profile(
    profile: Optional[Mapping[str, Any]],
    context: Optional[RangeContext] = None,
) -> RangeEvaluation:
    """Findings together with the metrics and ratio they were computed from."""
    ions = normalize_profile(profile)
    return RangeEvaluation(
        findings=evaluate_ranges(ions, context),
        metrics=compute_metrics(ions),
        sulfate_chloride_ratio=compute_sulfate_chloride_ratio(ions),
    )
