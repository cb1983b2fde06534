"""
Water Chemistry Router.
Provides endpoints for brewing-water dosing, profile expansion and range checks.
"""
from typing import List, Optional, Dict, Any
from dataclasses import asdict
from fastapi import APIRouter, HTTPException
import logging

from app.core.config import get_settings
from app.schemas.water_schemas import (
    WaterProfileInput,
    TargetInput,
    MineralRolesInput,
    WaterCalculateRequest,
    WaterCalculateResponse,
    ExpandProfileRequest,
    ExpandProfileResponse,
    EvaluateRequest,
    EvaluateResponse,
    MetricsRequest,
    MetricsResponse,
    MineralDose,
    ConcentrateDose,
    RangeFinding,
    ProfileNameRequest,
    ProfileNameResponse,
    DiyConcentrateRequest,
    DiyConcentrateResponse,
    BrewMethodEnum,
)
from app.services.water_rules import ION_FIELDS, MINERAL_SOLUBILITY_G_PER_L_25C_APPROX
from app.services.water_minerals import (
    WaterChemistryError,
    list_minerals,
    list_concentrates,
    require_mineral,
    require_concentrate,
)
from app.services.water_calculator import (
    MineralRoles,
    WaterMetrics,
    solve_dosing,
    expand_profile,
    build_stored_target_profile,
    compute_metrics,
    compute_sulfate_chloride_ratio,
    to_liters,
    round_delta,
    format_delta,
)
from app.services.water_range_evaluator import RangeContext, evaluate_ranges, evaluate_water_profile
from app.services.water_concentrates import apply_concentrates, check_diy_concentrate
from app.services.water_presets import (
    list_source_presets,
    list_target_presets,
    get_source_profile,
    get_target_profile,
    is_target_editable,
    infer_brew_method,
    validate_target_profile_name,
    stable_bicarbonate_from_alkalinity,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["water"])


def _metrics_response(metrics: WaterMetrics, ratio: Optional[float]) -> MetricsResponse:
    return MetricsResponse(
        gh=round(metrics.gh, 2),
        kh=round(metrics.kh, 2),
        tds=round(metrics.tds, 2),
        sulfate_chloride_ratio=round(ratio, 3) if ratio is not None else None,
    )


def _resolve_source(source: Optional[WaterProfileInput], source_preset: Optional[str]) -> Dict[str, float]:
    if source is not None:
        return source.model_dump()
    return get_source_profile(source_preset or "distilled")


def _resolve_target(target: Optional[TargetInput], target_preset: Optional[str]) -> Dict[str, Any]:
    """Inline target (None fields dropped) or a preset; bicarbonate is derived when only it is missing."""
    if target is not None:
        data = {k: v for k, v in target.model_dump().items() if v is not None}
        if "bicarbonate" not in data and all(ion in data for ion in ION_FIELDS if ion != "bicarbonate"):
            data["bicarbonate"] = stable_bicarbonate_from_alkalinity(data["alkalinity"])
        return data
    if target_preset:
        return get_target_profile(target_preset)
    raise HTTPException(status_code=400, detail="A target or target_preset is required")


def _resolve_roles(roles: Optional[MineralRolesInput], selected_minerals: List[str]) -> MineralRoles:
    """Explicit roles win over the selected mineral list; every named id must exist."""
    if roles is not None:
        for mineral_id in [roles.calcium_source_id, roles.magnesium_source_id, *roles.alkalinity_source_ids]:
            if mineral_id:
                require_mineral(mineral_id)
        return MineralRoles(
            calcium_source_id=roles.calcium_source_id,
            magnesium_source_id=roles.magnesium_source_id,
            alkalinity_source_ids=list(roles.alkalinity_source_ids),
        )
    for mineral_id in selected_minerals:
        require_mineral(mineral_id)
    return MineralRoles.from_selected_minerals(selected_minerals)


# ==================== CATALOG ====================

@router.get("/minerals")
async def get_minerals():
    """Get the mineral registry with ion yields (g ion per g salt)."""
    return {"minerals": [m.to_dict() for m in list_minerals()]}


@router.get("/concentrates")
async def get_concentrates():
    """Get brand concentrates with their equivalent grams of salt per mL."""
    return {"concentrates": [c.to_dict() for c in list_concentrates()]}


@router.post("/concentrates/diy-check", response_model=DiyConcentrateResponse)
async def check_diy_stock(request: DiyConcentrateRequest):
    """Check a home-made stock solution against the salt's approximate solubility."""
    try:
        require_mineral(request.mineral_id)
    except WaterChemistryError as e:
        raise HTTPException(status_code=404, detail=str(e))

    warning = check_diy_concentrate(request.mineral_id, request.grams, request.water_ml)
    return DiyConcentrateResponse(
        mineral_id=request.mineral_id,
        grams_per_liter=round(request.grams / (request.water_ml / 1000), 2),
        solubility_g_per_l=MINERAL_SOLUBILITY_G_PER_L_25C_APPROX.get(request.mineral_id),
        ok=warning is None,
        warning=warning,
    )


@router.get("/presets/source")
async def get_source_presets():
    return {"presets": list_source_presets()}


@router.get("/presets/source/{key}")
async def get_source_preset(key: str):
    try:
        profile = get_source_profile(key)
    except WaterChemistryError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"key": key, "profile": profile}


@router.get("/presets/target")
async def get_target_presets(brew_method: Optional[BrewMethodEnum] = None):
    """Get target presets, optionally filtered to a brew method."""
    presets = list_target_presets(brew_method.value if brew_method else None)
    return {
        "brew_method": brew_method.value if brew_method else None,
        "presets": {
            key: dict(profile, editable=is_target_editable(key), inferred_brew_method=infer_brew_method(key, profile))
            for key, profile in presets.items()
        },
    }


@router.get("/presets/target/{key}")
async def get_target_preset(key: str):
    try:
        profile = get_target_profile(key)
    except WaterChemistryError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"key": key, "profile": profile, "editable": is_target_editable(key)}


# ==================== CALCULATIONS ====================

@router.post("/calculate", response_model=WaterCalculateResponse)
async def calculate_water_recipe(request: WaterCalculateRequest):
    """
    Calculate mineral doses for a batch of brewing water.

    Returns:
    - doses: grams of each role mineral for the whole batch (0 when replaced by a concentrate)
    - concentrates: mL and drops of selected brand concentrates
    - final_profile / metrics: resulting chemistry
    - advisories: unmet or exceeded targets
    - findings: range checks on the final profile (empty when the volume is invalid)
    """
    settings = get_settings()
    try:
        source = _resolve_source(request.source, request.source_preset)
        target = _resolve_target(request.target, request.target_preset)
        roles = _resolve_roles(request.roles, request.selected_minerals)
        for concentrate_id in request.concentrate_ids:
            require_concentrate(concentrate_id)
    except WaterChemistryError as e:
        raise HTTPException(status_code=404, detail=str(e))

    volume_liters = to_liters(request.volume, request.unit.value)
    result = solve_dosing(source, target, roles, volume_liters, min_dose_g=settings.min_measurable_dose_g)
    plan = apply_concentrates(result.doses_grams, request.concentrate_ids, request.dropper.value)

    doses = []
    for mineral_id, grams in plan.mineral_grams.items():
        doses.append(MineralDose(
            mineral_id=mineral_id,
            name=require_mineral(mineral_id).name,
            grams=round(grams, 3),
            grams_per_liter=round(result.doses_per_liter.get(mineral_id, 0.0), 4) if grams > 0 else 0.0,
        ))

    metrics = None
    findings = []
    target_deltas = {}
    target_delta_text = {}
    if result.metrics is not None:
        metrics = _metrics_response(result.metrics, result.sulfate_chloride_ratio)
        context = RangeContext.from_roles(roles, include_advanced=request.include_advanced)
        findings = [RangeFinding(**f.to_dict()) for f in evaluate_ranges(result.final_profile, context)]
        deltas = {
            "calcium": result.final_profile["calcium"] - float(target.get("calcium") or 0),
            "magnesium": result.final_profile["magnesium"] - float(target.get("magnesium") or 0),
            "alkalinity": result.metrics.kh - float(target.get("alkalinity") or 0),
        }
        target_deltas = {k: round_delta(v, 1) for k, v in deltas.items()}
        target_delta_text = {k: format_delta(v, 1) for k, v in deltas.items()}

    logger.info(
        f"[Water API] calculate: {volume_liters:.2f} L, {len(doses)} minerals, "
        f"{len(plan.concentrates)} concentrates, {len(findings)} findings"
    )

    return WaterCalculateResponse(
        volume_liters=round(volume_liters, 4),
        volume_ok=result.volume_ok,
        doses=doses,
        concentrates=[ConcentrateDose(**c.to_dict()) for c in plan.concentrates],
        final_profile={ion: round(v, 2) for ion, v in result.final_profile.items()},
        metrics=metrics,
        target_deltas=target_deltas,
        target_delta_text=target_delta_text,
        advisories=result.advisories,
        warnings=plan.warnings,
        findings=findings,
    )


@router.post("/expand-profile", response_model=ExpandProfileResponse)
async def expand_target_profile(request: ExpandProfileRequest):
    """Expand a target into a full 7-ion profile (integer mg/L)."""
    try:
        source = _resolve_source(request.source, request.source_preset)
        target = _resolve_target(request.target, request.target_preset)
        roles = _resolve_roles(request.roles, request.selected_minerals)
    except WaterChemistryError as e:
        raise HTTPException(status_code=404, detail=str(e))

    profile = expand_profile(target, source, roles)
    stored = None
    if request.label:
        stored = build_stored_target_profile(request.label, profile, request.description)

    return ExpandProfileResponse(
        profile=profile,
        metrics=_metrics_response(compute_metrics(profile), compute_sulfate_chloride_ratio(profile)),
        stored_profile=stored,
    )


@router.post("/evaluate", response_model=EvaluateResponse)
async def evaluate_profile(request: EvaluateRequest):
    """Check a water profile against recommended brewing ranges."""
    try:
        roles = _resolve_roles(request.roles, request.selected_minerals)
    except WaterChemistryError as e:
        raise HTTPException(status_code=404, detail=str(e))

    context = RangeContext.from_roles(roles, include_advanced=request.include_advanced)
    evaluation = evaluate_water_profile(request.profile.model_dump(), context)
    return EvaluateResponse(
        findings=[RangeFinding(**f.to_dict()) for f in evaluation.findings],
        metrics=_metrics_response(evaluation.metrics, evaluation.sulfate_chloride_ratio),
    )


@router.post("/metrics", response_model=MetricsResponse)
async def calculate_metrics(request: MetricsRequest):
    profile = request.profile.model_dump()
    return _metrics_response(compute_metrics(profile), compute_sulfate_chloride_ratio(profile))


@router.post("/profiles/validate-name", response_model=ProfileNameResponse)
async def validate_profile_name(request: ProfileNameRequest):
    """Check a new target profile name against built-in and saved targets."""
    check = validate_target_profile_name(request.name, request.custom_profiles, request.allow_empty)
    return ProfileNameResponse(**asdict(check))
