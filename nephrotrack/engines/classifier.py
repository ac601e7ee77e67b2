"""
KDIGO classifier.

Maps an (eGFR, uACR) pair onto the KDIGO CKD taxonomy: GFR and albuminuria
categories, the combined risk level, CKD stage and the care flags that
follow from them. Every function here is pure and deterministic.
"""

from __future__ import annotations

import math

from nephrotrack.knowledge import kdigo
from nephrotrack.models import (
    AlbuminuriaCategory,
    CKDStage,
    Classification,
    GFRCategory,
    RiskColor,
    RiskLevel,
)
from nephrotrack.utils import ClassificationError


def classify_gfr(egfr: float) -> tuple[GFRCategory, str]:
    """Classify GFR category (lower bound inclusive)."""
    for lower_bound, category, description in kdigo.GFR_THRESHOLDS:
        if egfr >= lower_bound:
            return GFRCategory(category), description
    category, description = kdigo.GFR_FLOOR
    return GFRCategory(category), description


def classify_albuminuria(uacr: float | None) -> tuple[AlbuminuriaCategory, str]:
    """
    Classify albuminuria category from uACR (mg/g).

    A missing uACR is treated as A1 ("not measured"), not as an error.
    """
    if uacr is None:
        return AlbuminuriaCategory.A1, kdigo.ALBUMINURIA_NOT_MEASURED

    if uacr < kdigo.ALBUMINURIA_A2_MIN:
        category = AlbuminuriaCategory.A1
    elif uacr <= kdigo.ALBUMINURIA_A3_ABOVE:
        category = AlbuminuriaCategory.A2
    else:
        category = AlbuminuriaCategory.A3
    return category, kdigo.ALBUMINURIA_DESCRIPTIONS[category.value]


def determine_risk_level(
    gfr_category: GFRCategory | str,
    albuminuria_category: AlbuminuriaCategory | str,
) -> tuple[RiskLevel, RiskColor]:
    """Look up the KDIGO heat-map cell for a category pair."""
    gfr = GFRCategory(gfr_category).value
    alb = AlbuminuriaCategory(albuminuria_category).value
    risk = RiskLevel(kdigo.RISK_MATRIX[gfr][alb])
    return risk, RiskColor(kdigo.RISK_COLORS[risk.value])


def determine_ckd_stage(
    gfr_category: GFRCategory | str,
    albuminuria_category: AlbuminuriaCategory | str,
) -> CKDStage:
    """
    Determine CKD stage.

    G1 and G2 only count as CKD when there is kidney damage (A2 or A3).
    """
    gfr = GFRCategory(gfr_category)
    alb = AlbuminuriaCategory(albuminuria_category)

    if gfr == GFRCategory.G1:
        if alb == AlbuminuriaCategory.A1:
            return CKDStage(stage=None, stage_name="Not CKD", is_ckd=False)
        return CKDStage(stage=1, stage_name="CKD Stage 1", is_ckd=True)

    if gfr == GFRCategory.G2:
        if alb == AlbuminuriaCategory.A1:
            return CKDStage(stage=None, stage_name="Not CKD (age-related decline)", is_ckd=False)
        return CKDStage(stage=2, stage_name="CKD Stage 2", is_ckd=True)

    stage, stage_name = kdigo.FIXED_STAGES[gfr.value]
    return CKDStage(stage=stage, stage_name=stage_name, is_ckd=True)


def get_monitoring_frequency(risk_level: RiskLevel | str) -> str:
    return kdigo.MONITORING_FREQUENCY.get(RiskLevel(risk_level).value, "As clinically indicated")


def requires_nephrology_referral(
    gfr_category: GFRCategory | str,
    albuminuria_category: AlbuminuriaCategory | str,
    risk_level: RiskLevel | str,
) -> bool:
    """Referral for G3b-G5, A3, or any very high risk cell."""
    return (
        GFRCategory(gfr_category).value in kdigo.REFERRAL_GFR_CATEGORIES
        or AlbuminuriaCategory(albuminuria_category) == AlbuminuriaCategory.A3
        or RiskLevel(risk_level) == RiskLevel.VERY_HIGH
    )


def get_blood_pressure_target(albuminuria_category: AlbuminuriaCategory | str) -> str:
    if AlbuminuriaCategory(albuminuria_category) == AlbuminuriaCategory.A1:
        return kdigo.BP_TARGET_NORMOALBUMINURIA
    return kdigo.BP_TARGET_ALBUMINURIA


def classify_kdigo(egfr: float | None, uacr: float | None = None) -> Classification:
    """
    Classify a patient's kidney health state.

    Args:
        egfr: Estimated GFR in mL/min/1.73m2. Mandatory.
        uacr: Urine albumin-to-creatinine ratio in mg/g, or None if not measured.

    Returns:
        The full KDIGO classification.

    Raises:
        ClassificationError: If egfr is missing or not a number, or uacr is
            given but not a number.
    """
    if egfr is None or isinstance(egfr, bool):
        raise ClassificationError("eGFR is required for KDIGO classification", details={"egfr": egfr})
    try:
        egfr = float(egfr)
    except (TypeError, ValueError) as exc:
        raise ClassificationError(f"eGFR is not numeric: {egfr!r}", details={"egfr": str(egfr)}) from exc
    if math.isnan(egfr):
        raise ClassificationError("eGFR is NaN", details={"egfr": "nan"})
    if uacr is not None:
        if isinstance(uacr, bool):
            raise ClassificationError(f"uACR is not numeric: {uacr!r}", details={"uacr": uacr})
        try:
            uacr = float(uacr)
        except (TypeError, ValueError) as exc:
            raise ClassificationError(f"uACR is not numeric: {uacr!r}", details={"uacr": str(uacr)}) from exc
        if math.isnan(uacr):
            raise ClassificationError("uACR is NaN", details={"uacr": "nan"})

    gfr_category, gfr_description = classify_gfr(egfr)
    alb_category, alb_description = classify_albuminuria(uacr)
    risk_level, risk_color = determine_risk_level(gfr_category, alb_category)
    stage = determine_ckd_stage(gfr_category, alb_category)
    albuminuric = alb_category != AlbuminuriaCategory.A1

    return Classification(
        gfr_category=gfr_category,
        gfr_value=egfr,
        gfr_description=gfr_description,
        albuminuria_category=alb_category,
        uacr_value=uacr,
        albuminuria_description=alb_description,
        health_state=f"{gfr_category.value}-{alb_category.value}",
        risk_level=risk_level,
        risk_color=risk_color,
        ckd_stage=stage.stage,
        ckd_stage_name=stage.stage_name,
        is_ckd=stage.is_ckd,
        monitoring_frequency=get_monitoring_frequency(risk_level),
        requires_nephrology_referral=requires_nephrology_referral(gfr_category, alb_category, risk_level),
        requires_dialysis_planning=gfr_category.value in kdigo.DIALYSIS_PLANNING_GFR_CATEGORIES,
        recommend_ras_inhibitor=albuminuric,
        recommend_sglt2i=albuminuric and egfr >= kdigo.SGLT2I_MIN_EGFR,
        target_bp=get_blood_pressure_target(alb_category),
    )
