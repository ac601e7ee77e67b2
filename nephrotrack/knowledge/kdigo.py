"""
KDIGO CKD reference tables.

References:
- KDIGO 2024 Clinical Practice Guideline for the Evaluation and Management of CKD
- KDIGO 2012 CKD Classification and Risk Assessment

GFR thresholds are lower-bound inclusive (eGFR 60.0 is G2, 59.9 is G3a).
Albuminuria thresholds: < 30 is A1, 30-300 inclusive is A2, > 300 is A3.
"""

from __future__ import annotations

# (lower bound, category, description), highest first
GFR_THRESHOLDS: list[tuple[float, str, str]] = [
    (90.0, "G1", "Normal or high kidney function"),
    (60.0, "G2", "Mildly decreased kidney function"),
    (45.0, "G3a", "Mild to moderate decrease"),
    (30.0, "G3b", "Moderate to severe decrease"),
    (15.0, "G4", "Severely decreased kidney function"),
]
GFR_FLOOR: tuple[str, str] = ("G5", "Kidney failure (ESRD)")

ALBUMINURIA_A2_MIN = 30.0
ALBUMINURIA_A3_ABOVE = 300.0

ALBUMINURIA_DESCRIPTIONS: dict[str, str] = {
    "A1": "Normal to mildly increased",
    "A2": "Moderately increased (microalbuminuria)",
    "A3": "Severely increased (macroalbuminuria)",
}
ALBUMINURIA_NOT_MEASURED = "Normal to mildly increased (not measured)"

# Rows: GFR category, columns: albuminuria category
RISK_MATRIX: dict[str, dict[str, str]] = {
    "G1": {"A1": "low", "A2": "moderate", "A3": "high"},
    "G2": {"A1": "low", "A2": "moderate", "A3": "high"},
    "G3a": {"A1": "moderate", "A2": "high", "A3": "very_high"},
    "G3b": {"A1": "high", "A2": "very_high", "A3": "very_high"},
    "G4": {"A1": "very_high", "A2": "very_high", "A3": "very_high"},
    "G5": {"A1": "very_high", "A2": "very_high", "A3": "very_high"},
}

RISK_COLORS: dict[str, str] = {
    "low": "green",
    "moderate": "yellow",
    "high": "orange",
    "very_high": "red",
}

MONITORING_FREQUENCY: dict[str, str] = {
    "low": "Annually",
    "moderate": "Every 6-12 months",
    "high": "Every 3-6 months",
    "very_high": "Every 1-3 months",
}

# GFR categories with a fixed stage regardless of albuminuria
FIXED_STAGES: dict[str, tuple[int, str]] = {
    "G3a": (3, "CKD Stage 3a"),
    "G3b": (3, "CKD Stage 3b"),
    "G4": (4, "CKD Stage 4"),
    "G5": (5, "CKD Stage 5 (ESRD)"),
}

REFERRAL_GFR_CATEGORIES = {"G3b", "G4", "G5"}
DIALYSIS_PLANNING_GFR_CATEGORIES = {"G4", "G5"}
SGLT2I_MIN_EGFR = 20.0

BP_TARGET_NORMOALBUMINURIA = "<140/90 mmHg"
BP_TARGET_ALBUMINURIA = "<130/80 mmHg"

# Hard eGFR floors whose crossing is always critical
EGFR_STAGE_4_FLOOR = 30.0
EGFR_KIDNEY_FAILURE_FLOOR = 15.0
