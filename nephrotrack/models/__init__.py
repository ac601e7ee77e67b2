"""
Data models for NephroTrack.
"""

from .kdigo import (
    AlbuminuriaCategory,
    CKDStage,
    CamelModel,
    Classification,
    GFRCategory,
    RISK_ORDER,
    RiskColor,
    RiskLevel,
)
from .progression import (
    Alert,
    AlertReason,
    AlertSeverity,
    AlertStatus,
    ChangeType,
    Cycle,
    CycleResult,
    GFRTrend,
    LabValues,
    ProgressionProfile,
    ProgressionSummary,
    ProgressionType,
    Recommendation,
    RecommendationCategory,
    RecommendationStatus,
    RecommendationType,
    StateComparison,
    Transition,
    TransitionDetails,
    TreatmentContext,
    UACRTrend,
    Urgency,
    generate_id,
    utcnow,
)

__all__ = [
    "AlbuminuriaCategory",
    "CKDStage",
    "CamelModel",
    "Classification",
    "GFRCategory",
    "RISK_ORDER",
    "RiskColor",
    "RiskLevel",
    "Alert",
    "AlertReason",
    "AlertSeverity",
    "AlertStatus",
    "ChangeType",
    "Cycle",
    "CycleResult",
    "GFRTrend",
    "LabValues",
    "ProgressionProfile",
    "ProgressionSummary",
    "ProgressionType",
    "Recommendation",
    "RecommendationCategory",
    "RecommendationStatus",
    "RecommendationType",
    "StateComparison",
    "Transition",
    "TransitionDetails",
    "TreatmentContext",
    "UACRTrend",
    "Urgency",
    "generate_id",
    "utcnow",
]
