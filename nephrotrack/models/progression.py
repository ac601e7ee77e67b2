"""
Progression tracking models.

Profiles hold a patient's hidden simulation parameters, cycles are the
successive synthetic follow-up measurements, and transitions, alerts and
recommendations are what the monitoring engine derives when a patient's
KDIGO state moves between two cycles.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import ConfigDict, Field, computed_field

from .kdigo import CamelModel, Classification


def generate_id() -> str:
    """Generate a unique identifier."""
    return str(uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# ENUMS
# =============================================================================


class ProgressionType(str, Enum):
    RAPID = "rapid"
    IMPROVING = "improving"
    PROGRESSIVE = "progressive"
    STABLE = "stable"


class ChangeType(str, Enum):
    IMPROVED = "improved"
    WORSENED = "worsened"
    STABLE = "stable"


class GFRTrend(str, Enum):
    IMPROVING = "improving"
    STABLE = "stable"
    DECLINING = "declining"


class UACRTrend(str, Enum):
    IMPROVING = "improving"
    STABLE = "stable"
    WORSENING = "worsening"
    UNKNOWN = "unknown"


class AlertSeverity(str, Enum):
    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"

    @property
    def rank(self) -> int:
        """Higher is more severe."""
        return {"info": 0, "warning": 1, "critical": 2}[self.value]

    @property
    def priority(self) -> int:
        """Alert priority, 1 being most urgent."""
        return 3 - self.rank


class AlertStatus(str, Enum):
    ACTIVE = "active"
    ACKNOWLEDGED = "acknowledged"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"


class RecommendationType(str, Enum):
    REFERRAL = "referral"
    TREATMENT = "treatment"
    MONITORING = "monitoring"


class RecommendationCategory(str, Enum):
    REFERRAL = "referral"
    MEDICATION = "medication"
    MONITORING = "monitoring"
    DIALYSIS_PLANNING = "dialysis_planning"


class Urgency(str, Enum):
    URGENT = "urgent"
    SEMI_URGENT = "semi_urgent"
    ROUTINE = "routine"


class RecommendationStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    DECLINED = "declined"
    COMPLETED = "completed"


# =============================================================================
# STORAGE INPUTS
# =============================================================================


class LabValues(CamelModel):
    """Most recent lab values known for a patient."""
    egfr: float | None = None
    uacr: float | None = None


class TreatmentContext(CamelModel):
    """Kidney-protective therapy the patient is already on."""
    on_ras_inhibitor: bool = False
    on_sglt2i: bool = False


# =============================================================================
# PROFILE & CYCLE
# =============================================================================


class ProgressionProfile(CamelModel):
    """
    Hidden per-patient trajectory parameters.

    Created once per patient and never modified afterwards.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=generate_id)
    patient_id: str
    progression_type: ProgressionType
    baseline_egfr: float
    baseline_uacr: float
    egfr_rate: float  # eGFR units per month
    uacr_rate: float  # fractional uACR change per month
    created_at: datetime = Field(default_factory=utcnow)


class Cycle(CamelModel):
    """One simulated follow-up assessment (cycle 0 is the baseline)."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=generate_id)
    patient_id: str
    cycle_number: int = Field(..., ge=0)
    egfr_value: float
    uacr_value: float | None = None
    classification: Classification
    measured_at: datetime = Field(default_factory=utcnow)

    @property
    def health_state(self) -> str:
        return self.classification.health_state


# =============================================================================
# TRANSITIONS & ALERTS
# =============================================================================


class AlertReason(CamelModel):
    """A single alert trigger, tagged with its severity when it fires."""
    code: str
    text: str
    severity: AlertSeverity


class StateComparison(CamelModel):
    """Outcome of comparing two successive classifications."""
    has_changed: bool
    change_type: ChangeType
    gfr_change: float
    gfr_trend: GFRTrend
    uacr_change: float | None = None
    uacr_trend: UACRTrend = UACRTrend.UNKNOWN
    category_changed: bool = False
    risk_changed: bool = False
    risk_increased: bool = False
    crossed_critical_threshold: bool = False
    reasons: list[AlertReason] = Field(default_factory=list)

    @computed_field
    @property
    def needs_alert(self) -> bool:
        return bool(self.reasons)

    @computed_field
    @property
    def alert_severity(self) -> AlertSeverity | None:
        if not self.reasons:
            return None
        return max((r.severity for r in self.reasons), key=lambda s: s.rank)


class Transition(CamelModel):
    """A meaningful change between two consecutive cycles."""
    id: str = Field(default_factory=generate_id)
    patient_id: str
    from_cycle: int
    to_cycle: int
    from_classification: Classification
    to_classification: Classification
    change_type: ChangeType
    egfr_change: float
    uacr_change: float | None = None
    gfr_trend: GFRTrend
    uacr_trend: UACRTrend = UACRTrend.UNKNOWN
    category_changed: bool = False
    risk_increased: bool = False
    crossed_critical_threshold: bool = False
    alert_generated: bool = False
    alert_severity: AlertSeverity | None = None
    transition_date: datetime = Field(default_factory=utcnow)

    @property
    def from_health_state(self) -> str:
        return self.from_classification.health_state

    @property
    def to_health_state(self) -> str:
        return self.to_classification.health_state


class Alert(CamelModel):
    """Monitoring alert raised for a transition."""
    id: str = Field(default_factory=generate_id)
    patient_id: str
    transition_id: str | None = None
    alert_type: str
    severity: AlertSeverity
    priority: int = Field(..., ge=1, le=3)
    title: str
    message: str
    reasons: list[AlertReason] = Field(default_factory=list)
    requires_action: bool = False
    status: AlertStatus = AlertStatus.ACTIVE
    previous_health_state: str | None = None
    current_health_state: str | None = None
    egfr_value: float | None = None
    uacr_value: float | None = None
    generated_at: datetime = Field(default_factory=utcnow)


class Recommendation(CamelModel):
    """Suggested clinical action derived from the current KDIGO state."""
    id: str = Field(default_factory=generate_id)
    patient_id: str
    alert_id: str | None = None
    transition_id: str | None = None
    recommendation_type: RecommendationType
    category: RecommendationCategory
    title: str
    description: str
    rationale: str
    priority: int = Field(..., ge=1, le=3)
    urgency: Urgency
    timeframe: str
    based_on_health_state: str | None = None
    based_on_risk_level: str | None = None
    triggered_by: list[str] = Field(default_factory=list)
    action_items: dict[str, Any] = Field(default_factory=dict)
    status: RecommendationStatus = RecommendationStatus.PENDING
    generated_at: datetime = Field(default_factory=utcnow)


# =============================================================================
# RESULTS
# =============================================================================


class TransitionDetails(CamelModel):
    from_state: str
    to_state: str
    change_type: ChangeType
    alert_generated: bool
    alert_severity: AlertSeverity | None = None


class CycleResult(CamelModel):
    """
    What initialize_baseline / generate_next hand back to callers.

    The cycle and transition fields describe the stored record and are the
    same on every replay. recommendations_generated and alert_failures count
    the writes made by this call only, so a plain replay reports zero.
    """
    cycle_number: int
    egfr_value: float
    uacr_value: float | None = None
    classification: Classification
    measured_at: datetime
    transition_detected: bool = False
    transition_details: TransitionDetails | None = None
    recommendations_generated: int = 0
    alert_failures: int = 0  # secondary writes that failed and were logged

    @classmethod
    def from_cycle(
        cls,
        cycle: Cycle,
        transition: Transition | None = None,
        **kwargs: Any,
    ) -> CycleResult:
        details = None
        if transition is not None:
            details = TransitionDetails(
                from_state=transition.from_health_state,
                to_state=transition.to_health_state,
                change_type=transition.change_type,
                alert_generated=transition.alert_generated,
                alert_severity=transition.alert_severity,
            )
        return cls(
            cycle_number=cycle.cycle_number,
            egfr_value=cycle.egfr_value,
            uacr_value=cycle.uacr_value,
            classification=cycle.classification,
            measured_at=cycle.measured_at,
            transition_detected=transition is not None,
            transition_details=details,
            **kwargs,
        )


class ProgressionSummary(CamelModel):
    """A patient's recorded timeline with alert and recommendation status."""
    patient_id: str
    profile: ProgressionProfile | None = None
    cycles: list[Cycle] = Field(default_factory=list)
    transitions: list[Transition] = Field(default_factory=list)
    active_alerts: list[Alert] = Field(default_factory=list)
    pending_recommendations: list[Recommendation] = Field(default_factory=list)

    @computed_field
    @property
    def total_measurements(self) -> int:
        return len(self.cycles)

    @computed_field
    @property
    def total_transitions(self) -> int:
        return len(self.transitions)

    @computed_field
    @property
    def baseline_state(self) -> str | None:
        return self.cycles[0].health_state if self.cycles else None

    @computed_field
    @property
    def current_state(self) -> str | None:
        return self.cycles[-1].health_state if self.cycles else None
