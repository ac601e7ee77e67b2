"""
Alert and recommendation derivation.

Turns a detected transition into a monitoring alert and a set of
KDIGO-guided action recommendations. Nothing here touches storage; the
cycle generator persists what this engine builds.
"""

from __future__ import annotations

from nephrotrack.knowledge import kdigo
from nephrotrack.models import (
    Alert,
    AlertSeverity,
    ChangeType,
    Classification,
    GFRCategory,
    Recommendation,
    RecommendationCategory,
    RecommendationType,
    StateComparison,
    Transition,
    TreatmentContext,
    Urgency,
)

ACTION_FOOTERS = {
    AlertSeverity.CRITICAL: (
        "IMMEDIATE ACTION REQUIRED\n"
        "This patient requires urgent clinical review and intervention.\n"
    ),
    AlertSeverity.WARNING: (
        "CLINICAL REVIEW RECOMMENDED\n"
        "Please evaluate this patient at next available appointment.\n"
    ),
}


def determine_alert_type(transition: Transition) -> str:
    """Classify the alert by its most serious characteristic."""
    if transition.to_classification.gfr_value < kdigo.EGFR_KIDNEY_FAILURE_FLOOR:
        return "kidney_failure"
    if (
        transition.to_classification.gfr_value < kdigo.EGFR_STAGE_4_FLOOR
        and transition.from_classification.gfr_value >= kdigo.EGFR_STAGE_4_FLOOR
    ):
        return "stage_4_ckd"
    if transition.crossed_critical_threshold:
        return "threshold_crossed"
    if transition.change_type == ChangeType.WORSENED:
        return "declining_function"
    if transition.from_health_state != transition.to_health_state:
        return "state_change"
    return "status_update"


def build_alert_message(transition: Transition, comparison: StateComparison) -> str:
    previous = transition.from_classification
    current = transition.to_classification

    lines = [
        "KIDNEY FUNCTION STATUS:",
        f"- Current eGFR: {current.gfr_value:.1f} mL/min/1.73m2",
        f"- Previous eGFR: {previous.gfr_value:.1f} mL/min/1.73m2",
        f"- Change: {transition.egfr_change:.1f} mL/min/1.73m2",
        "",
    ]

    if current.uacr_value is not None and previous.uacr_value is not None:
        lines += [
            "ALBUMINURIA STATUS:",
            f"- Current uACR: {current.uacr_value:.1f} mg/g",
            f"- Previous uACR: {previous.uacr_value:.1f} mg/g",
            f"- Change: {current.uacr_value - previous.uacr_value:.1f} mg/g",
            "",
        ]

    lines += [
        "KDIGO CLASSIFICATION:",
        f"- From: {previous.health_state} ({previous.risk_level.value} risk)",
        f"- To: {current.health_state} ({current.risk_level.value} risk)",
        f"- Trend: {transition.change_type.value.upper()}",
        "",
    ]

    if comparison.reasons:
        lines.append("ALERT REASONS:")
        lines += [f"- [{r.severity.value.upper()}] {r.text}" for r in comparison.reasons]
        lines.append("")

    message = "\n".join(lines) + "\n"
    severity = comparison.alert_severity
    if severity in ACTION_FOOTERS:
        message += ACTION_FOOTERS[severity]
    return message


class AlertEngine:
    """Derives alerts and recommendations from transitions."""

    def build_alert(self, transition: Transition, comparison: StateComparison) -> Alert:
        """
        Build the alert for a transition that needs one.

        Severity comes from the reason tags, never from the reason text.
        """
        severity = comparison.alert_severity
        if severity is None:
            raise ValueError("Transition has no alert reasons")

        return Alert(
            patient_id=transition.patient_id,
            transition_id=transition.id,
            alert_type=determine_alert_type(transition),
            severity=severity,
            priority=severity.priority,
            title=f"Health State Transition: {transition.from_health_state} → {transition.to_health_state}",
            message=build_alert_message(transition, comparison),
            reasons=list(comparison.reasons),
            requires_action=severity in (AlertSeverity.CRITICAL, AlertSeverity.WARNING),
            previous_health_state=transition.from_health_state,
            current_health_state=transition.to_health_state,
            egfr_value=transition.to_classification.gfr_value,
            uacr_value=transition.to_classification.uacr_value,
        )

    def build_recommendations(
        self,
        transition: Transition,
        classification: Classification,
        treatment: TreatmentContext | None = None,
        alert_id: str | None = None,
    ) -> list[Recommendation]:
        """
        Build recommendations based on KDIGO guidelines.

        Args:
            transition: The transition that triggered the alert
            classification: The patient's current classification
            treatment: Therapies the patient is already on
            alert_id: Alert to link the recommendations to, if persisted

        Returns:
            Recommendations in a fixed order; may be empty.
        """
        treatment = treatment or TreatmentContext()
        egfr = classification.gfr_value
        uacr = classification.uacr_value
        advanced = classification.ckd_stage is not None and classification.ckd_stage >= 4

        common = {
            "patient_id": transition.patient_id,
            "alert_id": alert_id,
            "transition_id": transition.id,
            "based_on_health_state": classification.health_state,
            "based_on_risk_level": classification.risk_level.value,
        }
        recommendations: list[Recommendation] = []

        if classification.requires_nephrology_referral:
            recommendations.append(Recommendation(
                **common,
                recommendation_type=RecommendationType.REFERRAL,
                category=RecommendationCategory.REFERRAL,
                title="Nephrology Referral Required",
                description="Refer patient to nephrology for specialized CKD management",
                rationale=(
                    f"Patient's current state ({classification.health_state}, eGFR {egfr:.1f} mL/min) "
                    f"requires nephrology expertise. KDIGO guidelines recommend specialist involvement "
                    f"for {classification.gfr_category.value} and/or {classification.albuminuria_category.value}."
                ),
                priority=1 if advanced else 2,
                urgency=Urgency.URGENT if advanced else Urgency.SEMI_URGENT,
                timeframe="Within 2 weeks" if advanced else "Within 1-2 months",
                triggered_by=[f"eGFR {egfr:.1f} mL/min", classification.health_state],
                action_items={
                    "referrals": ["nephrology"],
                    "urgency_level": "urgent" if advanced else "routine",
                },
            ))

        if uacr is None and classification.gfr_category != GFRCategory.G1:
            recommendations.append(Recommendation(
                **common,
                recommendation_type=RecommendationType.MONITORING,
                category=RecommendationCategory.MONITORING,
                title="Initiate uACR Monitoring",
                description="Begin monitoring urine albumin-to-creatinine ratio",
                rationale=(
                    f"Patient has reduced eGFR ({egfr:.1f} mL/min, {classification.gfr_category.value}) "
                    "but no albuminuria data. uACR is needed for accurate KDIGO risk stratification."
                ),
                priority=2,
                urgency=Urgency.SEMI_URGENT,
                timeframe="At next visit",
                triggered_by=["Missing uACR measurement", classification.gfr_category.value],
                action_items={
                    "lab_tests": ["uACR", "urinalysis"],
                    "frequency": "Every 3-6 months initially",
                },
            ))

        if classification.recommend_ras_inhibitor and not treatment.on_ras_inhibitor:
            severe = uacr is not None and uacr > kdigo.ALBUMINURIA_A3_ABOVE
            recommendations.append(Recommendation(
                **common,
                recommendation_type=RecommendationType.TREATMENT,
                category=RecommendationCategory.MEDICATION,
                title="Initiate RAS Inhibitor Therapy",
                description="Start ACE inhibitor or ARB for kidney protection",
                rationale=(
                    f"Patient has {classification.albuminuria_category.value} (uACR {uacr:.1f} mg/g). "
                    "KDIGO guidelines recommend RAS inhibition for albuminuria >=30 mg/g "
                    "to slow CKD progression."
                ),
                priority=1 if severe else 2,
                urgency=Urgency.URGENT if severe else Urgency.SEMI_URGENT,
                timeframe="Within 1-2 weeks",
                triggered_by=[f"uACR {uacr:.1f} mg/g", classification.albuminuria_category.value],
                action_items={
                    "medications": {
                        "start": [
                            "ACE inhibitor (e.g., lisinopril)",
                            "ARB (e.g., losartan) - if ACE-I not tolerated",
                        ],
                        "monitoring": ["Serum creatinine", "potassium", "blood pressure"],
                    },
                    "target_bp": classification.target_bp,
                },
            ))

        if classification.recommend_sglt2i and not treatment.on_sglt2i:
            recommendations.append(Recommendation(
                **common,
                recommendation_type=RecommendationType.TREATMENT,
                category=RecommendationCategory.MEDICATION,
                title="Consider SGLT2 Inhibitor Therapy",
                description="Add SGLT2 inhibitor for additional kidney protection",
                rationale=(
                    f"eGFR {egfr:.1f} mL/min (>= {kdigo.SGLT2I_MIN_EGFR:.0f}) with "
                    f"{classification.albuminuria_category.value} albuminuria. SGLT2 inhibitors "
                    "(e.g., empagliflozin, dapagliflozin) provide significant kidney protection."
                ),
                priority=2,
                urgency=Urgency.ROUTINE,
                timeframe="Within 1-3 months",
                triggered_by=[classification.health_state, "Albuminuria present"],
                action_items={
                    "medications": {
                        "start": ["SGLT2 inhibitor (empagliflozin 10mg or dapagliflozin 10mg)"],
                        "contraindications_check": ["eGFR <20", "Type 1 diabetes", "DKA risk"],
                    },
                },
            ))

        if transition.change_type == ChangeType.WORSENED:
            frequency = classification.monitoring_frequency
            recommendations.append(Recommendation(
                **common,
                recommendation_type=RecommendationType.MONITORING,
                category=RecommendationCategory.MONITORING,
                title=f"Increase Monitoring Frequency to {frequency}",
                description="More frequent lab monitoring due to declining kidney function",
                rationale=(
                    f"Patient's kidney function is declining (eGFR change: {transition.egfr_change:.1f} mL/min). "
                    f"KDIGO recommends monitoring {frequency.lower()} for "
                    f"{classification.risk_level.value} risk patients."
                ),
                priority=3,
                urgency=Urgency.ROUTINE,
                timeframe=frequency,
                triggered_by=[transition.change_type.value, classification.risk_level.value],
                action_items={
                    "lab_tests": ["eGFR", "serum creatinine", "uACR"],
                    "frequency": frequency,
                },
            ))

        if classification.requires_dialysis_planning:
            recommendations.append(Recommendation(
                **common,
                recommendation_type=RecommendationType.REFERRAL,
                category=RecommendationCategory.DIALYSIS_PLANNING,
                title="Initiate Dialysis Access Planning",
                description="Begin planning for renal replacement therapy",
                rationale=(
                    f"Patient has advanced CKD (Stage {classification.ckd_stage}, eGFR {egfr:.1f} mL/min). "
                    "Dialysis access creation should begin before it is urgently needed."
                ),
                priority=1,
                urgency=Urgency.URGENT,
                timeframe="Immediate",
                triggered_by=[f"eGFR {egfr:.1f} mL/min", f"CKD Stage {classification.ckd_stage}"],
                action_items={
                    "referrals": ["vascular surgery - AV fistula evaluation", "transplant center"],
                    "education": ["Dialysis options", "transplant evaluation"],
                    "social_work": ["Financial counseling", "transportation planning"],
                },
            ))

        return recommendations
