"""
Tests for alert and recommendation derivation.
"""

import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest


class TestAlertTypes:

    @pytest.mark.parametrize("values,expected", [
        ((20, 10, 12, 10), "kidney_failure"),
        ((35, 10, 25, 10), "stage_4_ckd"),
        ((70, 250, 70, 320), "threshold_crossed"),
        ((50, 10, 42, 10), "declining_function"),
        ((62, 10, 58, 10), "declining_function"),
    ])
    def test_alert_type(self, make_transition, values, expected):
        from nephrotrack.engines.alerts import determine_alert_type

        transition, _ = make_transition(*values)
        assert determine_alert_type(transition) == expected


class TestBuildAlert:

    def test_critical_alert(self, make_transition):
        from nephrotrack.engines import AlertEngine

        transition, comparison = make_transition(32, 10, 25, 10)
        alert = AlertEngine().build_alert(transition, comparison)

        assert alert.severity.value == "critical"
        assert alert.priority == 1
        assert alert.requires_action is True
        assert alert.title == "Health State Transition: G3b-A1 → G4-A1"
        assert alert.previous_health_state == "G3b-A1"
        assert alert.current_health_state == "G4-A1"
        assert alert.egfr_value == 25
        assert alert.transition_id == transition.id
        assert "IMMEDIATE ACTION REQUIRED" in alert.message
        assert "[CRITICAL] eGFR dropped below 30 - Stage 4 CKD" in alert.message

    def test_warning_alert(self, make_transition):
        from nephrotrack.engines import AlertEngine

        transition, comparison = make_transition(62, 10, 58, 10)
        alert = AlertEngine().build_alert(transition, comparison)

        assert alert.severity.value == "warning"
        assert alert.priority == 2
        assert "CLINICAL REVIEW RECOMMENDED" in alert.message
        assert "ALBUMINURIA STATUS:" in alert.message

    def test_message_without_uacr(self, make_transition):
        from nephrotrack.engines import AlertEngine

        transition, comparison = make_transition(50, None, 40, None)
        alert = AlertEngine().build_alert(transition, comparison)
        assert "ALBUMINURIA STATUS:" not in alert.message
        assert "- Current eGFR: 40.0 mL/min/1.73m2" in alert.message

    def test_no_reasons(self, make_transition):
        from nephrotrack.engines import AlertEngine

        transition, comparison = make_transition(50, 100, 62, 100)
        with pytest.raises(ValueError):
            AlertEngine().build_alert(transition, comparison)


class TestRecommendations:

    def test_advanced_ckd(self, make_transition):
        from nephrotrack.engines import AlertEngine

        transition, _ = make_transition(35, 400, 20, 400)
        recs = AlertEngine().build_recommendations(transition, transition.to_classification)

        assert [r.title for r in recs] == [
            "Nephrology Referral Required",
            "Initiate RAS Inhibitor Therapy",
            "Consider SGLT2 Inhibitor Therapy",
            "Increase Monitoring Frequency to Every 1-3 months",
            "Initiate Dialysis Access Planning",
        ]

        referral, ras, sglt2i, monitoring, dialysis = recs
        assert referral.priority == 1
        assert referral.urgency.value == "urgent"
        assert referral.timeframe == "Within 2 weeks"
        assert ras.priority == 1
        assert ras.category.value == "medication"
        assert ras.recommendation_type.value == "treatment"
        assert ras.action_items["target_bp"] == "<130/80 mmHg"
        assert sglt2i.priority == 2
        assert sglt2i.urgency.value == "routine"
        assert monitoring.priority == 3
        assert monitoring.category.value == "monitoring"
        assert dialysis.category.value == "dialysis_planning"
        assert dialysis.recommendation_type.value == "referral"
        assert dialysis.timeframe == "Immediate"

    def test_existing_therapy_is_not_recommended(self, make_transition):
        from nephrotrack.engines import AlertEngine
        from nephrotrack.models import TreatmentContext

        transition, _ = make_transition(35, 400, 20, 400)
        treatment = TreatmentContext(on_ras_inhibitor=True, on_sglt2i=True)
        recs = AlertEngine().build_recommendations(transition, transition.to_classification, treatment)

        assert [r.category.value for r in recs] == ["referral", "monitoring", "dialysis_planning"]

    def test_missing_uacr(self, make_transition):
        from nephrotrack.engines import AlertEngine

        transition, _ = make_transition(50, None, 40, None)
        recs = AlertEngine().build_recommendations(transition, transition.to_classification, alert_id="a1")

        assert [r.title for r in recs] == [
            "Nephrology Referral Required",
            "Initiate uACR Monitoring",
            "Increase Monitoring Frequency to Every 3-6 months",
        ]
        assert recs[0].priority == 2
        assert recs[0].urgency.value == "semi_urgent"
        assert recs[0].timeframe == "Within 1-2 months"
        assert all(r.alert_id == "a1" for r in recs)
        assert all(r.based_on_health_state == "G3b-A1" for r in recs)

    def test_moderate_albuminuria(self, make_transition):
        from nephrotrack.engines import AlertEngine

        transition, _ = make_transition(70, 25, 70, 60)
        recs = AlertEngine().build_recommendations(transition, transition.to_classification)
        ras = recs[0]
        assert ras.title == "Initiate RAS Inhibitor Therapy"
        assert ras.priority == 2
        assert ras.urgency.value == "semi_urgent"

    def test_improvement_gets_no_monitoring_increase(self, make_transition):
        from nephrotrack.engines import AlertEngine

        transition, _ = make_transition(95, 10, 120, 10)
        assert AlertEngine().build_recommendations(transition, transition.to_classification) == []
