"""
Tests for the KDIGO classifier.
"""

import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest


class TestGFRCategories:
    """GFR thresholds are lower-bound inclusive."""

    @pytest.mark.parametrize("egfr,expected", [
        (120.0, "G1"),
        (90.0, "G1"),
        (89.99, "G2"),
        (60.0, "G2"),
        (59.9, "G3a"),
        (45.0, "G3a"),
        (44.9, "G3b"),
        (30.0, "G3b"),
        (29.9, "G4"),
        (15.0, "G4"),
        (14.9, "G5"),
        (0.0, "G5"),
    ])
    def test_boundaries(self, egfr, expected):
        from nephrotrack.engines import classify_gfr

        category, description = classify_gfr(egfr)
        assert category.value == expected
        assert description


class TestAlbuminuriaCategories:

    @pytest.mark.parametrize("uacr,expected", [
        (0.0, "A1"),
        (29.9, "A1"),
        (30.0, "A2"),
        (300.0, "A2"),
        (300.1, "A3"),
        (1200.0, "A3"),
    ])
    def test_boundaries(self, uacr, expected):
        from nephrotrack.engines import classify_albuminuria

        category, _ = classify_albuminuria(uacr)
        assert category.value == expected

    def test_missing_uacr_is_a1_not_measured(self):
        from nephrotrack.engines import classify_albuminuria

        category, description = classify_albuminuria(None)
        assert category.value == "A1"
        assert "not measured" in description


class TestRiskMatrix:
    """All 18 cells of the KDIGO heat map."""

    @pytest.mark.parametrize("gfr,alb,expected", [
        ("G1", "A1", "low"), ("G1", "A2", "moderate"), ("G1", "A3", "high"),
        ("G2", "A1", "low"), ("G2", "A2", "moderate"), ("G2", "A3", "high"),
        ("G3a", "A1", "moderate"), ("G3a", "A2", "high"), ("G3a", "A3", "very_high"),
        ("G3b", "A1", "high"), ("G3b", "A2", "very_high"), ("G3b", "A3", "very_high"),
        ("G4", "A1", "very_high"), ("G4", "A2", "very_high"), ("G4", "A3", "very_high"),
        ("G5", "A1", "very_high"), ("G5", "A2", "very_high"), ("G5", "A3", "very_high"),
    ])
    def test_cell(self, gfr, alb, expected):
        from nephrotrack.engines import determine_risk_level

        risk, color = determine_risk_level(gfr, alb)
        assert risk.value == expected
        assert color.value == {"low": "green", "moderate": "yellow", "high": "orange", "very_high": "red"}[expected]


class TestCKDStage:

    def test_g1_g2_need_albuminuria(self):
        from nephrotrack.engines import determine_ckd_stage

        assert determine_ckd_stage("G1", "A1").is_ckd is False
        assert determine_ckd_stage("G2", "A1").stage is None
        assert determine_ckd_stage("G1", "A2").stage == 1
        assert determine_ckd_stage("G2", "A3").stage == 2

    def test_fixed_stages(self):
        from nephrotrack.engines import determine_ckd_stage

        g3a = determine_ckd_stage("G3a", "A1")
        assert g3a.stage == 3
        assert g3a.substage == "3a"
        assert determine_ckd_stage("G3b", "A1").substage == "3b"
        assert determine_ckd_stage("G4", "A1").stage == 4
        assert determine_ckd_stage("G5", "A2").stage == 5
        assert determine_ckd_stage("G5", "A2").stage_name == "CKD Stage 5 (ESRD)"


class TestClassifyKDIGO:

    def test_g3a_a2_example(self):
        from nephrotrack.engines import classify_kdigo

        c = classify_kdigo(59.9, 31)
        assert c.health_state == "G3a-A2"
        assert c.risk_level.value == "high"
        assert c.ckd_stage == 3
        assert c.ckd_stage_name == "CKD Stage 3a"
        assert c.is_ckd is True
        assert c.monitoring_frequency == "Every 3-6 months"
        assert c.requires_nephrology_referral is False
        assert c.requires_dialysis_planning is False
        assert c.recommend_ras_inhibitor is True
        assert c.recommend_sglt2i is True
        assert c.target_bp == "<130/80 mmHg"

    def test_healthy(self):
        from nephrotrack.engines import classify_kdigo

        c = classify_kdigo(95, 10)
        assert c.health_state == "G1-A1"
        assert c.is_ckd is False
        assert c.monitoring_frequency == "Annually"
        assert c.recommend_ras_inhibitor is False
        assert c.target_bp == "<140/90 mmHg"

    def test_missing_uacr(self):
        from nephrotrack.engines import classify_kdigo

        c = classify_kdigo(40)
        assert c.health_state == "G3b-A1"
        assert c.uacr_value is None
        assert c.requires_nephrology_referral is True

    def test_referral_for_a3_at_any_gfr(self):
        from nephrotrack.engines import classify_kdigo

        assert classify_kdigo(95, 400).requires_nephrology_referral is True

    def test_sglt2i_needs_egfr_20(self):
        from nephrotrack.engines import classify_kdigo

        assert classify_kdigo(20, 50).recommend_sglt2i is True
        assert classify_kdigo(19.9, 50).recommend_sglt2i is False
        assert classify_kdigo(19.9, 50).recommend_ras_inhibitor is True

    def test_dialysis_planning(self):
        from nephrotrack.engines import classify_kdigo

        assert classify_kdigo(25, 10).requires_dialysis_planning is True
        assert classify_kdigo(10, 10).requires_dialysis_planning is True
        assert classify_kdigo(30, 10).requires_dialysis_planning is False

    @pytest.mark.parametrize("bad", [None, "abc", float("nan"), True])
    def test_invalid_egfr(self, bad):
        from nephrotrack.engines import classify_kdigo
        from nephrotrack.utils import ClassificationError

        with pytest.raises(ClassificationError) as exc_info:
            classify_kdigo(bad, 10)
        assert exc_info.value.code == "CLASSIFICATION_ERROR"

    @pytest.mark.parametrize("bad", ["abc", float("nan"), True])
    def test_invalid_uacr(self, bad):
        from nephrotrack.engines import classify_kdigo
        from nephrotrack.utils import ClassificationError

        with pytest.raises(ClassificationError) as exc_info:
            classify_kdigo(70.0, bad)
        assert exc_info.value.code == "CLASSIFICATION_ERROR"

    def test_camel_case_serialization(self):
        from nephrotrack.engines import classify_kdigo

        data = classify_kdigo(59.9, 31).model_dump(by_alias=True)
        assert data["healthState"] == "G3a-A2"
        assert data["recommendRASInhibitor"] is True
        assert data["recommendSGLT2i"] is True
        assert data["targetBP"] == "<130/80 mmHg"
