"""
KDIGO classification models.

These Pydantic models describe a single kidney health snapshot: the GFR and
albuminuria categories derived from one pair of lab values, the combined
risk level, and the care flags that follow from them.

Attribute names are snake_case; serialise with ``by_alias=True`` to get the
camelCase field names consumers of the timeline rely on.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# =============================================================================
# ENUMS
# =============================================================================


class GFRCategory(str, Enum):
    G1 = "G1"    # >= 90
    G2 = "G2"    # 60-89
    G3A = "G3a"  # 45-59
    G3B = "G3b"  # 30-44
    G4 = "G4"    # 15-29
    G5 = "G5"    # < 15


class AlbuminuriaCategory(str, Enum):
    A1 = "A1"  # < 30 mg/g
    A2 = "A2"  # 30-300 mg/g
    A3 = "A3"  # > 300 mg/g


class RiskLevel(str, Enum):
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"
    VERY_HIGH = "very_high"

    @property
    def ordinal(self) -> int:
        return RISK_ORDER.index(self)


RISK_ORDER = [RiskLevel.LOW, RiskLevel.MODERATE, RiskLevel.HIGH, RiskLevel.VERY_HIGH]


class RiskColor(str, Enum):
    GREEN = "green"
    YELLOW = "yellow"
    ORANGE = "orange"
    RED = "red"


# =============================================================================
# CLASSIFICATION
# =============================================================================


class CamelModel(BaseModel):
    """Base for records that are exchanged with camelCase consumers."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CKDStage(BaseModel):
    """CKD stage derived from the two KDIGO categories."""
    stage: int | None
    stage_name: str
    is_ckd: bool

    @property
    def substage(self) -> str | None:
        """'3a' / '3b' for stage 3, otherwise the plain stage number."""
        if self.stage is None:
            return None
        if self.stage == 3:
            return self.stage_name.rsplit(" ", 1)[-1]
        return str(self.stage)


class Classification(CamelModel):
    """
    KDIGO health state for one (eGFR, uACR) measurement.

    health_state and risk_level are pure functions of the two categories.
    """

    model_config = ConfigDict(frozen=True)

    # GFR
    gfr_category: GFRCategory
    gfr_value: float
    gfr_description: str = ""

    # Albuminuria
    albuminuria_category: AlbuminuriaCategory
    uacr_value: float | None = None
    albuminuria_description: str = ""

    # Combined state, e.g. "G3a-A2"
    health_state: str

    risk_level: RiskLevel
    risk_color: RiskColor

    ckd_stage: int | None = None
    ckd_stage_name: str = ""
    is_ckd: bool = False

    monitoring_frequency: str
    requires_nephrology_referral: bool = False
    requires_dialysis_planning: bool = False

    # Treatment flags
    recommend_ras_inhibitor: bool = Field(False, alias="recommendRASInhibitor")
    recommend_sglt2i: bool = Field(False, alias="recommendSGLT2i")
    target_bp: str = Field(..., alias="targetBP")
