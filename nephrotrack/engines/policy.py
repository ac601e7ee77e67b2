"""
Synthetic progression policy.

The progression-type distribution, rate ranges, noise amplitudes and value
floor are product policy, not algorithm: they live in
knowledge/progression/policy.yaml and can be swapped with
NEPHROTRACK_POLICY_PATH.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, model_validator

from nephrotrack.models import ProgressionType

DEFAULT_POLICY_PATH = Path(__file__).parent.parent / "knowledge" / "progression" / "policy.yaml"


class ProgressionTypeSpec(BaseModel):
    """One progression type with its cumulative draw threshold."""
    type: ProgressionType
    threshold: float = Field(..., gt=0, le=1)
    egfr_rate: tuple[float, float]
    uacr_rate: tuple[float, float]


class BaselineDefaults(BaseModel):
    egfr: float = 60.0
    uacr: float = 20.0


class NoiseSpec(BaseModel):
    egfr: float = 1.0
    uacr: float = 0.05


class ProgressionPolicy(BaseModel):
    progression_types: list[ProgressionTypeSpec]
    default_baseline: BaselineDefaults = Field(default_factory=BaselineDefaults)
    noise: NoiseSpec = Field(default_factory=NoiseSpec)
    value_floor: float = 5.0

    @model_validator(mode="after")
    def _check_thresholds(self) -> ProgressionPolicy:
        thresholds = [entry.threshold for entry in self.progression_types]
        if not thresholds:
            raise ValueError("progression_types must not be empty")
        if thresholds != sorted(thresholds) or len(set(thresholds)) != len(thresholds):
            raise ValueError("progression type thresholds must be strictly increasing")
        return self

    def select(self, r: float) -> ProgressionTypeSpec:
        """Pick the first type whose cumulative threshold exceeds r."""
        for entry in self.progression_types:
            if r < entry.threshold:
                return entry
        return self.progression_types[-1]


@lru_cache(maxsize=8)
def _load_policy_file(path: str) -> ProgressionPolicy:
    with open(path, 'r') as f:
        data = yaml.safe_load(f) or {}
    return ProgressionPolicy.model_validate(data)


def load_policy(path: Path | str | None = None) -> ProgressionPolicy:
    """Load the progression policy, cached per file."""
    path = path or os.environ.get("NEPHROTRACK_POLICY_PATH") or DEFAULT_POLICY_PATH
    return _load_policy_file(str(path))
