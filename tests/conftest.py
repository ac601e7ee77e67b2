"""
Shared fixtures for NephroTrack tests.
"""

import random
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest


class ScriptedRandom(random.Random):
    """
    random.Random that returns a fixed sequence from random().

    uniform(a, b) is a + (b - a) * random(), so scripting random() pins
    every draw the engine makes.
    """

    def __init__(self, values):
        super().__init__(0)
        self._values = list(values)

    def random(self):
        if not self._values:
            raise AssertionError("ScriptedRandom ran out of values")
        return self._values.pop(0)

    @property
    def remaining(self) -> int:
        return len(self._values)


@pytest.fixture
def storage():
    from nephrotrack.db import MemoryStorage

    return MemoryStorage(patients=["p1", "p2"])


@pytest.fixture
def scripted():
    """Factory for ScriptedRandom instances."""
    return ScriptedRandom


def _make_transition(prev_egfr, prev_uacr, cur_egfr, cur_uacr, patient_id="p1"):
    """Classify two measurements and build the transition between them."""
    from nephrotrack.engines import classify_kdigo, compare_health_states
    from nephrotrack.models import Transition

    previous = classify_kdigo(prev_egfr, prev_uacr)
    current = classify_kdigo(cur_egfr, cur_uacr)
    comparison = compare_health_states(previous, current)
    transition = Transition(
        patient_id=patient_id,
        from_cycle=0,
        to_cycle=1,
        from_classification=previous,
        to_classification=current,
        change_type=comparison.change_type,
        egfr_change=comparison.gfr_change,
        uacr_change=comparison.uacr_change,
        gfr_trend=comparison.gfr_trend,
        uacr_trend=comparison.uacr_trend,
        category_changed=comparison.category_changed,
        risk_increased=comparison.risk_increased,
        crossed_critical_threshold=comparison.crossed_critical_threshold,
        alert_generated=comparison.needs_alert,
        alert_severity=comparison.alert_severity,
    )
    return transition, comparison


@pytest.fixture
def make_transition():
    """Factory: make_transition(prev_egfr, prev_uacr, cur_egfr, cur_uacr) -> (transition, comparison)."""
    return _make_transition

