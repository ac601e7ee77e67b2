"""
Synthetic progression engine.

Each patient gets a hidden progression profile the first time it is needed
(a progression type plus monthly eGFR/uACR drift rates). Cycles are then
generated one at a time: the previous cycle's values drift by the profile's
rates plus a little noise, the result is classified, and any meaningful
change against the previous classification is recorded as a transition,
with an alert and recommendations when the change calls for one.

Randomness always comes from a random.Random instance that callers can
inject; by default every call gets its own fresh generator.
"""

from __future__ import annotations

import random
import threading
import weakref
from typing import Callable

from nephrotrack.db.base import ProgressionStorage
from nephrotrack.engines.alerts import AlertEngine
from nephrotrack.engines.classifier import classify_kdigo
from nephrotrack.engines.comparator import compare_health_states
from nephrotrack.engines.policy import ProgressionPolicy, load_policy
from nephrotrack.models import (
    Classification,
    Cycle,
    CycleResult,
    LabValues,
    ProgressionProfile,
    StateComparison,
    Transition,
)
from nephrotrack.utils import NotFoundError, SequenceGapError, get_logger

logger = get_logger(__name__)

RngFactory = Callable[[], random.Random]


class ProgressionProfileStore:
    """
    Get-or-create access to progression profiles.

    Profiles are immutable and unique per patient. Creation goes through the
    storage's atomic conditional insert, so concurrent callers for a new
    patient all end up with the same record.
    """

    def __init__(
        self,
        storage: ProgressionStorage,
        policy: ProgressionPolicy | None = None,
        rng_factory: RngFactory | None = None,
    ):
        self.storage = storage
        self.policy = policy or load_policy()
        self._rng_factory = rng_factory or random.Random

    def get(self, patient_id: str) -> ProgressionProfile | None:
        return self.storage.get_profile(patient_id)

    def get_or_create(self, patient_id: str, rng: random.Random | None = None) -> ProgressionProfile:
        existing = self.storage.get_profile(patient_id)
        if existing is not None:
            return existing
        if not self.storage.patient_exists(patient_id):
            raise NotFoundError("Patient", patient_id)

        labs = self.storage.get_latest_lab_values(patient_id)
        candidate = self.draw_profile(patient_id, labs, rng or self._rng_factory())
        stored = self.storage.create_profile_if_absent(candidate)

        if stored.id == candidate.id:
            logger.info(
                f"Created {stored.progression_type.value} progression profile for patient {patient_id}"
            )
            logger.debug(
                f"Profile {stored.id}: baseline eGFR {stored.baseline_egfr}, uACR {stored.baseline_uacr}, "
                f"rates {stored.egfr_rate:+.3f}/month, {stored.uacr_rate:+.4f}/month"
            )
        else:
            logger.debug(f"Profile race lost for patient {patient_id}; using stored profile {stored.id}")
        return stored

    def draw_profile(
        self,
        patient_id: str,
        labs: LabValues | None,
        rng: random.Random,
    ) -> ProgressionProfile:
        """Draw a new profile. Consumes exactly three values from rng."""
        defaults = self.policy.default_baseline
        baseline_egfr = labs.egfr if labs and labs.egfr is not None else defaults.egfr
        baseline_uacr = labs.uacr if labs and labs.uacr is not None else defaults.uacr

        choice = self.policy.select(rng.random())
        return ProgressionProfile(
            patient_id=patient_id,
            progression_type=choice.type,
            baseline_egfr=baseline_egfr,
            baseline_uacr=baseline_uacr,
            egfr_rate=rng.uniform(*choice.egfr_rate),
            uacr_rate=rng.uniform(*choice.uacr_rate),
        )


class CycleGenerator:
    """
    Generates successive follow-up cycles for patients.

    Cycles for one patient are produced strictly in order: an in-process
    lock per patient serialises callers, and the storage's uniqueness and
    predecessor rules catch anyone racing from another process. Asking for
    a cycle that already exists replays the stored record instead of
    drawing new values.
    """

    def __init__(
        self,
        storage: ProgressionStorage,
        policy: ProgressionPolicy | None = None,
        alert_engine: AlertEngine | None = None,
        rng_factory: RngFactory | None = None,
    ):
        self.storage = storage
        self.policy = policy or load_policy()
        self._rng_factory = rng_factory or random.Random
        self.profiles = ProgressionProfileStore(storage, self.policy, self._rng_factory)
        self.alerts = alert_engine or AlertEngine()

        # entries vanish once no caller holds the lock
        self._locks: weakref.WeakValueDictionary[str, threading.Lock] = weakref.WeakValueDictionary()
        self._locks_guard = threading.Lock()

    def _patient_lock(self, patient_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(patient_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[patient_id] = lock
            return lock

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def initialize_baseline(self, patient_id: str, rng: random.Random | None = None) -> CycleResult:
        """Create (or return the existing) cycle 0 for a patient."""
        with self._patient_lock(patient_id):
            return CycleResult.from_cycle(self._ensure_baseline(patient_id, rng))

    def generate_next(
        self,
        patient_id: str,
        current_cycle: int,
        rng: random.Random | None = None,
    ) -> CycleResult:
        """
        Generate cycle current_cycle + 1.

        Args:
            patient_id: Patient to advance
            current_cycle: The latest cycle the caller knows about
            rng: Random source for the measurement noise

        Returns:
            The new cycle, or the stored one if it already exists.

        Raises:
            NotFoundError: The patient is unknown, or no progression profile
                exists (current_cycle > 0).
            SequenceGapError: Cycle current_cycle has not been generated.
        """
        if current_cycle < 0:
            raise SequenceGapError(patient_id, current_cycle)
        with self._patient_lock(patient_id):
            return self._generate_next(patient_id, current_cycle, rng)

    def simulate(
        self,
        patient_id: str,
        cycles: int,
        rng: random.Random | None = None,
    ) -> list[CycleResult]:
        """
        Baseline plus `cycles` further cycles, resuming after the latest one.

        The same rng is used for every step, so a seeded generator makes the
        whole run reproducible.
        """
        rng = rng or self._rng_factory()
        results = [self.initialize_baseline(patient_id, rng=rng)]

        latest = self.storage.get_latest_cycle(patient_id)
        start = latest.cycle_number if latest else 0
        for current in range(start, start + cycles):
            results.append(self.generate_next(patient_id, current, rng=rng))
        return results

    # -------------------------------------------------------------------------
    # Internals (caller holds the patient lock)
    # -------------------------------------------------------------------------

    def _ensure_baseline(self, patient_id: str, rng: random.Random | None) -> Cycle:
        existing = self.storage.get_cycle(patient_id, 0)
        if existing is not None:
            return existing

        profile = self.profiles.get_or_create(patient_id, rng=rng)
        baseline = Cycle(
            patient_id=patient_id,
            cycle_number=0,
            egfr_value=profile.baseline_egfr,
            uacr_value=profile.baseline_uacr,
            classification=classify_kdigo(profile.baseline_egfr, profile.baseline_uacr),
        )
        stored = self.storage.create_cycle(baseline)
        if stored.id == baseline.id:
            logger.info(f"Initialized baseline for patient {patient_id}: {stored.health_state}")
        return stored

    def _generate_next(
        self,
        patient_id: str,
        current_cycle: int,
        rng: random.Random | None,
    ) -> CycleResult:
        next_cycle = current_cycle + 1

        existing = self.storage.get_cycle(patient_id, next_cycle)
        if existing is not None:
            logger.debug(f"Cycle {next_cycle} already exists for patient {patient_id}; replaying")
            return self._replay(existing)

        if current_cycle == 0:
            profile = self.profiles.get_or_create(patient_id, rng=rng)
            previous = self._ensure_baseline(patient_id, rng)
        else:
            profile = self.profiles.get(patient_id)
            if profile is None:
                raise NotFoundError("Progression profile", patient_id)
            previous = self.storage.get_cycle(patient_id, current_cycle)
            if previous is None:
                raise SequenceGapError(patient_id, current_cycle)

        egfr, uacr = self._draw_values(profile, previous, rng or self._rng_factory())
        classification = classify_kdigo(egfr, uacr)
        candidate = Cycle(
            patient_id=patient_id,
            cycle_number=next_cycle,
            egfr_value=egfr,
            uacr_value=uacr,
            classification=classification,
        )
        stored = self.storage.create_cycle(candidate)
        if stored.id != candidate.id:
            logger.debug(f"Cycle {next_cycle} for patient {patient_id} was created concurrently; replaying")
            return self._replay(stored)

        logger.info(
            f"Generated cycle {next_cycle} for patient {patient_id}: "
            f"eGFR {egfr:.2f}, uACR {uacr:.2f} ({classification.health_state})"
        )

        comparison = compare_health_states(previous.classification, classification)
        if not comparison.has_changed:
            return CycleResult.from_cycle(stored)
        return self._record_transition(previous, stored, comparison)

    def _record_transition(
        self,
        previous: Cycle,
        cycle: Cycle,
        comparison: StateComparison,
    ) -> CycleResult:
        """Store the transition into cycle and raise its alert when one is needed."""
        patient_id = cycle.patient_id
        candidate = self._build_transition(
            patient_id, previous.cycle_number, previous.classification, cycle, comparison
        )
        transition = self.storage.create_transition(candidate)
        if transition.id != candidate.id:
            logger.debug(f"Transition into cycle {cycle.cycle_number} for patient {patient_id} already stored")
            return CycleResult.from_cycle(cycle, transition)

        logger.info(
            f"Transition for patient {patient_id}: {transition.from_health_state} -> "
            f"{transition.to_health_state} ({transition.change_type.value})"
        )

        recommendations, failures = 0, 0
        if comparison.needs_alert:
            recommendations, failures = self._raise_alert(transition, comparison, cycle.classification)

        return CycleResult.from_cycle(
            cycle,
            transition,
            recommendations_generated=recommendations,
            alert_failures=failures,
        )

    def _draw_values(
        self,
        profile: ProgressionProfile,
        previous: Cycle,
        rng: random.Random,
    ) -> tuple[float, float]:
        """Drift the previous values by the profile rates plus noise."""
        noise = self.policy.noise
        floor = self.policy.value_floor
        previous_uacr = previous.uacr_value if previous.uacr_value is not None else profile.baseline_uacr

        egfr = previous.egfr_value + profile.egfr_rate + rng.uniform(-noise.egfr, noise.egfr)
        uacr = previous_uacr * (1 + profile.uacr_rate + rng.uniform(-noise.uacr, noise.uacr))

        # Stored at 2 dp, so replays return exactly what the first call did
        return max(floor, round(egfr, 2)), max(floor, round(uacr, 2))

    @staticmethod
    def _build_transition(
        patient_id: str,
        from_cycle: int,
        previous: Classification,
        cycle: Cycle,
        comparison: StateComparison,
    ) -> Transition:
        return Transition(
            patient_id=patient_id,
            from_cycle=from_cycle,
            to_cycle=cycle.cycle_number,
            from_classification=previous,
            to_classification=cycle.classification,
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
            transition_date=cycle.measured_at,
        )

    def _raise_alert(
        self,
        transition: Transition,
        comparison: StateComparison,
        classification: Classification,
    ) -> tuple[int, int]:
        """
        Persist the alert and its recommendations.

        These writes are best effort: the cycle and transition are already
        stored and stay stored. Failures are logged and counted.
        """
        failures = 0
        alert_id = None
        try:
            alert = self.storage.create_alert(self.alerts.build_alert(transition, comparison))
            alert_id = alert.id
            log = logger.warning if alert.severity.value == "critical" else logger.info
            log(f"{alert.severity.value.upper()} alert for patient {transition.patient_id}: {alert.title}")
        except Exception:
            failures += 1
            logger.exception(f"Failed to create alert for transition {transition.id}")

        created = 0
        try:
            treatment = self.storage.get_treatment_context(transition.patient_id)
            for rec in self.alerts.build_recommendations(transition, classification, treatment, alert_id):
                self.storage.create_recommendation(rec)
                created += 1
        except Exception:
            failures += 1
            logger.exception(f"Failed to create recommendations for transition {transition.id}")

        return created, failures

    def _replay(self, cycle: Cycle) -> CycleResult:
        """
        Return a stored cycle with its stored transition.

        A cycle whose transition write failed is repaired here: the
        comparison against the previous cycle is recomputed and, if the
        state changed, the transition and its alert are written now.
        """
        transition = self.storage.get_transition(cycle.patient_id, cycle.cycle_number)
        if transition is not None or cycle.cycle_number == 0:
            return CycleResult.from_cycle(cycle, transition)

        previous = self.storage.get_cycle(cycle.patient_id, cycle.cycle_number - 1)
        if previous is None:
            return CycleResult.from_cycle(cycle)

        comparison = compare_health_states(previous.classification, cycle.classification)
        if not comparison.has_changed:
            return CycleResult.from_cycle(cycle)

        logger.warning(
            f"Cycle {cycle.cycle_number} for patient {cycle.patient_id} has no stored transition; recording it"
        )
        return self._record_transition(previous, cycle, comparison)


# -----------------------------------------------------------------------------
# Module-level entry points
# -----------------------------------------------------------------------------

_generators: weakref.WeakKeyDictionary[ProgressionStorage, CycleGenerator] = weakref.WeakKeyDictionary()
_generators_lock = threading.Lock()


def get_generator(storage: ProgressionStorage) -> CycleGenerator:
    """Get the shared generator for a storage, so callers share patient locks."""
    with _generators_lock:
        generator = _generators.get(storage)
        if generator is None:
            generator = _generators[storage] = CycleGenerator(storage)
        return generator


def initialize_baseline(
    storage: ProgressionStorage,
    patient_id: str,
    rng: random.Random | None = None,
) -> CycleResult:
    return get_generator(storage).initialize_baseline(patient_id, rng=rng)


def generate_next_cycle(
    storage: ProgressionStorage,
    patient_id: str,
    current_cycle: int,
    rng: random.Random | None = None,
) -> CycleResult:
    return get_generator(storage).generate_next(patient_id, current_cycle, rng=rng)
