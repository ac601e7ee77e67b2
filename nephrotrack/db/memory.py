"""
In-process storage adapter.

Thread-safe stand-in for the database, used by tests, the CLI simulate
command and batch jobs that do not need persistence. A single lock makes
every conditional insert atomic.
"""

import threading
from datetime import datetime
from typing import Iterable, Optional

from nephrotrack.db.base import ProgressionStorage
from nephrotrack.models import (
  Alert,
  AlertStatus,
  Cycle,
  LabValues,
  ProgressionProfile,
  Recommendation,
  RecommendationStatus,
  Transition,
  TreatmentContext,
)
from nephrotrack.utils import SequenceGapError


class MemoryStorage(ProgressionStorage):
  """Dictionary-backed storage with database-like uniqueness rules."""

  def __init__(self, patients: Iterable[str] = ()):
    self._lock = threading.Lock()
    self._patients: set[str] = set(patients)
    self._profiles: dict[str, ProgressionProfile] = {}
    self._cycles: dict[tuple[str, int], Cycle] = {}
    self._transitions: dict[tuple[str, int], Transition] = {}
    self._alerts: list[Alert] = []
    self._recommendations: list[Recommendation] = []
    self._lab_results: dict[str, list[tuple[datetime, LabValues]]] = {}
    self._treatments: dict[str, TreatmentContext] = {}

  # ---------------------------------------------------------------------------
  # Seeding helpers
  # ---------------------------------------------------------------------------

  def add_patient(self, patient_id: str) -> None:
    with self._lock:
      self._patients.add(patient_id)

  def add_lab_result(
    self,
    patient_id: str,
    egfr: Optional[float],
    uacr: Optional[float] = None,
    test_date: Optional[datetime] = None,
  ) -> None:
    """Record a real lab result, registering the patient if needed."""
    with self._lock:
      self._patients.add(patient_id)
      results = self._lab_results.setdefault(patient_id, [])
      results.append((test_date or datetime.now(), LabValues(egfr=egfr, uacr=uacr)))
      results.sort(key=lambda item: item[0])

  def set_treatment_context(
    self,
    patient_id: str,
    on_ras_inhibitor: bool = False,
    on_sglt2i: bool = False,
  ) -> None:
    with self._lock:
      self._patients.add(patient_id)
      self._treatments[patient_id] = TreatmentContext(
        on_ras_inhibitor=on_ras_inhibitor,
        on_sglt2i=on_sglt2i,
      )

  # ---------------------------------------------------------------------------
  # Profiles
  # ---------------------------------------------------------------------------

  def get_profile(self, patient_id: str) -> Optional[ProgressionProfile]:
    with self._lock:
      return self._profiles.get(patient_id)

  def create_profile_if_absent(self, profile: ProgressionProfile) -> ProgressionProfile:
    with self._lock:
      return self._profiles.setdefault(profile.patient_id, profile)

  # ---------------------------------------------------------------------------
  # Cycles
  # ---------------------------------------------------------------------------

  def get_cycle(self, patient_id: str, cycle_number: int) -> Optional[Cycle]:
    with self._lock:
      return self._cycles.get((patient_id, cycle_number))

  def create_cycle(self, cycle: Cycle) -> Cycle:
    key = (cycle.patient_id, cycle.cycle_number)
    with self._lock:
      existing = self._cycles.get(key)
      if existing is not None:
        return existing
      if cycle.cycle_number > 0 and (cycle.patient_id, cycle.cycle_number - 1) not in self._cycles:
        raise SequenceGapError(cycle.patient_id, cycle.cycle_number - 1)
      self._cycles[key] = cycle
      return cycle

  def list_cycles(self, patient_id: str) -> list[Cycle]:
    with self._lock:
      cycles = [c for (pid, _), c in self._cycles.items() if pid == patient_id]
    return sorted(cycles, key=lambda c: c.cycle_number)

  # ---------------------------------------------------------------------------
  # Transitions, alerts, recommendations
  # ---------------------------------------------------------------------------

  def create_transition(self, transition: Transition) -> Transition:
    with self._lock:
      return self._transitions.setdefault((transition.patient_id, transition.to_cycle), transition)

  def get_transition(self, patient_id: str, to_cycle: int) -> Optional[Transition]:
    with self._lock:
      return self._transitions.get((patient_id, to_cycle))

  def list_transitions(self, patient_id: str) -> list[Transition]:
    with self._lock:
      transitions = [t for (pid, _), t in self._transitions.items() if pid == patient_id]
    return sorted(transitions, key=lambda t: t.to_cycle)

  def create_alert(self, alert: Alert) -> Alert:
    with self._lock:
      self._alerts.append(alert)
    return alert

  def list_alerts(self, patient_id: str, status: Optional[AlertStatus] = None) -> list[Alert]:
    with self._lock:
      alerts = [
        a for a in self._alerts
        if a.patient_id == patient_id and (status is None or a.status == status)
      ]
    return sorted(alerts, key=lambda a: (a.priority, -a.generated_at.timestamp()))

  def create_recommendation(self, recommendation: Recommendation) -> Recommendation:
    with self._lock:
      self._recommendations.append(recommendation)
    return recommendation

  def list_recommendations(
    self,
    patient_id: str,
    status: Optional[RecommendationStatus] = None,
  ) -> list[Recommendation]:
    with self._lock:
      recs = [
        r for r in self._recommendations
        if r.patient_id == patient_id and (status is None or r.status == status)
      ]
    return sorted(recs, key=lambda r: r.priority)

  # ---------------------------------------------------------------------------
  # Patient context
  # ---------------------------------------------------------------------------

  def patient_exists(self, patient_id: str) -> bool:
    with self._lock:
      return patient_id in self._patients

  def get_latest_lab_values(self, patient_id: str) -> Optional[LabValues]:
    with self._lock:
      results = self._lab_results.get(patient_id)
      return results[-1][1] if results else None

  def get_treatment_context(self, patient_id: str) -> TreatmentContext:
    with self._lock:
      return self._treatments.get(patient_id, TreatmentContext())
