"""
Storage interface for the progression engine.

Every adapter must give two guarantees the engine relies on:

- create_profile_if_absent is an atomic conditional insert: the first
  writer wins and every caller gets the winner's record back.
- create_cycle is unique on (patient_id, cycle_number), returns the
  already-stored record on conflict, and refuses cycle N when cycle N-1
  does not exist.
"""

from abc import ABC, abstractmethod
from typing import Optional

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


class ProgressionStorage(ABC):
  """Abstract storage collaborator."""

  # ---------------------------------------------------------------------------
  # Profiles
  # ---------------------------------------------------------------------------

  @abstractmethod
  def get_profile(self, patient_id: str) -> Optional[ProgressionProfile]:
    """Get a patient's progression profile, if one exists."""

  @abstractmethod
  def create_profile_if_absent(self, profile: ProgressionProfile) -> ProgressionProfile:
    """Insert the profile unless one exists; return whichever is stored."""

  # ---------------------------------------------------------------------------
  # Cycles
  # ---------------------------------------------------------------------------

  @abstractmethod
  def get_cycle(self, patient_id: str, cycle_number: int) -> Optional[Cycle]:
    """Get one cycle by number."""

  @abstractmethod
  def create_cycle(self, cycle: Cycle) -> Cycle:
    """
    Store a cycle.

    Returns the existing record if the cycle number is already taken.
    Raises SequenceGapError if the previous cycle is missing.
    """

  @abstractmethod
  def list_cycles(self, patient_id: str) -> list[Cycle]:
    """All cycles for a patient, ordered by cycle number."""

  def get_latest_cycle(self, patient_id: str) -> Optional[Cycle]:
    """Get the highest-numbered cycle."""
    cycles = self.list_cycles(patient_id)
    return cycles[-1] if cycles else None

  # ---------------------------------------------------------------------------
  # Transitions, alerts, recommendations
  # ---------------------------------------------------------------------------

  @abstractmethod
  def create_transition(self, transition: Transition) -> Transition:
    """Store a transition."""

  @abstractmethod
  def get_transition(self, patient_id: str, to_cycle: int) -> Optional[Transition]:
    """Get the transition that ended at the given cycle."""

  @abstractmethod
  def list_transitions(self, patient_id: str) -> list[Transition]:
    """All transitions for a patient, ordered by target cycle."""

  @abstractmethod
  def create_alert(self, alert: Alert) -> Alert:
    """Store an alert."""

  @abstractmethod
  def list_alerts(self, patient_id: str, status: Optional[AlertStatus] = None) -> list[Alert]:
    """Alerts for a patient, most urgent first."""

  @abstractmethod
  def create_recommendation(self, recommendation: Recommendation) -> Recommendation:
    """Store a recommendation."""

  @abstractmethod
  def list_recommendations(
    self,
    patient_id: str,
    status: Optional[RecommendationStatus] = None,
  ) -> list[Recommendation]:
    """Recommendations for a patient, highest priority first."""

  # ---------------------------------------------------------------------------
  # Patient context (read-only)
  # ---------------------------------------------------------------------------

  @abstractmethod
  def patient_exists(self, patient_id: str) -> bool:
    """Whether the patient is registered."""

  @abstractmethod
  def get_latest_lab_values(self, patient_id: str) -> Optional[LabValues]:
    """Most recent real lab values, or None if the patient has none."""

  @abstractmethod
  def get_treatment_context(self, patient_id: str) -> TreatmentContext:
    """Kidney-protective therapy flags; all False if unknown."""
