"""
Repository classes for database operations.

Each repository handles the queries for one table and returns plain row
dicts. SupabaseStorage composes them into the storage interface the
progression engine works against, converting rows to and from models.
"""

from typing import Any, Optional

from postgrest.exceptions import APIError

from nephrotrack.db.base import ProgressionStorage
from nephrotrack.db.client import get_client, get_admin_client, SupabaseClient
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
from nephrotrack.utils import SequenceGapError, StorageError, get_logger

logger = get_logger(__name__)

# PostgreSQL SQLSTATE codes surfaced by PostgREST
UNIQUE_VIOLATION = "23505"
CHECK_VIOLATION = "23514"


def _first(response) -> Optional[dict]:
  return response.data[0] if response.data else None


class BaseRepository:
  """Base class for all repositories."""

  table_name: str = ""

  def __init__(self, client: Optional[SupabaseClient] = None, use_admin: bool = False):
    """
    Initialize repository with optional client.

    Args:
      client: Supabase client to use. If None, gets default client.
      use_admin: If True and no client provided, use admin client.
    """
    if client:
      self._client = client
    elif use_admin:
      self._client = get_admin_client()
    else:
      self._client = get_client()

  @property
  def table(self):
    """Get the table reference."""
    return self._client.table(self.table_name)

  def _execute(self, query, operation: str):
    """Run a query, wrapping PostgREST failures in StorageError."""
    try:
      return query.execute()
    except APIError as e:
      raise StorageError(
        f"{operation} on {self.table_name} failed: {e.message}",
        operation=operation,
        details={"table": self.table_name, "code": e.code},
      ) from e

  def _to_dict(self, obj: Any) -> dict:
    """Convert object to dict for storage."""
    if hasattr(obj, "model_dump"):
      return obj.model_dump(mode="json", exclude_none=True)
    elif isinstance(obj, dict):
      return obj
    else:
      raise ValueError(f"Cannot convert {type(obj)} to dict")


class ProfileRepository(BaseRepository):
  """Repository for hidden progression profiles."""

  table_name = "patient_progression_state"

  def get_by_patient(self, patient_id: str) -> Optional[dict]:
    query = self.table.select("*").eq("patient_id", patient_id).limit(1)
    return _first(self._execute(query, "select"))

  def create_if_absent(self, data: dict) -> Optional[dict]:
    """Insert unless the patient already has a profile; return the stored row."""
    query = self.table.upsert(data, on_conflict="patient_id", ignore_duplicates=True)
    self._execute(query, "upsert")
    return self.get_by_patient(data["patient_id"])


class CycleRepository(BaseRepository):
  """Repository for generated cycles (health state history)."""

  table_name = "health_state_history"

  def get(self, patient_id: str, cycle_number: int) -> Optional[dict]:
    query = (
      self.table.select("*")
      .eq("patient_id", patient_id)
      .eq("cycle_number", cycle_number)
      .limit(1)
    )
    return _first(self._execute(query, "select"))

  def get_by_patient(self, patient_id: str) -> list[dict]:
    query = self.table.select("*").eq("patient_id", patient_id).order("cycle_number")
    return self._execute(query, "select").data or []

  def create(self, data: dict) -> Optional[dict]:
    """
    Insert a cycle row.

    Raises APIError untouched so the caller can tell a duplicate (23505)
    from a missing predecessor (23514).
    """
    response = self.table.insert(data).execute()
    return _first(response)


class TransitionRepository(BaseRepository):
  """Repository for state transitions."""

  table_name = "state_transitions"

  def get_by_target_cycle(self, patient_id: str, to_cycle: int) -> Optional[dict]:
    query = (
      self.table.select("*")
      .eq("patient_id", patient_id)
      .eq("to_cycle", to_cycle)
      .limit(1)
    )
    return _first(self._execute(query, "select"))

  def get_by_patient(self, patient_id: str) -> list[dict]:
    query = self.table.select("*").eq("patient_id", patient_id).order("to_cycle")
    return self._execute(query, "select").data or []

  def create(self, data: dict) -> Optional[dict]:
    try:
      return _first(self.table.insert(data).execute())
    except APIError as e:
      if e.code != UNIQUE_VIOLATION:
        raise StorageError(
          f"insert on {self.table_name} failed: {e.message}",
          operation="insert",
          details={"table": self.table_name, "code": e.code},
        ) from e
      return self.get_by_target_cycle(data["patient_id"], data["to_cycle"])


class AlertRepository(BaseRepository):
  """Repository for monitoring alerts."""

  table_name = "monitoring_alerts"

  def create(self, data: dict) -> Optional[dict]:
    return _first(self._execute(self.table.insert(data), "insert"))

  def get_by_patient(self, patient_id: str, status: Optional[str] = None) -> list[dict]:
    query = self.table.select("*").eq("patient_id", patient_id)
    if status:
      query = query.eq("status", status)
    query = query.order("priority").order("generated_at", desc=True)
    return self._execute(query, "select").data or []


class RecommendationRepository(BaseRepository):
  """Repository for action recommendations."""

  table_name = "action_recommendations"

  def create(self, data: dict) -> Optional[dict]:
    return _first(self._execute(self.table.insert(data), "insert"))

  def get_by_patient(self, patient_id: str, status: Optional[str] = None) -> list[dict]:
    query = self.table.select("*").eq("patient_id", patient_id)
    if status:
      query = query.eq("status", status)
    query = query.order("priority").order("generated_at", desc=True)
    return self._execute(query, "select").data or []


class LabResultRepository(BaseRepository):
  """Read-only access to real lab results."""

  table_name = "lab_results"

  def get_latest(self, patient_id: str) -> Optional[dict]:
    query = (
      self.table.select("egfr, urine_albumin_creatinine_ratio, test_date")
      .eq("patient_id", patient_id)
      .order("test_date", desc=True)
      .limit(1)
    )
    return _first(self._execute(query, "select"))


class PatientRepository(BaseRepository):
  """Read-only access to patient rows."""

  table_name = "patients"

  def exists(self, patient_id: str) -> bool:
    query = self.table.select("id").eq("id", patient_id).limit(1)
    return _first(self._execute(query, "select")) is not None

  def get_treatment_flags(self, patient_id: str) -> Optional[dict]:
    query = self.table.select("on_ras_inhibitor, on_sglt2i").eq("id", patient_id).limit(1)
    return _first(self._execute(query, "select"))


# -----------------------------------------------------------------------------
# Storage adapter
# -----------------------------------------------------------------------------


class SupabaseStorage(ProgressionStorage):
  """
  Supabase-backed storage.

  Relies on the unique constraints and the predecessor trigger from
  supabase/schema.sql for cross-process safety.
  """

  def __init__(self, client: Optional[SupabaseClient] = None, use_admin: bool = True):
    client = client or (get_admin_client() if use_admin else get_client())
    self.profiles = ProfileRepository(client)
    self.cycles = CycleRepository(client)
    self.transitions = TransitionRepository(client)
    self.alerts = AlertRepository(client)
    self.recommendations = RecommendationRepository(client)
    self.lab_results = LabResultRepository(client)
    self.patients = PatientRepository(client)

  # Profiles

  def get_profile(self, patient_id: str) -> Optional[ProgressionProfile]:
    row = self.profiles.get_by_patient(patient_id)
    return ProgressionProfile.model_validate(row) if row else None

  def create_profile_if_absent(self, profile: ProgressionProfile) -> ProgressionProfile:
    row = self.profiles.create_if_absent(self.profiles._to_dict(profile))
    if row is None:
      raise StorageError(
        f"Progression profile for patient {profile.patient_id} missing after upsert",
        operation="upsert",
      )
    return ProgressionProfile.model_validate(row)

  # Cycles

  def get_cycle(self, patient_id: str, cycle_number: int) -> Optional[Cycle]:
    row = self.cycles.get(patient_id, cycle_number)
    return Cycle.model_validate(row) if row else None

  def create_cycle(self, cycle: Cycle) -> Cycle:
    data = self.cycles._to_dict(cycle)
    data.update(
      health_state=cycle.classification.health_state,
      gfr_category=cycle.classification.gfr_category.value,
      albuminuria_category=cycle.classification.albuminuria_category.value,
      risk_level=cycle.classification.risk_level.value,
    )

    try:
      row = self.cycles.create(data)
    except APIError as e:
      if e.code == UNIQUE_VIOLATION:
        logger.debug(f"Cycle {cycle.cycle_number} for patient {cycle.patient_id} already stored")
        existing = self.get_cycle(cycle.patient_id, cycle.cycle_number)
        if existing is not None:
          return existing
      if e.code == CHECK_VIOLATION:
        raise SequenceGapError(cycle.patient_id, cycle.cycle_number - 1) from e
      raise StorageError(
        f"insert on {self.cycles.table_name} failed: {e.message}",
        operation="insert",
        details={"table": self.cycles.table_name, "code": e.code},
      ) from e

    return Cycle.model_validate(row) if row else cycle

  def list_cycles(self, patient_id: str) -> list[Cycle]:
    return [Cycle.model_validate(row) for row in self.cycles.get_by_patient(patient_id)]

  # Transitions, alerts, recommendations

  def create_transition(self, transition: Transition) -> Transition:
    data = self.transitions._to_dict(transition)
    data.update(
      from_health_state=transition.from_health_state,
      to_health_state=transition.to_health_state,
    )
    row = self.transitions.create(data)
    return Transition.model_validate(row) if row else transition

  def get_transition(self, patient_id: str, to_cycle: int) -> Optional[Transition]:
    row = self.transitions.get_by_target_cycle(patient_id, to_cycle)
    return Transition.model_validate(row) if row else None

  def list_transitions(self, patient_id: str) -> list[Transition]:
    return [Transition.model_validate(row) for row in self.transitions.get_by_patient(patient_id)]

  def create_alert(self, alert: Alert) -> Alert:
    row = self.alerts.create(self.alerts._to_dict(alert))
    return Alert.model_validate(row) if row else alert

  def list_alerts(self, patient_id: str, status: Optional[AlertStatus] = None) -> list[Alert]:
    rows = self.alerts.get_by_patient(patient_id, status.value if status else None)
    return [Alert.model_validate(row) for row in rows]

  def create_recommendation(self, recommendation: Recommendation) -> Recommendation:
    row = self.recommendations.create(self.recommendations._to_dict(recommendation))
    return Recommendation.model_validate(row) if row else recommendation

  def list_recommendations(
    self,
    patient_id: str,
    status: Optional[RecommendationStatus] = None,
  ) -> list[Recommendation]:
    rows = self.recommendations.get_by_patient(patient_id, status.value if status else None)
    return [Recommendation.model_validate(row) for row in rows]

  # Patient context

  def patient_exists(self, patient_id: str) -> bool:
    return self.patients.exists(patient_id)

  def get_latest_lab_values(self, patient_id: str) -> Optional[LabValues]:
    row = self.lab_results.get_latest(patient_id)
    if not row:
      return None
    return LabValues(egfr=row.get("egfr"), uacr=row.get("urine_albumin_creatinine_ratio"))

  def get_treatment_context(self, patient_id: str) -> TreatmentContext:
    row = self.patients.get_treatment_flags(patient_id) or {}
    return TreatmentContext(
      on_ras_inhibitor=bool(row.get("on_ras_inhibitor")),
      on_sglt2i=bool(row.get("on_sglt2i")),
    )
