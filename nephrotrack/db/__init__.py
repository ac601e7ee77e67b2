"""
Storage for the progression engine.

Provides the storage interface, the in-process adapter and the Supabase
client, repositories and adapter.
"""

from nephrotrack.db.base import ProgressionStorage
from nephrotrack.db.memory import MemoryStorage
from nephrotrack.db.client import get_client, get_admin_client, get_config, is_configured, SupabaseClient
from nephrotrack.db.repositories import (
  ProfileRepository,
  CycleRepository,
  TransitionRepository,
  AlertRepository,
  RecommendationRepository,
  LabResultRepository,
  PatientRepository,
  SupabaseStorage,
)

__all__ = [
  "ProgressionStorage",
  "MemoryStorage",
  "get_client",
  "get_admin_client",
  "get_config",
  "is_configured",
  "SupabaseClient",
  "ProfileRepository",
  "CycleRepository",
  "TransitionRepository",
  "AlertRepository",
  "RecommendationRepository",
  "LabResultRepository",
  "PatientRepository",
  "SupabaseStorage",
]
