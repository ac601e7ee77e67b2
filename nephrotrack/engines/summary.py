"""
History summaries for a patient's progression.
"""

from __future__ import annotations

from nephrotrack.db.base import ProgressionStorage
from nephrotrack.models import AlertStatus, ProgressionSummary, RecommendationStatus
from nephrotrack.utils import NotFoundError


def summarize_history(storage: ProgressionStorage, patient_id: str) -> ProgressionSummary:
    """
    Collect a patient's cycles, transitions, active alerts and pending
    recommendations into one summary.

    Raises:
        NotFoundError: The patient has no recorded cycles.
    """
    cycles = storage.list_cycles(patient_id)
    if not cycles:
        raise NotFoundError("Progression history", patient_id)

    return ProgressionSummary(
        patient_id=patient_id,
        profile=storage.get_profile(patient_id),
        cycles=cycles,
        transitions=storage.list_transitions(patient_id),
        active_alerts=storage.list_alerts(patient_id, status=AlertStatus.ACTIVE),
        pending_recommendations=storage.list_recommendations(
            patient_id, status=RecommendationStatus.PENDING
        ),
    )
