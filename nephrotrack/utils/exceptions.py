"""
Exception hierarchy for NephroTrack.

Every error carries a stable machine-readable code and a details dict so
callers (CLI, batch jobs, an HTTP layer) can report it without parsing text.
"""

from __future__ import annotations

from typing import Any


class NephroTrackError(Exception):
    """Base exception for all progression engine errors."""

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


class ClassificationError(NephroTrackError):
    """Lab values cannot be classified (missing or non-numeric eGFR)."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(
            message=message,
            code="CLASSIFICATION_ERROR",
            details=details,
        )


class NotFoundError(NephroTrackError):
    """A patient, profile or cycle does not exist."""

    def __init__(
        self,
        resource: str,
        identifier: str,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(
            message=f"{resource} not found: {identifier}",
            code="NOT_FOUND",
            details={"resource": resource, "identifier": identifier, **(details or {})},
        )
        self.resource = resource
        self.identifier = identifier


class SequenceGapError(NephroTrackError):
    """A cycle was requested before its predecessor exists."""

    def __init__(self, patient_id: str, missing_cycle: int):
        super().__init__(
            message=(
                f"Previous cycle {missing_cycle} not found for patient {patient_id}. "
                "Generate cycles sequentially."
            ),
            code="SEQUENCE_GAP",
            details={"patient_id": patient_id, "missing_cycle": missing_cycle},
        )
        self.patient_id = patient_id
        self.missing_cycle = missing_cycle


class StorageError(NephroTrackError):
    """The storage collaborator failed; callers decide whether to retry."""

    def __init__(
        self,
        message: str,
        operation: str = "unknown",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(
            message=message,
            code="STORAGE_ERROR",
            details={"operation": operation, **(details or {})},
        )
        self.operation = operation
