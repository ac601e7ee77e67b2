"""
Utilities - logging and exception handling.
"""

from .logging import get_logger, setup_logging
from .exceptions import (
    NephroTrackError,
    ClassificationError,
    NotFoundError,
    SequenceGapError,
    StorageError,
)

__all__ = [
    "get_logger",
    "setup_logging",
    "NephroTrackError",
    "ClassificationError",
    "NotFoundError",
    "SequenceGapError",
    "StorageError",
]
