"""
Tests for logging setup and the exception hierarchy.
"""

import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest


class TestExceptions:

    def test_to_dict(self):
        from nephrotrack.utils import NotFoundError

        err = NotFoundError("Progression profile", "p1")
        assert err.to_dict() == {
            "error": "NOT_FOUND",
            "message": "Progression profile not found: p1",
            "details": {"resource": "Progression profile", "identifier": "p1"},
        }

    def test_hierarchy(self):
        from nephrotrack.utils import (
            ClassificationError, NephroTrackError, SequenceGapError, StorageError,
        )

        for err in (
            ClassificationError("bad"),
            SequenceGapError("p1", 2),
            StorageError("down", operation="insert"),
        ):
            assert isinstance(err, NephroTrackError)

    def test_sequence_gap_details(self):
        from nephrotrack.utils import SequenceGapError

        err = SequenceGapError("p1", 2)
        assert err.details == {"patient_id": "p1", "missing_cycle": 2}
        assert "Previous cycle 2 not found for patient p1" in str(err)


class TestLogging:

    @pytest.fixture(autouse=True)
    def restore_root(self):
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        yield
        for handler in root.handlers:
            if handler not in handlers:
                handler.close()
        root.handlers[:] = handlers
        root.setLevel(level)

    def test_setup_logging_level_from_env(self, monkeypatch):
        from nephrotrack.utils import setup_logging

        monkeypatch.setenv("NEPHROTRACK_LOG_LEVEL", "DEBUG")
        setup_logging()
        assert logging.getLogger().level == logging.DEBUG

    def test_log_file(self, tmp_path):
        from nephrotrack.utils import get_logger, setup_logging

        log_file = tmp_path / "nephrotrack.log"
        setup_logging("INFO", str(log_file))
        get_logger("nephrotrack.test").info("cycle generated")
        for handler in logging.getLogger().handlers:
            handler.flush()

        assert "cycle generated" in log_file.read_text()

    def test_formatter(self):
        from nephrotrack.utils.logging import StructuredFormatter

        record = logging.LogRecord("nephrotrack.x", logging.WARNING, __file__, 1, "alert raised", None, None)
        line = StructuredFormatter().format(record)
        assert "WARNING" in line
        assert "[nephrotrack.x] alert raised" in line
