"""
Tests for the storage adapters.
"""

import sys
from pathlib import Path
from unittest.mock import MagicMock

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest


def make_cycle(patient_id="p1", cycle_number=0, egfr=60.0, uacr=20.0):
    from nephrotrack.engines import classify_kdigo
    from nephrotrack.models import Cycle

    return Cycle(
        patient_id=patient_id,
        cycle_number=cycle_number,
        egfr_value=egfr,
        uacr_value=uacr,
        classification=classify_kdigo(egfr, uacr),
    )


def make_profile(patient_id="p1", progression_type="stable"):
    from nephrotrack.models import ProgressionProfile

    return ProgressionProfile(
        patient_id=patient_id,
        progression_type=progression_type,
        baseline_egfr=60.0,
        baseline_uacr=20.0,
        egfr_rate=-0.08,
        uacr_rate=-0.01,
    )


class TestMemoryStorage:

    def test_profile_first_writer_wins(self, storage):
        first = storage.create_profile_if_absent(make_profile(progression_type="stable"))
        second = storage.create_profile_if_absent(make_profile(progression_type="rapid"))
        assert second.id == first.id
        assert storage.get_profile("p1").progression_type.value == "stable"

    def test_duplicate_cycle_returns_existing(self, storage):
        first = storage.create_cycle(make_cycle(egfr=60))
        second = storage.create_cycle(make_cycle(egfr=50))
        assert second.id == first.id
        assert second.egfr_value == 60

    def test_cycle_requires_predecessor(self, storage):
        from nephrotrack.utils import SequenceGapError

        storage.create_cycle(make_cycle(cycle_number=0))
        with pytest.raises(SequenceGapError) as exc_info:
            storage.create_cycle(make_cycle(cycle_number=2))
        assert exc_info.value.missing_cycle == 1
        assert storage.get_cycle("p1", 2) is None

    def test_cycles_are_ordered_and_per_patient(self, storage):
        for n in range(3):
            storage.create_cycle(make_cycle(cycle_number=n))
        storage.create_cycle(make_cycle(patient_id="p2"))

        assert [c.cycle_number for c in storage.list_cycles("p1")] == [0, 1, 2]
        assert storage.get_latest_cycle("p1").cycle_number == 2
        assert storage.get_latest_cycle("p3") is None

    def test_latest_lab_values(self, storage):
        from datetime import datetime

        assert storage.get_latest_lab_values("p1") is None
        storage.add_lab_result("p1", 50, 40, test_date=datetime(2024, 5, 1))
        storage.add_lab_result("p1", 55, 35, test_date=datetime(2023, 5, 1))
        labs = storage.get_latest_lab_values("p1")
        assert labs.egfr == 50
        assert labs.uacr == 40

    def test_patient_registration(self):
        from nephrotrack.db import MemoryStorage

        storage = MemoryStorage(patients=["p1"])
        assert storage.patient_exists("p1") is True
        assert storage.patient_exists("p2") is False
        storage.add_lab_result("p2", 50, 40)
        storage.add_patient("p3")
        assert storage.patient_exists("p2") is True
        assert storage.patient_exists("p3") is True

    def test_treatment_context_defaults(self, storage):
        assert storage.get_treatment_context("p1").on_ras_inhibitor is False
        storage.set_treatment_context("p1", on_sglt2i=True)
        assert storage.get_treatment_context("p1").on_sglt2i is True


class TestSupabaseStorage:
    """SupabaseStorage against a mocked query builder."""

    def _storage(self):
        from nephrotrack.db import SupabaseStorage

        client = MagicMock()
        return SupabaseStorage(client=client), client.table.return_value

    def _api_error(self, code):
        from postgrest.exceptions import APIError

        return APIError({"message": "boom", "code": code, "hint": None, "details": None})

    def test_create_cycle(self):
        storage, table = self._storage()
        cycle = make_cycle()
        table.insert.return_value.execute.return_value = MagicMock(data=[cycle.model_dump(mode="json")])

        stored = storage.create_cycle(cycle)
        assert stored.id == cycle.id

        row = table.insert.call_args[0][0]
        assert row["health_state"] == "G2-A1"
        assert row["risk_level"] == "low"
        assert row["classification"]["gfr_category"] == "G2"

    def test_duplicate_cycle_rereads(self):
        storage, table = self._storage()
        existing = make_cycle(egfr=61.0)
        table.insert.return_value.execute.side_effect = self._api_error("23505")
        select = table.select.return_value.eq.return_value.eq.return_value.limit.return_value
        select.execute.return_value = MagicMock(data=[existing.model_dump(mode="json")])

        stored = storage.create_cycle(make_cycle(egfr=55.0))
        assert stored.id == existing.id
        assert stored.egfr_value == 61.0

    def test_missing_predecessor_is_sequence_gap(self):
        from nephrotrack.utils import SequenceGapError

        storage, table = self._storage()
        table.insert.return_value.execute.side_effect = self._api_error("23514")

        with pytest.raises(SequenceGapError) as exc_info:
            storage.create_cycle(make_cycle(cycle_number=4))
        assert exc_info.value.missing_cycle == 3

    def test_other_errors_are_storage_errors(self):
        from nephrotrack.utils import StorageError

        storage, table = self._storage()
        table.insert.return_value.execute.side_effect = self._api_error("42501")

        with pytest.raises(StorageError) as exc_info:
            storage.create_cycle(make_cycle())
        assert exc_info.value.details["code"] == "42501"

    def test_profile_conditional_insert(self):
        storage, table = self._storage()
        winner = make_profile(progression_type="rapid")
        select = table.select.return_value.eq.return_value.limit.return_value
        select.execute.return_value = MagicMock(data=[winner.model_dump(mode="json")])

        stored = storage.create_profile_if_absent(make_profile())
        assert stored.id == winner.id
        assert stored.progression_type.value == "rapid"

        _, kwargs = table.upsert.call_args
        assert kwargs == {"on_conflict": "patient_id", "ignore_duplicates": True}

    def test_duplicate_transition_rereads(self, make_transition):
        storage, table = self._storage()
        transition, _ = make_transition(62, 10, 58, 10)
        table.insert.return_value.execute.side_effect = self._api_error("23505")
        select = table.select.return_value.eq.return_value.eq.return_value.limit.return_value
        select.execute.return_value = MagicMock(data=[transition.model_dump(mode="json")])

        stored = storage.create_transition(transition.model_copy(update={"id": "other"}))
        assert stored.id == transition.id
        assert stored.to_health_state == "G3a-A1"

    def test_latest_lab_values(self):
        storage, table = self._storage()
        query = table.select.return_value.eq.return_value.order.return_value.limit.return_value
        query.execute.return_value = MagicMock(data=[
            {"egfr": 42.0, "urine_albumin_creatinine_ratio": 120.0, "test_date": "2024-05-01"},
        ])

        labs = storage.get_latest_lab_values("p1")
        assert labs.egfr == 42.0
        assert labs.uacr == 120.0

    def test_no_lab_values(self):
        storage, table = self._storage()
        query = table.select.return_value.eq.return_value.order.return_value.limit.return_value
        query.execute.return_value = MagicMock(data=[])

        assert storage.get_latest_lab_values("p1") is None

    def test_treatment_context(self):
        storage, table = self._storage()
        query = table.select.return_value.eq.return_value.limit.return_value
        query.execute.return_value = MagicMock(data=[{"on_ras_inhibitor": True, "on_sglt2i": None}])

        treatment = storage.get_treatment_context("p1")
        assert treatment.on_ras_inhibitor is True
        assert treatment.on_sglt2i is False

    def test_patient_exists(self):
        storage, table = self._storage()
        query = table.select.return_value.eq.return_value.limit.return_value

        query.execute.return_value = MagicMock(data=[{"id": "p1"}])
        assert storage.patient_exists("p1") is True
        table.select.assert_called_with("id")

        query.execute.return_value = MagicMock(data=[])
        assert storage.patient_exists("p2") is False

    def test_select_failure_is_storage_error(self):
        from nephrotrack.utils import StorageError

        storage, table = self._storage()
        query = table.select.return_value.eq.return_value.limit.return_value
        query.execute.side_effect = self._api_error("08006")

        with pytest.raises(StorageError):
            storage.get_profile("p1")


class TestClientConfig:

    def test_unconfigured(self, monkeypatch):
        from nephrotrack.db.client import is_configured, reset_clients

        monkeypatch.delenv("SUPABASE_URL", raising=False)
        reset_clients()
        assert is_configured() is False

    def test_validate(self, monkeypatch):
        from nephrotrack.db.client import SupabaseConfig

        monkeypatch.setenv("SUPABASE_URL", "https://example.supabase.co")
        monkeypatch.delenv("SUPABASE_ANON_KEY", raising=False)
        monkeypatch.delenv("SUPABASE_SERVICE_KEY", raising=False)
        with pytest.raises(ValueError):
            SupabaseConfig().validate()
