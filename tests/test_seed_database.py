"""Tests for the demo data loader."""

from chair_tracker.clinic_ledger.database.clinic_store import IdKind
from chair_tracker.clinic_ledger.scripts.seed_database import MOCK_PATIENTS, seed_database
from chair_tracker.identity_validator import validate_national_id


def test_mock_national_ids_are_valid():
    for data in MOCK_PATIENTS:
        if data["id_kind"] == IdKind.NATIONAL_ID:
            assert validate_national_id(data["id_value"]), data["name"]


def test_seed_registers_patients_once(store):
    assert seed_database(store) == len(MOCK_PATIENTS)
    assert [p.visit_number for p in store.patients] == list(range(1, len(MOCK_PATIENTS) + 1))

    assert seed_database(store) == 0
    assert len(store.patients) == len(MOCK_PATIENTS)
