"""Shared pytest fixtures."""

from datetime import datetime, timedelta

import pytest

from chair_tracker.clinic_ledger.database import ClinicStore, InMemoryKeyValueStore
from chair_tracker.clinic_ledger.database.clinic_store import IdKind


class FakeClock:
    """Clock that only moves when a test advances it."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 5, 14, 9, 0, 0))


@pytest.fixture
def kv_store():
    return InMemoryKeyValueStore()


@pytest.fixture
def store(kv_store, clock):
    """A loaded store with the six seeded chairs."""
    clinic = ClinicStore(kv_store, clock=clock, key_prefix="@test_")
    clinic.load_data()
    return clinic


@pytest.fixture
def patient_data():
    return {
        "name": "Camila Rojas",
        "birth_date": "1985-03-15",
        "id_kind": IdKind.NATIONAL_ID,
        "id_value": "12.345.678-5",
        "phone": "+56 9 8765 4321",
        "email": "camila.rojas@email.com",
    }


@pytest.fixture
def patient(store, patient_data):
    return store.add_patient(**patient_data)
