"""Seed the clinic store with demo patients."""

from chair_tracker import config
from chair_tracker.clinic_ledger.database import ClinicStore, SqliteKeyValueStore
from chair_tracker.clinic_ledger.database.clinic_store import IdKind
from chair_tracker.identity_validator import compute_check_digit, format_national_id


def national_id(body: str) -> str:
    """Build a formatted national id with a matching check digit."""
    return format_national_id(body + compute_check_digit(body))


MOCK_PATIENTS = [
    {
        "name": "Camila Rojas",
        "birth_date": "1985-03-15",
        "id_kind": IdKind.NATIONAL_ID,
        "id_value": national_id("12345678"),
        "phone": "+56 9 8765 4321",
        "email": "camila.rojas@email.com",
    },
    {
        "name": "Matías González",
        "birth_date": "1992-07-22",
        "id_kind": IdKind.NATIONAL_ID,
        "id_value": national_id("18765432"),
        "phone": "+56 9 5555 0102",
        "medical_notes": "Allergic to penicillin",
    },
    {
        "name": "Valentina Muñoz",
        "birth_date": "1978-11-08",
        "id_kind": IdKind.NATIONAL_ID,
        "id_value": national_id("9876543"),
        "email": "v.munoz@email.com",
    },
    {
        "name": "Lucas Silva",
        "birth_date": "2000-01-30",
        "id_kind": IdKind.PASSPORT,
        "id_value": "BR4471920",
        "phone": "+56 9 5555 0104",
    },
    {
        "name": "Sofía Pérez",
        "birth_date": "1965-09-12",
        "id_kind": IdKind.NATIONAL_ID,
        "id_value": national_id("7654321"),
        "medical_notes": "Hypertension, monthly check-up",
    },
]


def seed_database(store: ClinicStore) -> int:
    """Register the demo patients unless the roster already has patients."""
    if store.patients:
        print(f"  Skipping patients ({len(store.patients)} already exist)")
        return 0

    for data in MOCK_PATIENTS:
        patient = store.add_patient(**data)
        print(f"  Created patient #{patient.visit_number} {patient.name}")
    return len(MOCK_PATIENTS)


def main():
    kv_store = SqliteKeyValueStore(config.DB_PATH)
    kv_store.init_database()
    store = ClinicStore(kv_store)
    store.load_data()

    created = seed_database(store)

    print("\nDatabase seeded successfully!")
    print(f"  - {created} patients")
    print(f"  - {len(store.chairs)} chairs")


if __name__ == "__main__":
    main()
