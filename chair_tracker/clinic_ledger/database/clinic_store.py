"""Clinic store: patients, treatment chairs and closed chair sessions."""

import json
import logging
import math
import uuid
from dataclasses import asdict, dataclass
from datetime import datetime
from enum import Enum
from typing import Callable

from chair_tracker.config import INITIAL_CHAIR_COUNT, KEY_PREFIX
from chair_tracker.errors import (
    ImportFormatError,
    InvariantViolation,
    NotFoundError,
    PersistenceError,
    ValidationError,
)

from .key_value_store import KeyValueStore

logger = logging.getLogger(__name__)

CHAIR_ID_PREFIX = "silla-"
EXPORT_VERSION = "1.0"


class IdKind(Enum):
    """Identity documents accepted at registration."""
    NATIONAL_ID = "national_id"
    PASSPORT = "passport"


class ChairState(Enum):
    FREE = "free"
    OCCUPIED = "occupied"


@dataclass
class Patient:
    id: str
    name: str
    birth_date: str
    id_kind: IdKind
    id_value: str
    visit_number: int
    phone: str | None = None
    email: str | None = None
    medical_notes: str | None = None
    chair_id: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


@dataclass
class Chair:
    id: str
    state: ChairState = ChairState.FREE
    patient_id: str | None = None
    start_time: str | None = None

    @property
    def number(self) -> int:
        """Numeric suffix of the chair id, 0 when the id has none."""
        suffix = self.id.removeprefix(CHAIR_ID_PREFIX)
        return int(suffix) if suffix.isdigit() else 0


@dataclass(frozen=True)
class VisitHistory:
    id: str
    patient_id: str
    chair_id: str
    start_time: str
    end_time: str
    duration: int


@dataclass
class ClinicStats:
    total_patients: int
    total_chairs: int
    occupied_chairs: int
    free_chairs: int
    average_session_time: int
    patients_today: int


@dataclass
class ReleaseResult:
    patient: Patient | None
    duration: int


def initial_chairs() -> list[Chair]:
    """The free chairs a clinic starts with."""
    return [Chair(id=f"{CHAIR_ID_PREFIX}{i}") for i in range(1, INITIAL_CHAIR_COUNT + 1)]


class ClinicStore:
    """
    In-memory clinic state backed by a key-value store.

    Every mutating operation updates memory first and then writes all the
    collections it touched. A failed write raises PersistenceError and leaves
    memory already changed; there is no rollback.
    """

    # Fields that can be updated through update_patient
    PATIENT_FIELDS = [
        "name", "birth_date", "id_kind", "id_value", "phone", "email", "medical_notes",
    ]

    # Fields that can be updated through update_chair
    CHAIR_FIELDS = ["start_time"]

    # Occupancy only changes through assign_patient_to_chair / release_chair
    OCCUPANCY_FIELDS = ["state", "patient_id"]

    def __init__(
        self,
        kv_store: KeyValueStore,
        clock: Callable[[], datetime] | None = None,
        key_prefix: str = KEY_PREFIX,
    ):
        self.kv_store = kv_store
        self.clock = clock or datetime.now
        self.key_prefix = key_prefix
        self.loading = False

        self._patients: list[Patient] = []
        self._chairs: list[Chair] = []
        self._visit_history: list[VisitHistory] = []

    @property
    def patients(self) -> list[Patient]:
        return list(self._patients)

    @property
    def chairs(self) -> list[Chair]:
        return list(self._chairs)

    @property
    def visit_history(self) -> list[VisitHistory]:
        return list(self._visit_history)

    # Loading and lookups

    def load_data(self) -> None:
        """Read every collection back from the store, seeding chairs if absent."""
        self.loading = True
        try:
            patients_data = self.kv_store.get(self._key("patients"))
            chairs_data = self.kv_store.get(self._key("chairs"))
            history_data = self.kv_store.get(self._key("visit_history"))

            try:
                patients = [
                    self._dict_to_patient(d) for d in self._parse_stored("patients", patients_data)
                ]
                chairs = None
                if chairs_data is not None:
                    chairs = [
                        self._dict_to_chair(d) for d in self._parse_stored("chairs", chairs_data)
                    ]
                history = [
                    self._dict_to_visit(d)
                    for d in self._parse_stored("visit_history", history_data)
                ]
            except (KeyError, TypeError, ValueError) as e:
                raise PersistenceError(f"Stored clinic data has an invalid record: {e}") from e

            problem = self._find_inconsistency(
                patients, chairs if chairs is not None else initial_chairs()
            )
            if problem:
                raise PersistenceError(f"Stored clinic data is inconsistent: {problem}")

            self._patients, self._visit_history = patients, history
            if chairs is None:
                self._chairs = initial_chairs()
                self._persist("chairs")
                logger.info("Seeded %d chairs", len(self._chairs))
            else:
                self._chairs = chairs
        finally:
            self.loading = False

        logger.info(
            "Loaded %d patients, %d chairs, %d visits",
            len(self._patients), len(self._chairs), len(self._visit_history),
        )

    def get_patient(self, patient_id: str) -> Patient | None:
        return next((p for p in self._patients if p.id == patient_id), None)

    def get_chair(self, chair_id: str) -> Chair | None:
        return next((c for c in self._chairs if c.id == chair_id), None)

    def search_patients(self, query: str = "", assignment: str = "all") -> list[Patient]:
        """
        Find patients by name, id value, phone or email.

        `assignment` narrows the result to "assigned" or "unassigned"
        patients; "all" keeps both.
        """
        if assignment not in ("all", "assigned", "unassigned"):
            raise ValueError(f"Unknown assignment filter: {assignment}")

        needle = query.strip().lower()
        results = []
        for patient in self._patients:
            haystack = [patient.name, patient.id_value, patient.phone, patient.email]
            if needle and not any(needle in value.lower() for value in haystack if value):
                continue
            if assignment == "assigned" and not patient.chair_id:
                continue
            if assignment == "unassigned" and patient.chair_id:
                continue
            results.append(patient)
        return results

    def available_patients(self) -> list[Patient]:
        """Patients not currently sitting in a chair."""
        return self.search_patients(assignment="unassigned")

    def get_patient_history(self, patient_id: str) -> list[VisitHistory]:
        return [v for v in self._visit_history if v.patient_id == patient_id]

    def get_clinic_stats(self) -> ClinicStats:
        today = self.clock().date().isoformat()
        visits_today = [v for v in self._visit_history if v.start_time.startswith(today)]

        average = 0
        if self._visit_history:
            total = sum(v.duration for v in self._visit_history)
            # Half minutes round up
            average = math.floor(total / len(self._visit_history) + 0.5)

        occupied = sum(1 for c in self._chairs if c.state == ChairState.OCCUPIED)
        return ClinicStats(
            total_patients=len(self._patients),
            total_chairs=len(self._chairs),
            occupied_chairs=occupied,
            free_chairs=len(self._chairs) - occupied,
            average_session_time=average,
            patients_today=len(visits_today),
        )

    # Patients

    def add_patient(
        self,
        name: str,
        birth_date: str,
        id_kind: IdKind | str,
        id_value: str,
        phone: str | None = None,
        email: str | None = None,
        medical_notes: str | None = None,
    ) -> Patient:
        """Register a patient and give them the next visit number."""
        now = self.clock().isoformat()
        counter = self._read_counter() + 1

        patient = Patient(
            id=str(uuid.uuid4()),
            name=name,
            birth_date=birth_date,
            id_kind=IdKind(id_kind),
            id_value=id_value,
            visit_number=counter,
            phone=phone,
            email=email,
            medical_notes=medical_notes,
            created_at=now,
            updated_at=now,
        )
        self._patients.append(patient)

        self._persist("patients", extra={self._key("patient_counter"): str(counter)})
        logger.info("Added patient %s with visit number %d", patient.id, counter)
        return patient

    def update_patient(self, patient_id: str, updates: dict) -> Patient | None:
        """
        Merge editable fields into a patient.

        Fields outside PATIENT_FIELDS (ids, visit number, chair, timestamps)
        are ignored. Returns None when the patient does not exist.
        """
        patient = self.get_patient(patient_id)
        if not patient:
            logger.warning("Update skipped, patient %s not found", patient_id)
            return None

        valid_updates = {f: v for f, v in updates.items() if f in self.PATIENT_FIELDS}
        if "id_kind" in valid_updates:
            try:
                valid_updates["id_kind"] = IdKind(valid_updates["id_kind"])
            except ValueError as e:
                raise ValidationError(
                    {"id_kind": "Identity document must be national_id or passport"}
                ) from e

        for field, value in valid_updates.items():
            setattr(patient, field, value)

        patient.updated_at = self.clock().isoformat()
        self._persist("patients")
        return patient

    # Chairs

    def assign_patient_to_chair(self, patient_id: str, chair_id: str) -> Chair:
        """Seat a patient in a free chair and start the session clock."""
        patient = self.get_patient(patient_id)
        if not patient:
            raise NotFoundError(f"Patient {patient_id} not found")
        chair = self.get_chair(chair_id)
        if not chair:
            raise NotFoundError(f"Chair {chair_id} not found")
        if chair.state == ChairState.OCCUPIED:
            raise InvariantViolation(f"Chair {chair_id} is already occupied")
        if patient.chair_id:
            raise InvariantViolation(
                f"Patient {patient_id} is already assigned to {patient.chair_id}"
            )

        now = self.clock().isoformat()
        chair.state = ChairState.OCCUPIED
        chair.patient_id = patient_id
        chair.start_time = now
        patient.chair_id = chair_id
        patient.updated_at = now

        self._persist("chairs", "patients")
        logger.info("Assigned patient %s to %s", patient_id, chair_id)
        return chair

    def release_chair(self, chair_id: str) -> ReleaseResult:
        """
        Close the session on a chair and record it in the visit history.

        Releasing a chair that is already free does nothing and reports a
        zero duration.
        """
        chair = self.get_chair(chair_id)
        if not chair:
            raise NotFoundError(f"Chair {chair_id} not found")
        if chair.state == ChairState.FREE:
            return ReleaseResult(patient=None, duration=0)

        end = self.clock()
        start = datetime.fromisoformat(chair.start_time)
        duration = math.floor((end - start).total_seconds() / 60)

        visit = VisitHistory(
            id=str(uuid.uuid4()),
            patient_id=chair.patient_id,
            chair_id=chair_id,
            start_time=chair.start_time,
            end_time=end.isoformat(),
            duration=duration,
        )
        self._visit_history.append(visit)

        patient = self.get_patient(chair.patient_id)
        patient.chair_id = None
        patient.updated_at = visit.end_time

        chair.state = ChairState.FREE
        chair.patient_id = None
        chair.start_time = None

        self._persist("chairs", "patients", "visit_history")
        logger.info("Released %s after %d minutes", chair_id, duration)
        return ReleaseResult(patient=patient, duration=duration)

    def add_chair(self) -> Chair:
        """Add a free chair numbered one past the highest existing number."""
        next_number = max((c.number for c in self._chairs), default=0) + 1
        chair = Chair(id=f"{CHAIR_ID_PREFIX}{next_number}")
        self._chairs.append(chair)

        self._persist("chairs")
        logger.info("Added %s", chair.id)
        return chair

    def delete_chair(self, chair_id: str) -> None:
        chair = self.get_chair(chair_id)
        if not chair:
            raise NotFoundError(f"Chair {chair_id} not found")
        if chair.state == ChairState.OCCUPIED:
            raise InvariantViolation(f"Chair {chair_id} is occupied and cannot be deleted")

        self._chairs.remove(chair)
        self._persist("chairs")
        logger.info("Deleted %s", chair_id)

    def update_chair(self, chair_id: str, updates: dict) -> Chair:
        """
        Patch a chair's session details.

        Only the start time of an occupied chair can be corrected here;
        changing who sits in a chair goes through assign/release.
        """
        chair = self.get_chair(chair_id)
        if not chair:
            raise NotFoundError(f"Chair {chair_id} not found")

        blocked = [field for field in self.OCCUPANCY_FIELDS if field in updates]
        if blocked:
            raise InvariantViolation(
                f"Cannot patch {', '.join(blocked)} on {chair_id}; assign or release the chair instead"
            )

        valid_updates = {f: v for f, v in updates.items() if f in self.CHAIR_FIELDS}
        if "start_time" in valid_updates:
            if chair.state == ChairState.FREE:
                raise InvariantViolation(f"Chair {chair_id} is free and has no session start")
            if not valid_updates["start_time"]:
                raise InvariantViolation(f"Occupied chair {chair_id} needs a session start")
            valid_updates["start_time"] = self._session_start(
                chair_id, valid_updates["start_time"]
            )

        for field, value in valid_updates.items():
            setattr(chair, field, value)

        self._persist("chairs")
        return chair

    # Backup

    def export_data(self) -> str:
        """Serialize the whole dataset as a JSON document."""
        data = {
            "patients": [self._patient_to_dict(p) for p in self._patients],
            "chairs": [self._chair_to_dict(c) for c in self._chairs],
            "visitHistory": [asdict(v) for v in self._visit_history],
            "exportDate": self.clock().isoformat(),
            "version": EXPORT_VERSION,
            "metadata": {
                "totalPatients": len(self._patients),
                "totalChairs": len(self._chairs),
                "totalVisits": len(self._visit_history),
            },
        }
        return json.dumps(data, indent=2, ensure_ascii=False)

    def import_data(self, json_data: str) -> None:
        """Replace every collection with the contents of an export document."""
        try:
            data = json.loads(json_data)
        except json.JSONDecodeError as e:
            raise ImportFormatError(f"Import payload is not valid JSON: {e}") from e

        if not isinstance(data, dict):
            raise ImportFormatError("Import payload must be a JSON object")
        for field in ("patients", "chairs", "visitHistory"):
            if field not in data:
                raise ImportFormatError(f"Import payload is missing {field}")
            if not isinstance(data[field], list):
                raise ImportFormatError(f"Import field {field} must be a list")

        try:
            patients = [self._dict_to_patient(d) for d in data["patients"]]
            chairs = [self._dict_to_chair(d) for d in data["chairs"]]
            history = [self._dict_to_visit(d) for d in data["visitHistory"]]
        except (KeyError, TypeError, ValueError) as e:
            raise ImportFormatError(f"Import payload has an invalid record: {e}") from e

        problem = self._find_inconsistency(patients, chairs, reference=self.clock())
        if problem:
            raise ImportFormatError(f"Import payload is inconsistent: {problem}")

        self._patients, self._chairs, self._visit_history = patients, chairs, history
        self._persist("patients", "chairs", "visit_history")
        logger.info(
            "Imported %d patients, %d chairs, %d visits",
            len(patients), len(chairs), len(history),
        )
        self.load_data()

    def clear_all_data(self) -> None:
        """Drop every patient and visit, reseed the chairs and reset the counter."""
        self._patients = []
        self._chairs = initial_chairs()
        self._visit_history = []

        self._persist(
            "patients", "chairs", "visit_history",
            extra={self._key("patient_counter"): "0"},
        )
        logger.info("Cleared all clinic data")
        self.load_data()

    # Private helpers

    def _key(self, name: str) -> str:
        return f"{self.key_prefix}{name}"

    def _read_counter(self) -> int:
        value = self.kv_store.get(self._key("patient_counter"))
        if not value:
            return 0
        try:
            return int(value)
        except ValueError as e:
            raise PersistenceError(f"Stored visit counter is not a number: {value!r}") from e

    def _persist(self, *collections: str, extra: dict[str, str] | None = None) -> None:
        """Write the named collections (and any extra raw keys) together."""
        serializers = {
            "patients": lambda: [self._patient_to_dict(p) for p in self._patients],
            "chairs": lambda: [self._chair_to_dict(c) for c in self._chairs],
            "visit_history": lambda: [asdict(v) for v in self._visit_history],
        }
        items = {self._key(name): json.dumps(serializers[name]()) for name in collections}
        items.update(extra or {})

        try:
            self.kv_store.set_many(items)
        except PersistenceError:
            logger.exception("Failed to persist %s", ", ".join(items))
            raise

    def _session_start(self, chair_id: str, value: str) -> str:
        """Parse a corrected session start; it must be comparable to now and not after it."""
        now = self.clock()
        try:
            start = datetime.fromisoformat(value)
        except (TypeError, ValueError) as e:
            raise InvariantViolation(
                f"Session start for {chair_id} is not an ISO timestamp: {value!r}"
            ) from e

        if (start.utcoffset() is None) != (now.utcoffset() is None):
            raise InvariantViolation(
                f"Session start for {chair_id} must use the clinic clock's timezone"
            )
        if start > now:
            raise InvariantViolation(f"Session start for {chair_id} is in the future")
        return start.isoformat()

    def _find_inconsistency(
        self,
        patients: list[Patient],
        chairs: list[Chair],
        reference: datetime | None = None,
    ) -> str | None:
        """
        Check that chairs and patients point at each other.

        Returns a description of the first problem found, or None. When a
        reference time is given, session starts must share its timezone
        awareness.
        """
        patients_by_id = {p.id: p for p in patients}
        chairs_by_id = {c.id: c for c in chairs}
        if len(chairs_by_id) != len(chairs):
            return "duplicate chair ids"

        for chair in chairs:
            if chair.state == ChairState.FREE:
                if chair.patient_id or chair.start_time:
                    return f"free chair {chair.id} still has a session"
                continue

            if not chair.patient_id or not chair.start_time:
                return f"occupied chair {chair.id} needs a patient and a start time"
            try:
                start = datetime.fromisoformat(chair.start_time)
            except (TypeError, ValueError):
                return f"chair {chair.id} has an invalid start time {chair.start_time!r}"
            if reference and (start.utcoffset() is None) != (reference.utcoffset() is None):
                return f"chair {chair.id} start time does not match the clinic timezone"

            patient = patients_by_id.get(chair.patient_id)
            if not patient:
                return f"chair {chair.id} is held by unknown patient {chair.patient_id}"
            if patient.chair_id != chair.id:
                return f"chair {chair.id} and patient {patient.id} disagree on the seat"

        for patient in patients:
            if not patient.chair_id:
                continue
            chair = chairs_by_id.get(patient.chair_id)
            if not chair or chair.patient_id != patient.id:
                return f"patient {patient.id} is not seated in {patient.chair_id}"
        return None

    def _parse_stored(self, name: str, raw: str | None) -> list[dict]:
        if raw is None:
            return []
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise PersistenceError(f"Stored {name} is not valid JSON: {e}") from e
        if not isinstance(data, list):
            raise PersistenceError(f"Stored {name} is not a list")
        return data

    def _patient_to_dict(self, patient: Patient) -> dict:
        data = asdict(patient)
        data["id_kind"] = patient.id_kind.value
        return data

    def _chair_to_dict(self, chair: Chair) -> dict:
        data = asdict(chair)
        data["state"] = chair.state.value
        return data

    def _dict_to_patient(self, data: dict) -> Patient:
        """Convert a stored record to a Patient object."""
        return Patient(
            id=data["id"],
            name=data["name"],
            birth_date=data["birth_date"],
            id_kind=IdKind(data["id_kind"]),
            id_value=data["id_value"],
            visit_number=int(data["visit_number"]),
            phone=data.get("phone"),
            email=data.get("email"),
            medical_notes=data.get("medical_notes"),
            chair_id=data.get("chair_id"),
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
        )

    def _dict_to_chair(self, data: dict) -> Chair:
        """Convert a stored record to a Chair object."""
        return Chair(
            id=data["id"],
            state=ChairState(data.get("state", ChairState.FREE.value)),
            patient_id=data.get("patient_id"),
            start_time=data.get("start_time"),
        )

    def _dict_to_visit(self, data: dict) -> VisitHistory:
        """Convert a stored record to a VisitHistory object."""
        return VisitHistory(
            id=data["id"],
            patient_id=data["patient_id"],
            chair_id=data["chair_id"],
            start_time=data["start_time"],
            end_time=data["end_time"],
            duration=int(data["duration"]),
        )
