"""Patient registration form: normalization and field-keyed validation."""

from datetime import date

from pydantic import BaseModel, Field, ValidationInfo, field_validator

from chair_tracker.clinic_ledger.database.clinic_store import IdKind
from chair_tracker.errors import ValidationError
from chair_tracker.identity_validator import (
    NATIONAL_ID_PATTERN,
    calculate_age,
    clean_national_id,
    format_national_id,
    format_phone,
    validate_email,
    validate_national_id,
    validate_phone,
)


class PatientForm(BaseModel):
    """Values typed at the front desk when registering a patient."""

    name: str = Field(..., description="Patient's full name")
    birth_date: str = Field(..., description="Date of birth in YYYY-MM-DD format")
    id_kind: IdKind = Field(IdKind.NATIONAL_ID, description="national_id or passport")
    id_value: str = Field(..., description="National id number or passport number")
    phone: str | None = Field(None, description="Mobile phone, formatted +56 9 XXXX XXXX")
    email: str | None = Field(None, description="Email address")
    medical_notes: str | None = Field(None, description="Free-text medical history")

    @field_validator("name", "birth_date", mode="before")
    @classmethod
    def strip_required(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("phone", "email", "medical_notes", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        """Treat empty optional fields as missing."""
        if v is None:
            return None
        v = v.strip()
        return v or None

    @field_validator("id_value", mode="before")
    @classmethod
    def normalize_id_value(cls, v, info: ValidationInfo):
        """Format national ids as 12.345.678-K; passports are only trimmed."""
        v = (v or "").strip()
        if info.data.get("id_kind") == IdKind.NATIONAL_ID:
            return format_national_id(v)
        return v

    @field_validator("phone")
    @classmethod
    def normalize_phone(cls, v):
        if v is None:
            return None
        return format_phone(v)

    def to_patient_data(self) -> dict:
        """Keyword arguments for ClinicStore.add_patient."""
        return self.model_dump()


def validate_patient_form(data: dict, today: date | None = None) -> dict[str, str]:
    """
    Check raw form input and return error messages keyed by field.

    An empty dict means the form can be submitted.
    """
    errors = {}
    today = today or date.today()

    name = (data.get("name") or "").strip()
    if not name:
        errors["name"] = "Name is required"
    elif len(name) < 2:
        errors["name"] = "Name must have at least 2 characters"

    birth_date = (data.get("birth_date") or "").strip()
    if not birth_date:
        errors["birth_date"] = "Date of birth is required"
    else:
        try:
            birth = date.fromisoformat(birth_date)
        except ValueError:
            errors["birth_date"] = "Date of birth must use the YYYY-MM-DD format"
        else:
            if birth > today:
                errors["birth_date"] = "Date of birth cannot be in the future"
            elif calculate_age(birth, today) < 1:
                errors["birth_date"] = "Date of birth is not valid"

    id_kind = data.get("id_kind", IdKind.NATIONAL_ID)
    try:
        id_kind = IdKind(id_kind)
    except ValueError:
        errors["id_kind"] = "Identity document must be national_id or passport"
        id_kind = None

    id_value = (data.get("id_value") or "").strip()
    if not id_value:
        label = "Passport" if id_kind == IdKind.PASSPORT else "National id"
        errors["id_value"] = f"{label} is required"
    elif id_kind == IdKind.NATIONAL_ID:
        if not NATIONAL_ID_PATTERN.match(clean_national_id(id_value)):
            errors["id_value"] = "National id format is not valid (e.g. 12.345.678-5)"
        elif not validate_national_id(id_value):
            errors["id_value"] = "National id check digit does not match"
    elif id_kind == IdKind.PASSPORT and len(id_value) < 3:
        errors["id_value"] = "Passport must have at least 3 characters"

    phone = (data.get("phone") or "").strip()
    if phone and not validate_phone(phone):
        errors["phone"] = "Phone format is not valid (e.g. +56 9 1234 5678)"

    email = (data.get("email") or "").strip()
    if email and not validate_email(email):
        errors["email"] = "Email format is not valid"

    return errors


def parse_patient_form(data: dict, today: date | None = None) -> PatientForm:
    """Validate raw input and build a normalized PatientForm."""
    errors = validate_patient_form(data, today=today)
    if errors:
        raise ValidationError(errors)
    return PatientForm.model_validate(data)
