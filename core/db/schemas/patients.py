"""Patient request/response schemas and the patient wizard step schemas."""
import uuid
from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import Field, field_validator

from .common import CamelModel

GENDERS = ("MALE", "FEMALE", "OTHER")
BLOOD_TYPES = ("A+", "A-", "B+", "B-", "AB+", "AB-", "O+", "O-")

Gender = Literal["MALE", "FEMALE", "OTHER"]
BloodType = Literal["A+", "A-", "B+", "B-", "AB+", "AB-", "O+", "O-"]


def _check_range(value, low, high, low_msg, high_msg):
    if value is None:
        return value
    if value < low:
        raise ValueError(low_msg)
    if value > high:
        raise ValueError(high_msg)
    return value


def _parse_date(value: str) -> Optional[date]:
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        return None


# ---------------------------------------------------------------------------
# Wizard step schemas
# ---------------------------------------------------------------------------

class PatientDemographics(CamelModel):
    name: str = ""
    date_of_birth: str = ""
    gender: Gender
    weight: Optional[float] = None
    height: Optional[float] = None
    blood_type: Optional[BloodType] = None

    @field_validator("name")
    @classmethod
    def _validate_name(cls, v: str):
        if len(v) < 2:
            raise ValueError("Name must be at least 2 characters")
        if len(v) > 100:
            raise ValueError("Name must be less than 100 characters")
        return v

    @field_validator("date_of_birth")
    @classmethod
    def _validate_dob(cls, v: str):
        if not v:
            raise ValueError("Date of birth is required")
        parsed = _parse_date(v)
        today = date.today()
        # Unparseable dates fail both checks, matching an invalid Date comparison
        if parsed is None or parsed > today:
            raise ValueError("Date of birth cannot be in the future")
        if today.year - parsed.year > 150:
            raise ValueError("Please enter a valid date of birth")
        return v

    @field_validator("weight")
    @classmethod
    def _validate_weight(cls, v):
        return _check_range(v, 0.5, 500, "Weight must be at least 0.5 kg", "Weight must be less than 500 kg")

    @field_validator("height")
    @classmethod
    def _validate_height(cls, v):
        return _check_range(v, 20, 300, "Height must be at least 20 cm", "Height must be less than 300 cm")


class PatientMedicalHistory(CamelModel):
    medical_history: Optional[str] = None
    chronic_conditions: Optional[List[str]] = None

    @field_validator("medical_history")
    @classmethod
    def _validate_history(cls, v: Optional[str]):
        if v is not None and len(v) > 5000:
            raise ValueError("Medical history must be less than 5000 characters")
        return v


class PatientMedications(CamelModel):
    current_medications: Optional[List[str]] = None
    allergies: Optional[List[str]] = None


class PatientVitals(CamelModel):
    blood_pressure_systolic: Optional[float] = None
    blood_pressure_diastolic: Optional[float] = None
    heart_rate: Optional[float] = None
    temperature: Optional[float] = None
    respiratory_rate: Optional[float] = None
    oxygen_saturation: Optional[float] = None
    chief_complaint: Optional[str] = None
    current_symptoms: Optional[List[str]] = None

    @field_validator("blood_pressure_systolic")
    @classmethod
    def _validate_systolic(cls, v):
        return _check_range(v, 60, 250, "Systolic BP must be at least 60 mmHg", "Systolic BP must be less than 250 mmHg")

    @field_validator("blood_pressure_diastolic")
    @classmethod
    def _validate_diastolic(cls, v):
        return _check_range(v, 40, 150, "Diastolic BP must be at least 40 mmHg", "Diastolic BP must be less than 150 mmHg")

    @field_validator("heart_rate")
    @classmethod
    def _validate_heart_rate(cls, v):
        return _check_range(v, 30, 250, "Heart rate must be at least 30 bpm", "Heart rate must be less than 250 bpm")

    @field_validator("temperature")
    @classmethod
    def _validate_temperature(cls, v):
        return _check_range(v, 35, 42, "Temperature must be at least 35°C", "Temperature must be less than 42°C")

    @field_validator("respiratory_rate")
    @classmethod
    def _validate_respiratory_rate(cls, v):
        return _check_range(v, 8, 40, "Respiratory rate must be at least 8/min", "Respiratory rate must be less than 40/min")

    @field_validator("oxygen_saturation")
    @classmethod
    def _validate_oxygen(cls, v):
        return _check_range(v, 70, 100, "Oxygen saturation must be at least 70%", "Oxygen saturation cannot exceed 100%")

    @field_validator("chief_complaint")
    @classmethod
    def _validate_complaint(cls, v: Optional[str]):
        if v is not None and len(v) > 500:
            raise ValueError("Chief complaint must be less than 500 characters")
        return v


class CreatePatientForm(PatientDemographics, PatientMedicalHistory, PatientMedications, PatientVitals):
    """All wizard steps merged into a single schema."""


# ---------------------------------------------------------------------------
# API payloads
# ---------------------------------------------------------------------------

class PatientCreate(CamelModel):
    name: str
    date_of_birth: date
    gender: Gender
    weight: Optional[float] = None
    height: Optional[float] = None
    blood_type: Optional[str] = None
    medical_history: Optional[str] = None
    current_medications: List[str] = Field(default_factory=list)
    allergies: List[str] = Field(default_factory=list)
    chronic_conditions: List[str] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def _validate_name(cls, v: str):
        if len(v) < 2:
            raise ValueError("Name must be at least 2 characters")
        return v

    @field_validator("current_medications", "allergies", "chronic_conditions", mode="before")
    @classmethod
    def _none_to_list(cls, v):
        return [] if v is None else v


class PatientUpdate(CamelModel):
    name: Optional[str] = None
    date_of_birth: Optional[date] = None
    gender: Optional[Gender] = None
    weight: Optional[float] = None
    height: Optional[float] = None
    blood_type: Optional[str] = None
    medical_history: Optional[str] = None
    current_medications: Optional[List[str]] = None
    allergies: Optional[List[str]] = None
    chronic_conditions: Optional[List[str]] = None

    @field_validator("name")
    @classmethod
    def _validate_name(cls, v: Optional[str]):
        if v is not None and len(v) < 2:
            raise ValueError("Name must be at least 2 characters")
        return v

    @field_validator("date_of_birth", "gender", "name", "current_medications", "allergies", "chronic_conditions", mode="before")
    @classmethod
    def _reject_null(cls, v):
        # Only the measurement and free-text fields may be cleared with null
        if v is None:
            raise ValueError("Field cannot be null")
        return v


class PatientListParams(CamelModel):
    search: str = ""
    gender: Optional[Gender] = None
    sort_by: Literal["name", "createdAt", "updatedAt"] = "updatedAt"
    sort_order: Literal["asc", "desc"] = "desc"
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=10, ge=1, le=100)


class TreatmentPlanSummary(CamelModel):
    id: uuid.UUID
    chief_complaint: str
    status: str
    risk_level: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class PatientOut(CamelModel):
    id: uuid.UUID
    doctor_id: uuid.UUID
    name: str
    date_of_birth: date
    gender: str
    weight: Optional[float] = None
    height: Optional[float] = None
    blood_type: Optional[str] = None
    medical_history: Optional[str] = None
    current_medications: List[str] = Field(default_factory=list)
    allergies: List[str] = Field(default_factory=list)
    chronic_conditions: List[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime
    treatment_plan_count: int = 0


class PatientDetail(PatientOut):
    treatment_plans: List[TreatmentPlanSummary] = Field(default_factory=list)
