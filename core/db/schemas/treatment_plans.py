"""Treatment plan request/response schemas and the plan wizard step schemas."""
import uuid
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import Field, ValidationInfo, field_validator

from .common import CamelModel
from .patients import Gender

SEVERITY_LEVELS = ("LOW", "MEDIUM", "HIGH")
SYMPTOM_DURATIONS = ("days", "weeks", "months", "years")
PLAN_STATUSES = ("DRAFT", "APPROVED", "REJECTED")

RiskLevel = Literal["LOW", "MEDIUM", "HIGH"]
PlanStatus = Literal["DRAFT", "APPROVED", "REJECTED"]

WIZARD_STEPS = [
    {"id": 1, "title": "Select Patient", "description": "Choose a patient"},
    {"id": 2, "title": "Clinical Intake", "description": "Document symptoms"},
    {"id": 3, "title": "AI Analysis", "description": "Review recommendations"},
    {"id": 4, "title": "Review & Approve", "description": "Finalize plan"},
]

EVIDENCE_LEVEL_LABELS = {
    "A": "Systematic Review / Meta-Analysis",
    "B": "Randomized Controlled Trial",
    "C": "Cohort / Case-Control Study",
    "D": "Expert Opinion / Case Report",
}


# ---------------------------------------------------------------------------
# Wizard step schemas
# ---------------------------------------------------------------------------

class SelectPatient(CamelModel):
    patient_id: str = ""

    @field_validator("patient_id")
    @classmethod
    def _validate_patient_id(cls, v: str):
        if len(v) < 1:
            raise ValueError("Please select a patient")
        return v


class VitalSigns(CamelModel):
    blood_pressure_systolic: Optional[float] = Field(default=None, ge=60, le=250)
    blood_pressure_diastolic: Optional[float] = Field(default=None, ge=40, le=150)
    heart_rate: Optional[float] = Field(default=None, ge=30, le=250)
    temperature: Optional[float] = Field(default=None, ge=35, le=42)
    respiratory_rate: Optional[float] = Field(default=None, ge=8, le=40)
    oxygen_saturation: Optional[float] = Field(default=None, ge=70, le=100)
    weight: Optional[float] = Field(default=None, ge=0.5, le=500)
    height: Optional[float] = Field(default=None, ge=20, le=300)


class LabResultsManual(CamelModel):
    glucose: Optional[float] = Field(default=None, ge=0, le=1000)
    cholesterol: Optional[float] = Field(default=None, ge=0, le=500)
    hemoglobin: Optional[float] = Field(default=None, ge=0, le=25)
    white_blood_cells: Optional[float] = Field(default=None, ge=0, le=100000)
    platelets: Optional[float] = Field(default=None, ge=0, le=1000000)
    creatinine: Optional[float] = Field(default=None, ge=0, le=30)
    alt: Optional[float] = Field(default=None, ge=0, le=5000)
    ast: Optional[float] = Field(default=None, ge=0, le=5000)
    other_results: Optional[str] = Field(default=None, max_length=2000)


class LabResultsFile(CamelModel):
    file_name: str = Field(min_length=1)
    file_type: str = Field(min_length=1)
    file_size: float = Field(ge=1, le=10_000_000)
    uploaded_at: str
    file_url: Optional[str] = None


class LabResults(CamelModel):
    input_mode: Literal["manual", "file"]
    manual: Optional[LabResultsManual] = None
    file: Optional[LabResultsFile] = None


class Intake(CamelModel):
    chief_complaint: str = ""
    current_symptoms: List[str] = Field(default_factory=list)
    symptom_duration: Optional[Literal["days", "weeks", "months", "years"]] = None
    symptom_duration_value: Optional[float] = Field(default=None, ge=1, le=365)
    severity_level: Optional[RiskLevel] = None
    current_medications: Optional[List[str]] = None
    vital_signs: Optional[VitalSigns] = None
    lab_results: Optional[LabResults] = None
    additional_notes: Optional[str] = Field(default=None, max_length=5000)

    @field_validator("chief_complaint")
    @classmethod
    def _validate_complaint(cls, v: str):
        if len(v) < 10:
            raise ValueError("Chief complaint must be at least 10 characters")
        if len(v) > 1000:
            raise ValueError("Chief complaint must be less than 1000 characters")
        return v

    @field_validator("current_symptoms")
    @classmethod
    def _validate_symptoms(cls, v: List[str]):
        if len(v) < 1:
            raise ValueError("At least one symptom is required")
        return v


_MEDICATION_REQUIRED = {
    "name": "Medication name is required",
    "dosage": "Dosage is required",
    "frequency": "Frequency is required",
    "duration": "Duration is required",
    "route": "Route is required",
}


class Medication(CamelModel):
    name: str = ""
    generic_name: Optional[str] = None
    dosage: str = ""
    frequency: str = ""
    duration: str = ""
    route: str = ""
    instructions: Optional[str] = None
    confidence_score: Optional[float] = Field(default=None, ge=0, le=100)

    @field_validator("name", "dosage", "frequency", "duration", "route")
    @classmethod
    def _validate_required(cls, v: str, info: ValidationInfo):
        if len(v) < 1:
            raise ValueError(_MEDICATION_REQUIRED[info.field_name])
        return v


class FinalPlan(CamelModel):
    medications: List[Medication]
    notes: Optional[str] = Field(default=None, max_length=5000)
    approved_by: Optional[str] = None


class Review(CamelModel):
    final_plan: Optional[FinalPlan] = None
    doctor_notes: Optional[str] = Field(default=None, max_length=5000)
    was_modified: Optional[bool] = None


# ---------------------------------------------------------------------------
# API payloads
# ---------------------------------------------------------------------------

class TreatmentPlanCreate(CamelModel):
    patient_id: str
    chief_complaint: str
    current_symptoms: str
    vital_signs: Optional[Any] = None
    physical_exam_notes: Optional[str] = None
    ai_recommendations: Optional[Any] = None
    risk_level: Optional[RiskLevel] = None
    risk_factors: Optional[List[str]] = None
    risk_justification: Optional[str] = None
    drug_interactions: Optional[List[Any]] = None
    contraindications: Optional[List[Any]] = None
    alternatives: Optional[List[Any]] = None
    status: Optional[PlanStatus] = None

    @field_validator("chief_complaint")
    @classmethod
    def _validate_complaint(cls, v: str):
        if len(v) < 1:
            raise ValueError("Chief complaint is required")
        return v


class TreatmentPlanUpdate(CamelModel):
    chief_complaint: Optional[str] = None
    current_symptoms: Optional[str] = None
    vital_signs: Optional[Any] = None
    physical_exam_notes: Optional[str] = None
    ai_recommendations: Optional[Any] = None
    final_plan: Optional[Any] = None
    risk_level: Optional[RiskLevel] = None
    risk_factors: Optional[List[str]] = None
    risk_justification: Optional[str] = None
    drug_interactions: Optional[List[Any]] = None
    contraindications: Optional[List[Any]] = None
    alternatives: Optional[List[Any]] = None
    status: Optional[PlanStatus] = None
    was_modified: Optional[bool] = None
    modification_notes: Optional[str] = None


class TreatmentPlanListParams(CamelModel):
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=10, ge=1, le=100)
    search: str = ""
    status: Optional[str] = None
    risk_level: Optional[str] = None
    patient_id: Optional[uuid.UUID] = None


class AnalysisPatient(CamelModel):
    id: str
    name: str
    date_of_birth: str
    gender: Gender
    allergies: List[str]
    chronic_conditions: List[str]


class AnalysisVitalSigns(CamelModel):
    blood_pressure_systolic: Optional[float] = None
    blood_pressure_diastolic: Optional[float] = None
    heart_rate: Optional[float] = None
    temperature: Optional[float] = None
    respiratory_rate: Optional[float] = None
    oxygen_saturation: Optional[float] = None


class AnalyzeRequest(CamelModel):
    patient: AnalysisPatient
    chief_complaint: str
    current_symptoms: List[str]
    current_medications: List[str]
    vital_signs: Optional[AnalysisVitalSigns] = None
    lab_results: Optional[Any] = None
    additional_notes: Optional[str] = None
    use_rag: Optional[bool] = Field(default=None, alias="useRAG")

    @field_validator("chief_complaint")
    @classmethod
    def _validate_complaint(cls, v: str):
        if len(v) < 1:
            raise ValueError("Chief complaint is required")
        return v


class PatientRef(CamelModel):
    id: uuid.UUID
    name: str


class TreatmentPlanOut(CamelModel):
    id: uuid.UUID
    patient_id: uuid.UUID
    doctor_id: uuid.UUID
    chief_complaint: str
    current_symptoms: Optional[str] = None
    vital_signs: Optional[Any] = None
    physical_exam_notes: Optional[str] = None
    ai_recommendations: Optional[Any] = None
    final_plan: Optional[Any] = None
    risk_level: Optional[str] = None
    risk_factors: List[Any] = Field(default_factory=list)
    risk_justification: Optional[str] = None
    drug_interactions: List[Any] = Field(default_factory=list)
    contraindications: List[Any] = Field(default_factory=list)
    alternatives: List[Any] = Field(default_factory=list)
    status: str
    was_modified: bool = False
    modification_notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    approved_at: Optional[datetime] = None
    patient: Optional[PatientRef] = None


def plan_to_api(plan) -> Dict[str, Any]:
    return TreatmentPlanOut.model_validate(plan).to_api()
