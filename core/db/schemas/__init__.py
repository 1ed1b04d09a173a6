"""
Domain-split Pydantic schemas.

Request payloads and responses use camelCase aliases (see ``CamelModel``).
"""

from .common import CamelModel, first_error_message, validation_error_message, error_map
from .auth import (
    RegisterRequest,
    LoginRequest,
    ResendVerificationRequest,
    VerifyEmailRequest,
    ProfileUpdateRequest,
    UserSummary,
    DoctorProfileOut,
    CurrentUser,
)
from .patients import (
    GENDERS,
    BLOOD_TYPES,
    PatientDemographics,
    PatientMedicalHistory,
    PatientMedications,
    PatientVitals,
    CreatePatientForm,
    PatientCreate,
    PatientUpdate,
    PatientListParams,
    TreatmentPlanSummary,
    PatientOut,
    PatientDetail,
)
from .treatment_plans import (
    SEVERITY_LEVELS,
    SYMPTOM_DURATIONS,
    PLAN_STATUSES,
    WIZARD_STEPS,
    EVIDENCE_LEVEL_LABELS,
    SelectPatient,
    VitalSigns,
    LabResultsManual,
    LabResultsFile,
    LabResults,
    Intake,
    Medication,
    FinalPlan,
    Review,
    TreatmentPlanCreate,
    TreatmentPlanUpdate,
    TreatmentPlanListParams,
    AnalysisPatient,
    AnalysisVitalSigns,
    AnalyzeRequest,
    PatientRef,
    TreatmentPlanOut,
    plan_to_api,
)
from .audit_logs import AuditLogOut, AuditLogListParams, AuditExportRequest
from .knowledge import (
    FdaDrugQuery,
    PubMedQuery,
    GuidelineIn,
    InteractionIn,
    IngestFda,
    IngestPubMed,
    IngestGuidelines,
    IngestInteractions,
    IngestRequest,
    SevereConditionOut,
)

__all__ = [
    # common
    "CamelModel",
    "first_error_message",
    "validation_error_message",
    "error_map",
    # auth
    "RegisterRequest",
    "LoginRequest",
    "ResendVerificationRequest",
    "VerifyEmailRequest",
    "ProfileUpdateRequest",
    "UserSummary",
    "DoctorProfileOut",
    "CurrentUser",
    # patients
    "GENDERS",
    "BLOOD_TYPES",
    "PatientDemographics",
    "PatientMedicalHistory",
    "PatientMedications",
    "PatientVitals",
    "CreatePatientForm",
    "PatientCreate",
    "PatientUpdate",
    "PatientListParams",
    "TreatmentPlanSummary",
    "PatientOut",
    "PatientDetail",
    # treatment plans
    "SEVERITY_LEVELS",
    "SYMPTOM_DURATIONS",
    "PLAN_STATUSES",
    "WIZARD_STEPS",
    "EVIDENCE_LEVEL_LABELS",
    "SelectPatient",
    "VitalSigns",
    "LabResultsManual",
    "LabResultsFile",
    "LabResults",
    "Intake",
    "Medication",
    "FinalPlan",
    "Review",
    "TreatmentPlanCreate",
    "TreatmentPlanUpdate",
    "TreatmentPlanListParams",
    "AnalysisPatient",
    "AnalysisVitalSigns",
    "AnalyzeRequest",
    "PatientRef",
    "TreatmentPlanOut",
    "plan_to_api",
    # audit
    "AuditLogOut",
    "AuditLogListParams",
    "AuditExportRequest",
    # knowledge
    "FdaDrugQuery",
    "PubMedQuery",
    "GuidelineIn",
    "InteractionIn",
    "IngestFda",
    "IngestPubMed",
    "IngestGuidelines",
    "IngestInteractions",
    "IngestRequest",
    "SevereConditionOut",
]
