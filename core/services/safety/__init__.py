"""Clinical safety helpers: severity triage, cascade validation, confidence and PHI handling."""

from .cascade_validator import CascadeResult, CascadeValidatorService, get_cascade_validator
from .confidence import ConfidenceService, MedicationConfidenceInput
from .phi_protection import PHIProtectionService, get_phi_service
from .severity_detection import (
    PatientData,
    SeverityAssessment,
    SeverityDetectionService,
    get_severity_service,
)

__all__ = [
    "CascadeResult",
    "CascadeValidatorService",
    "get_cascade_validator",
    "ConfidenceService",
    "MedicationConfidenceInput",
    "PHIProtectionService",
    "get_phi_service",
    "PatientData",
    "SeverityAssessment",
    "SeverityDetectionService",
    "get_severity_service",
]
