"""Five-step patient intake wizard."""
from __future__ import annotations

from typing import Any, Callable, Dict, Optional

from core.db.schemas.patients import (
    PatientDemographics,
    PatientMedicalHistory,
    PatientMedications,
    PatientVitals,
)

from .base import StepWizard

_STEP_SCHEMAS = {
    1: PatientDemographics,
    2: PatientMedicalHistory,
    3: PatientMedications,
    4: PatientVitals,
}


class PatientWizard(StepWizard):
    """Demographics, medical history, medications, vitals, review."""

    TOTAL_STEPS = 5
    INITIAL_FORM_DATA: Dict[str, Any] = {
        "name": "",
        "dateOfBirth": "",
        "gender": "MALE",
        "weight": None,
        "height": None,
        "bloodType": None,
        "medicalHistory": "",
        "chronicConditions": [],
        "currentMedications": [],
        "allergies": [],
        "bloodPressureSystolic": None,
        "bloodPressureDiastolic": None,
        "heartRate": None,
        "temperature": None,
        "respiratoryRate": None,
        "oxygenSaturation": None,
        "chiefComplaint": "",
        "currentSymptoms": [],
    }

    def validate_step(self, step: int) -> bool:
        if step == 5:
            return True
        schema = _STEP_SCHEMAS.get(step)
        if schema is None:
            return False
        return self._is_valid(schema, self.form_data)

    def get_step_errors(self, step: Optional[int] = None) -> Dict[str, str]:
        schema = _STEP_SCHEMAS.get(step if step is not None else self.current_step)
        if schema is None:
            return {}
        return self._errors(schema, self.form_data)

    def submit_payload(self) -> Dict[str, Any]:
        data = self.form_data
        return {
            "name": data["name"],
            "dateOfBirth": data["dateOfBirth"],
            "gender": data["gender"],
            "medicalHistory": data.get("medicalHistory") or None,
            "currentMedications": data.get("currentMedications") or [],
            "allergies": data.get("allergies") or [],
            "chronicConditions": data.get("chronicConditions") or [],
        }

    def submit_form(self, create: Callable[[Dict[str, Any]], Any]) -> Any:
        return create(self.submit_payload())
