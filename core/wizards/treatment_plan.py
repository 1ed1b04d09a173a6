"""Four-step treatment plan wizard: select patient, intake, AI analysis, review."""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

from core.db.schemas.treatment_plans import Intake, Review, SelectPatient

from .base import StepWizard

logger = logging.getLogger(__name__)


class TreatmentPlanWizard(StepWizard):
    TOTAL_STEPS = 4
    INITIAL_FORM_DATA: Dict[str, Any] = {
        "patientId": "",
        "selectedPatient": None,
        "chiefComplaint": "",
        "currentSymptoms": [],
        "symptomDuration": None,
        "symptomDurationValue": None,
        "severityLevel": None,
        "currentMedications": [],
        "vitalSigns": None,
        "labResults": None,
        "additionalNotes": "",
        "aiAnalysis": None,
        "finalPlan": None,
        "doctorNotes": "",
        "wasModified": False,
    }

    def __init__(self) -> None:
        super().__init__()
        self.is_analyzing = False
        self.analysis_error: Optional[str] = None

    def set_selected_patient(self, patient: Dict[str, Any]) -> None:
        self.form_data.update(
            patientId=patient["id"],
            selectedPatient=patient,
            currentMedications=[],
        )

    def _intake_fields(self) -> Dict[str, Any]:
        keys = (
            "chiefComplaint", "currentSymptoms", "symptomDuration", "symptomDurationValue",
            "severityLevel", "currentMedications", "vitalSigns", "labResults", "additionalNotes",
        )
        return {k: self.form_data.get(k) for k in keys}

    def validate_step(self, step: int) -> bool:
        data = self.form_data
        if step == 1:
            return self._is_valid(SelectPatient, {"patientId": data["patientId"]})
        if step == 2:
            return self._is_valid(Intake, self._intake_fields())
        if step == 3:
            return True
        if step == 4:
            return self._is_valid(Review, {
                "finalPlan": data.get("finalPlan"),
                "doctorNotes": data.get("doctorNotes"),
                "wasModified": data.get("wasModified"),
            })
        return False

    def get_step_errors(self, step: Optional[int] = None) -> Dict[str, str]:
        step = step if step is not None else self.current_step
        data = self.form_data
        if step == 1:
            return self._errors(SelectPatient, {"patientId": data["patientId"]})
        if step == 2:
            return self._errors(Intake, {
                "chiefComplaint": data["chiefComplaint"],
                "currentSymptoms": data["currentSymptoms"],
            })
        if step == 4:
            return self._errors(Review, {
                "finalPlan": data.get("finalPlan"),
                "doctorNotes": data.get("doctorNotes"),
            })
        return {}

    def reset_form(self) -> None:
        super().reset_form()
        self.is_analyzing = False
        self.analysis_error = None

    def analysis_request(self) -> Dict[str, Any]:
        data = self.form_data
        return {
            "patient": data["selectedPatient"],
            "chiefComplaint": data["chiefComplaint"],
            "currentSymptoms": data["currentSymptoms"],
            "currentMedications": data["currentMedications"],
            "vitalSigns": data["vitalSigns"],
            "labResults": data["labResults"],
            "additionalNotes": data["additionalNotes"],
        }

    def run_ai_analysis(self, analyze: Callable[[Dict[str, Any]], Dict[str, Any]]) -> None:
        """Call ``analyze`` with the current request and seed the final plan from its medications."""
        if not self.form_data.get("selectedPatient"):
            self.analysis_error = "No patient selected"
            return

        self.is_analyzing = True
        self.analysis_error = None
        try:
            response = analyze(self.analysis_request())
            self.form_data.update(
                aiAnalysis=response,
                finalPlan={"medications": response.get("medications") or [], "notes": ""},
            )
        except Exception as exc:
            logger.warning("AI analysis failed: %s", exc)
            self.analysis_error = str(exc) or "AI analysis failed"
        finally:
            self.is_analyzing = False

    def submit_payload(self, status: str) -> Dict[str, Any]:
        data = self.form_data
        return {
            "patientId": data["patientId"],
            "chiefComplaint": data["chiefComplaint"],
            "currentSymptoms": ", ".join(data["currentSymptoms"]),
            "vitalSigns": data["vitalSigns"],
            "status": status,
        }

    def submit_as_draft(self, create: Callable[[Dict[str, Any]], Any]) -> Any:
        return create(self.submit_payload("DRAFT"))

    def submit_as_approved(self, create: Callable[[Dict[str, Any]], Any]) -> Any:
        return create(self.submit_payload("APPROVED"))
