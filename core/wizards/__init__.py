"""Server-side state machines for the multi-step patient and treatment-plan forms."""

from .base import StepWizard
from .patient import PatientWizard
from .treatment_plan import TreatmentPlanWizard

__all__ = ["StepWizard", "PatientWizard", "TreatmentPlanWizard"]
