"""Multi-factor confidence scoring for AI-generated medication recommendations."""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from core.services.pubmed_service import PubMedService

WEIGHTS = {
    "drugValidation": 0.2,
    "safetyScore": 0.3,
    "evidenceScore": 0.25,
    "patientFactors": 0.15,
    "aiBaseScore": 0.1,
}

THRESHOLDS = {"HIGH": 80, "MODERATE": 60, "LOW": 40}

GRADE_COLORS = {
    "HIGH": "green",
    "MODERATE": "yellow",
    "LOW": "orange",
    "INSUFFICIENT": "red",
}

GRADE_DESCRIPTIONS = {
    "HIGH": "Strong evidence support with validated safety profile",
    "MODERATE": "Reasonable evidence with some considerations",
    "LOW": "Limited evidence or safety concerns identified",
    "INSUFFICIENT": "Insufficient data for confident recommendation",
}

_INTERACTION_PENALTIES = {"Contraindicated": 50, "Major": 30, "Moderate": 15, "Minor": 5}


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _unique(items: List[str]) -> List[str]:
    return list(dict.fromkeys(items))


@dataclass
class MedicationConfidenceInput:
    medication_name: str
    ai_confidence: float
    fda_validated: bool
    dosage_within_limits: bool
    route: str
    interactions: List[Dict[str, Any]] = field(default_factory=list)
    contraindications: List[str] = field(default_factory=list)
    patient_allergies: List[str] = field(default_factory=list)
    references: List[Dict[str, Any]] = field(default_factory=list)
    patient_age: Optional[int] = None
    patient_conditions: List[str] = field(default_factory=list)


def grade_for(score: float, warnings: List[str]) -> str:
    if any("CRITICAL" in w for w in warnings):
        return "LOW"
    if score >= THRESHOLDS["HIGH"]:
        return "HIGH"
    if score >= THRESHOLDS["MODERATE"]:
        return "MODERATE"
    if score >= THRESHOLDS["LOW"]:
        return "LOW"
    return "INSUFFICIENT"


def grade_color(grade: str) -> str:
    return GRADE_COLORS[grade]


def grade_description(grade: str) -> str:
    return GRADE_DESCRIPTIONS[grade]


class ConfidenceService:
    """Weighted scoring across drug validation, safety, evidence, patient factors and model confidence."""

    def calculate_medication_confidence(self, data: MedicationConfidenceInput) -> Dict[str, Any]:
        warnings: List[str] = []
        recommendations: List[str] = []

        breakdown = {
            "drugValidation": self._drug_validation_score(data, warnings),
            "safetyScore": self._safety_score(data, warnings, recommendations),
            "evidenceScore": self._evidence_score(data.references, recommendations),
            "patientFactors": self._patient_factors_score(data, warnings),
            "aiBaseScore": min(100, max(0, data.ai_confidence)),
        }
        overall = round_half_up(sum(breakdown[k] * w for k, w in WEIGHTS.items()))
        return {
            "overallScore": overall,
            "grade": grade_for(overall, warnings),
            "breakdown": breakdown,
            "warnings": warnings,
            "recommendations": recommendations,
        }

    def calculate_plan_confidence(self, confidences: List[Dict[str, Any]]) -> Dict[str, Any]:
        """Average the per-medication results, capped by the weakest safety score + 20."""
        if not confidences:
            return {
                "overallScore": 0,
                "grade": "INSUFFICIENT",
                "breakdown": {k: 0 for k in WEIGHTS},
                "warnings": ["No medications to evaluate"],
                "recommendations": [],
            }

        count = len(confidences)
        breakdown = {
            key: round_half_up(sum(c["breakdown"][key] for c in confidences) / count)
            for key in WEIGHTS
        }
        min_safety = min(c["breakdown"]["safetyScore"] for c in confidences)
        avg_overall = round_half_up(sum(c["overallScore"] for c in confidences) / count)
        overall = min(avg_overall, min_safety + 20)

        warnings = _unique([w for c in confidences for w in c["warnings"]])
        recommendations = _unique([r for c in confidences for r in c["recommendations"]])
        return {
            "overallScore": overall,
            "grade": grade_for(overall, warnings),
            "breakdown": breakdown,
            "warnings": warnings,
            "recommendations": recommendations,
        }

    @staticmethod
    def _drug_validation_score(data: MedicationConfidenceInput, warnings: List[str]) -> int:
        score = 0
        if data.fda_validated:
            score += 40
        else:
            warnings.append(f"{data.medication_name}: Not found in FDA database")
        if data.dosage_within_limits:
            score += 30
        else:
            warnings.append(f"{data.medication_name}: Dosage may exceed recommended limits")
            score += 10
        if data.route and data.route != "Unknown":
            score += 30
        return min(100, score)

    @staticmethod
    def _safety_score(data: MedicationConfidenceInput, warnings: List[str], recommendations: List[str]) -> int:
        score = 100
        if data.contraindications:
            score -= len(data.contraindications) * 40
            warnings.append(
                f"{data.medication_name}: {len(data.contraindications)} contraindication(s) identified"
            )

        for interaction in data.interactions:
            severity = interaction.get("severity")
            count = interaction.get("count", 1)
            score -= _INTERACTION_PENALTIES.get(severity, 0) * count
            if severity == "Contraindicated":
                warnings.append("CRITICAL: Contraindicated drug interaction detected")
            elif severity == "Major":
                warnings.append(f"{data.medication_name}: Major drug interaction detected")
                recommendations.append("Review interaction and consider alternative")
            elif severity == "Moderate":
                recommendations.append("Monitor for interaction effects")

        med = data.medication_name.lower()
        if any(a and (a.lower() in med or med in a.lower()) for a in data.patient_allergies):
            score -= 80
            warnings.append(f"CRITICAL: {data.medication_name} may conflict with patient allergy")

        return max(0, score)

    @staticmethod
    def _evidence_score(references: List[Dict[str, Any]], recommendations: List[str]) -> int:
        if not references:
            recommendations.append("No clinical references found - consider additional literature review")
            return 30

        score = 40 + min(20, len(references) * 5)
        levels = {PubMedService.get_evidence_level(r.get("publicationType") or []) for r in references}
        if "A" in levels:
            score += 40
        elif "B" in levels:
            score += 30
        elif "C" in levels:
            score += 20
        else:
            score += 10
            recommendations.append("Consider seeking higher-level evidence (RCTs or systematic reviews)")
        return min(100, score)

    @staticmethod
    def _patient_factors_score(data: MedicationConfidenceInput, warnings: List[str]) -> int:
        score = 70
        if data.patient_age is not None:
            score += 15 if data.patient_age < 18 or data.patient_age >= 65 else 30

        conditions = [c.lower() for c in data.patient_conditions]
        if any("kidney" in c or "renal" in c or "ckd" in c for c in conditions):
            warnings.append(f"Consider renal dosage adjustment for {data.medication_name}")
        if any("liver" in c or "hepatic" in c or "cirrhosis" in c for c in conditions):
            warnings.append(f"Consider hepatic dosage adjustment for {data.medication_name}")
        return min(100, score)
