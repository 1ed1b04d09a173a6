"""
AI treatment analysis.

Without an OpenAI key (or with ``LLM_FEATURES_ENABLED=false``) a deterministic
mock is returned after ``MOCK_ANALYSIS_DELAY_SECONDS``. The real path sends a
de-identified prompt to the chat-completions endpoint, re-identifies the
answer, enriches each medication with FDA / PubMed evidence and applies the
NSAID guardrail. Any failure on the real path falls back to the mock.

Every response carries a ``severityAssessment``; the cascade validation is
attached as ``safetyValidation`` on the real path, or always when
``SAFETY_CASCADE_ENABLED`` is set.
"""
from __future__ import annotations

import copy
import json
import logging
import os
import time
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import requests
from sqlalchemy.orm import Session

from core.db.schemas.treatment_plans import AnalyzeRequest
from core.services.medical_apis import MedicalApisService, get_medical_apis_service
from core.services.pubmed_service import PubMedService, get_pubmed_service
from core.services.safety.cascade_validator import CascadeValidatorService, get_cascade_validator
from core.services.safety.confidence import ConfidenceService, MedicationConfidenceInput
from core.services.safety.phi_protection import PHIProtectionService, get_phi_service
from core.services.safety.severity_detection import (
    PatientData,
    SeverityAssessment,
    SeverityDetectionService,
    get_severity_service,
)
from core.utils.feature_flags import (
    external_validation_enabled,
    llm_features_enabled,
    safety_cascade_enabled,
)
from core.utils.runtime import mock_analysis_delay_seconds

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4-turbo-preview"
DEFAULT_BASE_URL = "https://api.openai.com/v1"
TEMPERATURE = 0.2
MAX_TOKENS = 4096

NSAID_MEDICATIONS = (
    "ibuprofen", "advil", "motrin", "naproxen", "aleve", "naprosyn", "aspirin",
    "diclofenac", "voltaren", "indomethacin", "indocin", "ketorolac", "toradol",
    "meloxicam", "mobic", "piroxicam", "feldene", "celecoxib", "celebrex",
    "nabumetone", "relafen", "etodolac", "lodine", "sulindac", "clinoril",
    "ketoprofen", "orudis", "flurbiprofen", "ansaid", "oxaprozin", "daypro",
)

NSAID_CONTRAINDICATED_CONDITIONS = (
    "hypertension", "high blood pressure", "htn",
    "diabetes", "diabetes mellitus", "type 1 diabetes", "type 2 diabetes", "t1dm", "t2dm", "dm",
    "chronic kidney disease", "ckd", "kidney disease", "renal disease", "renal insufficiency",
    "renal failure", "kidney failure", "stage 3 ckd", "stage 4 ckd", "stage 5 ckd",
    "stage 3 chronic kidney disease", "stage 4 chronic kidney disease",
    "stage 5 chronic kidney disease", "esrd", "end stage renal disease",
)

NSAID_BLOCKED_RISK_FACTOR = (
    "NSAID medications were automatically blocked due to patient comorbidities "
    "(Hypertension/Diabetes/CKD)"
)
NSAID_HARM = (
    "NSAIDs can cause acute kidney injury, worsen hypertension, and accelerate CKD progression."
)

REAL_DISCLAIMER = (
    "AI-assisted recommendation. All treatment decisions must be reviewed and "
    "approved by a licensed healthcare professional."
)
MOCK_DISCLAIMER = (
    "MOCK RESPONSE - OpenAI API not configured. This is not a real medical recommendation."
)

MEDICAL_SYSTEM_PROMPT = """You are an expert clinical decision support AI assistant helping licensed physicians create evidence-based treatment plans.

CRITICAL GUIDELINES:
1. SAFETY FIRST: Always prioritize patient safety over all other considerations
2. EVIDENCE-BASED: Recommend only medications with established efficacy for the condition
3. PATIENT-SPECIFIC: Consider age, allergies, current medications, and chronic conditions
4. CONSERVATIVE: When uncertain, recommend safer alternatives or suggest consultation
5. COMPLETE: Provide specific dosages, frequencies, durations, and routes of administration
6. TRANSPARENT: Explain your reasoning and confidence level for each recommendation

DOSING CONSIDERATIONS:
- Adjust dosages for pediatric (<18) and geriatric (>65) patients
- Consider renal and hepatic function when relevant
- Account for potential drug interactions
- Specify maximum daily doses where applicable

OUTPUT REQUIREMENTS:
- Provide specific, actionable medication recommendations
- Include dosage ranges appropriate for the condition
- Specify frequency (e.g., "twice daily", "every 8 hours")
- Indicate duration of treatment
- Note special instructions (with food, avoid sun, etc.)
- Explain rationale for each recommendation

DISCLAIMER: This is a clinical decision support tool. All recommendations require review and approval by a licensed healthcare professional before implementation."""

RESPONSE_FORMAT_INSTRUCTIONS = """Please provide treatment recommendations in JSON format with the following structure:
{
  "medications": [
    {
      "name": "Brand name",
      "genericName": "Generic name",
      "dosage": "Specific dosage (e.g., 500mg)",
      "frequency": "How often (e.g., twice daily)",
      "duration": "How long (e.g., 7 days)",
      "route": "Administration route (oral, IV, topical, etc.)",
      "instructions": "Special instructions",
      "rationale": "Why this medication is recommended",
      "confidenceScore": 0-100
    }
  ],
  "riskLevel": "LOW" | "MEDIUM" | "HIGH",
  "riskFactors": ["List of identified risk factors"],
  "riskJustification": "Explanation of risk assessment",
  "rationale": "Overall treatment approach rationale",
  "alternatives": [
    {
      "medications": [/* same structure as above */],
      "rationale": "Why this is a good alternative",
      "riskLevel": "LOW" | "MEDIUM" | "HIGH"
    }
  ]
}"""


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _matches_either_way(value: str, candidates: Sequence[str]) -> bool:
    lower = value.lower()
    return any(c in lower or (lower and lower in c) for c in candidates)


def is_nsaid(medication_name: str) -> bool:
    return bool(medication_name) and _matches_either_way(medication_name, NSAID_MEDICATIONS)


def _medication_is_nsaid(medication: Dict[str, Any]) -> bool:
    return is_nsaid(medication.get("name") or "") or is_nsaid(medication.get("genericName") or "")


def get_nsaid_contraindicated_conditions(chronic_conditions: Optional[Sequence[str]]) -> List[str]:
    return [
        c for c in chronic_conditions or []
        if c and _matches_either_way(c, NSAID_CONTRAINDICATED_CONDITIONS)
    ]


def has_nsaid_contraindication(chronic_conditions: Optional[Sequence[str]]) -> bool:
    return bool(get_nsaid_contraindicated_conditions(chronic_conditions))


def calculate_age(date_of_birth: Union[str, date], today: Optional[date] = None) -> int:
    if isinstance(date_of_birth, str):
        birth = date.fromisoformat(date_of_birth[:10])
    elif isinstance(date_of_birth, datetime):
        birth = date_of_birth.date()
    else:
        birth = date_of_birth
    today = today or date.today()
    age = today.year - birth.year
    if (today.month, today.day) < (birth.month, birth.day):
        age -= 1
    return age


def age_category(age: int) -> str:
    if age < 18:
        return "Pediatric"
    if age >= 65:
        return "Geriatric"
    return "Adult"


def map_interaction_severity(severity: str) -> str:
    """Collapse interaction severities onto the Mild/Moderate/Severe plan scale."""
    lower = (severity or "").lower()
    if "major" in lower or "severe" in lower or "contraindicated" in lower:
        return "Severe"
    if "minor" in lower or "mild" in lower:
        return "Mild"
    return "Moderate"


def map_confidence_severity(severity: str) -> str:
    lower = (severity or "").lower()
    if "contraindicated" in lower:
        return "Contraindicated"
    if "major" in lower or "severe" in lower:
        return "Major"
    if "minor" in lower or "mild" in lower:
        return "Minor"
    return "Moderate"


def apply_nsaid_guardrail(
    ai_response: Dict[str, Any], chronic_conditions: Optional[Sequence[str]]
) -> Tuple[Dict[str, Any], List[Dict[str, Any]]]:
    """Strip NSAIDs from medications and alternatives for at-risk patients.

    Returns the filtered copy of ``ai_response`` and one Absolute
    contraindication per NSAID removed from the primary medications.
    """
    conditions = get_nsaid_contraindicated_conditions(chronic_conditions)
    if not conditions:
        return ai_response, []

    filtered = copy.deepcopy(ai_response)
    contraindications = []
    kept = []
    for medication in filtered.get("medications") or []:
        if _medication_is_nsaid(medication):
            logger.warning(
                "NSAID guardrail blocked %s for patient with %s",
                medication.get("name"),
                ", ".join(conditions),
            )
            contraindications.append({
                "medication": medication.get("name"),
                "reason": (
                    f"NSAID contraindicated due to patient conditions: {', '.join(conditions)}. {NSAID_HARM}"
                ),
                "severity": "Absolute",
            })
        else:
            kept.append(medication)
    filtered["medications"] = kept
    for alternative in filtered.get("alternatives") or []:
        alternative["medications"] = [
            m for m in alternative.get("medications") or [] if not _medication_is_nsaid(m)
        ]
    return filtered, contraindications


def _format_temperature(value: Optional[float]) -> str:
    if value is None:
        return "N/A"
    if value <= 45:
        return f"{value:g}°C"
    return f"{value:g}°F"


def _or_na(value: Optional[float]) -> str:
    return "N/A" if value is None else f"{value:g}"


def build_user_prompt(
    request: AnalyzeRequest,
    *,
    chief_complaint: str,
    symptoms: Sequence[str],
    additional_notes: Optional[str],
    knowledge_context: Optional[str] = None,
) -> str:
    """Render the patient prompt; the free-text arguments are already de-identified."""
    patient = request.patient
    age = calculate_age(patient.date_of_birth)
    category = age_category(age)

    lines = [
        "Generate a treatment plan for the following patient:",
        "",
        "PATIENT INFORMATION:",
        f"- Age: {age} years ({category})",
        f"- Gender: {patient.gender}",
        f"- Known Allergies: {', '.join(patient.allergies) or 'None documented'}",
        f"- Chronic Conditions: {', '.join(patient.chronic_conditions) or 'None documented'}",
        f"- Current Medications: {', '.join(request.current_medications) or 'None'}",
        "",
        "CLINICAL PRESENTATION:",
        f"- Chief Complaint: {chief_complaint}",
        f"- Current Symptoms: {', '.join(symptoms)}",
    ]
    vitals = request.vital_signs
    if vitals is not None:
        lines += [
            "",
            "VITAL SIGNS:",
            f"- Blood Pressure: {_or_na(vitals.blood_pressure_systolic)}/{_or_na(vitals.blood_pressure_diastolic)} mmHg",
            f"- Heart Rate: {_or_na(vitals.heart_rate)} bpm",
            f"- Temperature: {_format_temperature(vitals.temperature)}",
            f"- Respiratory Rate: {_or_na(vitals.respiratory_rate)}/min",
            f"- O2 Saturation: {_or_na(vitals.oxygen_saturation)}%",
        ]
    if additional_notes:
        lines += ["", "ADDITIONAL NOTES:", additional_notes]
    if knowledge_context:
        lines += ["", "RELEVANT CLINICAL KNOWLEDGE:", knowledge_context]

    lines += [
        "",
        RESPONSE_FORMAT_INSTRUCTIONS,
        "",
        "IMPORTANT:",
        "- Check ALL medications against patient allergies",
        f"- Consider age-appropriate dosing for {category} patient",
        "- Account for potential interactions with current medications",
        "- Provide at least one alternative treatment option",
        "- Be conservative with confidence scores",
    ]

    conditions = get_nsaid_contraindicated_conditions(patient.chronic_conditions)
    if conditions:
        lines += [
            "",
            "CRITICAL SAFETY GUARDRAIL - NSAID CONTRAINDICATION:",
            "This patient has one or more conditions that CONTRAINDICATE the use of NSAIDs:",
            f"- Patient conditions: {', '.join(conditions)}",
            "",
            "DO NOT recommend any NSAIDs including but not limited to:",
            "- Ibuprofen (Advil, Motrin)",
            "- Naproxen (Aleve, Naprosyn)",
            "- Aspirin (except low-dose cardiac aspirin if specifically indicated)",
            "- Diclofenac (Voltaren)",
            "- Ketorolac (Toradol)",
            "- Meloxicam (Mobic)",
            "- Celecoxib (Celebrex)",
            "- Any other COX inhibitors",
            "",
            NSAID_HARM,
            "Instead, recommend safer alternatives like Acetaminophen (Tylenol) for pain management.",
        ]
    return "\n".join(lines)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

@dataclass
class AnalysisConfig:
    api_key: Optional[str]
    model: str
    base_url: str
    timeout_seconds: float

    @classmethod
    def from_env(cls) -> "AnalysisConfig":
        return cls(
            api_key=os.getenv("OPENAI_API_KEY") or None,
            model=os.getenv("OPENAI_MODEL") or DEFAULT_MODEL,
            base_url=(os.getenv("OPENAI_BASE_URL") or DEFAULT_BASE_URL).rstrip("/"),
            timeout_seconds=float(os.getenv("OPENAI_TIMEOUT_SECONDS", "120")),
        )


class AnalysisService:
    def __init__(
        self,
        config: Optional[AnalysisConfig] = None,
        *,
        medical_apis: Optional[MedicalApisService] = None,
        pubmed: Optional[PubMedService] = None,
        confidence: Optional[ConfidenceService] = None,
        phi: Optional[PHIProtectionService] = None,
        severity: Optional[SeverityDetectionService] = None,
        cascade: Optional[CascadeValidatorService] = None,
        knowledge=None,
    ) -> None:
        self.config = config or AnalysisConfig.from_env()
        self.medical_apis = medical_apis or get_medical_apis_service()
        self.pubmed = pubmed or get_pubmed_service()
        self.confidence = confidence or ConfidenceService()
        self.phi = phi or get_phi_service()
        self.severity = severity or get_severity_service()
        self.cascade = cascade or get_cascade_validator()
        self._knowledge = knowledge

    @property
    def knowledge(self):
        if self._knowledge is None:
            from core.services.knowledge_service import get_knowledge_service

            self._knowledge = get_knowledge_service()
        return self._knowledge

    @property
    def is_configured(self) -> bool:
        return bool(self.config.api_key) and llm_features_enabled()

    def analyze_treatment(
        self,
        request: AnalyzeRequest,
        use_rag: Optional[bool] = None,
        db: Optional[Session] = None,
    ) -> Dict[str, Any]:
        severity = self.assess_severity(request, db)

        used_real_path = False
        if not self.is_configured:
            logger.warning("OpenAI API key not configured, using mock response")
            analysis = self.generate_mock_response(request)
        else:
            try:
                analysis = self._analyze_with_openai(request, use_rag=bool(use_rag), db=db)
                used_real_path = True
            except Exception as exc:
                logger.error("OpenAI treatment analysis error: %s", exc)
                analysis = self.generate_mock_response(request)

        if used_real_path or safety_cascade_enabled():
            validation = self.cascade.validate(
                analysis,
                {
                    "allergies": request.patient.allergies,
                    "chronicConditions": request.patient.chronic_conditions,
                    "currentMedications": request.current_medications,
                    "chiefComplaint": request.chief_complaint,
                },
                severity,
                db=db,
            )
            analysis["safetyValidation"] = validation.to_api()
        analysis["severityAssessment"] = severity.to_api()
        return analysis

    def assess_severity(self, request: AnalyzeRequest, db: Optional[Session] = None) -> SeverityAssessment:
        vitals = request.vital_signs.model_dump() if request.vital_signs is not None else None
        return self.severity.assess(
            PatientData(
                chief_complaint=request.chief_complaint,
                current_symptoms=list(request.current_symptoms),
                vital_signs=vitals,
                chronic_conditions=list(request.patient.chronic_conditions),
                allergies=list(request.patient.allergies),
                current_medications=list(request.current_medications),
            ),
            db,
        )

    # -- real path ---------------------------------------------------------

    def _analyze_with_openai(self, request: AnalyzeRequest, *, use_rag: bool, db: Optional[Session]) -> Dict[str, Any]:
        session_id = f"analysis-{uuid.uuid4().hex}"
        try:
            complaint = self.phi.deidentify(request.chief_complaint, session_id).deidentified_text
            symptoms = [self.phi.deidentify(s, session_id).deidentified_text for s in request.current_symptoms]
            notes = (
                self.phi.deidentify(request.additional_notes, session_id).deidentified_text
                if request.additional_notes
                else None
            )
            knowledge_context = self._knowledge_context(request, db) if use_rag else None
            prompt = build_user_prompt(
                request,
                chief_complaint=complaint,
                symptoms=symptoms,
                additional_notes=notes,
                knowledge_context=knowledge_context,
            )
            ai_response = self.phi.reidentify_object(self.call_openai(prompt), session_id)
        finally:
            self.phi.clear_session(session_id)

        ai_response, contraindications = apply_nsaid_guardrail(ai_response, request.patient.chronic_conditions)
        nsaid_blocked = bool(contraindications)

        medications = self.enhance_medications(ai_response.get("medications") or [], request)

        interactions = []
        if external_validation_enabled():
            interactions = self.medical_apis.check_drug_interactions(
                [m["name"] for m in medications] + list(request.current_medications)
            )
        drug_interactions = [
            {
                "medication1": i["drug1"],
                "medication2": i["drug2"],
                "severity": map_interaction_severity(i["severity"]),
                "description": i["description"],
                "recommendation": i["recommendation"],
            }
            for i in interactions
        ]

        allergy_contraindications = []
        for medication in medications:
            names = [(medication.get("name") or "").lower(), (medication.get("genericName") or "").lower()]
            for allergy in request.patient.allergies:
                if allergy and any(allergy.lower() in n for n in names if n):
                    allergy_contraindications.append({
                        "medication": medication["name"],
                        "reason": f"Patient has documented allergy to {allergy}",
                        "severity": "Absolute",
                    })

        alternatives = []
        for alternative in ai_response.get("alternatives") or []:
            enhanced = self.enhance_medications(alternative.get("medications") or [], request)
            alternatives.append({
                "medications": [
                    {
                        key: m.get(key)
                        for key in (
                            "name", "genericName", "dosage", "frequency",
                            "duration", "route", "instructions", "confidenceScore",
                        )
                    }
                    for m in enhanced
                ],
                "rationale": alternative.get("rationale"),
                "riskLevel": alternative.get("riskLevel"),
            })

        overall = self.confidence.calculate_plan_confidence(
            [m["confidenceDetails"] for m in medications if m.get("confidenceDetails")]
        )
        risk_factors = list(ai_response.get("riskFactors") or [])
        if nsaid_blocked:
            risk_factors.append(NSAID_BLOCKED_RISK_FACTOR)

        generated_at = _now_iso()
        return {
            "medications": medications,
            "riskLevel": ai_response.get("riskLevel") or "MEDIUM",
            "riskFactors": risk_factors,
            "riskJustification": ai_response.get("riskJustification") or "",
            "drugInteractions": drug_interactions,
            "contraindications": allergy_contraindications + contraindications,
            "alternatives": alternatives,
            "rationale": ai_response.get("rationale") or "",
            "confidenceScore": overall["overallScore"],
            "generatedAt": generated_at,
            "overallConfidence": overall,
            "disclaimer": REAL_DISCLAIMER,
            "generationMetadata": {
                "model": self.config.model,
                "temperature": TEMPERATURE,
                "validationSources": ["OpenFDA", "RxNorm", "PubMed"],
                "generatedAt": generated_at,
            },
        }

    def call_openai(self, user_prompt: str) -> Dict[str, Any]:
        response = requests.post(
            f"{self.config.base_url}/chat/completions",
            headers={
                "Authorization": f"Bearer {self.config.api_key}",
                "Content-Type": "application/json",
            },
            json={
                "model": self.config.model,
                "messages": [
                    {"role": "system", "content": MEDICAL_SYSTEM_PROMPT},
                    {"role": "user", "content": user_prompt},
                ],
                "temperature": TEMPERATURE,
                "response_format": {"type": "json_object"},
                "max_tokens": MAX_TOKENS,
            },
            timeout=(5, self.config.timeout_seconds),
        )
        response.raise_for_status()
        choices = response.json().get("choices") or []
        content = ((choices[0] if choices else {}).get("message") or {}).get("content")
        if not content:
            raise RuntimeError("No response from OpenAI")
        return json.loads(content)

    def _knowledge_context(self, request: AnalyzeRequest, db: Optional[Session]) -> Optional[str]:
        if db is None:
            return None
        docs = self.knowledge.search_similar(
            db,
            f"{request.chief_complaint} {' '.join(request.current_symptoms)}",
            match_threshold=0.3,
            match_count=3,
        )
        if not docs:
            return None
        return "\n".join(f"- [{d['sourceName']}] {d['content'][:500]}" for d in docs)

    def enhance_medications(self, medications: Sequence[Dict[str, Any]], request: AnalyzeRequest) -> List[Dict[str, Any]]:
        """Attach FDA validation, literature references and a confidence breakdown."""
        age = calculate_age(request.patient.date_of_birth)
        live = external_validation_enabled()
        enhanced = []
        for medication in medications:
            name = medication.get("name") or ""
            if live:
                validation = self.medical_apis.validate_drug(name, list(request.current_medications))
                references = self.pubmed.search_articles(
                    request.chief_complaint,
                    medication.get("genericName") or name,
                    max_results=3,
                )["references"]
            else:
                validation = {
                    "isValid": False,
                    "drugInfo": None,
                    "dosageRecommendations": [],
                    "interactions": [],
                    "warnings": [],
                }
                references = []

            evidence_level = (
                PubMedService.get_evidence_level(references[0]["publicationType"]) if references else "D"
            )
            details = self.confidence.calculate_medication_confidence(
                MedicationConfidenceInput(
                    medication_name=name,
                    ai_confidence=float(medication.get("confidenceScore") or 0),
                    fda_validated=validation["isValid"],
                    dosage_within_limits=bool(validation["dosageRecommendations"]),
                    route=medication.get("route") or "",
                    interactions=[
                        {"severity": map_confidence_severity(i["severity"]), "count": 1}
                        for i in validation["interactions"]
                    ],
                    contraindications=validation["warnings"],
                    patient_allergies=list(request.patient.allergies),
                    references=references,
                    patient_age=age,
                    patient_conditions=list(request.patient.chronic_conditions),
                )
            )
            drug_info = validation.get("drugInfo") or {}
            dosing = validation["dosageRecommendations"][0] if validation["dosageRecommendations"] else {}
            enhanced.append({
                "name": name,
                "genericName": medication.get("genericName"),
                "dosage": medication.get("dosage"),
                "frequency": medication.get("frequency"),
                "duration": medication.get("duration"),
                "route": medication.get("route"),
                "instructions": medication.get("instructions"),
                "confidenceScore": details["overallScore"],
                "rxcui": drug_info.get("rxcui"),
                "ndcCode": (drug_info.get("ndcCodes") or [None])[0],
                "evidenceLevel": evidence_level,
                "references": references,
                "fdaValidated": validation["isValid"],
                "ageAdjustedDosage": age < 18 or age >= 65,
                "renalAdjustment": dosing.get("renalAdjustment"),
                "hepaticAdjustment": dosing.get("hepaticAdjustment"),
                "confidenceDetails": details,
            })
        return enhanced

    # -- mock path ---------------------------------------------------------

    def generate_mock_response(self, request: AnalyzeRequest) -> Dict[str, Any]:
        delay = mock_analysis_delay_seconds()
        if delay:
            time.sleep(delay)

        conditions = get_nsaid_contraindicated_conditions(request.patient.chronic_conditions)
        contraindications: List[Dict[str, Any]] = []
        risk_factors = ["Standard treatment approach"]

        if conditions:
            medications = [{
                "name": "Tylenol",
                "genericName": "Acetaminophen",
                "dosage": "500-1000mg",
                "frequency": "Every 6 hours as needed",
                "duration": "7 days",
                "route": "Oral",
                "instructions": "Do not exceed 3000mg per day. Avoid alcohol while taking this medication.",
                "confidenceScore": 82,
                "evidenceLevel": "A",
                "fdaValidated": True,
                "references": [],
            }]
            contraindications.append({
                "medication": "NSAIDs (Ibuprofen, Naproxen, etc.)",
                "reason": (
                    "NSAID medications contraindicated due to patient conditions: "
                    f"{', '.join(conditions)}. {NSAID_HARM}"
                ),
                "severity": "Absolute",
            })
            risk_factors.append(
                "Patient has conditions contraindicating NSAID use - Acetaminophen recommended as alternative"
            )
        else:
            medications = [{
                "name": "Ibuprofen",
                "genericName": "Ibuprofen",
                "dosage": "400mg",
                "frequency": "Every 6-8 hours as needed",
                "duration": "7 days",
                "route": "Oral",
                "instructions": "Take with food to reduce stomach irritation. Do not exceed 1200mg per day.",
                "confidenceScore": 78,
                "evidenceLevel": "A",
                "fdaValidated": True,
                "references": [],
            }]

        generated_at = _now_iso()
        return {
            "medications": medications,
            "riskLevel": "LOW",
            "riskFactors": risk_factors,
            "riskJustification": "Mock response with conservative risk assessment",
            "drugInteractions": [],
            "contraindications": contraindications,
            "alternatives": [],
            "rationale": "This is a mock response. Configure OpenAI API for real recommendations.",
            "confidenceScore": 75,
            "generatedAt": generated_at,
            "overallConfidence": {
                "overallScore": 75,
                "grade": "MODERATE",
                "breakdown": {
                    "drugValidation": 80,
                    "safetyScore": 85,
                    "evidenceScore": 60,
                    "patientFactors": 70,
                    "aiBaseScore": 80,
                },
                "warnings": ["Mock response - OpenAI API not configured"],
                "recommendations": ["Configure OPENAI_API_KEY for full functionality"],
            },
            "disclaimer": MOCK_DISCLAIMER,
            "generationMetadata": {
                "model": "mock",
                "temperature": 0,
                "validationSources": [],
                "generatedAt": generated_at,
            },
        }


_analysis_service: Optional[AnalysisService] = None


def get_analysis_service() -> AnalysisService:
    global _analysis_service
    if _analysis_service is None:
        _analysis_service = AnalysisService()
    return _analysis_service


def reset_analysis_service_for_tests() -> None:
    global _analysis_service
    _analysis_service = None


def analyze_treatment(
    request: AnalyzeRequest, use_rag: Optional[bool] = None, db: Optional[Session] = None
) -> Dict[str, Any]:
    return get_analysis_service().analyze_treatment(request, use_rag=use_rag, db=db)
