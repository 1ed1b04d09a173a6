"""
Clinical severity triage for incoming analysis requests.

Combines three signals: red-flag keywords in the complaint, vital signs
outside normal or critical limits, and matches against the severe-condition
catalogue stored in the database.
"""
from __future__ import annotations

import logging
import re
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.db import models

logger = logging.getLogger(__name__)

SEVERITY_ORDER = ("CRITICAL", "URGENT", "HIGH_RISK", "STANDARD")

CRITICAL_KEYWORDS = [
    "chest pain", "heart attack", "myocardial infarction", "mi", "cardiac arrest",
    "stroke", "cva", "cerebrovascular accident", "difficulty breathing",
    "severe shortness of breath", "respiratory failure", "anaphylaxis", "anaphylactic shock",
    "severe allergic reaction", "loss of consciousness", "unresponsive", "unconscious",
    "seizure", "status epilepticus", "suicidal ideation", "suicidal thoughts", "self harm",
    "severe bleeding", "hemorrhage", "internal bleeding", "sepsis", "septic shock",
    "meningitis", "overdose", "poisoning",
]

URGENT_KEYWORDS = [
    "severe pain", "acute pain", "high fever", "persistent vomiting", "blood in stool",
    "blood in urine", "severe headache", "worst headache of life", "sudden vision loss",
    "sudden hearing loss", "facial drooping", "slurred speech", "numbness", "paralysis",
    "severe dehydration", "diabetic ketoacidosis", "dka", "hypoglycemic episode",
    "severe hypoglycemia", "pulmonary embolism", "deep vein thrombosis", "dvt",
    "appendicitis", "bowel obstruction",
]

HIGH_RISK_KEYWORDS = [
    "moderate pain", "infection", "fever", "swelling", "rash", "dizziness", "fainting",
    "syncope", "palpitations", "irregular heartbeat", "asthma attack", "copd exacerbation",
    "pneumonia", "urinary tract infection", "uti", "kidney infection", "cellulitis", "abscess",
]

DEFAULT_VITAL_THRESHOLDS = {
    "systolicBpMin": 90, "systolicBpMax": 180,
    "diastolicBpMin": 60, "diastolicBpMax": 120,
    "heartRateMin": 50, "heartRateMax": 120,
    "temperatureMax": 103,
    "respiratoryRateMin": 10, "respiratoryRateMax": 30,
    "oxygenSaturationMin": 92,
}

CRITICAL_VITAL_THRESHOLDS = {
    "systolicBpMin": 70, "systolicBpMax": 200,
    "diastolicBpMin": 40, "diastolicBpMax": 130,
    "heartRateMin": 40, "heartRateMax": 150,
    "temperatureMax": 105,
    "respiratoryRateMin": 8, "respiratoryRateMax": 35,
    "oxygenSaturationMin": 88,
}

REQUIRED_VALIDATIONS = {
    "CRITICAL": ["FDA", "INTERACTION", "GUIDELINE", "PUBMED"],
    "URGENT": ["FDA", "INTERACTION", "GUIDELINE"],
    "HIGH_RISK": ["FDA", "INTERACTION"],
    "STANDARD": ["FDA"],
}

CONFIDENCE_MODIFIERS = {"CRITICAL": -20, "URGENT": -10, "HIGH_RISK": -5, "STANDARD": 0}

CACHE_TTL_SECONDS = 5 * 60


def _fmt(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return f"{value:g}"


def _fahrenheit(value: float) -> float:
    # Intake forms record Celsius; thresholds are in Fahrenheit.
    if value <= 45:
        return round(value * 9 / 5 + 32, 1)
    return value


def contains_term(text: str, term: str) -> bool:
    """Whole-word / whole-phrase match, so 'mi' does not fire on 'migraine'."""
    return re.search(r"\b" + re.escape(term.lower()) + r"\b", text) is not None


@dataclass
class PatientData:
    chief_complaint: str
    current_symptoms: List[str] = field(default_factory=list)
    vital_signs: Optional[Dict[str, Optional[float]]] = None
    chronic_conditions: List[str] = field(default_factory=list)
    allergies: List[str] = field(default_factory=list)
    current_medications: List[str] = field(default_factory=list)


@dataclass
class SeverityAssessment:
    severity_level: str
    triggers: List[Dict[str, str]]
    required_validations: List[str]
    confidence_modifier: int

    @property
    def is_severe(self) -> bool:
        return self.severity_level != "STANDARD"

    @property
    def auto_escalate(self) -> bool:
        return self.severity_level == "CRITICAL"

    def to_api(self) -> Dict[str, Any]:
        return {
            "isSevere": self.is_severe,
            "severityLevel": self.severity_level,
            "triggers": self.triggers,
            "requiredValidations": self.required_validations,
            "autoEscalate": self.auto_escalate,
            "confidenceModifier": self.confidence_modifier,
        }


def _trigger(kind: str, value: str, severity: str) -> Dict[str, str]:
    return {"type": kind, "value": value, "severity": severity}


def highest_severity(triggers: Iterable[Dict[str, str]]) -> str:
    found = {t["severity"] for t in triggers}
    for level in SEVERITY_ORDER:
        if level in found:
            return level
    return "STANDARD"


class SeverityDetectionService:
    """Keyword, vital-sign and severe-condition triage."""

    def __init__(self, cache_ttl: float = CACHE_TTL_SECONDS) -> None:
        self.cache_ttl = cache_ttl
        self._conditions: Optional[List[Dict[str, Any]]] = None
        self._cached_at = 0.0
        self._lock = threading.Lock()

    def assess(self, patient: PatientData, db: Optional[Session] = None) -> SeverityAssessment:
        triggers = self.detect_keyword_severity(patient)
        if patient.vital_signs:
            triggers.extend(self.detect_vital_sign_severity(patient.vital_signs))
        triggers.extend(self.detect_condition_severity(patient, db))

        level = highest_severity(triggers)
        return SeverityAssessment(
            severity_level=level,
            triggers=triggers,
            required_validations=list(REQUIRED_VALIDATIONS[level]),
            confidence_modifier=CONFIDENCE_MODIFIERS[level],
        )

    @staticmethod
    def detect_keyword_severity(patient: PatientData) -> List[Dict[str, str]]:
        text = " ".join([patient.chief_complaint, *patient.current_symptoms]).lower()
        triggers = []
        for severity, keywords in (
            ("CRITICAL", CRITICAL_KEYWORDS),
            ("URGENT", URGENT_KEYWORDS),
            ("HIGH_RISK", HIGH_RISK_KEYWORDS),
        ):
            triggers.extend(_trigger("keyword", k, severity) for k in keywords if contains_term(text, k))
        return triggers

    @staticmethod
    def detect_vital_sign_severity(vitals: Dict[str, Optional[float]]) -> List[Dict[str, str]]:
        crit, norm = CRITICAL_VITAL_THRESHOLDS, DEFAULT_VITAL_THRESHOLDS
        triggers: List[Dict[str, str]] = []

        def check(value, label, low_key, high_key):
            if value is None:
                return
            if (low_key and value < crit[low_key]) or (high_key and value > crit[high_key]):
                triggers.append(_trigger("vital_sign", f"{label} (critical)", "CRITICAL"))
            elif (low_key and value < norm[low_key]) or (high_key and value > norm[high_key]):
                triggers.append(_trigger("vital_sign", label, "URGENT"))

        systolic = vitals.get("blood_pressure_systolic")
        if systolic is not None:
            check(systolic, f"Systolic BP: {_fmt(systolic)} mmHg", "systolicBpMin", "systolicBpMax")
        heart_rate = vitals.get("heart_rate")
        if heart_rate is not None:
            check(heart_rate, f"Heart rate: {_fmt(heart_rate)} bpm", "heartRateMin", "heartRateMax")
        spo2 = vitals.get("oxygen_saturation")
        if spo2 is not None:
            check(spo2, f"O2 saturation: {_fmt(spo2)}%", "oxygenSaturationMin", None)
        temperature = vitals.get("temperature")
        if temperature is not None:
            temp_f = _fahrenheit(temperature)
            check(temp_f, f"Temperature: {_fmt(temp_f)}°F", None, "temperatureMax")
        resp_rate = vitals.get("respiratory_rate")
        if resp_rate is not None:
            check(resp_rate, f"Respiratory rate: {_fmt(resp_rate)}/min", "respiratoryRateMin", "respiratoryRateMax")
        return triggers

    def detect_condition_severity(self, patient: PatientData, db: Optional[Session]) -> List[Dict[str, str]]:
        text = " ".join(
            [patient.chief_complaint, *patient.current_symptoms, *patient.chronic_conditions]
        ).lower()
        triggers = []
        for condition in self.get_severe_conditions(db):
            if any(contains_term(text, k) for k in condition["keywords"]):
                triggers.append(_trigger("condition", condition["condition_name"], condition["risk_category"]))
        return triggers

    def get_severe_conditions(self, db: Optional[Session]) -> List[Dict[str, Any]]:
        """Severe-condition records, cached for ``cache_ttl`` seconds."""
        now = time.monotonic()
        with self._lock:
            if self._conditions is not None and now - self._cached_at < self.cache_ttl:
                return self._conditions
        if db is None:
            return []
        try:
            rows = db.query(models.SevereCondition).all()
        except SQLAlchemyError as exc:
            logger.error("Failed to load severe conditions: %s", exc)
            return []
        conditions = [
            {
                "id": str(row.id),
                "condition_name": row.condition_name,
                "keywords": list(row.keywords or []),
                "vital_thresholds": dict(row.vital_thresholds or {}),
                "risk_category": row.risk_category,
                "required_validations": list(row.required_validations or []),
                "auto_escalate": bool(row.auto_escalate),
            }
            for row in rows
        ]
        with self._lock:
            self._conditions = conditions
            self._cached_at = now
        return conditions

    def clear_cache(self) -> None:
        with self._lock:
            self._conditions = None
            self._cached_at = 0.0


_severity_service: Optional[SeverityDetectionService] = None


def get_severity_service() -> SeverityDetectionService:
    global _severity_service
    if _severity_service is None:
        _severity_service = SeverityDetectionService()
    return _severity_service
