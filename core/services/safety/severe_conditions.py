"""Reference catalogue of severe conditions and the idempotent seeder for it."""
from __future__ import annotations

import logging
from typing import Any, Dict, List

from sqlalchemy.orm import Session

from core.db import models

logger = logging.getLogger(__name__)

_ALL = ["FDA", "INTERACTION", "GUIDELINE", "PUBMED"]
_NO_PUBMED = ["FDA", "INTERACTION", "GUIDELINE"]
_BASIC = ["FDA", "INTERACTION"]

SEVERE_CONDITIONS: List[Dict[str, Any]] = [
    {
        "condition_name": "Acute Myocardial Infarction",
        "keywords": [
            "heart attack", "myocardial infarction", "mi", "stemi", "nstemi",
            "chest pain radiating", "crushing chest pain", "cardiac arrest",
        ],
        "vital_thresholds": {
            "systolicBpMin": 90, "systolicBpMax": 180, "heartRateMin": 50,
            "heartRateMax": 120, "oxygenSaturationMin": 92,
        },
        "risk_category": "CRITICAL",
        "required_validations": _ALL,
        "auto_escalate": True,
    },
    {
        "condition_name": "Stroke / CVA",
        "keywords": [
            "stroke", "cva", "cerebrovascular accident", "tia", "transient ischemic attack",
            "facial drooping", "sudden numbness", "sudden confusion", "sudden vision loss",
            "sudden severe headache", "slurred speech",
        ],
        "vital_thresholds": {"systolicBpMax": 220, "diastolicBpMax": 120},
        "risk_category": "CRITICAL",
        "required_validations": _ALL,
        "auto_escalate": True,
    },
    {
        "condition_name": "Anaphylaxis",
        "keywords": [
            "anaphylaxis", "anaphylactic shock", "severe allergic reaction", "throat swelling",
            "difficulty breathing after exposure", "hives with breathing difficulty",
        ],
        "vital_thresholds": {"systolicBpMin": 90, "heartRateMax": 150, "oxygenSaturationMin": 90},
        "risk_category": "CRITICAL",
        "required_validations": _NO_PUBMED,
        "auto_escalate": True,
    },
    {
        "condition_name": "Sepsis / Septic Shock",
        "keywords": ["sepsis", "septic shock", "severe infection", "systemic infection", "bacteremia"],
        "vital_thresholds": {
            "systolicBpMin": 90, "heartRateMax": 130, "temperatureMax": 104, "respiratoryRateMax": 30,
        },
        "risk_category": "CRITICAL",
        "required_validations": _ALL,
        "auto_escalate": True,
    },
    {
        "condition_name": "Acute Respiratory Failure",
        "keywords": [
            "respiratory failure", "acute respiratory distress", "ards",
            "severe shortness of breath", "respiratory arrest", "cannot breathe",
        ],
        "vital_thresholds": {"oxygenSaturationMin": 88, "respiratoryRateMin": 8, "respiratoryRateMax": 35},
        "risk_category": "CRITICAL",
        "required_validations": _NO_PUBMED,
        "auto_escalate": True,
    },
    {
        "condition_name": "Status Epilepticus",
        "keywords": [
            "status epilepticus", "prolonged seizure", "continuous seizure",
            "seizure lasting more than 5 minutes", "multiple seizures",
        ],
        "vital_thresholds": {},
        "risk_category": "CRITICAL",
        "required_validations": _NO_PUBMED,
        "auto_escalate": True,
    },
    {
        "condition_name": "Severe Hypoglycemia",
        "keywords": [
            "severe hypoglycemia", "blood sugar below 40", "diabetic emergency",
            "hypoglycemic coma", "insulin shock",
        ],
        "vital_thresholds": {"heartRateMax": 120},
        "risk_category": "CRITICAL",
        "required_validations": _NO_PUBMED,
        "auto_escalate": True,
    },
    {
        "condition_name": "Diabetic Ketoacidosis",
        "keywords": ["diabetic ketoacidosis", "dka", "ketoacidosis", "fruity breath diabetes"],
        "vital_thresholds": {"heartRateMax": 120, "respiratoryRateMax": 30},
        "risk_category": "CRITICAL",
        "required_validations": _ALL,
        "auto_escalate": True,
    },
    {
        "condition_name": "Pulmonary Embolism",
        "keywords": [
            "pulmonary embolism", "pe", "blood clot lung", "sudden shortness of breath",
            "chest pain with shortness of breath",
        ],
        "vital_thresholds": {"oxygenSaturationMin": 90, "heartRateMax": 130, "systolicBpMin": 90},
        "risk_category": "CRITICAL",
        "required_validations": _ALL,
        "auto_escalate": True,
    },
    {
        "condition_name": "Suicidal Ideation",
        "keywords": [
            "suicidal ideation", "suicidal thoughts", "want to kill myself", "want to die",
            "self harm", "suicide attempt", "overdose intentional",
        ],
        "vital_thresholds": {},
        "risk_category": "CRITICAL",
        "required_validations": _NO_PUBMED,
        "auto_escalate": True,
    },
    {
        "condition_name": "Meningitis",
        "keywords": [
            "meningitis", "bacterial meningitis", "stiff neck with fever",
            "severe headache with fever", "photophobia with fever",
        ],
        "vital_thresholds": {"temperatureMax": 104, "heartRateMax": 120},
        "risk_category": "CRITICAL",
        "required_validations": _ALL,
        "auto_escalate": True,
    },
    {
        "condition_name": "Acute Appendicitis",
        "keywords": [
            "appendicitis", "right lower quadrant pain", "mcburney point tenderness", "rebound tenderness",
        ],
        "vital_thresholds": {"temperatureMax": 102},
        "risk_category": "URGENT",
        "required_validations": _NO_PUBMED,
        "auto_escalate": False,
    },
    {
        "condition_name": "Acute Pancreatitis",
        "keywords": ["pancreatitis", "severe epigastric pain", "pain radiating to back"],
        "vital_thresholds": {"heartRateMax": 120, "temperatureMax": 102},
        "risk_category": "URGENT",
        "required_validations": _NO_PUBMED,
        "auto_escalate": False,
    },
    {
        "condition_name": "Deep Vein Thrombosis",
        "keywords": [
            "deep vein thrombosis", "dvt", "leg swelling unilateral", "calf pain swelling", "blood clot leg",
        ],
        "vital_thresholds": {},
        "risk_category": "URGENT",
        "required_validations": _NO_PUBMED,
        "auto_escalate": False,
    },
    {
        "condition_name": "Severe Asthma Exacerbation",
        "keywords": [
            "severe asthma attack", "asthma exacerbation", "status asthmaticus",
            "cannot speak full sentences", "accessory muscle use",
        ],
        "vital_thresholds": {"oxygenSaturationMin": 90, "respiratoryRateMax": 30, "heartRateMax": 120},
        "risk_category": "URGENT",
        "required_validations": _NO_PUBMED,
        "auto_escalate": False,
    },
    {
        "condition_name": "COPD Exacerbation",
        "keywords": [
            "copd exacerbation", "copd flare", "chronic bronchitis exacerbation", "emphysema exacerbation",
        ],
        "vital_thresholds": {"oxygenSaturationMin": 88, "respiratoryRateMax": 28},
        "risk_category": "URGENT",
        "required_validations": _NO_PUBMED,
        "auto_escalate": False,
    },
    {
        "condition_name": "Hypertensive Crisis",
        "keywords": [
            "hypertensive crisis", "hypertensive emergency", "malignant hypertension",
            "severely elevated blood pressure",
        ],
        "vital_thresholds": {"systolicBpMax": 180, "diastolicBpMax": 120},
        "risk_category": "URGENT",
        "required_validations": _NO_PUBMED,
        "auto_escalate": False,
    },
    {
        "condition_name": "Acute Kidney Injury",
        "keywords": [
            "acute kidney injury", "aki", "acute renal failure", "decreased urine output", "anuria",
        ],
        "vital_thresholds": {},
        "risk_category": "HIGH_RISK",
        "required_validations": _BASIC,
        "auto_escalate": False,
    },
    {
        "condition_name": "Gastrointestinal Bleeding",
        "keywords": [
            "gi bleeding", "gastrointestinal bleeding", "melena", "hematemesis",
            "blood in stool", "vomiting blood", "black tarry stool",
        ],
        "vital_thresholds": {"systolicBpMin": 90, "heartRateMax": 120},
        "risk_category": "URGENT",
        "required_validations": _NO_PUBMED,
        "auto_escalate": False,
    },
    {
        "condition_name": "Severe Dehydration",
        "keywords": ["severe dehydration", "hypovolemia", "volume depletion", "no urine output"],
        "vital_thresholds": {"systolicBpMin": 90, "heartRateMax": 120},
        "risk_category": "HIGH_RISK",
        "required_validations": _BASIC,
        "auto_escalate": False,
    },
]


def seed_severe_conditions(db: Session) -> Dict[str, int]:
    """Insert or refresh every catalogue entry, keyed by condition name."""
    existing = {c.condition_name: c for c in db.query(models.SevereCondition).all()}
    created = updated = 0
    try:
        for entry in SEVERE_CONDITIONS:
            row = existing.get(entry["condition_name"])
            if row is None:
                row = models.SevereCondition(condition_name=entry["condition_name"])
                db.add(row)
                created += 1
            else:
                updated += 1
            row.keywords = list(entry["keywords"])
            row.vital_thresholds = dict(entry["vital_thresholds"])
            row.risk_category = entry["risk_category"]
            row.required_validations = list(entry["required_validations"])
            row.auto_escalate = entry["auto_escalate"]
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("Seeded severe conditions: %d created, %d updated", created, updated)
    return {"created": created, "updated": updated, "total": len(SEVERE_CONDITIONS)}


def list_severe_conditions(db: Session) -> List[models.SevereCondition]:
    return db.query(models.SevereCondition).order_by(models.SevereCondition.condition_name.asc()).all()
