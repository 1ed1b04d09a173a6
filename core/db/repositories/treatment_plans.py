"""
Treatment plan repository functions, scoped to the owning doctor.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, joinedload

from core.db import models, schemas

_NON_NULLABLE = {
    "chief_complaint",
    "status",
    "risk_factors",
    "drug_interactions",
    "contraindications",
    "alternatives",
}


def list_plans(
    db: Session,
    *,
    doctor_id: uuid.UUID,
    params: schemas.TreatmentPlanListParams,
) -> Tuple[List[models.TreatmentPlan], int]:
    q = (
        db.query(models.TreatmentPlan)
        .join(models.Patient, models.TreatmentPlan.patient_id == models.Patient.id)
        .filter(models.TreatmentPlan.doctor_id == doctor_id)
    )
    if params.search:
        pattern = f"%{params.search}%"
        q = q.filter(
            or_(
                models.TreatmentPlan.chief_complaint.ilike(pattern),
                models.Patient.name.ilike(pattern),
            )
        )
    if params.status and params.status != "ALL":
        q = q.filter(models.TreatmentPlan.status == params.status)
    if params.risk_level and params.risk_level != "ALL":
        q = q.filter(models.TreatmentPlan.risk_level == params.risk_level)
    if params.patient_id:
        q = q.filter(models.TreatmentPlan.patient_id == params.patient_id)

    total = q.count()
    plans = (
        q.options(joinedload(models.TreatmentPlan.patient))
        .order_by(models.TreatmentPlan.created_at.desc())
        .offset((params.page - 1) * params.page_size)
        .limit(params.page_size)
        .all()
    )
    return plans, total


def get_plan_owned(db: Session, *, plan_id: uuid.UUID, doctor_id: uuid.UUID) -> Optional[models.TreatmentPlan]:
    return (
        db.query(models.TreatmentPlan)
        .options(joinedload(models.TreatmentPlan.patient))
        .filter(models.TreatmentPlan.id == plan_id, models.TreatmentPlan.doctor_id == doctor_id)
        .first()
    )


def create_plan(
    db: Session,
    *,
    doctor_id: uuid.UUID,
    patient_id: uuid.UUID,
    payload: schemas.TreatmentPlanCreate,
) -> models.TreatmentPlan:
    plan = models.TreatmentPlan(
        patient_id=patient_id,
        doctor_id=doctor_id,
        chief_complaint=payload.chief_complaint,
        current_symptoms=payload.current_symptoms,
        vital_signs=payload.vital_signs or None,
        physical_exam_notes=payload.physical_exam_notes or None,
        ai_recommendations=payload.ai_recommendations or None,
        risk_level=payload.risk_level or None,
        risk_factors=payload.risk_factors or [],
        risk_justification=payload.risk_justification or None,
        drug_interactions=payload.drug_interactions or [],
        contraindications=payload.contraindications or [],
        alternatives=payload.alternatives or [],
        status=payload.status or "DRAFT",
    )
    db.add(plan)
    db.commit()
    db.refresh(plan)
    return plan


def update_plan(
    db: Session,
    *,
    plan: models.TreatmentPlan,
    payload: schemas.TreatmentPlanUpdate,
    now: datetime,
) -> models.TreatmentPlan:
    changes: Dict[str, Any] = payload.model_dump(exclude_unset=True)
    was_modified = changes.pop("was_modified", None)
    for key, value in changes.items():
        if value is None and key in _NON_NULLABLE:
            continue
        setattr(plan, key, value)
    if was_modified is not None:
        plan.was_modified = was_modified
    elif payload.final_plan:
        plan.was_modified = True
    if payload.status == "APPROVED":
        plan.approved_at = now
    db.commit()
    db.refresh(plan)
    return plan


def delete_plan(db: Session, *, plan: models.TreatmentPlan) -> None:
    db.delete(plan)
    db.commit()


def count_plans(
    db: Session,
    *,
    doctor_id: uuid.UUID,
    statuses: Optional[Sequence[str]] = None,
    risk_level: Optional[str] = None,
    created_from=None,
    created_before=None,
) -> int:
    q = db.query(func.count(models.TreatmentPlan.id)).filter(models.TreatmentPlan.doctor_id == doctor_id)
    if statuses:
        q = q.filter(models.TreatmentPlan.status.in_(list(statuses)))
    if risk_level:
        q = q.filter(models.TreatmentPlan.risk_level == risk_level)
    if created_from is not None:
        q = q.filter(models.TreatmentPlan.created_at >= created_from)
    if created_before is not None:
        q = q.filter(models.TreatmentPlan.created_at < created_before)
    return int(q.scalar() or 0)


def recently_updated_plans(db: Session, *, doctor_id: uuid.UUID, limit: int = 5) -> List[models.TreatmentPlan]:
    return (
        db.query(models.TreatmentPlan)
        .options(joinedload(models.TreatmentPlan.patient))
        .filter(models.TreatmentPlan.doctor_id == doctor_id)
        .order_by(models.TreatmentPlan.updated_at.desc())
        .limit(limit)
        .all()
    )
