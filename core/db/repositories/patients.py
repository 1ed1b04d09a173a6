"""
Patient repository functions.

All list/search helpers are scoped to a single doctor. Ownership checks for
single-record access are left to the API layer so it can tell 404 from 403.
"""
from __future__ import annotations

import uuid
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from core.db import models, schemas

_SORT_COLUMNS = {
    "name": models.Patient.name,
    "createdAt": models.Patient.created_at,
    "updatedAt": models.Patient.updated_at,
}


def list_patients(
    db: Session,
    *,
    doctor_id: uuid.UUID,
    params: schemas.PatientListParams,
) -> Tuple[List[Tuple[models.Patient, int]], int]:
    """Return ``([(patient, plan_count)], total)`` for one page."""
    q = db.query(models.Patient).filter(models.Patient.doctor_id == doctor_id)
    if params.search:
        q = q.filter(models.Patient.name.ilike(f"%{params.search}%"))
    if params.gender:
        q = q.filter(models.Patient.gender == params.gender)

    total = q.count()

    column = _SORT_COLUMNS[params.sort_by]
    q = q.order_by(column.asc() if params.sort_order == "asc" else column.desc())
    patients = q.offset((params.page - 1) * params.page_size).limit(params.page_size).all()

    counts = plan_counts(db, patient_ids=[p.id for p in patients])
    return [(p, counts.get(p.id, 0)) for p in patients], total


def plan_counts(db: Session, *, patient_ids: List[uuid.UUID]) -> Dict[uuid.UUID, int]:
    if not patient_ids:
        return {}
    rows = (
        db.query(models.TreatmentPlan.patient_id, func.count(models.TreatmentPlan.id))
        .filter(models.TreatmentPlan.patient_id.in_(patient_ids))
        .group_by(models.TreatmentPlan.patient_id)
        .all()
    )
    return {pid: int(n) for pid, n in rows}


def get_patient(db: Session, *, patient_id: uuid.UUID) -> Optional[models.Patient]:
    return db.query(models.Patient).filter(models.Patient.id == patient_id).first()


def get_patient_owned(db: Session, *, patient_id: uuid.UUID, doctor_id: uuid.UUID) -> Optional[models.Patient]:
    return (
        db.query(models.Patient)
        .filter(models.Patient.id == patient_id, models.Patient.doctor_id == doctor_id)
        .first()
    )


def create_patient(db: Session, *, doctor_id: uuid.UUID, payload: schemas.PatientCreate) -> models.Patient:
    patient = models.Patient(doctor_id=doctor_id, **payload.model_dump())
    db.add(patient)
    db.commit()
    db.refresh(patient)
    return patient


def update_patient(db: Session, *, patient: models.Patient, changes: Dict[str, Any]) -> models.Patient:
    for key, value in changes.items():
        setattr(patient, key, value)
    db.commit()
    db.refresh(patient)
    return patient


def delete_patient(db: Session, *, patient: models.Patient) -> None:
    """Delete a patient together with its treatment plans."""
    try:
        db.delete(patient)
        db.commit()
    except Exception as e:
        db.rollback()
        raise RuntimeError(f"Failed to delete patient {patient.id}: {str(e)}")


def count_patients(db: Session, *, doctor_id: uuid.UUID, created_from=None, created_before=None) -> int:
    q = db.query(func.count(models.Patient.id)).filter(models.Patient.doctor_id == doctor_id)
    if created_from is not None:
        q = q.filter(models.Patient.created_at >= created_from)
    if created_before is not None:
        q = q.filter(models.Patient.created_at < created_before)
    return int(q.scalar() or 0)


def recent_patients(db: Session, *, doctor_id: uuid.UUID, limit: int = 5) -> List[models.Patient]:
    return (
        db.query(models.Patient)
        .filter(models.Patient.doctor_id == doctor_id)
        .order_by(models.Patient.created_at.desc())
        .limit(limit)
        .all()
    )
