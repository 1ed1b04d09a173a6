"""
Patient record endpoints, scoped to the signed-in doctor.

Single-record routes distinguish a missing patient (404) from one owned by
another doctor (403); the latter is audited as ``authorization_failure``.
"""
import logging
import math
import uuid

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import ValidationError
from sqlalchemy.orm import Session

from core import audit
from core.api.deps import client_meta, get_current_user_context
from core.db import models, schemas
from core.db.database import get_db
from core.db.repositories import patients as patient_repo

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/patients", tags=["patients"])


def _patient_to_api(patient: models.Patient, plan_count: int = 0) -> dict:
    data = schemas.PatientOut.model_validate(patient).to_api()
    data["treatmentPlanCount"] = plan_count
    return data


def load_owned_patient(
    db: Session,
    patient_id: uuid.UUID,
    current_user: dict,
    request: Request,
) -> models.Patient:
    """Return the patient or raise 404/403, auditing cross-doctor access."""
    patient = patient_repo.get_patient(db, patient_id=patient_id)
    if patient is None:
        raise HTTPException(status_code=404, detail="Patient not found")
    if patient.doctor_id != current_user["id"]:
        audit.log(
            db,
            audit.AuditEventType.AUTHORIZATION_FAILURE,
            "Unauthorized patient access attempt",
            user_id=current_user["id"],
            session_id=current_user["session_id"],
            patient_id=patient.id,
            resource_type="patient",
            resource_id=patient.id,
            success=False,
            error_message="Patient belongs to another doctor",
            **client_meta(request),
        )
        raise HTTPException(status_code=403, detail="Forbidden")
    return patient


@router.get("")
def list_patients(
    request: Request,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    user, current_user = user_context
    try:
        params = schemas.PatientListParams.model_validate(dict(request.query_params))
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=schemas.validation_error_message(e))

    rows, total = patient_repo.list_patients(db, doctor_id=user.id, params=params)
    audit.log_patient_access(
        db, "list", user_id=user.id, session_id=current_user["session_id"], ip_address=client_meta(request)["ip_address"]
    )
    return {
        "patients": [_patient_to_api(p, n) for p, n in rows],
        "total": total,
        "page": params.page,
        "pageSize": params.page_size,
        "totalPages": math.ceil(total / params.page_size),
    }


@router.post("", status_code=status.HTTP_201_CREATED)
def create_patient(
    payload: schemas.PatientCreate,
    request: Request,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    user, current_user = user_context
    patient = patient_repo.create_patient(db, doctor_id=user.id, payload=payload)
    logger.info("Doctor %s created patient %s", user.id, patient.id)
    audit.log_patient_access(
        db,
        "create",
        user_id=user.id,
        patient_id=patient.id,
        session_id=current_user["session_id"],
        ip_address=client_meta(request)["ip_address"],
        fields_accessed=sorted(payload.model_dump(exclude_unset=True)),
    )
    return {"patient": _patient_to_api(patient)}


@router.get("/{patient_id}")
def get_patient(
    patient_id: uuid.UUID,
    request: Request,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    user, current_user = user_context
    patient = load_owned_patient(db, patient_id, current_user, request)
    detail = schemas.PatientDetail.model_validate(patient).to_api()
    detail["treatmentPlanCount"] = len(detail["treatmentPlans"])
    audit.log_patient_access(
        db,
        "view",
        user_id=user.id,
        patient_id=patient.id,
        session_id=current_user["session_id"],
        ip_address=client_meta(request)["ip_address"],
    )
    return {"patient": detail}


@router.patch("/{patient_id}")
def update_patient(
    patient_id: uuid.UUID,
    payload: schemas.PatientUpdate,
    request: Request,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    user, current_user = user_context
    patient = load_owned_patient(db, patient_id, current_user, request)
    changes = payload.model_dump(exclude_unset=True)
    patient = patient_repo.update_patient(db, patient=patient, changes=changes)
    audit.log_patient_access(
        db,
        "update",
        user_id=user.id,
        patient_id=patient.id,
        session_id=current_user["session_id"],
        ip_address=client_meta(request)["ip_address"],
        fields_accessed=sorted(changes),
    )
    return {"patient": _patient_to_api(patient, len(patient.treatment_plans))}


@router.delete("/{patient_id}")
def delete_patient(
    patient_id: uuid.UUID,
    request: Request,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    user, current_user = user_context
    patient = load_owned_patient(db, patient_id, current_user, request)
    deleted_id = patient.id
    try:
        patient_repo.delete_patient(db, patient=patient)
    except RuntimeError as e:
        logger.error("Patient delete failed: %s", e)
        raise HTTPException(status_code=500, detail="Failed to delete patient")
    audit.log_patient_access(
        db,
        "delete",
        user_id=user.id,
        patient_id=deleted_id,
        session_id=current_user["session_id"],
        ip_address=client_meta(request)["ip_address"],
    )
    return {"success": True}
