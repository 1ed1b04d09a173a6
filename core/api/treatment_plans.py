"""
Treatment plan endpoints and the AI analysis entry point.

Plans are only visible to the doctor who created them; a plan owned by
someone else is reported as missing.
"""
import logging
import math
import time
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import ValidationError
from sqlalchemy.orm import Session

from core import audit
from core.api.deps import get_current_user_context
from core.db import models, schemas
from core.db.database import get_db
from core.db.models import now_utc
from core.db.repositories import patients as patient_repo
from core.db.repositories import treatment_plans as plan_repo
from core.services import analysis_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/treatment-plans", tags=["treatment-plans"])

_STATUS_ACTIONS = {"APPROVED": "approve", "REJECTED": "reject"}


def _parse_uuid(value) -> Optional[uuid.UUID]:
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


def _load_plan(db: Session, plan_id: uuid.UUID, doctor_id: uuid.UUID) -> models.TreatmentPlan:
    plan = plan_repo.get_plan_owned(db, plan_id=plan_id, doctor_id=doctor_id)
    if plan is None:
        raise HTTPException(status_code=404, detail="Treatment plan not found")
    return plan


@router.post("/analyze")
def analyze(
    payload: schemas.AnalyzeRequest,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    """Run the AI treatment analysis for one encounter."""
    user, current_user = user_context
    use_rag = bool(payload.use_rag)
    started = time.monotonic()
    try:
        analysis = analysis_service.analyze_treatment(payload, use_rag=use_rag, db=db)
    except Exception as e:
        logger.error("Treatment analysis failed: %s", e)
        audit.log_ai_analysis(
            db,
            user_id=user.id,
            patient_id=payload.patient.id,
            analysis_type="treatment_recommendation",
            session_id=current_user["session_id"],
            duration_ms=int((time.monotonic() - started) * 1000),
            success=False,
            error_message=str(e),
        )
        raise HTTPException(status_code=500, detail="Failed to analyze treatment")

    audit.log_ai_analysis(
        db,
        user_id=user.id,
        patient_id=payload.patient.id,
        analysis_type="treatment_recommendation",
        session_id=current_user["session_id"],
        duration_ms=int((time.monotonic() - started) * 1000),
    )
    return {"analysis": analysis, "usedRAG": use_rag}


@router.get("")
def list_treatment_plans(
    request: Request,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    user, _ = user_context
    try:
        params = schemas.TreatmentPlanListParams.model_validate(dict(request.query_params))
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=schemas.validation_error_message(e))

    plans, total = plan_repo.list_plans(db, doctor_id=user.id, params=params)
    return {
        "plans": [schemas.plan_to_api(p) for p in plans],
        "total": total,
        "page": params.page,
        "pageSize": params.page_size,
        "totalPages": math.ceil(total / params.page_size),
    }


@router.post("", status_code=status.HTTP_201_CREATED)
def create_treatment_plan(
    payload: schemas.TreatmentPlanCreate,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    user, current_user = user_context
    patient_id = _parse_uuid(payload.patient_id)
    patient = (
        patient_repo.get_patient_owned(db, patient_id=patient_id, doctor_id=user.id)
        if patient_id is not None
        else None
    )
    if patient is None:
        raise HTTPException(status_code=404, detail="Patient not found")

    plan = plan_repo.create_plan(db, doctor_id=user.id, patient_id=patient.id, payload=payload)
    result = schemas.plan_to_api(plan)
    audit.log_treatment_plan_action(
        db,
        "create",
        user_id=user.id,
        patient_id=patient.id,
        plan_id=plan.id,
        session_id=current_user["session_id"],
        ai_generated=bool(payload.ai_recommendations),
    )
    return {"treatmentPlan": result}


@router.get("/{plan_id}")
def get_treatment_plan(
    plan_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    user, current_user = user_context
    plan = _load_plan(db, plan_id, user.id)
    result = schemas.plan_to_api(plan)
    audit.log_treatment_plan_action(
        db,
        "view",
        user_id=user.id,
        patient_id=plan.patient_id,
        plan_id=plan.id,
        session_id=current_user["session_id"],
    )
    return {"treatmentPlan": result}


@router.patch("/{plan_id}")
def update_treatment_plan(
    plan_id: uuid.UUID,
    payload: schemas.TreatmentPlanUpdate,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    user, current_user = user_context
    plan = _load_plan(db, plan_id, user.id)
    previous_status = plan.status
    modifications = sorted(payload.model_dump(exclude_unset=True))

    plan = plan_repo.update_plan(db, plan=plan, payload=payload, now=now_utc())
    result = schemas.plan_to_api(plan)

    action = "update"
    if payload.status and payload.status != previous_status:
        action = _STATUS_ACTIONS.get(payload.status, "update")
    audit.log_treatment_plan_action(
        db,
        action,
        user_id=user.id,
        patient_id=plan.patient_id,
        plan_id=plan.id,
        session_id=current_user["session_id"],
        modifications=modifications,
    )
    return {"treatmentPlan": result}


@router.delete("/{plan_id}")
def delete_treatment_plan(
    plan_id: uuid.UUID,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    user, current_user = user_context
    plan = _load_plan(db, plan_id, user.id)
    if plan.status != "DRAFT":
        raise HTTPException(status_code=400, detail="Only draft treatment plans can be deleted")
    deleted_id, patient_id = plan.id, plan.patient_id
    plan_repo.delete_plan(db, plan=plan)
    audit.log_treatment_plan_action(
        db,
        "delete",
        user_id=user.id,
        patient_id=patient_id,
        plan_id=deleted_id,
        session_id=current_user["session_id"],
    )
    return {"success": True}
