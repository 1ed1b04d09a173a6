"""Dashboard summary endpoint."""
import math
from datetime import datetime, timedelta, timezone
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from core.api.deps import get_current_user_context
from core.db.database import get_db
from core.db.models import as_utc
from core.db.repositories import patients as patient_repo
from core.db.repositories import treatment_plans as plan_repo

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])

ACTIVE_PLAN_STATUSES = ("DRAFT", "APPROVED")
RECENT_ACTIVITY_LIMIT = 5

_PLAN_ACTIVITY = {
    "APPROVED": "Treatment plan approved",
    "REJECTED": "Treatment plan rejected",
}


def percent_change(current: int, previous: int) -> int:
    """Period-over-period change in whole percent; halves round up (-12.5 -> -12)."""
    if previous == 0:
        return 100 if current > 0 else 0
    return int(math.floor((current - previous) / previous * 100 + 0.5))


def _recent_activity(db: Session, doctor_id) -> List[dict]:
    activity = []
    for plan in plan_repo.recently_updated_plans(db, doctor_id=doctor_id, limit=RECENT_ACTIVITY_LIMIT):
        activity.append({
            "id": str(plan.id),
            "type": "treatment_plan",
            "patientId": str(plan.patient_id),
            "patientName": plan.patient.name if plan.patient is not None else None,
            "action": _PLAN_ACTIVITY.get(plan.status, "Treatment plan created"),
            "timestamp": as_utc(plan.updated_at),
        })
    for patient in patient_repo.recent_patients(db, doctor_id=doctor_id, limit=RECENT_ACTIVITY_LIMIT):
        activity.append({
            "id": str(patient.id),
            "type": "patient",
            "patientId": str(patient.id),
            "patientName": patient.name,
            "action": "New patient added",
            "timestamp": as_utc(patient.created_at),
        })
    activity.sort(key=lambda item: item["timestamp"], reverse=True)
    top = activity[:RECENT_ACTIVITY_LIMIT]
    for item in top:
        item["timestamp"] = item["timestamp"].isoformat()
    return top


@router.get("/stats")
def dashboard_stats(db: Session = Depends(get_db), user_context=Depends(get_current_user_context)):
    user, _ = user_context
    now = datetime.now(timezone.utc)
    month_ago = now - timedelta(days=30)
    two_months_ago = now - timedelta(days=60)

    patients_current = patient_repo.count_patients(db, doctor_id=user.id, created_from=month_ago)
    patients_previous = patient_repo.count_patients(
        db, doctor_id=user.id, created_from=two_months_ago, created_before=month_ago
    )
    plans_current = plan_repo.count_plans(
        db, doctor_id=user.id, statuses=ACTIVE_PLAN_STATUSES, created_from=month_ago
    )
    plans_previous = plan_repo.count_plans(
        db,
        doctor_id=user.id,
        statuses=ACTIVE_PLAN_STATUSES,
        created_from=two_months_ago,
        created_before=month_ago,
    )

    return {
        "stats": {
            "totalPatients": patient_repo.count_patients(db, doctor_id=user.id),
            "patientChange": percent_change(patients_current, patients_previous),
            "activeTreatmentPlans": plan_repo.count_plans(db, doctor_id=user.id, statuses=ACTIVE_PLAN_STATUSES),
            "planChange": percent_change(plans_current, plans_previous),
            "safetyAlerts": plan_repo.count_plans(
                db, doctor_id=user.id, statuses=ACTIVE_PLAN_STATUSES, risk_level="HIGH"
            ),
        },
        "recentActivity": _recent_activity(db, user.id),
    }
