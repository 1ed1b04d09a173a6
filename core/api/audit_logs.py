"""
Audit log API endpoints.

Every query is scoped to the calling doctor's own entries.
"""
import math
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import Response
from pydantic import ValidationError
from sqlalchemy.orm import Session

from core import audit
from core.api.deps import get_current_user_context
from core.db import schemas
from core.db.database import get_db

router = APIRouter(prefix="/api/audit-logs", tags=["audit-logs"])

_MEDIA_TYPES = {"csv": "text/csv", "json": "application/json"}


def _matches(entry: dict, needle: str) -> bool:
    return any(
        needle in (entry.get(key) or "").lower()
        for key in ("action", "eventType", "resourceType")
    )


@router.get("")
def list_audit_logs(
    request: Request,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    user, _ = user_context
    try:
        params = schemas.AuditLogListParams.model_validate(dict(request.query_params))
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=schemas.validation_error_message(e))

    result = audit.search(
        db,
        user_id=user.id,
        patient_id=params.patient_id,
        event_types=[params.event_type] if params.event_type and params.event_type != "ALL" else None,
        severity=[params.severity] if params.severity and params.severity != "ALL" else None,
        start_date=params.start_date,
        end_date=params.end_date,
        success=params.success,
        limit=params.page_size,
        offset=(params.page - 1) * params.page_size,
    )
    logs = result["logs"]
    if params.search:
        needle = params.search.lower()
        logs = [entry for entry in logs if _matches(entry, needle)]
    if params.sort_order == "asc":
        logs = list(reversed(logs))

    total = result["total"]
    return {
        "logs": logs,
        "total": total,
        "page": params.page,
        "pageSize": params.page_size,
        "totalPages": math.ceil(total / params.page_size),
    }


@router.post("/export")
def export_audit_logs(
    payload: schemas.AuditExportRequest,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    user, _ = user_context
    if payload.start_date is None or payload.end_date is None:
        raise HTTPException(status_code=400, detail="Start date and end date are required")

    body = audit.export_for_compliance(
        db,
        start_date=payload.start_date,
        end_date=payload.end_date,
        user_id=user.id,
        patient_id=payload.patient_id,
        fmt=payload.format,
    )
    filename = f"audit-logs-{datetime.now(timezone.utc).strftime('%Y-%m-%d')}.{payload.format}"
    return Response(
        content=body,
        media_type=_MEDIA_TYPES[payload.format],
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/stats")
def audit_stats(
    request: Request,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    user, _ = user_context
    start = _parse_datetime(request.query_params.get("startDate"))
    end = _parse_datetime(request.query_params.get("endDate"))
    return {"stats": audit.get_stats(db, start_date=start, end_date=end, user_id=user.id)}


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid date: {value}")
