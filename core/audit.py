"""
Audit logging helpers and enums.

Centralized helpers to persist normalized, append-only audit records for
compliance review; includes convenience wrappers per event family plus the
search, statistics and export operations used by the audit-log API.
"""
from __future__ import annotations

import csv
import io
import json
import logging
import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.db import models, schemas
from core.db.models import now_utc
from core.db.repositories import audits as audit_repo
from core.utils.feature_flags import audit_logging_enabled

logger = logging.getLogger(__name__)


class AuditEventType(str, Enum):
    # Authentication
    LOGIN = "login"
    LOGOUT = "logout"
    LOGIN_FAILED = "login_failed"
    AUTHENTICATION = "authentication"
    AUTHORIZATION_FAILURE = "authorization_failure"
    # AI
    AI_REQUEST = "ai_request"
    AI_RESPONSE = "ai_response"
    AI_ANALYSIS = "ai_analysis"
    # Patients
    PATIENT_ACCESS = "patient_access"
    PATIENT_CREATE = "patient_create"
    PATIENT_UPDATE = "patient_update"
    PATIENT_DELETE = "patient_delete"
    PATIENT_LIST = "patient_list"
    PROFILE_VIEW = "profile_view"
    # Treatment plans
    TREATMENT_PLAN_VIEW = "treatment_plan_view"
    TREATMENT_PLAN_CREATE = "treatment_plan_create"
    TREATMENT_PLAN_UPDATE = "treatment_plan_update"
    TREATMENT_PLAN_DELETE = "treatment_plan_delete"
    TREATMENT_PLAN_APPROVE = "treatment_plan_approve"
    TREATMENT_PLAN_REJECT = "treatment_plan_reject"
    # PHI
    PHI_ACCESS = "phi_access"
    PHI_DEIDENTIFY = "phi_deidentify"
    PHI_REIDENTIFY = "phi_reidentify"
    # Misc
    DATA_EXPORT = "data_export"
    KNOWLEDGE_INGEST = "knowledge_ingest"
    SAFETY_ALERT = "safety_alert"
    ERROR = "error"


class AuditSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


AI_EVENT_TYPES = {
    AuditEventType.AI_REQUEST.value,
    AuditEventType.AI_RESPONSE.value,
    AuditEventType.AI_ANALYSIS.value,
}

_PATIENT_EVENTS = {
    "view": AuditEventType.PATIENT_ACCESS,
    "create": AuditEventType.PATIENT_CREATE,
    "update": AuditEventType.PATIENT_UPDATE,
    "delete": AuditEventType.PATIENT_DELETE,
    "list": AuditEventType.PATIENT_LIST,
}

_TREATMENT_PLAN_EVENTS = {
    "view": AuditEventType.TREATMENT_PLAN_VIEW,
    "create": AuditEventType.TREATMENT_PLAN_CREATE,
    "update": AuditEventType.TREATMENT_PLAN_UPDATE,
    "delete": AuditEventType.TREATMENT_PLAN_DELETE,
    "approve": AuditEventType.TREATMENT_PLAN_APPROVE,
    "reject": AuditEventType.TREATMENT_PLAN_REJECT,
}

_PHI_EVENTS = {
    "access": AuditEventType.PHI_ACCESS,
    "deidentify": AuditEventType.PHI_DEIDENTIFY,
    "reidentify": AuditEventType.PHI_REIDENTIFY,
}


def _value(v: Enum | str) -> str:
    return v.value if isinstance(v, Enum) else str(v)


def _as_uuid(v: Any) -> Optional[uuid.UUID]:
    if v is None or isinstance(v, uuid.UUID):
        return v
    try:
        return uuid.UUID(str(v))
    except ValueError:
        return None


def determine_severity(event_type: AuditEventType | str, success: bool) -> str:
    event = _value(event_type)
    if not success:
        if event in ("authorization_failure", "safety_alert"):
            return AuditSeverity.CRITICAL.value
        if event == "login_failed":
            return AuditSeverity.WARNING.value
        return AuditSeverity.ERROR.value
    if event in ("safety_alert", "patient_delete", "treatment_plan_delete", "authorization_failure"):
        return AuditSeverity.WARNING.value
    if event == "error":
        return AuditSeverity.ERROR.value
    return AuditSeverity.INFO.value


def log(
    db: Session,
    event_type: AuditEventType | str,
    action: str,
    *,
    user_id: Any = None,
    session_id: Optional[str] = None,
    patient_id: Any = None,
    resource_type: Optional[str] = None,
    resource_id: Any = None,
    details: Optional[Dict[str, Any]] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
    success: bool = True,
    error_message: Optional[str] = None,
    duration_ms: Optional[int] = None,
    phi_accessed: bool = False,
    phi_fields: Optional[List[str]] = None,
    severity: AuditSeverity | str | None = None,
) -> Optional[models.AuditLog]:
    """Central audit logging helper.

    Persistence failures are logged and swallowed so that auditing never
    breaks the request that triggered it. Returns the stored row, or None
    when nothing was written.
    """
    if not audit_logging_enabled():
        return None
    event_value = _value(event_type)
    severity_value = _value(severity) if severity else determine_severity(event_value, success)
    try:
        entry = {
            "timestamp": now_utc(),
            "event_type": event_value,
            "severity": severity_value,
            "user_id": _as_uuid(user_id),
            "session_id": session_id,
            "patient_id": _as_uuid(patient_id),
            "resource_type": resource_type,
            "resource_id": str(resource_id) if resource_id is not None else None,
            "action": action,
            "details": details or {},
            "ip_address": ip_address,
            "user_agent": user_agent,
            "success": success,
            "error_message": error_message,
            "duration_ms": int(duration_ms) if duration_ms is not None else None,
            "phi_accessed": phi_accessed,
            "phi_fields": phi_fields or [],
        }
        row = audit_repo.create_audit_log(db, entry=entry)
    except (SQLAlchemyError, TypeError, ValueError):
        db.rollback()
        logger.exception("audit_persist_failed: event=%s action=%s", event_value, action)
        return None

    if severity_value in (AuditSeverity.CRITICAL.value, AuditSeverity.ERROR.value):
        logger.error(
            "[AUDIT %s] %s: %s id=%s user_id=%s patient_id=%s error=%s",
            severity_value.upper(),
            event_value,
            action,
            row.id,
            entry["user_id"],
            entry["patient_id"],
            error_message,
        )
    return row


__all__ = ["AuditEventType", "AuditSeverity", "determine_severity", "log"]


# Convenience wrappers
def log_login(db: Session, *, user_id: Any, email: str, success: bool = True, error_message: Optional[str] = None, ip_address: Optional[str] = None, user_agent: Optional[str] = None):
    return log(
        db,
        AuditEventType.LOGIN if success else AuditEventType.LOGIN_FAILED,
        "User logged in" if success else "Login failed",
        user_id=user_id,
        details={"email": email},
        ip_address=ip_address,
        user_agent=user_agent,
        success=success,
        error_message=error_message,
        severity=AuditSeverity.INFO if success else AuditSeverity.WARNING,
    )


def log_logout(db: Session, *, user_id: Any, email: Optional[str] = None, ip_address: Optional[str] = None, user_agent: Optional[str] = None):
    return log(
        db,
        AuditEventType.LOGOUT,
        "User logged out",
        user_id=user_id,
        details={"email": email},
        ip_address=ip_address,
        user_agent=user_agent,
    )


def log_profile_view(db: Session, *, user_id: Any, viewed_user_id: Any, session_id: Optional[str] = None, ip_address: Optional[str] = None):
    return log(
        db,
        AuditEventType.PROFILE_VIEW,
        "Profile viewed",
        user_id=user_id,
        session_id=session_id,
        resource_type="user_profile",
        resource_id=viewed_user_id,
        details={"viewedUserId": str(viewed_user_id)},
        ip_address=ip_address,
    )


def log_ai_interaction(
    db: Session,
    kind: str,
    *,
    user_id: Any,
    session_id: str,
    ai_details: Dict[str, Any],
    patient_id: Any = None,
    success: bool = True,
    error_message: Optional[str] = None,
    duration_ms: Optional[int] = None,
):
    """Record an AI ``request`` or ``response``."""
    severity = AuditSeverity.INFO
    if ai_details.get("safetyAlertsTriggered"):
        severity = AuditSeverity.WARNING
    if not success:
        severity = AuditSeverity.ERROR
    return log(
        db,
        AuditEventType.AI_REQUEST if kind == "request" else AuditEventType.AI_RESPONSE,
        f"AI {kind}",
        user_id=user_id,
        session_id=session_id,
        patient_id=patient_id,
        resource_type="ai_analysis",
        resource_id=ai_details.get("requestId"),
        details={**ai_details, "action": kind},
        success=success,
        error_message=error_message,
        duration_ms=duration_ms,
        phi_accessed=bool(patient_id),
        phi_fields=["patient_data"] if patient_id else None,
        severity=severity,
    )


def log_ai_analysis(
    db: Session,
    *,
    user_id: Any,
    patient_id: Any,
    analysis_type: str,
    session_id: Optional[str] = None,
    duration_ms: Optional[int] = None,
    success: bool = True,
    error_message: Optional[str] = None,
):
    return log(
        db,
        AuditEventType.AI_ANALYSIS,
        f"AI analysis: {analysis_type}",
        user_id=user_id,
        session_id=session_id,
        patient_id=patient_id,
        resource_type="ai_analysis",
        details={"analysisType": analysis_type},
        duration_ms=duration_ms,
        success=success,
        error_message=error_message,
        phi_accessed=True,
        phi_fields=["patient_data", "symptoms", "medical_history"],
    )


def log_patient_access(
    db: Session,
    action: str,
    *,
    user_id: Any,
    patient_id: Any = None,
    session_id: Optional[str] = None,
    ip_address: Optional[str] = None,
    fields_accessed: Optional[List[str]] = None,
    success: bool = True,
    error_message: Optional[str] = None,
    duration_ms: Optional[int] = None,
):
    """Record a patient ``view``/``create``/``update``/``delete``/``list``."""
    return log(
        db,
        _PATIENT_EVENTS[action],
        f"Patient {action}",
        user_id=user_id,
        session_id=session_id,
        patient_id=patient_id,
        resource_type="patient",
        resource_id=patient_id,
        details={"action": action, "fieldsAccessed": fields_accessed},
        ip_address=ip_address,
        success=success,
        error_message=error_message,
        duration_ms=duration_ms,
        phi_accessed=action != "list",
        phi_fields=fields_accessed or ["patient_record"],
    )


def log_treatment_plan_action(
    db: Session,
    action: str,
    *,
    user_id: Any,
    patient_id: Any,
    plan_id: Any,
    session_id: Optional[str] = None,
    modifications: Optional[List[str]] = None,
    ai_generated: Optional[bool] = None,
    success: bool = True,
    error_message: Optional[str] = None,
):
    return log(
        db,
        _TREATMENT_PLAN_EVENTS[action],
        f"Treatment plan {action}",
        user_id=user_id,
        session_id=session_id,
        patient_id=patient_id,
        resource_type="treatment_plan",
        resource_id=plan_id,
        details={"action": action, "modifications": modifications, "aiGenerated": ai_generated},
        success=success,
        error_message=error_message,
        phi_accessed=True,
        phi_fields=["treatment_plan", "medications"],
    )


def log_safety_alert(
    db: Session,
    alert_type: str,
    *,
    severity: str,
    details: Dict[str, Any],
    user_id: Any = None,
    patient_id: Any = None,
    session_id: Optional[str] = None,
    medication: Optional[str] = None,
):
    return log(
        db,
        AuditEventType.SAFETY_ALERT,
        f"Safety alert: {alert_type}",
        user_id=user_id,
        session_id=session_id,
        patient_id=patient_id,
        resource_type="safety_check",
        details={"alertType": alert_type, "medication": medication, **details},
        severity=AuditSeverity.CRITICAL if severity == "critical" else AuditSeverity.WARNING,
        phi_accessed=bool(patient_id),
    )


def log_phi_operation(
    db: Session,
    operation: str,
    *,
    user_id: Any,
    session_id: str,
    fields_processed: List[str],
    patient_id: Any = None,
    token_count: Optional[int] = None,
    success: bool = True,
):
    """Record a PHI ``access``/``deidentify``/``reidentify`` operation."""
    return log(
        db,
        _PHI_EVENTS[operation],
        f"PHI {operation}",
        user_id=user_id,
        session_id=session_id,
        patient_id=patient_id,
        resource_type="phi",
        details={"operation": operation, "fieldsProcessed": fields_processed, "tokenCount": token_count},
        success=success,
        phi_accessed=True,
        phi_fields=fields_processed,
    )


__all__.extend([
    "log_login",
    "log_logout",
    "log_profile_view",
    "log_ai_interaction",
    "log_ai_analysis",
    "log_patient_access",
    "log_treatment_plan_action",
    "log_safety_alert",
    "log_phi_operation",
])


# Queries
def search(
    db: Session,
    *,
    user_id: Any = None,
    patient_id: Any = None,
    event_types: Optional[Sequence[str]] = None,
    severity: Optional[Sequence[str]] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    success: Optional[bool] = None,
    phi_accessed: Optional[bool] = None,
    limit: int = 100,
    offset: int = 0,
) -> Dict[str, Any]:
    """Return ``{"logs": [...], "total": n}`` newest first."""
    logs, total = audit_repo.search_audit_logs(
        db,
        user_id=_as_uuid(user_id),
        patient_id=_as_uuid(patient_id),
        event_types=event_types,
        severity=severity,
        start_date=start_date,
        end_date=end_date,
        success=success,
        phi_accessed=phi_accessed,
        limit=limit,
        offset=offset,
    )
    return {"logs": [schemas.AuditLogOut.model_validate(row).to_api() for row in logs], "total": total}


def get_stats(
    db: Session,
    *,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    user_id: Any = None,
) -> Dict[str, Any]:
    rows = audit_repo.list_for_stats(db, user_id=_as_uuid(user_id), start_date=start_date, end_date=end_date)
    events_by_type: Dict[str, int] = {}
    events_by_severity: Dict[str, int] = {}
    success_count = 0
    phi_access_count = 0
    ai_interaction_count = 0
    total_response_time = 0
    response_time_count = 0
    for row in rows:
        events_by_type[row.event_type] = events_by_type.get(row.event_type, 0) + 1
        events_by_severity[row.severity] = events_by_severity.get(row.severity, 0) + 1
        if row.success:
            success_count += 1
        if row.phi_accessed:
            phi_access_count += 1
        if row.event_type in AI_EVENT_TYPES:
            ai_interaction_count += 1
        if row.duration_ms:
            total_response_time += row.duration_ms
            response_time_count += 1
    return {
        "totalEvents": len(rows),
        "eventsByType": events_by_type,
        "eventsBySeverity": events_by_severity,
        "successRate": success_count / len(rows) if rows else 1,
        "phiAccessCount": phi_access_count,
        "aiInteractionCount": ai_interaction_count,
        "averageResponseTime": total_response_time / response_time_count if response_time_count else 0,
    }


EXPORT_CSV_COLUMNS = [
    "id", "timestamp", "eventType", "severity", "userId", "patientId",
    "action", "success", "phiAccessed", "durationMs",
]


def export_for_compliance(
    db: Session,
    *,
    start_date: datetime,
    end_date: datetime,
    user_id: Any = None,
    patient_id: Any = None,
    fmt: str = "json",
) -> str:
    """Serialize matching logs as CSV or pretty JSON and audit the export."""
    result = search(
        db,
        start_date=start_date,
        end_date=end_date,
        user_id=user_id,
        patient_id=patient_id,
        limit=100000,
    )
    log(
        db,
        AuditEventType.DATA_EXPORT,
        "Audit log export for compliance",
        user_id=user_id,
        details={
            "startDate": start_date.isoformat(),
            "endDate": end_date.isoformat(),
            "recordCount": result["total"],
            "format": fmt or "json",
        },
        phi_accessed=bool(patient_id),
    )

    if fmt == "csv":
        buf = io.StringIO()
        writer = csv.writer(buf, lineterminator="\n")
        writer.writerow(EXPORT_CSV_COLUMNS)
        for entry in result["logs"]:
            writer.writerow([
                entry["id"],
                entry["timestamp"],
                entry["eventType"],
                entry["severity"],
                entry["userId"] or "",
                entry["patientId"] or "",
                entry["action"],
                str(entry["success"]).lower(),
                str(entry["phiAccessed"]).lower(),
                "" if entry["durationMs"] is None else str(entry["durationMs"]),
            ])
        return buf.getvalue().rstrip("\n")

    return json.dumps(result["logs"], indent=2)


__all__.extend(["search", "get_stats", "export_for_compliance", "EXPORT_CSV_COLUMNS"])
