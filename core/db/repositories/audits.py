"""
Audit log repository functions.

Audit rows are append-only: this module only creates and queries them.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from core.db import models


def create_audit_log(db: Session, *, entry: Dict[str, Any]) -> models.AuditLog:
    db_audit_log = models.AuditLog(**entry)
    db.add(db_audit_log)
    db.commit()
    db.refresh(db_audit_log)
    return db_audit_log


def _filtered(
    db: Session,
    *,
    user_id: Optional[uuid.UUID] = None,
    patient_id: Optional[uuid.UUID] = None,
    event_types: Optional[Sequence[str]] = None,
    severity: Optional[Sequence[str]] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    success: Optional[bool] = None,
    phi_accessed: Optional[bool] = None,
):
    query = db.query(models.AuditLog)
    if user_id:
        query = query.filter(models.AuditLog.user_id == user_id)
    if patient_id:
        query = query.filter(models.AuditLog.patient_id == patient_id)
    if event_types:
        query = query.filter(models.AuditLog.event_type.in_(list(event_types)))
    if severity:
        query = query.filter(models.AuditLog.severity.in_(list(severity)))
    if start_date:
        query = query.filter(models.AuditLog.timestamp >= start_date)
    if end_date:
        query = query.filter(models.AuditLog.timestamp <= end_date)
    if success is not None:
        query = query.filter(models.AuditLog.success == success)
    if phi_accessed is not None:
        query = query.filter(models.AuditLog.phi_accessed == phi_accessed)
    return query


def search_audit_logs(
    db: Session,
    *,
    limit: int = 100,
    offset: int = 0,
    **filters: Any,
) -> Tuple[List[models.AuditLog], int]:
    query = _filtered(db, **filters)
    total = query.count()
    logs = query.order_by(models.AuditLog.timestamp.desc()).offset(offset).limit(limit).all()
    return logs, total


def list_for_stats(
    db: Session,
    *,
    user_id: Optional[uuid.UUID] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
) -> List[models.AuditLog]:
    return _filtered(db, user_id=user_id, start_date=start_date, end_date=end_date).all()
