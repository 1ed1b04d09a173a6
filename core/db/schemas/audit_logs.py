import uuid
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import Field

from .common import CamelModel


class AuditLogOut(CamelModel):
    id: uuid.UUID
    timestamp: datetime
    event_type: str
    severity: str
    user_id: Optional[uuid.UUID] = None
    session_id: Optional[str] = None
    patient_id: Optional[uuid.UUID] = None
    resource_type: Optional[str] = None
    resource_id: Optional[str] = None
    action: str
    details: Optional[Dict[str, Any]] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    success: bool
    error_message: Optional[str] = None
    duration_ms: Optional[int] = None
    phi_accessed: bool
    phi_fields: Optional[List[str]] = None


class AuditLogListParams(CamelModel):
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=200)
    search: str = ""
    event_type: Optional[str] = None
    severity: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    success: Optional[bool] = None
    patient_id: Optional[uuid.UUID] = None
    sort_order: Literal["asc", "desc"] = "desc"


class AuditExportRequest(CamelModel):
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    format: Literal["json", "csv"] = "json"
    patient_id: Optional[uuid.UUID] = None
