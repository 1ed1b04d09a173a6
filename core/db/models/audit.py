import uuid
from sqlalchemy import Column, String, Text, DateTime, Boolean, Integer, Index
from sqlalchemy.dialects.postgresql import UUID, JSONB
from .base import Base, now_utc


class AuditLog(Base):
    """Append-only compliance record of a user or system action."""

    __tablename__ = 'audit_logs'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    timestamp = Column(DateTime(timezone=True), default=now_utc, nullable=False)
    event_type = Column(String(40), nullable=False)
    severity = Column(String(10), nullable=False, default='info')

    # Actors and subjects are stored as loose references so that log rows
    # outlive the records they describe.
    user_id = Column(UUID(as_uuid=True), nullable=True)
    session_id = Column(String(64), nullable=True)
    patient_id = Column(UUID(as_uuid=True), nullable=True)
    resource_type = Column(String(40), nullable=True)
    resource_id = Column(String(64), nullable=True)

    action = Column(Text, nullable=False)
    details = Column(JSONB, nullable=True)

    ip_address = Column(String(64), nullable=True)
    user_agent = Column(Text, nullable=True)

    success = Column(Boolean, nullable=False, default=True)
    error_message = Column(Text, nullable=True)
    duration_ms = Column(Integer, nullable=True)

    phi_accessed = Column(Boolean, nullable=False, default=False)
    phi_fields = Column(JSONB, nullable=True)

    __table_args__ = (
        Index('ix_audit_logs_user_id_timestamp', 'user_id', 'timestamp'),
        Index('ix_audit_logs_patient_id_timestamp', 'patient_id', 'timestamp'),
        Index('ix_audit_logs_event_type', 'event_type'),
        Index('ix_audit_logs_severity', 'severity'),
    )
