import uuid
from sqlalchemy import Column, String, Boolean, DateTime, Index
from sqlalchemy.dialects.postgresql import UUID, JSONB
from .base import Base, now_utc


class SevereCondition(Base):
    __tablename__ = 'severe_conditions'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    condition_name = Column(String(120), nullable=False, unique=True)
    keywords = Column(JSONB, nullable=False, default=list)
    vital_thresholds = Column(JSONB, nullable=True)
    risk_category = Column(String(12), nullable=False)  # CRITICAL|URGENT|HIGH_RISK|STANDARD
    required_validations = Column(JSONB, nullable=False, default=list)
    auto_escalate = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=now_utc)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)

    __table_args__ = (
        Index('ix_severe_conditions_risk_category', 'risk_category'),
    )
