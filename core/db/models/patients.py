import uuid
from sqlalchemy import Column, String, DateTime, Date, Boolean, Float, ForeignKey, Text, Index
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import relationship
from .base import Base, now_utc


class Patient(Base):
    __tablename__ = 'patients'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    doctor_id = Column(UUID(as_uuid=True), ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    name = Column(String(100), nullable=False)
    date_of_birth = Column(Date, nullable=False)
    gender = Column(String(10), nullable=False)  # MALE|FEMALE|OTHER
    weight = Column(Float, nullable=True)  # kg
    height = Column(Float, nullable=True)  # cm
    blood_type = Column(String(3), nullable=True)
    medical_history = Column(Text, nullable=True)
    current_medications = Column(JSONB, nullable=False, default=list)
    allergies = Column(JSONB, nullable=False, default=list)
    chronic_conditions = Column(JSONB, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), default=now_utc)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)

    treatment_plans = relationship(
        "TreatmentPlan",
        back_populates="patient",
        cascade="all, delete-orphan",
        order_by="TreatmentPlan.created_at.desc()",
    )

    __table_args__ = (
        Index('ix_patients_doctor_id_updated_at', 'doctor_id', 'updated_at'),
        Index('ix_patients_name', 'name'),
    )


class TreatmentPlan(Base):
    __tablename__ = 'treatment_plans'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    patient_id = Column(UUID(as_uuid=True), ForeignKey('patients.id', ondelete='CASCADE'), nullable=False)
    doctor_id = Column(UUID(as_uuid=True), ForeignKey('users.id', ondelete='CASCADE'), nullable=False)

    # Encounter
    chief_complaint = Column(Text, nullable=False)
    current_symptoms = Column(Text, nullable=True)
    vital_signs = Column(JSONB, nullable=True)
    physical_exam_notes = Column(Text, nullable=True)

    # AI output and doctor decision
    ai_recommendations = Column(JSONB, nullable=True)
    final_plan = Column(JSONB, nullable=True)

    # Risk assessment
    risk_level = Column(String(10), nullable=True)  # LOW|MEDIUM|HIGH
    risk_factors = Column(JSONB, nullable=False, default=list)
    risk_justification = Column(Text, nullable=True)

    # Safety checks
    drug_interactions = Column(JSONB, nullable=False, default=list)
    contraindications = Column(JSONB, nullable=False, default=list)
    alternatives = Column(JSONB, nullable=False, default=list)

    status = Column(String(10), nullable=False, default='DRAFT')  # DRAFT|APPROVED|REJECTED
    was_modified = Column(Boolean, nullable=False, default=False)
    modification_notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=now_utc)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)
    approved_at = Column(DateTime(timezone=True), nullable=True)

    patient = relationship("Patient", back_populates="treatment_plans")

    __table_args__ = (
        Index('ix_treatment_plans_doctor_id_created_at', 'doctor_id', 'created_at'),
        Index('ix_treatment_plans_patient_id', 'patient_id'),
        Index('ix_treatment_plans_status', 'status'),
    )
