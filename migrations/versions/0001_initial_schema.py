"""initial schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from pgvector.sqlalchemy import Vector
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '0001_initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _uuid_pk():
    return sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()'))


def _timestamps():
    return [
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=True),
    ]


def upgrade() -> None:
    """Upgrade schema."""
    op.execute('CREATE EXTENSION IF NOT EXISTS pgcrypto')
    op.execute('CREATE EXTENSION IF NOT EXISTS vector')

    op.create_table(
        'users',
        _uuid_pk(),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=True),
        sa.Column('password_hash', sa.Text(), nullable=True),
        sa.Column('email_verified_at', sa.TIMESTAMP(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'doctor_profiles',
        _uuid_pk(),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('full_name', sa.String(length=120), nullable=False),
        sa.Column('license_number', sa.String(length=64), nullable=False, unique=True),
        sa.Column('specialty', sa.String(length=120), nullable=False),
        sa.Column('phone_number', sa.String(length=32), nullable=False),
        sa.Column('is_verified', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        *_timestamps(),
    )

    op.create_table(
        'verification_tokens',
        _uuid_pk(),
        sa.Column('identifier', sa.String(), nullable=False),
        sa.Column('token', sa.String(length=128), nullable=False, unique=True),
        sa.Column('expires_at', sa.TIMESTAMP(timezone=True), nullable=False),
    )
    op.create_index('ix_verification_tokens_identifier', 'verification_tokens', ['identifier'], unique=False)

    op.create_table(
        'session_tokens',
        _uuid_pk(),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('token_id', sa.String(length=64), nullable=False),
        sa.Column('token_hash', sa.Text(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='active'),
        sa.Column('ip_address', sa.String(length=64), nullable=True),
        sa.Column('user_agent', sa.Text(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('last_used_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('expires_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('revoked_at', sa.TIMESTAMP(timezone=True), nullable=True),
    )
    op.create_index('ix_session_token_id', 'session_tokens', ['token_id'], unique=True)
    op.create_index('idx_session_user_created', 'session_tokens', ['user_id', 'created_at'], unique=False)
    op.create_index('idx_session_status', 'session_tokens', ['status'], unique=False)

    op.create_table(
        'patients',
        _uuid_pk(),
        sa.Column('doctor_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('date_of_birth', sa.Date(), nullable=False),
        sa.Column('gender', sa.String(length=10), nullable=False),
        sa.Column('weight', sa.Float(), nullable=True),
        sa.Column('height', sa.Float(), nullable=True),
        sa.Column('blood_type', sa.String(length=3), nullable=True),
        sa.Column('medical_history', sa.Text(), nullable=True),
        sa.Column('current_medications', postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column('allergies', postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column('chronic_conditions', postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'[]'::jsonb")),
        *_timestamps(),
    )
    op.create_index('ix_patients_doctor_id_updated_at', 'patients', ['doctor_id', 'updated_at'], unique=False)
    op.create_index('ix_patients_name', 'patients', ['name'], unique=False)

    op.create_table(
        'treatment_plans',
        _uuid_pk(),
        sa.Column('patient_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('patients.id', ondelete='CASCADE'), nullable=False),
        sa.Column('doctor_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('chief_complaint', sa.Text(), nullable=False),
        sa.Column('current_symptoms', sa.Text(), nullable=True),
        sa.Column('vital_signs', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('physical_exam_notes', sa.Text(), nullable=True),
        sa.Column('ai_recommendations', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('final_plan', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('risk_level', sa.String(length=10), nullable=True),
        sa.Column('risk_factors', postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column('risk_justification', sa.Text(), nullable=True),
        sa.Column('drug_interactions', postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column('contraindications', postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column('alternatives', postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column('status', sa.String(length=10), nullable=False, server_default='DRAFT'),
        sa.Column('was_modified', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('modification_notes', sa.Text(), nullable=True),
        *_timestamps(),
        sa.Column('approved_at', sa.TIMESTAMP(timezone=True), nullable=True),
    )
    op.create_index('ix_treatment_plans_doctor_id_created_at', 'treatment_plans', ['doctor_id', 'created_at'], unique=False)
    op.create_index('ix_treatment_plans_patient_id', 'treatment_plans', ['patient_id'], unique=False)
    op.create_index('ix_treatment_plans_status', 'treatment_plans', ['status'], unique=False)

    op.create_table(
        'audit_logs',
        _uuid_pk(),
        sa.Column('timestamp', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('event_type', sa.String(length=40), nullable=False),
        sa.Column('severity', sa.String(length=10), nullable=False, server_default='info'),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('session_id', sa.String(length=64), nullable=True),
        sa.Column('patient_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('resource_type', sa.String(length=40), nullable=True),
        sa.Column('resource_id', sa.String(length=64), nullable=True),
        sa.Column('action', sa.Text(), nullable=False),
        sa.Column('details', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('ip_address', sa.String(length=64), nullable=True),
        sa.Column('user_agent', sa.Text(), nullable=True),
        sa.Column('success', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('duration_ms', sa.Integer(), nullable=True),
        sa.Column('phi_accessed', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('phi_fields', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
    )
    op.create_index('ix_audit_logs_user_id_timestamp', 'audit_logs', ['user_id', 'timestamp'], unique=False)
    op.create_index('ix_audit_logs_patient_id_timestamp', 'audit_logs', ['patient_id', 'timestamp'], unique=False)
    op.create_index('ix_audit_logs_event_type', 'audit_logs', ['event_type'], unique=False)
    op.create_index('ix_audit_logs_severity', 'audit_logs', ['severity'], unique=False)

    op.create_table(
        'severe_conditions',
        _uuid_pk(),
        sa.Column('condition_name', sa.String(length=120), nullable=False, unique=True),
        sa.Column('keywords', postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column('vital_thresholds', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('risk_category', sa.String(length=12), nullable=False),
        sa.Column('required_validations', postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column('auto_escalate', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        *_timestamps(),
    )
    op.create_index('ix_severe_conditions_risk_category', 'severe_conditions', ['risk_category'], unique=False)

    op.create_table(
        'knowledge_documents',
        _uuid_pk(),
        sa.Column('source_type', sa.String(length=32), nullable=False),
        sa.Column('source_id', sa.String(length=128), nullable=True),
        sa.Column('title', sa.Text(), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('chunk_index', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('metadata', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('embedding', Vector(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
    )
    op.create_index('ix_knowledge_documents_source_type', 'knowledge_documents', ['source_type'], unique=False)
    op.create_index('ix_knowledge_documents_source_id', 'knowledge_documents', ['source_id'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('ix_knowledge_documents_source_id', table_name='knowledge_documents')
    op.drop_index('ix_knowledge_documents_source_type', table_name='knowledge_documents')
    op.drop_table('knowledge_documents')
    op.drop_index('ix_severe_conditions_risk_category', table_name='severe_conditions')
    op.drop_table('severe_conditions')
    op.drop_index('ix_audit_logs_severity', table_name='audit_logs')
    op.drop_index('ix_audit_logs_event_type', table_name='audit_logs')
    op.drop_index('ix_audit_logs_patient_id_timestamp', table_name='audit_logs')
    op.drop_index('ix_audit_logs_user_id_timestamp', table_name='audit_logs')
    op.drop_table('audit_logs')
    op.drop_index('ix_treatment_plans_status', table_name='treatment_plans')
    op.drop_index('ix_treatment_plans_patient_id', table_name='treatment_plans')
    op.drop_index('ix_treatment_plans_doctor_id_created_at', table_name='treatment_plans')
    op.drop_table('treatment_plans')
    op.drop_index('ix_patients_name', table_name='patients')
    op.drop_index('ix_patients_doctor_id_updated_at', table_name='patients')
    op.drop_table('patients')
    op.drop_index('idx_session_status', table_name='session_tokens')
    op.drop_index('idx_session_user_created', table_name='session_tokens')
    op.drop_index('ix_session_token_id', table_name='session_tokens')
    op.drop_table('session_tokens')
    op.drop_index('ix_verification_tokens_identifier', table_name='verification_tokens')
    op.drop_table('verification_tokens')
    op.drop_table('doctor_profiles')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')
