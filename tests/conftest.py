import os

# Select the in-memory SQLite engine before core.db.database is imported
os.environ.setdefault("PYTEST_RUNNING", "1")
os.environ.setdefault("MOCK_ANALYSIS_DELAY_SECONDS", "0")

from contextvars import ContextVar
from datetime import date, datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

import core.db.database as db_module
from core.api.main import app
from core.db import models
from core.db.repositories import sessions as session_repo
from core.services.analysis_service import reset_analysis_service_for_tests
from core.services.email_service import reset_email_service_for_tests
from core.services.embedding_service import reset_embedding_service_for_tests
from core.services.knowledge_service import reset_knowledge_service_for_tests
from core.services.safety.severity_detection import get_severity_service
from core.utils.feature_flags import refresh_feature_flag_cache
from core.utils.token_crypto import hash_secret

DEFAULT_PASSWORD = "Str0ng!Pass"

_current_session: ContextVar[object] = ContextVar("_current_session", default=None)
# Fallback for threadpool contexts where ContextVar may not propagate
_GLOBAL_SESSION = None


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch):
    """Reset env-driven configuration and service singletons for each test."""
    for name in (
        "DEV_MODE",
        "OPENAI_API_KEY",
        "EXTERNAL_VALIDATION_ENABLED",
        "SAFETY_CASCADE_ENABLED",
        "AUDIT_LOGGING_ENABLED",
        "LLM_FEATURES_ENABLED",
        "SMTP_USERNAME",
        "SMTP_PASSWORD",
        "NCBI_API_KEY",
        "EMBEDDING_PROVIDER",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("MOCK_ANALYSIS_DELAY_SECONDS", "0")
    monkeypatch.setenv("APP_BASE_URL", "http://localhost:3000")
    refresh_feature_flag_cache()
    reset_analysis_service_for_tests()
    reset_knowledge_service_for_tests()
    reset_email_service_for_tests()
    reset_embedding_service_for_tests()
    get_severity_service().clear_cache()
    yield
    refresh_feature_flag_cache()


# Per-test schema on the shared in-memory engine
@pytest.fixture
def db_session():
    engine = db_module.engine
    models.Base.metadata.drop_all(bind=engine)
    models.Base.metadata.create_all(bind=engine)
    session = db_module.SessionLocal()
    token = _current_session.set(session)
    global _GLOBAL_SESSION
    _GLOBAL_SESSION = session
    try:
        yield session
    finally:
        _current_session.reset(token)
        _GLOBAL_SESSION = None
        session.close()
        models.Base.metadata.drop_all(bind=engine)


def _override_get_db():
    # Prefer ContextVar-bound session
    session = _current_session.get()
    if session is not None:
        yield session
        return
    # Fall back to module-global when running inside threadpool where ContextVar may not propagate
    if _GLOBAL_SESSION is not None:
        yield _GLOBAL_SESSION
        return
    session = db_module.SessionLocal()
    try:
        yield session
    finally:
        session.close()


app.dependency_overrides[db_module.get_db] = _override_get_db


@pytest.fixture
def db(db_session):
    return db_session


@pytest.fixture
def client(db_session):
    return TestClient(app)


@pytest.fixture
def doctor_factory(db_session):
    counter = {"n": 0}

    def _create(
        email: str = None,
        *,
        name: str = "Dr. Test",
        password: str = DEFAULT_PASSWORD,
        email_verified: bool = True,
        doctor_verified: bool = True,
        license_number: str = None,
    ) -> models.User:
        counter["n"] += 1
        n = counter["n"]
        user = models.User(
            email=email or f"doctor{n}@example.com",
            name=name,
            password_hash=hash_secret(password),
            email_verified_at=datetime.now(timezone.utc) if email_verified else None,
        )
        db_session.add(user)
        db_session.flush()
        db_session.add(
            models.DoctorProfile(
                user_id=user.id,
                full_name=name,
                license_number=license_number or f"LIC-{n:05d}",
                specialty="Internal Medicine",
                phone_number="5551234567",
                is_verified=doctor_verified,
            )
        )
        db_session.commit()
        db_session.refresh(user)
        return user

    return _create


@pytest.fixture
def auth_headers(db_session):
    """Issue a real session token for ``user`` and return request headers."""

    def _headers(user: models.User) -> dict:
        _, token = session_repo.create_session(db_session, user_id=user.id, ttl=timedelta(days=1))
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def doctor(doctor_factory):
    return doctor_factory("doctor@example.com")


@pytest.fixture
def authed_client(client, doctor, auth_headers):
    client.headers.update(auth_headers(doctor))
    return client


@pytest.fixture
def patient_factory(db_session):
    def _create(doctor: models.User, **overrides) -> models.Patient:
        values = {
            "name": "Jane Roe",
            "date_of_birth": date(1980, 5, 17),
            "gender": "FEMALE",
            "current_medications": [],
            "allergies": [],
            "chronic_conditions": [],
        }
        values.update(overrides)
        patient = models.Patient(doctor_id=doctor.id, **values)
        db_session.add(patient)
        db_session.commit()
        db_session.refresh(patient)
        return patient

    return _create


@pytest.fixture
def plan_factory(db_session):
    def _create(doctor: models.User, patient: models.Patient, **overrides) -> models.TreatmentPlan:
        values = {
            "chief_complaint": "Persistent headache for three days",
            "current_symptoms": "headache, nausea",
            "status": "DRAFT",
            "risk_factors": [],
            "drug_interactions": [],
            "contraindications": [],
            "alternatives": [],
        }
        values.update(overrides)
        plan = models.TreatmentPlan(patient_id=patient.id, doctor_id=doctor.id, **values)
        db_session.add(plan)
        db_session.commit()
        db_session.refresh(plan)
        return plan

    return _create
