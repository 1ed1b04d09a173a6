from fastapi.testclient import TestClient

from core.api import dashboard
from core.api.main import app
from core.db import models
from core.utils.feature_flags import refresh_feature_flag_cache


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok", "service": "healyai-service"}


def test_features_reflect_environment(client, monkeypatch):
    assert client.get("/api/features").json() == {
        "llmFeaturesEnabled": True,
        "externalValidationEnabled": False,
        "safetyCascadeEnabled": False,
        "auditLoggingEnabled": True,
    }

    monkeypatch.setenv("LLM_FEATURES_ENABLED", "off")
    monkeypatch.setenv("SAFETY_CASCADE_ENABLED", "1")
    refresh_feature_flag_cache()
    body = client.get("/api/features").json()
    assert body["llmFeaturesEnabled"] is False
    assert body["safetyCascadeEnabled"] is True


def test_protected_prefixes_need_bearer(client):
    for path in ("/api/patients", "/api/treatment-plans", "/api/audit-logs", "/api/dashboard/stats", "/api/knowledge/status"):
        r = client.get(path)
        assert r.status_code == 401, path
        assert r.json()["detail"] == "Authentication required"


def test_unverified_email_session_is_forbidden(client, doctor_factory, auth_headers):
    user = doctor_factory(email_verified=False)
    r = client.get("/api/patients", headers=auth_headers(user))
    assert r.status_code == 403
    assert r.json()["detail"] == "Email not verified"


def test_dev_mode_uses_local_doctor(client, db, monkeypatch):
    monkeypatch.setenv("DEV_MODE", "true")

    r = client.get("/api/auth/me")
    assert r.status_code == 200
    user = r.json()["user"]
    assert user["email"] == "dev@localhost"
    assert user["name"] == "Development Doctor"
    assert user["doctorProfile"]["isVerified"] is True

    assert client.get("/api/patients").status_code == 200
    client.get("/api/auth/me")
    assert db.query(models.User).filter(models.User.email == "dev@localhost").count() == 1


def test_dev_mode_misconfigured(client, monkeypatch):
    monkeypatch.setenv("DEV_MODE", "true")
    monkeypatch.setenv("APP_BASE_URL", "https://healyai.example.com")
    r = client.get("/api/patients")
    assert r.status_code == 500
    assert r.json()["detail"] == "DEV_MODE misconfigured"


def test_unhandled_errors_are_masked(db, doctor, auth_headers, monkeypatch):
    def broken(*args, **kwargs):
        raise ValueError("database exploded")

    monkeypatch.setattr(dashboard.patient_repo, "count_patients", broken)
    client = TestClient(app, raise_server_exceptions=False)
    r = client.get("/api/dashboard/stats", headers=auth_headers(doctor))
    assert r.status_code == 500
    assert r.json() == {"detail": "Internal server error"}
