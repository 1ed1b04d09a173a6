from datetime import datetime, timedelta, timezone

import pytest

from core.db import models

PASSWORD = "Str0ng!Pass"


@pytest.fixture(autouse=True)
def _no_smtp(monkeypatch):
    monkeypatch.delenv("SMTP_HOST", raising=False)


def _register_payload(**overrides):
    payload = {
        "fullName": "Dr. Alice Grey",
        "email": "alice@example.com",
        "password": PASSWORD,
        "confirmPassword": PASSWORD,
        "medicalLicenseNumber": "MD-123456",
        "specialty": "Cardiology",
        "phoneNumber": "5551234567",
        "acceptTerms": True,
    }
    payload.update(overrides)
    return payload


def _token_for(db, email):
    return (
        db.query(models.VerificationToken)
        .filter(models.VerificationToken.identifier == email)
        .first()
    )


def _failed_logins(db):
    return db.query(models.AuditLog).filter(models.AuditLog.event_type == "login_failed").all()


def test_register_creates_unverified_doctor(client, db):
    r = client.post("/api/auth/register", json=_register_payload(email="Alice@Example.com"))
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["success"] is True
    assert body["message"].startswith("Registration successful")
    assert body["user"]["email"] == "alice@example.com"
    assert body["user"]["name"] == "Dr. Alice Grey"

    user = db.query(models.User).filter(models.User.email == "alice@example.com").one()
    assert user.email_verified_at is None
    assert user.password_hash and user.password_hash != PASSWORD
    assert user.doctor_profile.is_verified is False
    assert user.doctor_profile.license_number == "MD-123456"
    assert _token_for(db, "alice@example.com") is not None


def test_register_rejects_duplicates(client):
    assert client.post("/api/auth/register", json=_register_payload()).status_code == 201

    r = client.post("/api/auth/register", json=_register_payload(medicalLicenseNumber="MD-999999"))
    assert r.status_code == 400
    assert r.json()["detail"] == "Email already registered"

    r = client.post("/api/auth/register", json=_register_payload(email="bob@example.com"))
    assert r.status_code == 400
    assert r.json()["detail"] == "Medical license number already registered"


def test_register_validation_error_is_first_message(client):
    r = client.post("/api/auth/register", json=_register_payload(password="weak", confirmPassword="weak"))
    assert r.status_code == 400
    assert r.json()["detail"] == "Password must be at least 8 characters"

    r = client.post("/api/auth/register", json=_register_payload(confirmPassword="Other!Pass1"))
    assert r.status_code == 400
    assert r.json()["detail"] == "Passwords do not match"


def test_verify_email_via_link_then_login(client, db):
    client.post("/api/auth/register", json=_register_payload())
    token = _token_for(db, "alice@example.com").token

    r = client.get("/api/auth/verify-email", params={"token": token})
    assert r.status_code == 200, r.text
    assert r.json() == {"success": True, "message": "Email verified successfully"}
    assert _token_for(db, "alice@example.com") is None

    r = client.post("/api/auth/login", json={"email": "alice@example.com", "password": PASSWORD})
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["token"].startswith("hc_sess_")
    assert body["expiresAt"]
    assert body["user"]["email"] == "alice@example.com"


def test_verify_email_post_and_errors(client, db, doctor_factory):
    r = client.post("/api/auth/verify-email", json={})
    assert r.status_code == 400
    assert r.json()["detail"] == "Verification token is required"

    r = client.post("/api/auth/verify-email", json={"token": "   "})
    assert r.status_code == 400
    assert r.json()["detail"] == "Verification token is required"

    r = client.post("/api/auth/verify-email", json={"token": 42})
    assert r.status_code == 400
    assert r.json()["detail"] == "Input should be a valid string"

    r = client.post("/api/auth/verify-email", json=["not", "an", "object"])
    assert r.status_code == 400

    r = client.get("/api/auth/verify-email", params={"token": "nope"})
    assert r.status_code == 400
    assert r.json()["detail"] == "Invalid or expired verification token"

    db.add(models.VerificationToken(
        identifier="gone@example.com",
        token="expired-token",
        expires_at=datetime.now(timezone.utc) - timedelta(minutes=1),
    ))
    db.add(models.VerificationToken(
        identifier="ghost@example.com",
        token="orphan-token",
        expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
    ))
    verified = doctor_factory("done@example.com")
    db.add(models.VerificationToken(
        identifier=verified.email,
        token="again-token",
        expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
    ))
    db.commit()

    r = client.post("/api/auth/verify-email", json={"token": "expired-token"})
    assert r.status_code == 400
    assert r.json()["detail"] == "Verification token has expired. Please request a new one."
    assert _token_for(db, "gone@example.com") is None

    r = client.post("/api/auth/verify-email", json={"token": "orphan-token"})
    assert r.status_code == 404
    assert r.json()["detail"] == "User not found"

    r = client.post("/api/auth/verify-email", json={"token": "again-token"})
    assert r.status_code == 200
    assert r.json()["alreadyVerified"] is True


def test_resend_verification_replaces_token_without_leaking(client, db):
    client.post("/api/auth/register", json=_register_payload())
    first = _token_for(db, "alice@example.com").token

    r = client.post("/api/auth/resend-verification", json={"email": "alice@example.com"})
    assert r.status_code == 200
    message = r.json()["message"]
    db.expire_all()
    tokens = (
        db.query(models.VerificationToken)
        .filter(models.VerificationToken.identifier == "alice@example.com")
        .all()
    )
    assert len(tokens) == 1
    assert tokens[0].token != first

    r = client.post("/api/auth/resend-verification", json={"email": "unknown@example.com"})
    assert r.status_code == 200
    assert r.json()["message"] == message


@pytest.mark.parametrize(
    "kwargs,password,status,detail",
    [
        ({}, "Wrong!Pass1", 401, "Invalid credentials"),
        ({"email_verified": False}, PASSWORD, 401, "Please verify your email before logging in"),
        ({"doctor_verified": False}, PASSWORD, 403, "Your doctor account is pending verification"),
    ],
)
def test_login_rejections_are_audited(client, db, doctor_factory, kwargs, password, status, detail):
    doctor_factory("carol@example.com", **kwargs)
    r = client.post("/api/auth/login", json={"email": "carol@example.com", "password": password})
    assert r.status_code == status
    assert r.json()["detail"] == detail

    failures = _failed_logins(db)
    assert len(failures) == 1
    assert failures[0].success is False
    assert failures[0].severity == "warning"


def test_login_unknown_email(client, db):
    r = client.post("/api/auth/login", json={"email": "nobody@example.com", "password": PASSWORD})
    assert r.status_code == 401
    assert r.json()["detail"] == "Invalid credentials"
    entry = _failed_logins(db)[0]
    assert entry.user_id is None
    assert entry.error_message == "User not found"


def test_login_me_and_logout(client, db, doctor_factory):
    doctor_factory("dave@example.com", name="Dr. Dave")
    r = client.post("/api/auth/login", json={"email": "dave@example.com", "password": PASSWORD})
    headers = {"Authorization": f"Bearer {r.json()['token']}"}

    r = client.get("/api/auth/me", headers=headers)
    assert r.status_code == 200
    user = r.json()["user"]
    assert user["email"] == "dave@example.com"
    assert user["doctorProfile"]["isVerified"] is True

    r = client.post("/api/auth/logout", headers=headers)
    assert r.status_code == 200
    assert r.json() == {"success": True}

    r = client.get("/api/auth/me", headers=headers)
    assert r.status_code == 401
    assert r.json()["detail"] == "Session revoked"

    events = {row.event_type for row in db.query(models.AuditLog).all()}
    assert {"login", "logout"} <= events


def test_me_requires_session(client):
    assert client.get("/api/auth/me").status_code == 401
    r = client.get("/api/auth/me", headers={"Authorization": "Bearer garbage"})
    assert r.status_code == 401
    assert r.json()["detail"] == "Invalid token format"


def test_profile_view_and_update(authed_client, db, doctor):
    r = authed_client.get("/api/auth/profile")
    assert r.status_code == 200
    assert r.json()["profile"]["licenseNumber"] == doctor.doctor_profile.license_number
    assert db.query(models.AuditLog).filter(models.AuditLog.event_type == "profile_view").count() == 1

    r = authed_client.patch("/api/auth/profile", json={"fullName": "  Dr. Renamed ", "specialty": "Neurology"})
    assert r.status_code == 200
    profile = r.json()["profile"]
    assert profile["fullName"] == "Dr. Renamed"
    assert profile["specialty"] == "Neurology"
    db.refresh(doctor)
    assert doctor.name == "Dr. Renamed"

    r = authed_client.patch("/api/auth/profile", json={"fullName": "x"})
    assert r.status_code == 400
    assert r.json()["detail"] == "Full name must be at least 2 characters"
