"""
Doctor account endpoints: registration, e-mail verification, session login.

Sessions are opaque bearer tokens (``hc_sess_<id>_<secret>``); only the
argon2 hash of the secret is stored. Every rejected login attempt is written
to the audit log as ``login_failed``.
"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from core import audit
from core.api.deps import bearer_token, client_meta, get_current_user_context, resolve_session
from core.db import models, schemas
from core.db.database import get_db
from core.db.models import as_utc
from core.db.repositories import sessions as session_repo
from core.db.repositories import users as users_repo
from core.services.doctor_service import DoctorService
from core.services.email_service import get_email_service
from core.utils.runtime import session_ttl
from core.utils.token_crypto import (
    generate_verification_token,
    hash_secret,
    verification_token_expiry,
    verify_secret,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])

REGISTRATION_MESSAGE = "Registration successful. Please check your email to verify your account."
RESEND_MESSAGE = "If an account exists for this email, a new verification link has been sent."


def _user_summary(user: models.User) -> dict:
    return schemas.UserSummary.model_validate(user).to_api()


def _send_verification(email: str, name: str, token: str) -> None:
    try:
        asyncio.run(get_email_service().send_verification_email(email, name, token))
    except Exception as e:
        # Registration stands even when the e-mail cannot be delivered
        logger.error("Failed to send verification email to %s: %s", email, e)


def _send_welcome(email: str, name: str) -> None:
    try:
        asyncio.run(get_email_service().send_welcome_email(email, name))
    except Exception as e:
        logger.error("Failed to send welcome email to %s: %s", email, e)


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(payload: schemas.RegisterRequest, db: Session = Depends(get_db)):
    email = payload.email.strip().lower()
    if users_repo.get_user_by_email(db, email=email):
        raise HTTPException(status_code=400, detail="Email already registered")
    if not DoctorService(db).is_license_available(payload.medical_license_number):
        raise HTTPException(status_code=400, detail="Medical license number already registered")

    token = generate_verification_token()
    user = users_repo.create_doctor_account(
        db,
        email=email,
        name=payload.full_name,
        password_hash=hash_secret(payload.password),
        license_number=payload.medical_license_number,
        specialty=payload.specialty,
        phone_number=payload.phone_number,
        verification_token=token,
        token_expires_at=verification_token_expiry(),
    )
    logger.info("Registered doctor account %s", user.id)
    _send_verification(user.email, user.name or payload.full_name, token)
    return {"success": True, "message": REGISTRATION_MESSAGE, "user": _user_summary(user)}


def _verify(db: Session, token: Optional[str]):
    if not token:
        raise HTTPException(status_code=400, detail="Verification token is required")
    record = users_repo.get_verification_token(db, token=token)
    if record is None:
        raise HTTPException(status_code=400, detail="Invalid or expired verification token")
    now = datetime.now(timezone.utc)
    if as_utc(record.expires_at) < now:
        users_repo.delete_verification_token(db, token=record)
        raise HTTPException(status_code=400, detail="Verification token has expired. Please request a new one.")

    user = users_repo.get_user_by_email(db, email=record.identifier)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    if user.email_verified_at is not None:
        return {"success": True, "message": "Email already verified", "alreadyVerified": True}

    users_repo.mark_email_verified(db, user=user, token=record, verified_at=now)
    _send_welcome(user.email, user.name or "")
    return {"success": True, "message": "Email verified successfully"}


@router.get("/verify-email")
def verify_email_link(token: Optional[str] = Query(default=None), db: Session = Depends(get_db)):
    return _verify(db, token)


@router.post("/verify-email")
def verify_email(payload: schemas.VerifyEmailRequest, db: Session = Depends(get_db)):
    return _verify(db, payload.token)


@router.post("/resend-verification")
def resend_verification(payload: schemas.ResendVerificationRequest, db: Session = Depends(get_db)):
    user = users_repo.get_user_by_email(db, email=payload.email)
    if user is not None and user.email_verified_at is None:
        token = generate_verification_token()
        users_repo.replace_verification_token(
            db, identifier=user.email, token=token, expires_at=verification_token_expiry()
        )
        _send_verification(user.email, user.name or "", token)
    return {"success": True, "message": RESEND_MESSAGE}


@router.post("/login")
def login(payload: schemas.LoginRequest, request: Request, db: Session = Depends(get_db)):
    meta = client_meta(request)
    user = users_repo.get_user_by_email(db, email=payload.email)

    def reject(status_code: int, detail: str, reason: str):
        audit.log_login(
            db,
            user_id=user.id if user is not None else None,
            email=payload.email,
            success=False,
            error_message=reason,
            **meta,
        )
        raise HTTPException(status_code=status_code, detail=detail)

    if user is None or not user.password_hash:
        reject(401, "Invalid credentials", "User not found")
    if user.email_verified_at is None:
        reject(401, "Please verify your email before logging in", "Email not verified")
    if not verify_secret(payload.password, user.password_hash):
        reject(401, "Invalid credentials", "Invalid password")
    profile = user.doctor_profile
    if profile is None or not profile.is_verified:
        reject(403, "Your doctor account is pending verification", "Doctor not verified")

    session, token = session_repo.create_session(db, user_id=user.id, ttl=session_ttl(), **meta)
    audit.log_login(db, user_id=user.id, email=user.email, **meta)
    return {
        "token": token,
        "expiresAt": as_utc(session.expires_at).isoformat(),
        "user": _user_summary(user),
    }


@router.post("/logout")
def logout(
    request: Request,
    authorization: Optional[str] = Header(default=None),
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    user, current_user = user_context
    token = bearer_token(authorization)
    if token:
        session_repo.revoke_session(db, session=resolve_session(db, token))
    audit.log_logout(db, user_id=user.id, email=user.email, **client_meta(request))
    return {"success": True}


@router.get("/me")
def me(user_context=Depends(get_current_user_context)):
    user, _ = user_context
    return {"user": schemas.CurrentUser.model_validate(user).to_api()}


@router.get("/profile")
def get_profile(db: Session = Depends(get_db), user_context=Depends(get_current_user_context)):
    user, current_user = user_context
    profile = DoctorService(db).get_profile(user.id)
    if profile is None:
        raise HTTPException(status_code=404, detail="Doctor profile not found")
    audit.log_profile_view(db, user_id=user.id, viewed_user_id=user.id, session_id=current_user["session_id"])
    return {"profile": schemas.DoctorProfileOut.model_validate(profile).to_api()}


@router.patch("/profile")
def update_profile(
    payload: schemas.ProfileUpdateRequest,
    db: Session = Depends(get_db),
    user_context=Depends(get_current_user_context),
):
    user, _ = user_context
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    try:
        profile = DoctorService(db).update_profile(user.id, changes)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"profile": schemas.DoctorProfileOut.model_validate(profile).to_api()}
