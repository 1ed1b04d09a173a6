"""
User, doctor profile and verification token repositories.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from core.db import models


def get_user(db: Session, *, user_id: uuid.UUID) -> Optional[models.User]:
    return db.query(models.User).filter(models.User.id == user_id).first()


def get_user_by_email(db: Session, *, email: str) -> Optional[models.User]:
    return (
        db.query(models.User)
        .filter(func.lower(models.User.email) == email.strip().lower())
        .first()
    )


def get_doctor_profile(db: Session, *, user_id: uuid.UUID) -> Optional[models.DoctorProfile]:
    return (
        db.query(models.DoctorProfile)
        .filter(models.DoctorProfile.user_id == user_id)
        .first()
    )


def license_exists(db: Session, *, license_number: str) -> bool:
    return (
        db.query(models.DoctorProfile.id)
        .filter(models.DoctorProfile.license_number == license_number)
        .first()
        is not None
    )


def create_doctor_account(
    db: Session,
    *,
    email: str,
    name: str,
    password_hash: str,
    license_number: str,
    specialty: str,
    phone_number: str,
    verification_token: str,
    token_expires_at: datetime,
) -> models.User:
    """Create user, doctor profile and verification token in one transaction."""
    user = models.User(email=email, name=name, password_hash=password_hash)
    db.add(user)
    try:
        db.flush()
        db.add(
            models.DoctorProfile(
                user_id=user.id,
                full_name=name,
                license_number=license_number,
                specialty=specialty,
                phone_number=phone_number,
                is_verified=False,
            )
        )
        db.add(
            models.VerificationToken(
                identifier=user.email,
                token=verification_token,
                expires_at=token_expires_at,
            )
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(user)
    return user


def get_verification_token(db: Session, *, token: str) -> Optional[models.VerificationToken]:
    return (
        db.query(models.VerificationToken)
        .filter(models.VerificationToken.token == token)
        .first()
    )


def delete_verification_token(db: Session, *, token: models.VerificationToken) -> None:
    db.delete(token)
    db.commit()


def replace_verification_token(
    db: Session,
    *,
    identifier: str,
    token: str,
    expires_at: datetime,
) -> models.VerificationToken:
    db.query(models.VerificationToken).filter(
        models.VerificationToken.identifier == identifier
    ).delete(synchronize_session=False)
    vt = models.VerificationToken(identifier=identifier, token=token, expires_at=expires_at)
    db.add(vt)
    db.commit()
    db.refresh(vt)
    return vt


def mark_email_verified(
    db: Session,
    *,
    user: models.User,
    token: models.VerificationToken,
    verified_at: datetime,
) -> models.User:
    """Stamp the user verified, verify the doctor profile and consume the token."""
    try:
        user.email_verified_at = verified_at
        profile = get_doctor_profile(db, user_id=user.id)
        if profile is not None:
            profile.is_verified = True
        db.delete(token)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(user)
    return user


def update_doctor_profile(
    db: Session,
    *,
    profile: models.DoctorProfile,
    full_name: Optional[str] = None,
    specialty: Optional[str] = None,
    phone_number: Optional[str] = None,
) -> models.DoctorProfile:
    if full_name is not None:
        profile.full_name = full_name.strip()
        if profile.user is not None:
            profile.user.name = profile.full_name
    if specialty is not None:
        profile.specialty = specialty
    if phone_number is not None:
        profile.phone_number = phone_number
    db.commit()
    db.refresh(profile)
    return profile


def get_or_create_dev_doctor(
    db: Session,
    *,
    email: str,
    name: str,
    verified_at: datetime,
) -> models.User:
    """Return the local development doctor, creating a verified account on first use."""
    user = get_user_by_email(db, email=email)
    if user is None:
        user = models.User(email=email, name=name, email_verified_at=verified_at)
        db.add(user)
        db.flush()
        db.add(
            models.DoctorProfile(
                user_id=user.id,
                full_name=name,
                license_number="DEV-00000",
                specialty="General Practice",
                phone_number="0000000000",
                is_verified=True,
            )
        )
        db.commit()
        db.refresh(user)
    return user
