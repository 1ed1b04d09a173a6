import re
import uuid
from datetime import datetime
from typing import Optional

from pydantic import Field, field_validator, model_validator

from .common import CamelModel

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class RegisterRequest(CamelModel):
    full_name: str
    email: str
    password: str
    confirm_password: str
    medical_license_number: str
    specialty: str
    phone_number: str
    accept_terms: bool = False

    @field_validator("full_name")
    @classmethod
    def _validate_full_name(cls, v: str):
        if len(v) < 2:
            raise ValueError("Full name must be at least 2 characters")
        return v

    @field_validator("email")
    @classmethod
    def _validate_email(cls, v: str):
        v = v.strip()
        if not _EMAIL_RE.match(v):
            raise ValueError("Invalid email address")
        return v

    @field_validator("password")
    @classmethod
    def _validate_password(cls, v: str):
        if len(v) < 8:
            raise ValueError("Password must be at least 8 characters")
        if not re.search(r"[A-Z]", v):
            raise ValueError("Password must contain at least one uppercase letter")
        if not re.search(r"[a-z]", v):
            raise ValueError("Password must contain at least one lowercase letter")
        if not re.search(r"[0-9]", v):
            raise ValueError("Password must contain at least one number")
        if not re.search(r"[^A-Za-z0-9]", v):
            raise ValueError("Password must contain at least one special character")
        return v

    @field_validator("medical_license_number")
    @classmethod
    def _validate_license(cls, v: str):
        if len(v) < 5:
            raise ValueError("Medical license number is required")
        return v

    @field_validator("specialty")
    @classmethod
    def _validate_specialty(cls, v: str):
        if len(v) < 2:
            raise ValueError("Specialty is required")
        return v

    @field_validator("phone_number")
    @classmethod
    def _validate_phone(cls, v: str):
        if len(v) < 10:
            raise ValueError("Valid phone number is required")
        return v

    @field_validator("accept_terms")
    @classmethod
    def _validate_terms(cls, v: bool):
        if v is not True:
            raise ValueError("You must accept the terms and conditions")
        return v

    @model_validator(mode="after")
    def _passwords_match(self):
        if self.password != self.confirm_password:
            raise ValueError("Passwords do not match")
        return self


class LoginRequest(CamelModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def _validate_email(cls, v: str):
        v = v.strip()
        if not _EMAIL_RE.match(v):
            raise ValueError("Invalid email address")
        return v

    @field_validator("password")
    @classmethod
    def _validate_password(cls, v: str):
        if not v:
            raise ValueError("Password is required")
        return v


class VerifyEmailRequest(CamelModel):
    token: str = Field(default="", validate_default=True)

    @field_validator("token")
    @classmethod
    def _validate_token(cls, v: str):
        v = v.strip()
        if not v:
            raise ValueError("Verification token is required")
        return v


class ResendVerificationRequest(CamelModel):
    email: str


class ProfileUpdateRequest(CamelModel):
    full_name: Optional[str] = None
    specialty: Optional[str] = None
    phone_number: Optional[str] = None

    @field_validator("full_name")
    @classmethod
    def _validate_full_name(cls, v: Optional[str]):
        if v is not None and len(v.strip()) < 2:
            raise ValueError("Full name must be at least 2 characters")
        return v


class UserSummary(CamelModel):
    id: uuid.UUID
    email: str
    name: Optional[str] = None


class DoctorProfileOut(CamelModel):
    id: uuid.UUID
    full_name: str
    license_number: str
    specialty: str
    phone_number: str
    is_verified: bool


class CurrentUser(UserSummary):
    email_verified_at: Optional[datetime] = None
    doctor_profile: Optional[DoctorProfileOut] = None
