"""Registration form helpers shared by the auth routes and the registration wizard."""

import re
from typing import Any, Dict, List, Mapping

MEDICAL_SPECIALTIES = (
    "General Practice",
    "Internal Medicine",
    "Family Medicine",
    "Pediatrics",
    "Cardiology",
    "Dermatology",
    "Emergency Medicine",
    "Endocrinology",
    "Gastroenterology",
    "Neurology",
    "Oncology",
    "Orthopedics",
    "Psychiatry",
    "Radiology",
    "Surgery",
    "Other",
)

PASSWORD_MIN_LENGTH = 8
SPECIAL_CHARACTERS = '!@#$%^&*(),.?":{}|<>'

VALIDATION_MESSAGES = {
    "required": "This field is required",
    "invalid_email": "Please enter a valid email address",
    "password_mismatch": "Passwords do not match",
    "weak_password": "Password does not meet requirements",
    "invalid_phone": "Please enter a valid phone number",
    "terms_required": "You must accept the terms and conditions",
}

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_PHONE_RE = re.compile(r"^[\d\s()+-]+$")
_SPECIAL_RE = re.compile("[" + re.escape(SPECIAL_CHARACTERS) + "]")

_PASSWORD_CHECKS = (
    ("hasMinLength", lambda p: len(p) >= PASSWORD_MIN_LENGTH,
     f"Password must be at least {PASSWORD_MIN_LENGTH} characters"),
    ("hasUpperCase", lambda p: re.search(r"[A-Z]", p) is not None,
     "Password must contain at least one uppercase letter"),
    ("hasLowerCase", lambda p: re.search(r"[a-z]", p) is not None,
     "Password must contain at least one lowercase letter"),
    ("hasNumber", lambda p: re.search(r"[0-9]", p) is not None,
     "Password must contain at least one number"),
    ("hasSpecialChar", lambda p: _SPECIAL_RE.search(p) is not None,
     "Password must contain at least one special character"),
)


def password_checks(password: str) -> Dict[str, bool]:
    return {name: check(password or "") for name, check, _ in _PASSWORD_CHECKS}


def password_strength(password: str) -> str:
    passed = sum(password_checks(password).values())
    if passed <= 2:
        return "weak"
    if passed == 3:
        return "medium"
    if passed == 4:
        return "strong"
    return "very-strong"


def validate_password(password: str) -> Dict[str, Any]:
    """Return ``{isValid, errors, strength, checks}`` for a candidate password."""
    checks = password_checks(password)
    errors: List[str] = [msg for name, _, msg in _PASSWORD_CHECKS if not checks[name]]
    return {
        "isValid": not errors,
        "errors": errors,
        "strength": password_strength(password),
        "checks": checks,
    }


def is_password_valid(password: str) -> bool:
    return all(password_checks(password).values())


def validate_email(email: str) -> bool:
    return bool(email) and _EMAIL_RE.match(email) is not None


def validate_phone_number(phone: str) -> bool:
    if not phone or _PHONE_RE.match(phone) is None:
        return False
    return len(re.sub(r"\D", "", phone)) >= 10


def _blank(value: Any) -> bool:
    return not isinstance(value, str) or not value.strip()


def validate_registration_form(data: Mapping[str, Any]) -> Dict[str, str]:
    """Client-style checks over a camelCase registration payload; returns field -> message."""
    errors: Dict[str, str] = {}
    required = VALIDATION_MESSAGES["required"]

    if _blank(data.get("fullName")):
        errors["fullName"] = required

    email = data.get("email")
    if _blank(email):
        errors["email"] = required
    elif not validate_email(email):
        errors["email"] = VALIDATION_MESSAGES["invalid_email"]

    password = data.get("password")
    if not password:
        errors["password"] = required
    elif not is_password_valid(password):
        errors["password"] = VALIDATION_MESSAGES["weak_password"]

    confirm = data.get("confirmPassword")
    if not confirm:
        errors["confirmPassword"] = required
    elif password != confirm:
        errors["confirmPassword"] = VALIDATION_MESSAGES["password_mismatch"]

    if _blank(data.get("medicalLicenseNumber")):
        errors["medicalLicenseNumber"] = required

    if not data.get("specialty"):
        errors["specialty"] = required

    phone = data.get("phoneNumber")
    if _blank(phone):
        errors["phoneNumber"] = required
    elif not validate_phone_number(phone):
        errors["phoneNumber"] = VALIDATION_MESSAGES["invalid_phone"]

    if not data.get("acceptTerms"):
        errors["acceptTerms"] = VALIDATION_MESSAGES["terms_required"]

    return errors
