"""
Domain-split SQLAlchemy models.

Exposes `Base`, `now_utc`, and all ORM classes from a single import path.
"""

from .base import Base, now_utc, as_utc  # re-export

from .users import User, DoctorProfile, VerificationToken
from .tokens import SessionToken
from .patients import Patient, TreatmentPlan
from .audit import AuditLog
from .safety import SevereCondition
from .knowledge import KnowledgeDocument

__all__ = [
    # base
    "Base",
    "now_utc",
    "as_utc",
    # accounts
    "User",
    "DoctorProfile",
    "VerificationToken",
    "SessionToken",
    # clinical records
    "Patient",
    "TreatmentPlan",
    # compliance
    "AuditLog",
    # safety/knowledge
    "SevereCondition",
    "KnowledgeDocument",
]
