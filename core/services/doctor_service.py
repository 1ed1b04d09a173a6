"""Doctor account operations used by the auth routes."""
from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from core.db import models
from core.db.repositories import users as users_repo

logger = logging.getLogger(__name__)


class DoctorService:
    """Profile lookups and updates for the signed-in doctor."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def is_license_available(self, license_number: str) -> bool:
        return not users_repo.license_exists(self.db, license_number=license_number)

    def get_profile(self, user_id: uuid.UUID) -> Optional[models.DoctorProfile]:
        return users_repo.get_doctor_profile(self.db, user_id=user_id)

    def update_profile(self, user_id: uuid.UUID, changes: Dict[str, Any]) -> models.DoctorProfile:
        profile = self.get_profile(user_id)
        if profile is None:
            raise LookupError("Doctor profile not found")
        updated = users_repo.update_doctor_profile(
            self.db,
            profile=profile,
            full_name=changes.get("full_name"),
            specialty=changes.get("specialty"),
            phone_number=changes.get("phone_number"),
        )
        logger.info("Doctor profile %s updated fields=%s", profile.id, sorted(changes))
        return updated
