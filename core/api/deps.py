"""
API dependency helpers.

Resolves the signed-in doctor from the bearer session token and exposes
request metadata used by audit entries.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.orm import Session

from core.db import models
from core.db.database import get_db
from core.db.models import as_utc
from core.db.repositories import sessions as session_repo
from core.db.repositories import users as users_repo
from core.utils.runtime import dev_mode_active
from core.utils.token_crypto import parse_token, verify_secret

logger = logging.getLogger(__name__)

DEV_USER_EMAIL = "dev@localhost"
DEV_USER_NAME = "Development Doctor"


def _unauthorized(detail: str = "Authentication required") -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    if authorization and authorization.lower().startswith("bearer "):
        token = authorization[7:].strip()
        return token or None
    return None


def _context(user: models.User, session: Optional[models.SessionToken]) -> Dict[str, Any]:
    profile = user.doctor_profile
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "session_id": session.token_id if session is not None else None,
        "doctor_profile_id": profile.id if profile is not None else None,
    }


def resolve_session(db: Session, token: str) -> models.SessionToken:
    """Validate a session token string and return its active session row."""
    parsed = parse_token(token)
    if not parsed:
        raise _unauthorized("Invalid token format")
    session = session_repo.get_by_token_id(db, token_id=parsed.token_id)
    if not session:
        raise _unauthorized("Invalid token")
    if session.status != "active":
        raise _unauthorized("Session revoked")
    if session.expires_at is not None and datetime.now(timezone.utc) > as_utc(session.expires_at):
        raise _unauthorized("Session expired")
    if not verify_secret(parsed.secret, session.token_hash):
        raise _unauthorized("Invalid token")
    return session


# Contract:
# Returns (sqlalchemy User model, current_user_context_dict)
# Raises 401 when no valid session is presented, 403 for unverified e-mail.
def get_current_user_context(
    db: Session = Depends(get_db),
    authorization: Optional[str] = Header(default=None),
) -> Tuple[models.User, Dict[str, Any]]:
    if dev_mode_active():
        user = users_repo.get_or_create_dev_doctor(
            db,
            email=DEV_USER_EMAIL,
            name=DEV_USER_NAME,
            verified_at=datetime.now(timezone.utc),
        )
        return user, _context(user, None)

    token = bearer_token(authorization)
    if not token:
        raise _unauthorized()
    session = resolve_session(db, token)

    user = users_repo.get_user(db, user_id=session.user_id)
    if not user:
        raise _unauthorized("Invalid token user")
    if user.email_verified_at is None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Email not verified")

    # Update last_used timestamp (best-effort)
    session_repo.mark_used_now(db, session=session)
    return user, _context(user, session)


def client_meta(request: Request) -> Dict[str, Optional[str]]:
    """Return ``ip_address``/``user_agent`` for audit entries."""
    forwarded = request.headers.get("x-forwarded-for")
    ip = forwarded.split(",")[0].strip() if forwarded else None
    if not ip and request.client is not None:
        ip = request.client.host
    return {"ip_address": ip, "user_agent": request.headers.get("user-agent")}
