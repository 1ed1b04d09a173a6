"""
Repositories for login session tokens.

Implements issue/lookup/revoke and last-used updates. Only the argon2 hash of
the secret is persisted; the full token string is returned once at issue time.
"""
from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from core.db import models
from core.utils import token_crypto


def _now() -> datetime:
    return datetime.now(timezone.utc)


def create_session(
    db: Session,
    *,
    user_id: uuid.UUID,
    ttl: timedelta,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> Tuple[models.SessionToken, str]:
    token_id, secret, full_token = token_crypto.generate_token()
    now = _now()
    session = models.SessionToken(
        user_id=user_id,
        token_id=token_id,
        token_hash=token_crypto.hash_secret(secret),
        status="active",
        ip_address=ip_address,
        user_agent=user_agent,
        created_at=now,
        expires_at=now + ttl,
    )
    db.add(session)
    db.commit()
    db.refresh(session)
    return session, full_token


def get_by_token_id(db: Session, *, token_id: str) -> Optional[models.SessionToken]:
    return (
        db.query(models.SessionToken)
        .filter(models.SessionToken.token_id == token_id)
        .first()
    )


def revoke_session(db: Session, *, session: models.SessionToken) -> None:
    if session.status != "revoked":
        session.status = "revoked"
        session.revoked_at = _now()
        db.commit()


def mark_used_now(db: Session, *, session: models.SessionToken) -> None:
    session.last_used_at = _now()
    try:
        db.commit()
    except Exception:
        db.rollback()
