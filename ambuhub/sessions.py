"""Server-side login sessions referenced by an opaque cookie token."""
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import NamedTuple, Optional

from fastapi import Response
from sqlalchemy.orm import Session

from . import models
from .config import get_settings
from .db import commit

logger = logging.getLogger(__name__)


class SessionContext(NamedTuple):
    token: str
    user_id: int
    role: models.Role


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def start(db: Session, user_id: int, role: models.Role, max_age: Optional[int] = None) -> str:
    """Create a session for ``user_id`` and return its token."""
    lifetime = get_settings().session_max_age if max_age is None else max_age
    now = models.utcnow()
    token = secrets.token_urlsafe(32)
    db.add(models.UserSession(
        token=token,
        user_id=user_id,
        role=role,
        created_at=now,
        expires_at=now + timedelta(seconds=lifetime),
    ))
    commit(db, "start a session")
    return token


def read(db: Session, token: Optional[str]) -> Optional[SessionContext]:
    if not token:
        return None
    row = db.get(models.UserSession, token)
    if row is None:
        return None
    if _as_utc(row.expires_at) <= models.utcnow():
        logger.info("Session for user %s expired", row.user_id)
        db.delete(row)
        commit(db, "drop an expired session")
        return None
    return SessionContext(token=row.token, user_id=row.user_id, role=models.Role(row.role))


def destroy(db: Session, token: Optional[str]) -> None:
    """Invalidate a session. Unknown or already destroyed tokens are ignored."""
    if not token:
        return
    deleted = db.query(models.UserSession).filter(models.UserSession.token == token).delete()
    commit(db, "destroy a session")
    if deleted:
        logger.debug("Session destroyed")


def set_session_cookie(response: Response, token: str) -> None:
    settings = get_settings()
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        max_age=settings.session_max_age,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
    )


def clear_session_cookie(response: Response) -> None:
    settings = get_settings()
    response.delete_cookie(
        key=settings.session_cookie_name,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
    )
