"""Admin login, session validation and logout."""
from __future__ import annotations

import hmac
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import select, delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from apps.storefront.auth import is_password_hash, verify_password
from apps.storefront.config import get_settings
from apps.storefront.errors import AuthError, StorageError
from apps.storefront.models.admin import AdminUser, AdminSession
from apps.storefront.services.credentials import (
    ensure_default_admin,
    find_active_admin,
    record_audit,
    repair_default_admin_hash,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoginResult:
    session_token: str
    expires_at: datetime
    admin_id: int
    username: str
    role: str

    def user_summary(self) -> dict:
        return {"id": self.admin_id, "username": self.username, "role": self.role}


def _invalid_credentials() -> AuthError:
    return AuthError("invalid_credentials", "Invalid credentials")


def _is_default_pair(username: str, password: str) -> bool:
    s = get_settings()
    same_user = hmac.compare_digest(username.encode("utf-8"), s.admin_default_username.encode("utf-8"))
    same_password = hmac.compare_digest(password.encode("utf-8"), s.admin_default_password.encode("utf-8"))
    return same_user and same_password


def _lookup_or_bootstrap(db: Session, username: str) -> AdminUser | None:
    admin = find_active_admin(db, username)
    if admin is not None:
        return admin
    if username != get_settings().admin_default_username:
        return None
    admin = ensure_default_admin(db)
    return admin if admin.is_active else None


def login(db: Session, username: str, password: str) -> LoginResult:
    """Verify credentials and open a 24h session.

    Unknown user, wrong password, failed bootstrap and failed hash repair all
    raise the same ``invalid_credentials`` error.
    """
    s = get_settings()
    try:
        admin = _lookup_or_bootstrap(db, username)
    except (StorageError, SQLAlchemyError):
        db.rollback()
        logger.exception("admin_login lookup failed")
        raise _invalid_credentials()
    if admin is None:
        logger.info("admin_login rejected reason=no_account")
        raise _invalid_credentials()

    if not verify_password(password, admin.password_hash):
        # A well-formed hash means the password was set on purpose, possibly rotated.
        repairable = s.admin_hash_self_heal_enabled and not is_password_hash(admin.password_hash)
        if not (repairable and _is_default_pair(username, password)):
            logger.info("admin_login rejected reason=password admin_id=%s", admin.id)
            raise _invalid_credentials()
        try:
            fresh_hash = repair_default_admin_hash(db, admin)
        except StorageError:
            logger.exception("admin_login hash repair failed admin_id=%s", admin.id)
            raise _invalid_credentials()
        if not verify_password(password, fresh_hash):
            raise _invalid_credentials()

    now = datetime.utcnow()
    token = secrets.token_urlsafe(32)
    expires_at = now + timedelta(hours=s.admin_session_ttl_hours)
    db.add(AdminSession(admin_id=admin.id, session_token=token, created_at=now, expires_at=expires_at))
    admin.last_login = now
    db.add(admin)
    record_audit(db, kind="login", username=admin.username, admin_id=admin.id)
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("admin_login session persist failed admin_id=%s", admin.id)
        raise StorageError("login_failed", "Login failed") from e
    logger.info("admin_login ok admin_id=%s expires_at=%s", admin.id, expires_at.isoformat())
    return LoginResult(
        session_token=token,
        expires_at=expires_at,
        admin_id=admin.id,
        username=admin.username,
        role=admin.role,
    )


def validate_session(db: Session, token: str, *, now: datetime | None = None) -> AdminUser:
    """Resolve a session token to its active admin. Never extends expiry."""
    if not token:
        raise AuthError("unauthenticated", "Authentication required")
    try:
        session = db.execute(
            select(AdminSession).where(AdminSession.session_token == token)
        ).scalar_one_or_none()
    except SQLAlchemyError as e:
        logger.exception("admin_session lookup failed")
        raise StorageError("session_lookup_failed", "Storage failure") from e
    if not session:
        raise AuthError("invalid_session", "Invalid session")
    if (now or datetime.utcnow()) > session.expires_at:
        raise AuthError("session_expired", "Session expired")
    admin = db.get(AdminUser, session.admin_id)
    if not admin or not admin.is_active:
        raise AuthError("invalid_session", "Invalid session")
    return admin


def logout(db: Session, token: str | None) -> bool:
    """Drop the session row. Returns False when there was nothing to drop."""
    if not token:
        return False
    session = db.execute(
        select(AdminSession).where(AdminSession.session_token == token)
    ).scalar_one_or_none()
    if not session:
        return False
    admin = db.get(AdminUser, session.admin_id)
    db.execute(delete(AdminSession).where(AdminSession.id == session.id))
    if admin:
        record_audit(db, kind="logout", username=admin.username, admin_id=admin.id)
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise StorageError("logout_failed", str(e)[:200]) from e
    return True
