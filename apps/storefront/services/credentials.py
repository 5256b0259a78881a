"""Administrator accounts: lookup, default bootstrap, provisioning."""
from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from apps.storefront.auth import get_password_hash, is_password_hash
from apps.storefront.config import get_settings
from apps.storefront.errors import StorageError, ValidationError
from apps.storefront.models.admin import AdminUser, AdminAuditEvent, ADMIN_ROLES, ROLE_SUPER_ADMIN

logger = logging.getLogger(__name__)


def find_active_admin(db: Session, username: str) -> AdminUser | None:
    return db.execute(
        select(AdminUser).where(AdminUser.username == username, AdminUser.is_active.is_(True))
    ).scalar_one_or_none()


def _find_admin(db: Session, username: str) -> AdminUser | None:
    return db.execute(select(AdminUser).where(AdminUser.username == username)).scalar_one_or_none()


def record_audit(db: Session, *, kind: str, username: str, admin_id: int | None = None) -> None:
    """Stage an audit row; the caller commits."""
    db.add(AdminAuditEvent(kind=kind, username=username, admin_id=admin_id, created_at=datetime.utcnow()))


def ensure_default_admin(db: Session) -> AdminUser:
    """Create the default super admin once.

    Idempotent: an existing row (active or not) is returned untouched. Two
    concurrent bootstraps race on the unique ``username`` constraint; the
    loser rolls back and reads the winner's row.
    """
    s = get_settings()
    existing = _find_admin(db, s.admin_default_username)
    if existing:
        return existing
    admin = AdminUser(
        username=s.admin_default_username,
        email=s.admin_default_email,
        password_hash=get_password_hash(s.admin_default_password),
        role=ROLE_SUPER_ADMIN,
        is_active=True,
        created_at=datetime.utcnow(),
        updated_at=datetime.utcnow(),
    )
    db.add(admin)
    try:
        db.flush()
        record_audit(db, kind="bootstrap", username=admin.username, admin_id=admin.id)
        db.commit()
    except IntegrityError:
        db.rollback()
        existing = _find_admin(db, s.admin_default_username)
        if existing is None:
            raise StorageError("bootstrap_failed", "default admin insert conflicted but row is missing")
        return existing
    except SQLAlchemyError as e:
        db.rollback()
        raise StorageError("bootstrap_failed", str(e)[:200]) from e
    db.refresh(admin)
    logger.warning("admin_bootstrap created default admin username=%s", admin.username)
    return admin


def repair_default_admin_hash(db: Session, admin: AdminUser) -> str:
    """Replace the default admin's corrupted hash with a fresh one and return it.

    A well-formed bcrypt hash is never touched: it belongs to a password that
    was provisioned or rotated on purpose.
    """
    s = get_settings()
    if admin.username != s.admin_default_username:
        raise ValueError("hash repair is limited to the default admin account")
    if is_password_hash(admin.password_hash):
        raise ValueError("stored hash is intact; rotate the password with provision_admin instead")
    fresh = get_password_hash(s.admin_default_password)
    admin.password_hash = fresh
    admin.updated_at = datetime.utcnow()
    db.add(admin)
    record_audit(db, kind="hash_repair", username=admin.username, admin_id=admin.id)
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise StorageError("hash_repair_failed", str(e)[:200]) from e
    logger.warning("admin_hash_repair rewrote password hash username=%s", admin.username)
    return fresh


def set_admin_password(
    db: Session,
    username: str,
    password: str,
    *,
    role: str | None = None,
    email: str | None = None,
) -> AdminUser:
    """Create or rotate an account out of band (provisioning CLI)."""
    username = (username or "").strip()
    if not username:
        raise ValidationError("missing_username", "username is required")
    if len(password or "") < 8:
        raise ValidationError("password_too_short", "password must be at least 8 characters")
    if role is not None and role not in ADMIN_ROLES:
        raise ValidationError("invalid_role", f"role must be one of {', '.join(ADMIN_ROLES)}")
    admin = _find_admin(db, username)
    now = datetime.utcnow()
    if admin is None:
        admin = AdminUser(username=username, created_at=now, is_active=True)
        admin.role = role or "admin"
    elif role is not None:
        admin.role = role
    if email is not None:
        admin.email = email
    admin.password_hash = get_password_hash(password)
    admin.updated_at = now
    db.add(admin)
    try:
        db.flush()
        record_audit(db, kind="provision", username=username, admin_id=admin.id)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise StorageError("provision_failed", str(e)[:200]) from e
    db.refresh(admin)
    return admin
