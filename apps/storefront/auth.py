"""Admin password hashing and cookie-session authentication."""
import re

import bcrypt
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from apps.storefront.config import get_settings
from apps.storefront.deps import get_db
from apps.storefront.errors import AuthError
from apps.storefront.models.admin import AdminUser

security = HTTPBearer(auto_error=False)

# bcrypt limit; pass as bytes to avoid the 72-byte ValueError on newer bcrypt
_MAX_PW_BYTES = 72
_BCRYPT_HASH_RE = re.compile(r"^\$2[abxy]\$\d{2}\$[./A-Za-z0-9]{53}$")


def _to_bytes(s: str) -> bytes:
    b = s.encode("utf-8")
    return b[: _MAX_PW_BYTES] if len(b) > _MAX_PW_BYTES else b


def verify_password(plain: str, hashed: str | None) -> bool:
    """Constant-time check; a missing or corrupted hash is a mismatch."""
    if not hashed:
        return False
    try:
        return bcrypt.checkpw(_to_bytes(plain), hashed.encode() if isinstance(hashed, str) else hashed)
    except ValueError:
        return False


def is_password_hash(hashed: str | None) -> bool:
    """True for a well-formed bcrypt hash, whatever password it was made from."""
    return bool(hashed) and _BCRYPT_HASH_RE.match(hashed) is not None


def get_password_hash(password: str) -> str:
    rounds = get_settings().bcrypt_rounds
    return bcrypt.hashpw(_to_bytes(password), bcrypt.gensalt(rounds=rounds)).decode()


def get_session_token(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> str | None:
    """Session token from the admin cookie, or a Bearer header for API clients."""
    token = request.cookies.get(get_settings().admin_session_cookie_name)
    if token:
        return token
    if credentials:
        return credentials.credentials
    return None


def get_current_admin(
    token: str | None = Depends(get_session_token),
    db: Session = Depends(get_db),
) -> AdminUser:
    from apps.storefront.services.admin_sessions import validate_session

    if not token:
        raise AuthError("unauthenticated", "Authentication required")
    return validate_session(db, token)
