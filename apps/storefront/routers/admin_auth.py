"""Admin login, session check and logout."""
from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel
from sqlalchemy.orm import Session

from apps.storefront.auth import get_current_admin, get_session_token
from apps.storefront.config import get_settings
from apps.storefront.deps import get_db
from apps.storefront.errors import ValidationError
from apps.storefront.models.admin import AdminUser
from apps.storefront.services import admin_sessions

router = APIRouter()


class LoginRequest(BaseModel):
    username: str | None = None
    password: str | None = None


@router.post("/login")
def login(data: LoginRequest, response: Response, db: Session = Depends(get_db)):
    if not data.username or not data.password:
        raise ValidationError("missing_fields", "Username and password required")
    result = admin_sessions.login(db, data.username, data.password)
    s = get_settings()
    response.set_cookie(
        s.admin_session_cookie_name,
        result.session_token,
        max_age=s.admin_session_ttl_hours * 3600,
        httponly=True,
        samesite="lax",
        secure=s.app_env == "production",
    )
    return {"success": True, "user": result.user_summary()}


@router.get("/check")
def check(admin: AdminUser = Depends(get_current_admin)):
    return {
        "authenticated": True,
        "user": {"id": admin.id, "username": admin.username, "role": admin.role},
    }


@router.post("/logout")
def logout(
    response: Response,
    token: str | None = Depends(get_session_token),
    db: Session = Depends(get_db),
):
    admin_sessions.logout(db, token)
    response.delete_cookie(get_settings().admin_session_cookie_name, httponly=True, samesite="lax")
    return {"success": True}
