"""Admin login, bootstrap, hash self-heal, session check and logout."""
from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import select, func
from sqlalchemy.orm import sessionmaker

from apps.storefront.main import app
from apps.storefront.deps import get_db
from apps.storefront.database import get_test_engine, Base
from apps.storefront.auth import get_password_hash
from apps.storefront.config import get_settings
from apps.storefront.models.admin import AdminUser, AdminSession, AdminAuditEvent
from apps.storefront.services.credentials import find_active_admin, set_admin_password

DEFAULT_USER = "admin"
DEFAULT_PASSWORD = "Moinulislam#@"


@pytest.fixture
def test_db_session():
    engine = get_test_engine()
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine)
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def client(test_db_session):
    def _get_db():
        yield test_db_session

    app.dependency_overrides[get_db] = _get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.pop(get_db, None)


def _add_admin(db, username="operator", password="operator-pass", **kw) -> AdminUser:
    admin = AdminUser(
        username=username,
        password_hash=get_password_hash(password),
        role=kw.pop("role", "admin"),
        is_active=kw.pop("is_active", True),
        **kw,
    )
    db.add(admin)
    db.commit()
    db.refresh(admin)
    return admin


def _session_count(db) -> int:
    return db.execute(select(func.count()).select_from(AdminSession)).scalar_one()


@pytest.mark.timeout(10)
def test_login_on_empty_table_bootstraps_default_admin(client, test_db_session):
    r = client.post("/admin/auth/login", json={"username": DEFAULT_USER, "password": DEFAULT_PASSWORD})
    assert r.status_code == 200
    data = r.json()
    assert data["success"] is True
    assert data["user"]["username"] == DEFAULT_USER
    assert data["user"]["role"] == "super_admin"

    admins = test_db_session.execute(select(AdminUser)).scalars().all()
    assert len(admins) == 1
    assert admins[0].is_active is True
    assert admins[0].last_login is not None
    assert _session_count(test_db_session) == 1
    kinds = test_db_session.execute(select(AdminAuditEvent.kind)).scalars().all()
    assert "bootstrap" in kinds and "login" in kinds


@pytest.mark.timeout(10)
def test_login_sets_http_only_lax_cookie(client):
    r = client.post("/admin/auth/login", json={"username": DEFAULT_USER, "password": DEFAULT_PASSWORD})
    assert r.status_code == 200
    cookie = r.headers["set-cookie"].lower()
    assert cookie.startswith("admin_session=")
    assert "httponly" in cookie
    assert "samesite=lax" in cookie
    assert "max-age=86400" in cookie


@pytest.mark.timeout(10)
def test_session_expires_exactly_24h_after_issue(client, test_db_session):
    client.post("/admin/auth/login", json={"username": DEFAULT_USER, "password": DEFAULT_PASSWORD})
    session = test_db_session.execute(select(AdminSession)).scalar_one()
    assert session.expires_at - session.created_at == timedelta(hours=24)
    assert abs((session.created_at - datetime.utcnow()).total_seconds()) < 5
    assert len(session.session_token) >= 40


@pytest.mark.timeout(10)
def test_repeated_bootstrap_login_does_not_duplicate_admin(client, test_db_session):
    for _ in range(2):
        r = client.post("/admin/auth/login", json={"username": DEFAULT_USER, "password": DEFAULT_PASSWORD})
        assert r.status_code == 200
    count = test_db_session.execute(select(func.count()).select_from(AdminUser)).scalar_one()
    assert count == 1


@pytest.mark.timeout(10)
def test_wrong_password_for_regular_admin_issues_no_session(client, test_db_session):
    _add_admin(test_db_session)
    r = client.post("/admin/auth/login", json={"username": "operator", "password": "nope-nope"})
    assert r.status_code == 401
    assert r.json()["error"] == "invalid_credentials"
    assert _session_count(test_db_session) == 0
    assert "set-cookie" not in r.headers


@pytest.mark.timeout(10)
def test_unknown_user_is_indistinguishable_and_never_bootstrapped(client, test_db_session):
    _add_admin(test_db_session)
    unknown = client.post("/admin/auth/login", json={"username": "ghost", "password": "whatever1"})
    wrong = client.post("/admin/auth/login", json={"username": "operator", "password": "whatever1"})
    assert unknown.status_code == wrong.status_code == 401
    assert unknown.json()["message"] == wrong.json()["message"]
    names = test_db_session.execute(select(AdminUser.username)).scalars().all()
    assert names == ["operator"]


@pytest.mark.timeout(10)
def test_inactive_admin_cannot_login(client, test_db_session):
    _add_admin(test_db_session, is_active=False)
    r = client.post("/admin/auth/login", json={"username": "operator", "password": "operator-pass"})
    assert r.status_code == 401


@pytest.mark.timeout(10)
@pytest.mark.parametrize("body", [{}, {"username": "admin"}, {"password": "x"}, {"username": "", "password": ""}])
def test_missing_fields_is_400(client, body):
    r = client.post("/admin/auth/login", json=body)
    assert r.status_code == 400
    assert r.json()["error"] == "missing_fields"


@pytest.mark.timeout(10)
def test_corrupted_default_hash_is_repaired_once(client, test_db_session):
    admin = _add_admin(test_db_session, username=DEFAULT_USER, password="something-else", role="super_admin")
    admin.password_hash = "not-a-bcrypt-hash"
    test_db_session.commit()

    r = client.post("/admin/auth/login", json={"username": DEFAULT_USER, "password": DEFAULT_PASSWORD})
    assert r.status_code == 200
    test_db_session.refresh(admin)
    assert admin.password_hash.startswith("$2")
    kinds = test_db_session.execute(select(AdminAuditEvent.kind)).scalars().all()
    assert kinds.count("hash_repair") == 1


@pytest.mark.timeout(10)
def test_hash_repair_only_for_exact_default_pair(client, test_db_session):
    admin = _add_admin(test_db_session, username=DEFAULT_USER, password="rotated-password", role="super_admin")
    admin.password_hash = "not-a-bcrypt-hash"
    test_db_session.commit()
    original_hash = admin.password_hash
    r = client.post("/admin/auth/login", json={"username": DEFAULT_USER, "password": "Moinulislam#"})
    assert r.status_code == 401
    test_db_session.refresh(admin)
    assert admin.password_hash == original_hash


@pytest.mark.timeout(10)
def test_hash_repair_can_be_disabled(client, test_db_session, monkeypatch):
    admin = _add_admin(test_db_session, username=DEFAULT_USER, password="rotated-password", role="super_admin")
    admin.password_hash = "not-a-bcrypt-hash"
    test_db_session.commit()
    original_hash = admin.password_hash
    stub = get_settings().model_copy(update={"admin_hash_self_heal_enabled": False})
    monkeypatch.setattr("apps.storefront.services.admin_sessions.get_settings", lambda: stub)
    r = client.post("/admin/auth/login", json={"username": DEFAULT_USER, "password": DEFAULT_PASSWORD})
    assert r.status_code == 401
    test_db_session.refresh(admin)
    assert admin.password_hash == original_hash


@pytest.mark.timeout(10)
def test_default_password_does_not_override_rotated_one(client, test_db_session):
    set_admin_password(test_db_session, DEFAULT_USER, "rotated-strong-pass", role="super_admin")
    admin = find_active_admin(test_db_session, DEFAULT_USER)
    rotated_hash = admin.password_hash

    r = client.post("/admin/auth/login", json={"username": DEFAULT_USER, "password": DEFAULT_PASSWORD})
    assert r.status_code == 401
    test_db_session.refresh(admin)
    assert admin.password_hash == rotated_hash
    kinds = test_db_session.execute(select(AdminAuditEvent.kind)).scalars().all()
    assert "hash_repair" not in kinds

    r = client.post("/admin/auth/login", json={"username": DEFAULT_USER, "password": "rotated-strong-pass"})
    assert r.status_code == 200

@pytest.mark.timeout(10)
def test_check_and_logout(client, test_db_session):
    assert client.get("/admin/auth/check").status_code == 401
    client.post("/admin/auth/login", json={"username": DEFAULT_USER, "password": DEFAULT_PASSWORD})
    r = client.get("/admin/auth/check")
    assert r.status_code == 200
    assert r.json()["user"]["username"] == DEFAULT_USER

    r = client.post("/admin/auth/logout")
    assert r.status_code == 200
    assert _session_count(test_db_session) == 0
    assert client.get("/admin/auth/check").status_code == 401


@pytest.mark.timeout(10)
def test_expired_session_is_rejected_without_extension(client, test_db_session):
    admin = _add_admin(test_db_session)
    expires = datetime.utcnow() - timedelta(seconds=1)
    test_db_session.add(AdminSession(admin_id=admin.id, session_token="expired-token", expires_at=expires))
    test_db_session.commit()
    r = client.get("/admin/auth/check", headers={"Authorization": "Bearer expired-token"})
    assert r.status_code == 401
    assert r.json()["error"] == "session_expired"
    session = test_db_session.execute(select(AdminSession)).scalar_one()
    assert session.expires_at == expires


@pytest.mark.timeout(10)
def test_unknown_session_token_is_rejected(client):
    r = client.get("/admin/auth/check", headers={"Cookie": "admin_session=forged"})
    assert r.status_code == 401
    assert r.json()["error"] == "invalid_session"
    assert "X-Trace-Id" in r.headers
