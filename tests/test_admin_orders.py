"""Partial order updates from the back office."""
from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from apps.storefront.main import app
from apps.storefront.deps import get_db
from apps.storefront.database import get_test_engine, Base
from apps.storefront.errors import NotFoundError
from apps.storefront.models.admin import AdminUser, AdminSession
from apps.storefront.models.order import Order
from apps.storefront.services.orders import OrderUpdate, update_order


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


@pytest.fixture
def admin_headers(test_db_session):
    admin = AdminUser(username="ops", password_hash="x", role="admin", is_active=True)
    test_db_session.add(admin)
    test_db_session.commit()
    test_db_session.add(
        AdminSession(admin_id=admin.id, session_token="ops-session", expires_at=datetime.utcnow() + timedelta(hours=1))
    )
    test_db_session.commit()
    return {"Authorization": "Bearer ops-session"}


@pytest.fixture
def order(test_db_session):
    o = Order(
        order_number="ORD-1",
        amount=Decimal("25.00"),
        status="pending",
        payment_status="pending",
        notes="call before delivery",
        updated_at=datetime.utcnow() - timedelta(days=1),
    )
    test_db_session.add(o)
    test_db_session.commit()
    test_db_session.refresh(o)
    return o


@pytest.mark.timeout(10)
def test_notes_update_keeps_status(test_db_session, order):
    before = order.updated_at
    update_order(test_db_session, order.id, OrderUpdate(notes="x"))
    test_db_session.refresh(order)
    assert order.notes == "x"
    assert order.status == "pending"
    assert order.updated_at > before


@pytest.mark.timeout(10)
def test_status_update_keeps_notes(test_db_session, order):
    update_order(test_db_session, order.id, OrderUpdate(status="completed"))
    test_db_session.refresh(order)
    assert order.status == "completed"
    assert order.notes == "call before delivery"


@pytest.mark.timeout(10)
def test_empty_update_only_touches_updated_at(test_db_session, order):
    before = order.updated_at
    update_order(test_db_session, order.id, OrderUpdate())
    test_db_session.refresh(order)
    assert (order.status, order.notes) == ("pending", "call before delivery")
    assert order.updated_at > before


@pytest.mark.timeout(10)
def test_update_unknown_order(test_db_session):
    with pytest.raises(NotFoundError):
        update_order(test_db_session, 12345, OrderUpdate(notes="x"))


@pytest.mark.timeout(10)
def test_patch_endpoint(client, order, admin_headers):
    r = client.patch(f"/admin/orders/{order.id}", json={"notes": "gift wrap"}, headers=admin_headers)
    assert r.status_code == 200
    data = r.json()
    assert data["success"] is True
    assert data["order"]["notes"] == "gift wrap"
    assert data["order"]["status"] == "pending"


@pytest.mark.timeout(10)
def test_patch_endpoint_errors(client, order, admin_headers):
    assert client.patch(f"/admin/orders/{order.id}", json={"notes": "x"}).status_code == 401
    r = client.patch(f"/admin/orders/{order.id}", json={"status": "shipped"}, headers=admin_headers)
    assert r.status_code == 400
    assert r.json()["error"] == "validation_error"
    r = client.patch(f"/admin/orders/{order.id}", json={"amount": 1}, headers=admin_headers)
    assert r.status_code == 400
    r = client.patch("/admin/orders/999", json={"notes": "x"}, headers=admin_headers)
    assert r.status_code == 404


@pytest.mark.timeout(10)
def test_list_orders(client, order, admin_headers):
    r = client.get("/admin/orders", headers=admin_headers)
    assert r.status_code == 200
    assert [o["order_number"] for o in r.json()["orders"]] == ["ORD-1"]
    r = client.get("/admin/orders?status=completed", headers=admin_headers)
    assert r.json()["orders"] == []
