"""Payment reconciliation: status mapping, idempotence and token binding."""
from decimal import Decimal

import pytest
from sqlalchemy import select, func
from sqlalchemy.orm import sessionmaker

from apps.storefront.database import get_test_engine, Base
from apps.storefront.errors import InvalidToken, NotFoundError, ValidationError
from apps.storefront.models.order import Order
from apps.storefront.models.outbox import Outbox
from apps.storefront.models.payment import PaymentToken
from apps.storefront.services import payment_reconciler
from apps.storefront.services.payment_reconciler import (
    issue_payment_token,
    reconcile,
    target_payment_status,
    verification_view,
)
from apps.storefront.services.payment_tokens import generate_token, parse_redirect_params

COMPLETED = "paymentMethod=card&transactionId=T1&paymentAmount=10&status=completed"
FAILED = "status=failed&transactionId=T1&paymentMethod=card&paymentAmount=10"
PENDING = "paymentMethod=card&transactionId=T1&paymentAmount=10&status=pending"


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
def enqueued(monkeypatch):
    calls = []
    monkeypatch.setattr(payment_reconciler, "enqueue_outbox", lambda outbox_id: calls.append(outbox_id) or True)
    return calls


def _order(db, number="ORD-1", **kw) -> Order:
    o = Order(order_number=number, amount=Decimal("10.00"), status="pending", payment_status="pending", **kw)
    db.add(o)
    db.commit()
    db.refresh(o)
    return o


def _outbox_count(db) -> int:
    return db.execute(select(func.count()).select_from(Outbox)).scalar_one()


@pytest.mark.parametrize(
    "query,expected",
    [
        (COMPLETED, "completed"),
        (FAILED, "failed"),
        (PENDING, "pending"),
        ("paymentMethod=card&transactionId=T1&paymentAmount=10&status=cancelled", "failed"),
        ("paymentMethod=card&transactionId=T1&paymentAmount=10&status=processing", "pending"),
        ("status=completed", "failed"),
    ],
)
def test_target_payment_status(query, expected):
    assert target_payment_status(parse_redirect_params(query)) == expected


@pytest.mark.timeout(10)
def test_issue_binds_token_to_order(test_db_session):
    order = _order(test_db_session)
    row = issue_payment_token(test_db_session, order.id)
    assert row.order_id == order.id
    assert row.status == "pending"
    again = issue_payment_token(test_db_session, order.id)
    assert again.token != row.token


@pytest.mark.timeout(10)
def test_issue_rejects_missing_and_paid_orders(test_db_session):
    with pytest.raises(NotFoundError):
        issue_payment_token(test_db_session, 404)
    paid = _order(test_db_session, number="ORD-PAID")
    paid.payment_status = "completed"
    test_db_session.commit()
    with pytest.raises(ValidationError):
        issue_payment_token(test_db_session, paid.id)


@pytest.mark.timeout(10)
def test_completed_payment_advances_order(test_db_session, enqueued):
    order = _order(test_db_session)
    token = issue_payment_token(test_db_session, order.id).token
    result = reconcile(test_db_session, token, parse_redirect_params(COMPLETED))
    assert result.applied is True
    assert result.payment_status == "completed"
    assert result.order_status == "processing"
    test_db_session.refresh(order)
    assert order.payment_status == "completed"
    assert order.transaction_id == "T1"
    assert order.payment_method == "card"
    stored = test_db_session.execute(select(PaymentToken)).scalar_one()
    assert stored.status == "completed"
    assert stored.reconciled_at is not None
    assert stored.amount == Decimal("10")
    assert _outbox_count(test_db_session) == 1
    assert len(enqueued) == 1


@pytest.mark.timeout(10)
def test_reconciling_twice_is_idempotent(test_db_session, enqueued):
    order = _order(test_db_session)
    token = issue_payment_token(test_db_session, order.id).token
    first = reconcile(test_db_session, token, parse_redirect_params(COMPLETED))
    test_db_session.refresh(order)
    snapshot = (order.status, order.payment_status, order.transaction_id, order.updated_at)

    second = reconcile(test_db_session, token, parse_redirect_params(COMPLETED))
    test_db_session.refresh(order)
    assert (order.status, order.payment_status, order.transaction_id, order.updated_at) == snapshot
    assert first.applied is True
    assert second.applied is False
    assert second.already_reconciled is True
    assert second.payment_status == "completed"
    assert _outbox_count(test_db_session) == 1
    assert len(enqueued) == 1


@pytest.mark.timeout(10)
def test_failed_redirect_does_not_complete_order(test_db_session, enqueued):
    order = _order(test_db_session)
    token = issue_payment_token(test_db_session, order.id).token
    params = parse_redirect_params(FAILED)
    assert params.is_valid and params.status == "failed"
    result = reconcile(test_db_session, token, params)
    test_db_session.refresh(order)
    assert order.payment_status == "failed"
    assert order.status == "pending"
    assert result.order_status != "completed"
    outbox = test_db_session.execute(select(Outbox)).scalar_one()
    assert outbox.kind == "payment_failed"


@pytest.mark.timeout(10)
def test_terminal_failure_is_not_overwritten_by_late_success(test_db_session, enqueued):
    order = _order(test_db_session)
    token = issue_payment_token(test_db_session, order.id).token
    reconcile(test_db_session, token, parse_redirect_params(FAILED))
    late = reconcile(test_db_session, token, parse_redirect_params(COMPLETED))
    assert late.applied is False
    assert late.payment_status == "failed"


@pytest.mark.timeout(10)
def test_pending_then_completed(test_db_session, enqueued):
    order = _order(test_db_session)
    token = issue_payment_token(test_db_session, order.id).token
    pending = reconcile(test_db_session, token, parse_redirect_params(PENDING))
    assert pending.applied is True
    assert pending.payment_status == "pending"
    assert pending.order_status == "pending"
    assert _outbox_count(test_db_session) == 0

    done = reconcile(test_db_session, token, parse_redirect_params(COMPLETED))
    assert done.applied is True
    assert done.payment_status == "completed"
    assert _outbox_count(test_db_session) == 1


@pytest.mark.timeout(10)
def test_invalid_params_record_failed_payment(test_db_session, enqueued):
    order = _order(test_db_session)
    token = issue_payment_token(test_db_session, order.id).token
    result = reconcile(test_db_session, token, parse_redirect_params("status=completed"))
    assert result.payment_status == "failed"
    test_db_session.refresh(order)
    assert order.status == "pending"


@pytest.mark.timeout(10)
def test_paid_order_never_regresses_through_another_token(test_db_session, enqueued):
    order = _order(test_db_session)
    stale = issue_payment_token(test_db_session, order.id).token
    fresh = issue_payment_token(test_db_session, order.id).token
    reconcile(test_db_session, fresh, parse_redirect_params(COMPLETED))
    reconcile(test_db_session, stale, parse_redirect_params(FAILED))
    test_db_session.refresh(order)
    assert order.payment_status == "completed"
    assert order.status == "processing"


@pytest.mark.timeout(10)
def test_completed_order_status_is_not_rewound(test_db_session, enqueued):
    order = _order(test_db_session)
    order.status = "completed"
    test_db_session.commit()
    token = issue_payment_token(test_db_session, order.id).token
    result = reconcile(test_db_session, token, parse_redirect_params(COMPLETED))
    assert result.order_status == "completed"


@pytest.mark.timeout(10)
def test_malformed_and_unknown_tokens(test_db_session):
    with pytest.raises(InvalidToken):
        reconcile(test_db_session, "not-a-token", parse_redirect_params(COMPLETED))
    with pytest.raises(NotFoundError):
        reconcile(test_db_session, generate_token(), parse_redirect_params(COMPLETED))


@pytest.mark.timeout(10)
def test_verification_view_states(test_db_session, enqueued):
    views = {}
    for number, query in (("A", COMPLETED), ("B", PENDING), ("C", FAILED)):
        order = _order(test_db_session, number=number)
        token = issue_payment_token(test_db_session, order.id).token
        params = parse_redirect_params(query)
        views[number] = verification_view(reconcile(test_db_session, token, params), params)
    assert views["A"]["state"] == "success"
    assert views["B"]["state"] == "pending"
    assert "refresh_status" in views["B"]["actions"]
    assert views["C"]["state"] == "failed"
    assert "try_again" in views["C"]["actions"]
    assert views["A"]["payment"]["transactionId"] == "T1"
