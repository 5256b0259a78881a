"""Payment token issuance and reconciliation of provider redirects.

Every issued token is bound to one order. Reconciling a token moves it from
``pending`` to a terminal state at most once: the transition is a conditional
UPDATE on ``payment_tokens.status``, so concurrent calls for the same token
are linearized by the database and the loser becomes a no-op.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from apps.storefront.config import get_settings
from apps.storefront.errors import (
    InvalidToken,
    NotFoundError,
    ReconciliationConflict,
    StorageError,
    ValidationError,
)
from apps.storefront.models.order import Order
from apps.storefront.models.outbox import Outbox
from apps.storefront.models.payment import PaymentToken
from apps.storefront.services.notifications import enqueue_outbox
from apps.storefront.services.payment_tokens import (
    PaymentRedirectParams,
    generate_token,
    is_well_formed_token,
    mask_token,
)

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = ("completed", "failed")
_NEGATIVE_STATUSES = {"failed", "failure", "declined", "cancelled", "canceled", "error"}
_ISSUE_ATTEMPTS = 3


@dataclass(frozen=True)
class ReconciliationResult:
    token_id: int
    order_id: int
    order_number: str
    target_payment_status: str
    payment_status: str
    order_status: str
    applied: bool
    already_reconciled: bool

    def to_dict(self) -> dict:
        return {
            "order_id": self.order_id,
            "order_number": self.order_number,
            "payment_status": self.payment_status,
            "order_status": self.order_status,
            "applied": self.applied,
            "already_reconciled": self.already_reconciled,
        }


def target_payment_status(params: PaymentRedirectParams) -> str:
    if not params.is_valid:
        return "failed"
    if params.status == "completed":
        return "completed"
    if params.status in _NEGATIVE_STATUSES:
        return "failed"
    return "pending"


def issue_payment_token(db: Session, order_id: int) -> PaymentToken:
    order = db.get(Order, order_id)
    if not order:
        raise NotFoundError("order_not_found", "Order not found")
    if order.payment_status == "completed":
        raise ValidationError("order_already_paid", "Order is already paid")
    for attempt in range(_ISSUE_ATTEMPTS):
        row = PaymentToken(token=generate_token(), order_id=order.id, status="pending", created_at=datetime.utcnow())
        db.add(row)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            logger.warning("payment_token collision order_id=%s attempt=%s", order.id, attempt + 1)
            continue
        except SQLAlchemyError as e:
            db.rollback()
            raise StorageError("token_issue_failed", str(e)[:200]) from e
        db.refresh(row)
        logger.info("payment_token issued order_id=%s token=%s", order.id, mask_token(row.token))
        return row
    raise StorageError("token_issue_failed", "could not allocate a unique payment token")


def _load_token(db: Session, token: str) -> PaymentToken:
    if not is_well_formed_token(token):
        raise InvalidToken()
    row = db.execute(select(PaymentToken).where(PaymentToken.token == token)).scalar_one_or_none()
    if not row:
        raise NotFoundError("payment_token_not_found", "Payment token not found")
    return row


def _payment_fields(params: PaymentRedirectParams) -> dict:
    out = {}
    if params.transaction_id:
        out["transaction_id"] = params.transaction_id
    if params.payment_method:
        out["payment_method"] = params.payment_method
    return out


def _apply(db: Session, row: PaymentToken, params: PaymentRedirectParams, target: str, now: datetime) -> int | None:
    """Stage all writes for one payment event. Returns the outbox id, if any."""
    token_values = dict(_payment_fields(params))
    if params.payment_amount is not None:
        token_values["amount"] = params.payment_amount
    if params.payment_fee is not None:
        token_values["fee"] = params.payment_fee
    if target in TERMINAL_STATUSES:
        token_values["status"] = target
        token_values["reconciled_at"] = now
    res = db.execute(
        update(PaymentToken)
        .where(PaymentToken.id == row.id, PaymentToken.status == "pending")
        .values(**token_values)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount == 0:
        raise ReconciliationConflict("already_reconciled")

    # A paid order never regresses, whichever token reports on it.
    db.execute(
        update(Order)
        .where(Order.id == row.order_id, Order.payment_status != "completed")
        .values(payment_status=target, updated_at=now, **_payment_fields(params))
        .execution_options(synchronize_session=False)
    )
    if target == "completed":
        db.execute(
            update(Order)
            .where(Order.id == row.order_id, Order.status == "pending")
            .values(status="processing", updated_at=now)
            .execution_options(synchronize_session=False)
        )
    if target not in TERMINAL_STATUSES:
        return None
    outbox = Outbox(
        kind=f"payment_{target}",
        order_id=row.order_id,
        payment_token_id=row.id,
        status="created",
        payload_json=json.dumps(
            {
                "order_id": row.order_id,
                "payment_status": target,
                "transaction_id": params.transaction_id,
                "payment_method": params.payment_method,
                "amount": str(params.payment_amount) if params.payment_amount is not None else None,
            },
            ensure_ascii=False,
        ),
        created_at=now,
    )
    db.add(outbox)
    db.flush()
    return outbox.id


def reconcile(
    db: Session,
    token: str,
    params: PaymentRedirectParams,
    *,
    now: datetime | None = None,
) -> ReconciliationResult:
    """Apply one payment event to the token's order, exactly once per terminal state."""
    row = _load_token(db, token)
    token_id, order_id = row.id, row.order_id
    target = target_payment_status(params)
    now = now or datetime.utcnow()
    applied = True
    outbox_id = None
    try:
        outbox_id = _apply(db, row, params, target, now)
        db.commit()
    except ReconciliationConflict:
        db.rollback()
        applied = False
    except IntegrityError:
        # Outbox uniqueness caught a concurrent duplicate of the same event.
        db.rollback()
        applied = False
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("payment_reconcile storage failure token=%s", mask_token(token))
        raise StorageError("reconcile_failed", "Storage failure") from e

    if outbox_id is not None:
        enqueue_outbox(outbox_id)

    db.expire_all()
    order = db.get(Order, order_id)
    stored = db.get(PaymentToken, token_id)
    if applied:
        logger.info(
            "payment_reconcile applied order_id=%s target=%s token=%s",
            order_id, target, mask_token(token),
        )
    else:
        logger.info(
            "payment_reconcile skipped order_id=%s token_status=%s token=%s",
            order_id, stored.status, mask_token(token),
        )
    return ReconciliationResult(
        token_id=token_id,
        order_id=order_id,
        order_number=order.order_number,
        target_payment_status=target,
        payment_status=order.payment_status,
        order_status=order.status,
        applied=applied,
        already_reconciled=not applied,
    )


_VIEW_STATES = {
    "success": {
        "title": "Payment Successful!",
        "description": "Your payment has been processed successfully.",
        "actions": ["continue_shopping", "view_orders"],
    },
    "pending": {
        "title": "Payment Processing",
        "description": "Your payment is being processed. Please wait for confirmation.",
        "actions": ["refresh_status", "continue_shopping"],
    },
    "failed": {
        "title": "Payment Failed",
        "description": "Your payment was declined or cancelled.",
        "actions": ["try_again", "continue_shopping"],
    },
}


def verification_view(result: ReconciliationResult, params: PaymentRedirectParams) -> dict:
    """Payer-facing outcome: always one of success, pending or failed."""
    if result.payment_status == "completed":
        state = "success"
    elif result.payment_status == "pending":
        state = "pending"
    else:
        state = "failed"
    view = dict(_VIEW_STATES[state])
    view["state"] = state
    view["payment"] = params.to_dict() if params.is_valid else None
    view["order_number"] = result.order_number
    return view


def redirect_urls(token: str) -> dict:
    base = get_settings().public_base_url.rstrip("/")
    return {
        "success_url": f"{base}/payments/verify/success/{token}",
        "failed_url": f"{base}/payments/verify/failed/{token}",
    }
