"""Order back-office updates."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from apps.storefront.errors import NotFoundError, StorageError
from apps.storefront.models.order import Order

logger = logging.getLogger(__name__)

OrderStatus = Literal["pending", "processing", "completed", "declined"]


class OrderUpdate(BaseModel):
    """Partial update; only fields present in the request body are written."""

    model_config = ConfigDict(extra="forbid")

    status: OrderStatus | None = None
    notes: str | None = None


def serialize_order(o: Order) -> dict:
    return {
        "id": o.id,
        "order_number": o.order_number,
        "status": o.status,
        "payment_status": o.payment_status,
        "transaction_id": o.transaction_id,
        "payment_method": o.payment_method,
        "amount": float(o.amount) if o.amount is not None else None,
        "notes": o.notes,
        "created_at": o.created_at.isoformat() if o.created_at else None,
        "updated_at": o.updated_at.isoformat() if o.updated_at else None,
    }


def list_orders(db: Session, *, skip: int = 0, limit: int = 50, status: str | None = None) -> list[Order]:
    q = select(Order)
    if status:
        q = q.where(Order.status == status)
    q = q.order_by(Order.created_at.desc(), Order.id.desc()).offset(skip).limit(limit)
    return list(db.execute(q).scalars().all())


def update_order(db: Session, order_id: int, data: OrderUpdate) -> Order:
    order = db.get(Order, order_id)
    if not order:
        raise NotFoundError("order_not_found", "Order not found")
    fields = data.model_dump(include=data.model_fields_set)
    if "status" in fields and fields["status"] is None:
        # status is NOT NULL; an explicit null is ignored
        fields.pop("status")
    for key, value in fields.items():
        setattr(order, key, value)
    order.updated_at = datetime.utcnow()
    db.add(order)
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("order_update failed order_id=%s", order_id)
        raise StorageError("order_update_failed", "Failed to update order") from e
    db.refresh(order)
    logger.info("order_update order_id=%s fields=%s", order_id, ",".join(sorted(fields)) or "-")
    return order
