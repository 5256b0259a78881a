"""Admin order list and partial updates."""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from apps.storefront.auth import get_current_admin
from apps.storefront.deps import get_db
from apps.storefront.models.admin import AdminUser
from apps.storefront.services.orders import OrderUpdate, list_orders, serialize_order, update_order

router = APIRouter()


@router.get("")
def orders(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    status: str | None = Query(None),
    db: Session = Depends(get_db),
    _: AdminUser = Depends(get_current_admin),
):
    return {"orders": [serialize_order(o) for o in list_orders(db, skip=skip, limit=limit, status=status)]}


@router.patch("/{order_id}")
def patch_order(
    order_id: int,
    data: OrderUpdate,
    db: Session = Depends(get_db),
    _: AdminUser = Depends(get_current_admin),
):
    order = update_order(db, order_id, data)
    return {"success": True, "order": serialize_order(order)}
