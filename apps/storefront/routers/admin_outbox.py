"""Admin endpoints for the payment notification outbox."""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from sqlalchemy import select, update

from apps.storefront.auth import get_current_admin
from apps.storefront.deps import get_db
from apps.storefront.errors import ConflictError, NotFoundError
from apps.storefront.models.admin import AdminUser
from apps.storefront.models.outbox import Outbox
from apps.storefront.services.notifications import enqueue_outbox, requeue_pending_outbox

router = APIRouter()


@router.get("")
def list_outbox(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    status: str | None = Query(None),
    db: Session = Depends(get_db),
    _: AdminUser = Depends(get_current_admin),
):
    q = select(Outbox)
    if status:
        q = q.where(Outbox.status == status)
    q = q.offset(skip).limit(limit).order_by(Outbox.id.desc())
    items = db.execute(q).scalars().all()
    return {
        "items": [
            {"id": o.id, "kind": o.kind, "order_id": o.order_id, "status": o.status, "retry_count": o.retry_count}
            for o in items
        ]
    }


@router.post("/{id}/retry")
def retry_outbox(
    id: int,
    db: Session = Depends(get_db),
    _: AdminUser = Depends(get_current_admin),
):
    """Put a failed delivery back in the queue. Only rows in ``error`` qualify."""
    o = db.get(Outbox, id)
    if not o:
        raise NotFoundError("outbox_not_found", "Outbox row not found")
    res = db.execute(
        update(Outbox)
        .where(Outbox.id == id, Outbox.status == "error")
        .values(status="created", error_message=None)
    )
    if res.rowcount != 1:
        db.rollback()
        raise ConflictError("outbox_not_retryable", f"Outbox row is {o.status}, only error rows can be retried")
    db.commit()
    queued = enqueue_outbox(id)
    return {"id": id, "status": "created", "queued": queued}


@router.post("/requeue")
def requeue_outbox(
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
    _: AdminUser = Depends(get_current_admin),
):
    return {"queued": requeue_pending_outbox(db, limit=limit)}
