"""Hand-off of outbox rows to the RQ worker."""
from __future__ import annotations

import logging

from apps.storefront.config import get_settings

logger = logging.getLogger(__name__)


def enqueue_outbox(outbox_id: int) -> bool:
    """Queue delivery of a committed outbox row.

    A failed enqueue leaves the row in ``created``; ``requeue_pending_outbox``
    or the admin retry picks it up later.
    """
    s = get_settings()
    if not s.outbox_enqueue_enabled:
        return False
    try:
        from redis import Redis
        from rq import Queue

        r = Redis(host=s.redis_host, port=s.redis_port, socket_connect_timeout=2)
        q = Queue(s.rq_outbox_queue_name or "outbox", connection=r)
        q.enqueue("apps.worker.jobs.process_outbox", outbox_id)
        return True
    except Exception:
        logger.exception("outbox_enqueue_failed outbox_id=%s", outbox_id)
        return False


def requeue_pending_outbox(db, limit: int = 100) -> int:
    """Enqueue rows still waiting in ``created``; returns how many were queued."""
    from sqlalchemy import select

    from apps.storefront.models.outbox import Outbox

    ids = db.execute(
        select(Outbox.id).where(Outbox.status == "created").order_by(Outbox.id.asc()).limit(limit)
    ).scalars().all()
    return sum(1 for oid in ids if enqueue_outbox(int(oid)))
