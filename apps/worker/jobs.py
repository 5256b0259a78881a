"""RQ jobs."""
import json
import logging
from datetime import datetime

import httpx
from sqlalchemy import update

logger = logging.getLogger(__name__)


def process_outbox(outbox_id: int, session_factory=None) -> bool:
    """Deliver one payment notification to the configured webhook.

    The row is claimed (``created`` -> ``sending``) before anything is sent, so
    a duplicate enqueue or a second worker finds nothing to do.
    """
    from apps.storefront.config import get_settings
    from apps.storefront.database import get_session_factory
    from apps.storefront.models.outbox import Outbox

    s = get_settings()
    factory = session_factory or get_session_factory()
    with factory() as db:
        claimed = db.execute(
            update(Outbox)
            .where(Outbox.id == outbox_id, Outbox.status == "created")
            .values(status="sending")
        )
        if claimed.rowcount != 1:
            db.rollback()
            return False
        db.commit()
        o = db.get(Outbox, outbox_id)
        payload = json.loads(o.payload_json or "{}")
        payload["kind"] = o.kind
        url = (s.payment_notify_webhook_url or "").strip()
        if not url:
            # Nothing to call; the row still records that the event happened once.
            o.status = "sent"
            o.sent_at = datetime.utcnow()
            db.commit()
            logger.info("outbox delivered locally id=%s kind=%s order_id=%s", o.id, o.kind, o.order_id)
            return True
        try:
            r = httpx.post(url, json=payload, timeout=s.payment_notify_timeout_seconds)
            ok = r.status_code < 400
            err = None if ok else f"http_{r.status_code}"
        except httpx.HTTPError as e:
            ok = False
            err = str(e)[:200]
        if ok:
            o.status = "sent"
            o.sent_at = datetime.utcnow()
        else:
            o.status = "error"
            o.error_message = (err or "send_failed")[:200]
            o.retry_count = (o.retry_count or 0) + 1
            logger.warning("outbox delivery failed id=%s error=%s", o.id, o.error_message)
        db.commit()
        return ok
