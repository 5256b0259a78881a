"""Outgoing payment notifications (outbox)."""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text, UniqueConstraint

from apps.storefront.database import Base


class Outbox(Base):
    __tablename__ = "outbox"

    id = Column(Integer, primary_key=True, index=True)
    kind = Column(String(32), nullable=False)  # payment_completed, payment_failed
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    payment_token_id = Column(Integer, ForeignKey("payment_tokens.id"), nullable=False, index=True)
    status = Column(String(32), default="created", nullable=False)  # created, sending, sent, error
    retry_count = Column(Integer, default=0, nullable=False)
    payload_json = Column(Text)
    error_message = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    sent_at = Column(DateTime)

    __table_args__ = (UniqueConstraint("kind", "payment_token_id", name="uq_outbox_kind_payment_token"),)
