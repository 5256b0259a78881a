"""Payment tokens bound to orders."""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Numeric
from sqlalchemy.orm import relationship

from apps.storefront.database import Base


class PaymentToken(Base):
    __tablename__ = "payment_tokens"

    id = Column(Integer, primary_key=True, index=True)
    token = Column(String(512), unique=True, nullable=False, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String(32), nullable=False, default="pending")  # pending, completed, failed
    transaction_id = Column(String(128), nullable=True)
    payment_method = Column(String(64), nullable=True)
    amount = Column(Numeric(12, 2), nullable=True)
    fee = Column(Numeric(12, 2), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    reconciled_at = Column(DateTime, nullable=True)

    order = relationship("Order")
