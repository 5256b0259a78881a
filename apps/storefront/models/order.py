"""Storefront orders."""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Numeric, Text

from apps.storefront.database import Base

ORDER_STATUSES = ("pending", "processing", "completed", "declined")
PAYMENT_STATUSES = ("pending", "completed", "failed", "unknown")


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    order_number = Column(String(64), unique=True, nullable=False, index=True)
    status = Column(String(32), nullable=False, default="pending")
    payment_status = Column(String(32), nullable=False, default="pending")
    transaction_id = Column(String(128), nullable=True)
    payment_method = Column(String(64), nullable=True)
    amount = Column(Numeric(12, 2), nullable=False, default=0)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False)
