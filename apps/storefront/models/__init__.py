"""SQLAlchemy models."""
from apps.storefront.models.admin import AdminUser, AdminSession, AdminAuditEvent
from apps.storefront.models.order import Order
from apps.storefront.models.payment import PaymentToken
from apps.storefront.models.chat import ChatRoom, ChatParticipant, ChatMessage
from apps.storefront.models.outbox import Outbox

__all__ = [
    "AdminUser",
    "AdminSession",
    "AdminAuditEvent",
    "Order",
    "PaymentToken",
    "ChatRoom",
    "ChatParticipant",
    "ChatMessage",
    "Outbox",
]
