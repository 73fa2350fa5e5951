"""Infrastructure models package exports."""
from .base import Base, metadata
from .customer import CustomerModel
from .order import OrderModel
from .payment import PaymentModel
from .transaction import TransactionModel
from .webhook_event import WebhookEventModel

__all__ = [
    "Base",
    "metadata",
    "CustomerModel",
    "OrderModel",
    "PaymentModel",
    "TransactionModel",
    "WebhookEventModel",
]
