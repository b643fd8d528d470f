"""
Pydantic event schemas published to the message bus.
All events extend EventBase which carries correlation/tracing metadata.
"""

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class EventBase(BaseModel):
    event_id: uuid.UUID = Field(default_factory=uuid.uuid4)
    event_version: int = 1
    correlation_id: str  # payment id of the transition that produced the event
    occurred_at: datetime = Field(default_factory=datetime.utcnow)

    model_config = {"extra": "ignore"}


class PaymentCompletedEvent(EventBase):
    """Consumed by the email service to send the order confirmation."""

    order_id: str
    order_number: str
    payment_id: str
    user_id: str
    customer_email: str
    customer_name: str
    amount: Decimal
    currency: str
    payment_method: str
    transaction_id: str | None = None
