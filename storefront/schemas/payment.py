from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field

from gateways.base import GatewayStatus, MethodType
from storefront.models.order import FulfillmentStatus
from storefront.models.payment import PaymentStatus


class PaymentMethodResponse(BaseModel):
    id: str
    name: str
    type: MethodType
    description: str
    fee_description: str


class PaymentMethodsResponse(BaseModel):
    country: str
    currency: str
    payment_methods: list[PaymentMethodResponse]


class InitializePaymentRequest(BaseModel):
    order_id: str = Field(min_length=1)
    payment_method: str = Field(min_length=1)
    return_url: str | None = None
    phone_number: str | None = None


class InitializePaymentResponse(BaseModel):
    payment_id: str
    payment_url: str | None
    payment_method: str
    amount: Decimal
    currency: str
    expires_at: datetime
    instructions: str


class WebhookResponse(BaseModel):
    success: bool = True
    outcome: str


class OrderSummary(BaseModel):
    id: str
    status: FulfillmentStatus
    payment_status: PaymentStatus
    total_amount: Decimal
    currency: str

    model_config = {"from_attributes": True}


class PaymentStatusResponse(BaseModel):
    payment_id: str
    status: PaymentStatus
    amount: Decimal
    currency: str
    payment_method: str
    created_at: datetime
    processed_at: datetime | None
    order: OrderSummary


class VerifyPaymentRequest(BaseModel):
    payment_id: str = Field(min_length=1)
    transaction_reference: str | None = None


class VerifyPaymentResponse(BaseModel):
    payment_id: str
    verification_status: GatewayStatus
    gateway_response: dict[str, Any]
    verified_at: datetime
