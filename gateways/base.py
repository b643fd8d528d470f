"""
Provider-neutral gateway interface.

Every adapter turns an InitiationRequest into a provider call, and turns a
provider webhook or query response back into one of three statuses.
"""

import json
import time
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any
from urllib.parse import parse_qsl

import httpx

from gateways.config import GatewaySettings
from gateways.currency import currency_for
from gateways.errors import GatewayError, GatewayErrorKind, UnparseablePayload
from gateways.http import send

REFERENCE_PREFIX = "mg"


class GatewayStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


class MethodType(str, Enum):
    CARD = "card"
    MOBILE_MONEY = "mobile_money"


@dataclass(frozen=True)
class MethodDescriptor:
    id: str
    name: str
    type: MethodType
    description: str
    fee_description: str


@dataclass
class InitiationRequest:
    order_id: str
    amount: Decimal
    user_id: str
    email: str
    full_name: str
    country: str
    phone_number: str | None = None
    return_url: str | None = None
    item_count: int = 1
    attempted_at_ms: int = field(default_factory=lambda: int(time.time() * 1000))


@dataclass
class InitiationResult:
    payment_id: str
    transaction_id: str | None
    payment_url: str | None
    currency: str
    expires_at: datetime
    raw_response: dict[str, Any]
    instructions: str


@dataclass
class WebhookResult:
    payment_id: str
    order_id: str | None
    transaction_id: str | None
    status: GatewayStatus
    raw_payload: dict[str, Any]


@dataclass
class VerificationResult:
    payment_id: str
    status: GatewayStatus
    raw_response: dict[str, Any]


def build_reference(order_id: str, attempted_at_ms: int) -> str:
    return f"{REFERENCE_PREFIX}_{order_id}_{attempted_at_ms}"


def order_id_from_reference(reference: str) -> str | None:
    """Recover the order id from ``mg_{orderId}_{millis}``; order ids may contain underscores."""
    prefix = f"{REFERENCE_PREFIX}_"
    if not reference.startswith(prefix):
        return None
    head, sep, millis = reference[len(prefix):].rpartition("_")
    if not sep or not head or not millis.isdigit():
        return None
    return head


def order_number(order_id: str) -> str:
    return order_id[-8:].upper()


def decode_form(body: bytes, provider: str) -> dict[str, str]:
    try:
        return dict(parse_qsl(body.decode("utf-8"), keep_blank_values=True, strict_parsing=True))
    except (UnicodeDecodeError, ValueError) as exc:
        raise UnparseablePayload(provider, "body is not form encoded") from exc


def decode_json(body: bytes, provider: str) -> dict[str, Any]:
    try:
        payload = json.loads(body)
    except (UnicodeDecodeError, ValueError) as exc:
        raise UnparseablePayload(provider, "body is not JSON") from exc
    if not isinstance(payload, dict):
        raise UnparseablePayload(provider, "expected a JSON object")
    return payload


class GatewayAdapter(ABC):
    """One external payment provider behind the common capability interface."""

    method_id: str
    descriptor: MethodDescriptor
    countries: frozenset[str]
    webhook_header: str
    default_currency: str
    status_map: Mapping[str, GatewayStatus]
    requires_phone: bool = False

    def __init__(self, common: GatewaySettings, client: httpx.AsyncClient) -> None:
        self.common = common
        self.client = client

    # -- capability interface ------------------------------------------------

    @abstractmethod
    async def initiate(self, request: InitiationRequest) -> InitiationResult:
        ...

    @abstractmethod
    async def parse_webhook(self, body: bytes, headers: Mapping[str, str]) -> WebhookResult:
        ...

    @abstractmethod
    async def verify(self, payment_id: str, transaction_reference: str | None) -> VerificationResult:
        ...

    # -- shared helpers -------------------------------------------------------

    async def call(self, operation: str, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Provider call bounded by the configured gateway timeout."""
        kwargs.setdefault("timeout", self.common.http_timeout)
        return await send(self.client, self.method_id, operation, method, url, **kwargs)

    def is_available_in(self, country: str | None) -> bool:
        return country is not None and country.upper() in self.countries

    def currency_for(self, country: str | None) -> str:
        return currency_for(country, self.default_currency)

    def map_status(self, code: Any) -> GatewayStatus:
        try:
            return self.status_map[str(code)]
        except KeyError:
            raise UnparseablePayload(self.method_id, f"unknown status code {code!r}") from None

    def map_query_status(self, code: Any) -> GatewayStatus:
        try:
            return self.status_map[str(code)]
        except KeyError:
            raise GatewayError(
                self.method_id, GatewayErrorKind.INVALID_RESPONSE, f"unknown status code {code!r}"
            ) from None

    def require(self, **values: str | None) -> None:
        """Fail before any network call when credentials are missing."""
        missing = [name for name, value in values.items() if not value]
        if missing:
            raise GatewayError(
                self.method_id,
                GatewayErrorKind.NOT_CONFIGURED,
                f"missing configuration: {', '.join(sorted(missing))}",
            )

    @property
    def notify_url(self) -> str:
        return f"{self.common.api_url.rstrip('/')}/payments/webhook"

    def return_url(self, requested: str | None) -> str:
        return requested or f"{self.common.frontend_url.rstrip('/')}/payment/success"

    @property
    def cancel_url(self) -> str:
        return f"{self.common.frontend_url.rstrip('/')}/payment/cancel"

    @staticmethod
    def expires_in(minutes: int) -> datetime:
        return datetime.utcnow() + timedelta(minutes=minutes)
