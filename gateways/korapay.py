"""
Kora Pay: bearer-authenticated JSON REST, HMAC-SHA512 signed webhooks.

Kora signs the ``data`` object of each notification; the signature is sent
in the ``x-kora-signature`` header.
"""

import json
import logging
from collections.abc import Mapping
from typing import Any

import httpx

from gateways.base import (
    GatewayAdapter,
    GatewayStatus,
    InitiationRequest,
    InitiationResult,
    MethodDescriptor,
    MethodType,
    VerificationResult,
    WebhookResult,
    build_reference,
    decode_json,
    order_id_from_reference,
    order_number,
)
from gateways.config import GatewaySettings, KoraPaySettings
from gateways.currency import json_amount
from gateways.errors import GatewayError, GatewayErrorKind, SignatureInvalid, UnparseablePayload
from gateways.http import json_body
from gateways.signing import hmac_hex, signatures_match

logger = logging.getLogger(__name__)

_CHARGE_STATUSES = {
    "success": GatewayStatus.SUCCESS,
    "failed": GatewayStatus.FAILED,
    "processing": GatewayStatus.PENDING,
    "pending": GatewayStatus.PENDING,
}


def sign_payload(secret: str, data: Any) -> str:
    message = json.dumps(data, separators=(",", ":"), ensure_ascii=False)
    return hmac_hex(secret, message, "sha512")


class KoraPayAdapter(GatewayAdapter):
    method_id = "kora"
    descriptor = MethodDescriptor(
        id="kora",
        name="Kora Pay",
        type=MethodType.CARD,
        description="All major cards",
        fee_description="3.5%",
    )
    countries = frozenset({"ZA", "CM", "NG", "KE", "GH"})
    webhook_header = "x-kora-signature"
    default_currency = "USD"
    status_map = {
        "charge.success": GatewayStatus.SUCCESS,
        "charge.failed": GatewayStatus.FAILED,
        "charge.pending": GatewayStatus.PENDING,
    }

    def __init__(self, settings: KoraPaySettings, common: GatewaySettings, client: httpx.AsyncClient) -> None:
        super().__init__(common, client)
        self.settings = settings

    def _url(self, path: str) -> str:
        return f"{self.settings.base_url.rstrip('/')}/merchant/api/v1/{path}"

    @property
    def _auth(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.settings.secret_key}"}

    async def initiate(self, request: InitiationRequest) -> InitiationResult:
        self.require(secret_key=self.settings.secret_key)

        reference = build_reference(request.order_id, request.attempted_at_ms)
        currency = self.currency_for(request.country)
        payload = {
            "amount": json_amount(request.amount, currency),
            "currency": currency,
            "reference": reference,
            "customer": {"name": request.full_name, "email": request.email},
            "redirect_url": self.return_url(request.return_url),
            "notification_url": self.notify_url,
            "narration": f"Order #{order_number(request.order_id)}",
            "metadata": {"order_id": request.order_id, "user_id": request.user_id, "platform": "storefront"},
        }

        response = await self.call(
            "initiate", "POST", self._url("charges/initialize"),
            json=payload, headers=self._auth,
        )
        result = json_body(response, self.method_id, "initiate")
        data = result.get("data") or {}
        if not result.get("status") or not data.get("checkout_url"):
            raise GatewayError(
                self.method_id,
                GatewayErrorKind.PROVIDER_REJECTED,
                str(result.get("message") or "charge was not initialised"),
            )

        logger.debug("Kora charge initialised", extra={"reference": reference, "currency": currency})
        return InitiationResult(
            payment_id=reference,
            transaction_id=data.get("reference") or reference,
            payment_url=data["checkout_url"],
            currency=currency,
            expires_at=self.expires_in(30),
            raw_response=result,
            instructions="You will be redirected to complete your payment securely.",
        )

    async def parse_webhook(self, body: bytes, headers: Mapping[str, str]) -> WebhookResult:
        self.require(webhook_secret=self.settings.webhook_secret)
        payload = decode_json(body, self.method_id)

        data = payload.get("data")
        if not isinstance(data, dict):
            raise UnparseablePayload(self.method_id, "missing data object")

        expected = sign_payload(self.settings.webhook_secret, data)
        if not signatures_match(headers.get(self.webhook_header), expected):
            raise SignatureInvalid(self.method_id, "signature mismatch")

        reference = data.get("reference")
        if not reference or "event" not in payload:
            raise UnparseablePayload(self.method_id, "event and data.reference are required")

        metadata = data.get("metadata") if isinstance(data.get("metadata"), dict) else {}
        return WebhookResult(
            payment_id=reference,
            order_id=metadata.get("order_id") or order_id_from_reference(reference),
            transaction_id=data.get("payment_reference") or reference,
            status=self.map_status(payload["event"]),
            raw_payload=payload,
        )

    async def verify(self, payment_id: str, transaction_reference: str | None) -> VerificationResult:
        self.require(secret_key=self.settings.secret_key)

        # charges are looked up by the merchant reference, never the Kora payment_reference
        response = await self.call("verify", "GET", self._url(f"charges/{payment_id}"), headers=self._auth)
        result = json_body(response, self.method_id, "verify")
        data = result.get("data") or {}
        status = _CHARGE_STATUSES.get(str(data.get("status")))
        if status is None:
            raise GatewayError(
                self.method_id, GatewayErrorKind.INVALID_RESPONSE, f"unknown charge status {data.get('status')!r}"
            )

        return VerificationResult(payment_id=payment_id, status=status, raw_response=result)
