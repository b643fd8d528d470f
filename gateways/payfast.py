"""
PayFast: signed redirect to the hosted checkout, URL-encoded ITN callbacks.

The signature is MD5 over ``key=value`` pairs in alphabetical key order
(form encoded, empty values dropped) with the passphrase appended.
PayFast has no transaction query endpoint.
"""

import logging
from collections.abc import Mapping
from typing import Any
from urllib.parse import quote_plus, urlencode

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
    decode_form,
    order_id_from_reference,
    order_number,
)
from gateways.config import GatewaySettings, PayFastSettings
from gateways.currency import format_decimal
from gateways.errors import SignatureInvalid, UnparseablePayload, VerificationUnavailable
from gateways.signing import md5_hex, signatures_match, sorted_query

logger = logging.getLogger(__name__)


class PayFastAdapter(GatewayAdapter):
    method_id = "payfast"
    descriptor = MethodDescriptor(
        id="payfast",
        name="PayFast",
        type=MethodType.CARD,
        description="Credit/Debit Cards, EFT, SnapScan",
        fee_description="2.9% + R2.00",
    )
    countries = frozenset({"ZA"})
    webhook_header = "x-payfast-signature"
    default_currency = "ZAR"
    status_map = {
        "COMPLETE": GatewayStatus.SUCCESS,
        "FAILED": GatewayStatus.FAILED,
        "CANCELLED": GatewayStatus.FAILED,
        "PENDING": GatewayStatus.PENDING,
    }

    def __init__(self, settings: PayFastSettings, common: GatewaySettings, client: httpx.AsyncClient) -> None:
        super().__init__(common, client)
        self.settings = settings

    @property
    def host(self) -> str:
        url = self.settings.base_url if self.common.is_production else self.settings.sandbox_url
        return url.rstrip("/")

    def signature(self, fields: Mapping[str, Any]) -> str:
        payload = sorted_query(fields, exclude="signature")
        if self.settings.passphrase:
            payload += f"&passphrase={quote_plus(self.settings.passphrase.strip())}"
        return md5_hex(payload)

    async def initiate(self, request: InitiationRequest) -> InitiationResult:
        self.require(merchant_id=self.settings.merchant_id, merchant_key=self.settings.merchant_key)

        reference = build_reference(request.order_id, request.attempted_at_ms)
        first, _, last = request.full_name.strip().partition(" ")
        fields = {
            "merchant_id": self.settings.merchant_id,
            "merchant_key": self.settings.merchant_key,
            "return_url": self.return_url(request.return_url),
            "cancel_url": self.cancel_url,
            "notify_url": self.notify_url,
            "name_first": first or request.full_name,
            "name_last": last.strip(),
            "email_address": request.email,
            "m_payment_id": reference,
            "amount": format_decimal(request.amount),
            "item_name": f"Order #{order_number(request.order_id)}",
            "item_description": f"Payment for order containing {request.item_count} items",
            "custom_str1": request.order_id,
            "custom_str2": request.user_id,
            "custom_str3": "storefront",
            "email_confirmation": "1",
            "confirmation_address": request.email,
        }
        fields = {key: value for key, value in fields.items() if value != ""}
        fields["signature"] = self.signature(fields)

        return InitiationResult(
            payment_id=reference,
            transaction_id=reference,
            payment_url=f"{self.host}/eng/process?{urlencode(fields)}",
            currency=self.currency_for(request.country),
            expires_at=self.expires_in(30),
            raw_response={key: value for key, value in fields.items() if key != "merchant_key"},
            instructions="You will be redirected to PayFast to complete your payment securely.",
        )

    async def parse_webhook(self, body: bytes, headers: Mapping[str, str]) -> WebhookResult:
        self.require(merchant_id=self.settings.merchant_id)
        data = decode_form(body, self.method_id)

        if not signatures_match(data.get("signature"), self.signature(data)):
            raise SignatureInvalid(self.method_id, "signature mismatch")

        reference = data.get("m_payment_id")
        if not reference or "payment_status" not in data:
            raise UnparseablePayload(self.method_id, "m_payment_id and payment_status are required")

        if self.settings.validate_itn:
            await self._validate(data)

        return WebhookResult(
            payment_id=reference,
            order_id=data.get("custom_str1") or order_id_from_reference(reference),
            transaction_id=data.get("pf_payment_id") or reference,
            status=self.map_status(data["payment_status"]),
            raw_payload=data,
        )

    async def _validate(self, data: Mapping[str, str]) -> None:
        """Post the notification back to PayFast; anything but VALID is rejected."""
        fields = {key: value for key, value in data.items() if key != "signature"}
        response = await self.call("validate", "POST", f"{self.host}/eng/query/validate", data=fields)
        if response.text.strip() != "VALID":
            logger.warning(
                "PayFast ITN validation rejected",
                extra={"m_payment_id": data.get("m_payment_id"), "answer": response.text[:100]},
            )
            raise SignatureInvalid(self.method_id, "notification not confirmed by provider")

    async def verify(self, payment_id: str, transaction_reference: str | None) -> VerificationResult:
        raise VerificationUnavailable(self.method_id)
