"""
PayGate (PayWeb3): signed form POST, redirect to hosted page.

Checksum is MD5 over the field values in alphabetical key order followed
by the merchant secret, upper-case hex.
"""

import logging
import re
from collections.abc import Mapping
from datetime import datetime
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
    decode_form,
    order_id_from_reference,
)
from gateways.config import GatewaySettings, PayGateSettings
from gateways.currency import to_minor_units
from gateways.errors import GatewayError, GatewayErrorKind, SignatureInvalid, UnparseablePayload
from gateways.signing import md5_hex, signatures_match, sorted_values

logger = logging.getLogger(__name__)

_PAY_REQUEST_ID = re.compile(r"PAY_REQUEST_ID=([^&\"'\s<>]+)")


class PayGateAdapter(GatewayAdapter):
    method_id = "paygate"
    descriptor = MethodDescriptor(
        id="paygate",
        name="PayGate",
        type=MethodType.CARD,
        description="Credit/Debit Cards, EFT",
        fee_description="2.9% + R2.00",
    )
    countries = frozenset({"ZA"})
    webhook_header = "x-paygate-signature"
    default_currency = "ZAR"
    status_map = {
        "0": GatewayStatus.PENDING,  # not done
        "1": GatewayStatus.SUCCESS,  # approved
        "2": GatewayStatus.FAILED,  # declined
        "3": GatewayStatus.FAILED,  # cancelled
        "4": GatewayStatus.FAILED,  # user cancelled
        "5": GatewayStatus.PENDING,  # received by PayGate
    }

    def __init__(self, settings: PayGateSettings, common: GatewaySettings, client: httpx.AsyncClient) -> None:
        super().__init__(common, client)
        self.settings = settings

    def checksum(self, fields: Mapping[str, Any]) -> str:
        return md5_hex(sorted_values(fields, exclude="CHECKSUM") + (self.settings.secret_key or "")).upper()

    def _url(self, path: str) -> str:
        return f"{self.settings.base_url.rstrip('/')}/{path}"

    async def initiate(self, request: InitiationRequest) -> InitiationResult:
        self.require(paygate_id=self.settings.paygate_id, secret_key=self.settings.secret_key)

        reference = build_reference(request.order_id, request.attempted_at_ms)
        currency = self.currency_for(request.country)
        fields = {
            "PAYGATE_ID": self.settings.paygate_id,
            "REFERENCE": reference,
            "AMOUNT": str(to_minor_units(request.amount)),
            "CURRENCY": currency,
            "RETURN_URL": self.return_url(request.return_url),
            "TRANSACTION_DATE": datetime.utcnow().strftime("%Y-%m-%d %H:%M:%S"),
            "LOCALE": "en-za",
            "COUNTRY": "ZAF",
            "EMAIL": request.email,
            "NOTIFY_URL": self.notify_url,
            "USER1": request.order_id,
            "USER2": request.user_id,
            "USER3": "storefront",
        }
        fields["CHECKSUM"] = self.checksum(fields)

        response = await self.call("initiate", "POST", self._url("initiate.trans"), data=fields)
        text = response.text
        if "ERROR=" in text:
            raise GatewayError(self.method_id, GatewayErrorKind.PROVIDER_REJECTED, text[:500])

        match = _PAY_REQUEST_ID.search(text)
        if match is None:
            raise GatewayError(self.method_id, GatewayErrorKind.INVALID_RESPONSE, "no PAY_REQUEST_ID in response")
        pay_request_id = match.group(1)

        logger.debug("PayGate request created", extra={"reference": reference, "pay_request_id": pay_request_id})
        return InitiationResult(
            payment_id=reference,
            transaction_id=pay_request_id,
            payment_url=f"{self._url('process.trans')}?PAY_REQUEST_ID={pay_request_id}",
            currency=currency,
            expires_at=self.expires_in(30),
            raw_response={"PAY_REQUEST_ID": pay_request_id, "REFERENCE": reference},
            instructions="You will be redirected to PayGate to complete your payment securely.",
        )

    async def parse_webhook(self, body: bytes, headers: Mapping[str, str]) -> WebhookResult:
        self.require(secret_key=self.settings.secret_key)
        data = decode_form(body, self.method_id)

        if not signatures_match(data.get("CHECKSUM"), self.checksum(data)):
            raise SignatureInvalid(self.method_id, "checksum mismatch")

        reference = data.get("REFERENCE")
        if not reference or "TRANSACTION_STATUS" not in data:
            raise UnparseablePayload(self.method_id, "REFERENCE and TRANSACTION_STATUS are required")

        return WebhookResult(
            payment_id=reference,
            order_id=data.get("USER1") or order_id_from_reference(reference),
            transaction_id=data.get("PAY_REQUEST_ID"),
            status=self.map_status(data["TRANSACTION_STATUS"]),
            raw_payload=data,
        )

    async def verify(self, payment_id: str, transaction_reference: str | None) -> VerificationResult:
        self.require(paygate_id=self.settings.paygate_id, secret_key=self.settings.secret_key)

        fields = {
            "PAYGATE_ID": self.settings.paygate_id,
            "PAY_REQUEST_ID": transaction_reference,
            "REFERENCE": payment_id,
        }
        fields["CHECKSUM"] = self.checksum(fields)

        response = await self.call("verify", "POST", self._url("query.trans"), data=fields)
        try:
            result = decode_form(response.content, self.method_id)
        except UnparseablePayload as exc:
            raise GatewayError(self.method_id, GatewayErrorKind.INVALID_RESPONSE, exc.detail) from exc
        if "ERROR" in result:
            raise GatewayError(self.method_id, GatewayErrorKind.PROVIDER_REJECTED, result["ERROR"])

        return VerificationResult(
            payment_id=payment_id,
            status=self.map_query_status(result.get("TRANSACTION_STATUS")),
            raw_response=result,
        )
