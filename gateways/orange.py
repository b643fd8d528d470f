"""
Orange Money Web Payment: OAuth2 client-credentials token and JSON REST.

Notifications carry an MD5 of the raw body concatenated with the merchant
key in ``x-orange-signature``.
"""

import logging
from collections.abc import Mapping

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
from gateways.config import GatewaySettings, OrangeSettings
from gateways.currency import json_amount, normalise_msisdn
from gateways.errors import GatewayError, GatewayErrorKind, SignatureInvalid, UnparseablePayload
from gateways.http import json_body
from gateways.signing import md5_hex, signatures_match

logger = logging.getLogger(__name__)


class OrangeMoneyAdapter(GatewayAdapter):
    method_id = "orange"
    descriptor = MethodDescriptor(
        id="orange",
        name="Orange Money",
        type=MethodType.MOBILE_MONEY,
        description="Mobile Money",
        fee_description="1.5%",
    )
    countries = frozenset({"CM", "SN", "ML", "BF", "CI", "NE", "MG"})
    webhook_header = "x-orange-signature"
    default_currency = "XAF"
    requires_phone = True
    status_map = {
        "SUCCESS": GatewayStatus.SUCCESS,
        "FAILED": GatewayStatus.FAILED,
        "CANCELLED": GatewayStatus.FAILED,
        "EXPIRED": GatewayStatus.FAILED,
        "INITIATED": GatewayStatus.PENDING,
        "PENDING": GatewayStatus.PENDING,
    }

    def __init__(self, settings: OrangeSettings, common: GatewaySettings, client: httpx.AsyncClient) -> None:
        super().__init__(common, client)
        self.settings = settings

    def _url(self, path: str) -> str:
        base = self.settings.base_url.rstrip("/")
        return f"{base}/orange-money-webpay/{self.settings.target_environment}/v1/{path}"

    def _require_credentials(self) -> None:
        self.require(
            client_id=self.settings.client_id,
            client_secret=self.settings.client_secret,
            merchant_key=self.settings.merchant_key,
        )

    async def _access_token(self) -> str:
        response = await self.call(
            "token", "POST", f"{self.settings.base_url.rstrip('/')}/oauth/v3/token",
            data={"grant_type": "client_credentials"},
            auth=(self.settings.client_id, self.settings.client_secret),
            headers={"Accept": "application/json"},
        )
        token = json_body(response, self.method_id, "token").get("access_token")
        if not token:
            raise GatewayError(self.method_id, GatewayErrorKind.INVALID_RESPONSE, "token response has no access_token")
        return token

    async def initiate(self, request: InitiationRequest) -> InitiationResult:
        self._require_credentials()
        token = await self._access_token()

        reference = build_reference(request.order_id, request.attempted_at_ms)
        currency = self.currency_for(request.country)
        payload = {
            "merchant_key": self.settings.merchant_key,
            "currency": currency,
            "order_id": reference,
            "amount": json_amount(request.amount, currency),
            "return_url": self.return_url(request.return_url),
            "cancel_url": self.cancel_url,
            "notif_url": self.notify_url,
            "lang": "en",
            "reference": f"Order #{order_number(request.order_id)}",
            "customer": {
                "name": request.full_name,
                "email": request.email,
                "phone": "+" + normalise_msisdn(request.phone_number or "", request.country),
            },
        }

        response = await self.call(
            "initiate", "POST", self._url("webpayment"),
            json=payload, headers={"Authorization": f"Bearer {token}", "Accept": "application/json"},
        )
        result = json_body(response, self.method_id, "initiate")
        if not result.get("pay_token"):
            raise GatewayError(
                self.method_id,
                GatewayErrorKind.PROVIDER_REJECTED,
                str(result.get("message") or "web payment was not created"),
            )

        return InitiationResult(
            payment_id=reference,
            transaction_id=result["pay_token"],
            payment_url=result.get("payment_url"),
            currency=currency,
            expires_at=self.expires_in(30),
            raw_response=result,
            instructions="Complete the payment with Orange Money and confirm it on your phone when prompted.",
        )

    async def parse_webhook(self, body: bytes, headers: Mapping[str, str]) -> WebhookResult:
        self.require(merchant_key=self.settings.merchant_key)

        expected = md5_hex(body + self.settings.merchant_key.encode())
        if not signatures_match(headers.get(self.webhook_header), expected):
            raise SignatureInvalid(self.method_id, "signature mismatch")

        payload = decode_json(body, self.method_id)
        reference = payload.get("order_id")
        if not reference or "status" not in payload:
            raise UnparseablePayload(self.method_id, "order_id and status are required")

        return WebhookResult(
            payment_id=reference,
            order_id=order_id_from_reference(reference),
            transaction_id=payload.get("txnid") or payload.get("pay_token"),
            status=self.map_status(payload["status"]),
            raw_payload=payload,
        )

    async def verify(self, payment_id: str, transaction_reference: str | None) -> VerificationResult:
        self._require_credentials()
        token = await self._access_token()

        response = await self.call(
            "verify", "POST", self._url("transactionstatus"),
            json={"order_id": payment_id, "amount": None, "pay_token": transaction_reference},
            headers={"Authorization": f"Bearer {token}", "Accept": "application/json"},
        )
        result = json_body(response, self.method_id, "verify")
        logger.debug("Orange transaction status", extra={"payment_id": payment_id, "status": result.get("status")})
        return VerificationResult(
            payment_id=payment_id,
            status=self.map_query_status(result.get("status")),
            raw_response=result,
        )
