"""
MTN Mobile Money collections: OAuth2 client-credentials token, then a
request-to-pay that the customer approves on their handset.

Callbacks are JSON, authenticated with an HMAC-SHA256 of the raw body.
"""

import logging
import uuid
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
from gateways.config import GatewaySettings, MTNSettings
from gateways.currency import json_amount, normalise_msisdn
from gateways.errors import GatewayError, GatewayErrorKind, SignatureInvalid, UnparseablePayload
from gateways.http import json_body
from gateways.signing import hmac_hex, signatures_match

logger = logging.getLogger(__name__)


class MTNMobileMoneyAdapter(GatewayAdapter):
    method_id = "mtn"
    descriptor = MethodDescriptor(
        id="mtn",
        name="MTN Mobile Money",
        type=MethodType.MOBILE_MONEY,
        description="Mobile Money",
        fee_description="1.5%",
    )
    countries = frozenset({"CM", "GH", "UG", "RW", "ZM"})
    webhook_header = "x-mtn-signature"
    default_currency = "XAF"
    requires_phone = True
    status_map = {
        "SUCCESSFUL": GatewayStatus.SUCCESS,
        "FAILED": GatewayStatus.FAILED,
        "REJECTED": GatewayStatus.FAILED,
        "TIMEOUT": GatewayStatus.FAILED,
        "PENDING": GatewayStatus.PENDING,
    }

    def __init__(self, settings: MTNSettings, common: GatewaySettings, client: httpx.AsyncClient) -> None:
        super().__init__(common, client)
        self.settings = settings

    def _url(self, path: str) -> str:
        return f"{self.settings.base_url.rstrip('/')}/collection/{path}"

    def _require_credentials(self) -> None:
        self.require(
            subscription_key=self.settings.subscription_key,
            api_key=self.settings.api_key,
            api_secret=self.settings.api_secret,
        )

    async def _access_token(self) -> str:
        response = await self.call(
            "token", "POST", self._url("token/"),
            auth=(self.settings.api_key, self.settings.api_secret),
            headers={"Ocp-Apim-Subscription-Key": self.settings.subscription_key},
        )
        token = json_body(response, self.method_id, "token").get("access_token")
        if not token:
            raise GatewayError(self.method_id, GatewayErrorKind.INVALID_RESPONSE, "token response has no access_token")
        return token

    def _headers(self, token: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {token}",
            "X-Target-Environment": self.settings.target_environment,
            "Ocp-Apim-Subscription-Key": self.settings.subscription_key,
        }

    async def initiate(self, request: InitiationRequest) -> InitiationResult:
        self._require_credentials()
        token = await self._access_token()

        reference = build_reference(request.order_id, request.attempted_at_ms)
        request_id = str(uuid.uuid4())
        currency = self.currency_for(request.country)
        amount = str(json_amount(request.amount, currency))
        payload = {
            "amount": amount,
            "currency": currency,
            "externalId": reference,
            "payer": {
                "partyIdType": "MSISDN",
                "partyId": normalise_msisdn(request.phone_number or "", request.country),
            },
            "payerMessage": f"Payment for Order #{order_number(request.order_id)}",
            "payeeNote": "Storefront order payment",
        }
        headers = self._headers(token) | {"X-Reference-Id": request_id, "X-Callback-Url": self.notify_url}

        await self.call(
            "initiate", "POST", self._url("v1_0/requesttopay"),
            json=payload, headers=headers, expected=(202,),
        )
        logger.debug("MTN request-to-pay accepted", extra={"reference": reference, "x_reference_id": request_id})

        return InitiationResult(
            payment_id=reference,
            transaction_id=request_id,
            payment_url=None,
            currency=currency,
            expires_at=self.expires_in(15),
            raw_response={"referenceId": request_id, "externalId": reference, "status": "PENDING"},
            instructions=(
                "Please check your phone for the MTN Mobile Money payment request and follow the prompts "
                f"to complete your payment of {currency} {amount}."
            ),
        )

    async def parse_webhook(self, body: bytes, headers: Mapping[str, str]) -> WebhookResult:
        self.require(webhook_secret=self.settings.webhook_secret)

        expected = hmac_hex(self.settings.webhook_secret, body, "sha256")
        if not signatures_match(headers.get(self.webhook_header), expected):
            raise SignatureInvalid(self.method_id, "signature mismatch")

        payload = decode_json(body, self.method_id)
        reference = payload.get("externalId")
        if not reference or "status" not in payload:
            raise UnparseablePayload(self.method_id, "externalId and status are required")

        return WebhookResult(
            payment_id=reference,
            order_id=order_id_from_reference(reference),
            transaction_id=payload.get("financialTransactionId") or payload.get("referenceId"),
            status=self.map_status(payload["status"]),
            raw_payload=payload,
        )

    async def verify(self, payment_id: str, transaction_reference: str | None) -> VerificationResult:
        self._require_credentials()
        token = await self._access_token()

        response = await self.call(
            "verify", "GET", self._url(f"v1_0/requesttopay/{transaction_reference}"),
            headers=self._headers(token),
        )
        result = json_body(response, self.method_id, "verify")
        return VerificationResult(
            payment_id=payment_id,
            status=self.map_query_status(result.get("status")),
            raw_response=result,
        )
