"""
Test doubles: a fake for every provider's HTTP API behind httpx.MockTransport,
and builders for correctly (or incorrectly) signed webhooks.

Signatures here are computed independently of the adapters so a regression
in an adapter's canonicalisation shows up as a rejected webhook.
"""

import hashlib
import hmac
import json
from urllib.parse import quote_plus, urlencode

import httpx

from gateways.config import (
    GatewaySettings,
    KoraPaySettings,
    MTNSettings,
    OrangeSettings,
    PayFastSettings,
    PayGateSettings,
)

ORDER_ID = "ord_7f3a9c21"  # underscore on purpose: references are mg_{order}_{millis}
CM_ORDER_ID = "ord_cm0001"

PAY_REQUEST_ID = "23B785AE-C96C-32AF-4879-D2C9363DB6E8"
MTN_TOKEN = "mtn-access-token"
ORANGE_TOKEN = "orange-access-token"
ORANGE_PAY_TOKEN = "v1abc123paytoken"

COMMON = GatewaySettings(environment="test", api_url="https://api.shop.test", frontend_url="https://shop.test")
KORA = KoraPaySettings(
    base_url="https://kora.test", secret_key="sk_test", webhook_secret="kora-hook-secret"
)
PAYGATE = PayGateSettings(base_url="https://paygate.test/payweb3", paygate_id="10011072130", secret_key="secret")
PAYFAST = PayFastSettings(
    base_url="https://payfast.test",
    sandbox_url="https://sandbox.payfast.test",
    merchant_id="10000100",
    merchant_key="46f0cd694581a",
    passphrase="jt7NOE43FZPn",
    validate_itn=True,
)
MTN = MTNSettings(
    base_url="https://mtn.test",
    subscription_key="sub-key",
    api_key="api-user",
    api_secret="api-secret",
    webhook_secret="mtn-hook-secret",
)
ORANGE = OrangeSettings(
    base_url="https://orange.test", client_id="client", client_secret="client-secret", merchant_key="orange-merchant"
)


class FakeProviders:
    """Answers every provider endpoint the adapters call; ``fail`` forces errors per host."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.fail: dict[str, str] = {}  # host -> "network" | "timeout" | "http"
        self.payfast_validation = "VALID"
        self.query_status = {
            "kora.test": "success",
            "paygate.test": "1",
            "mtn.test": "SUCCESSFUL",
            "orange.test": "SUCCESS",
        }

    def calls_to(self, host: str) -> list[httpx.Request]:
        return [request for request in self.requests if request.url.host == host]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        host, path = request.url.host, request.url.path

        failure = self.fail.get(host)
        if failure == "network":
            raise httpx.ConnectError("connection refused", request=request)
        if failure == "timeout":
            raise httpx.ReadTimeout("read timed out", request=request)
        if failure == "http":
            return httpx.Response(500, text="upstream exploded")

        if host == "paygate.test":
            return self._paygate(path)
        if host == "sandbox.payfast.test":
            return httpx.Response(200, text=self.payfast_validation)
        if host == "kora.test":
            return self._kora(request, path)
        if host == "mtn.test":
            return self._mtn(request, path)
        if host == "orange.test":
            return self._orange(path)
        return httpx.Response(404)

    def _paygate(self, path: str) -> httpx.Response:
        if path.endswith("/initiate.trans"):
            return httpx.Response(
                200,
                text=f"PAYGATE_ID=10011072130&PAY_REQUEST_ID={PAY_REQUEST_ID}&REFERENCE=x&CHECKSUM=abc",
            )
        if path.endswith("/query.trans"):
            body = urlencode(
                {
                    "PAYGATE_ID": "10011072130",
                    "PAY_REQUEST_ID": PAY_REQUEST_ID,
                    "TRANSACTION_STATUS": self.query_status["paygate.test"],
                }
            )
            return httpx.Response(200, text=body)
        return httpx.Response(404)

    def _kora(self, request: httpx.Request, path: str) -> httpx.Response:
        if path.endswith("/charges/initialize"):
            payload = json.loads(request.content)
            return httpx.Response(
                200,
                json={
                    "status": True,
                    "message": "Charge created successfully",
                    "data": {"reference": payload["reference"], "checkout_url": "https://checkout.kora.test/pay/abc"},
                },
            )
        if "/charges/" in path:
            return httpx.Response(200, json={"status": True, "data": {"status": self.query_status["kora.test"]}})
        return httpx.Response(404)

    def _mtn(self, request: httpx.Request, path: str) -> httpx.Response:
        if path.endswith("/collection/token/"):
            return httpx.Response(200, json={"access_token": MTN_TOKEN, "expires_in": 3600})
        if path.endswith("/requesttopay") and request.method == "POST":
            return httpx.Response(202)
        if "/requesttopay/" in path:
            return httpx.Response(200, json={"status": self.query_status["mtn.test"]})
        return httpx.Response(404)

    def _orange(self, path: str) -> httpx.Response:
        if path == "/oauth/v3/token":
            return httpx.Response(200, json={"access_token": ORANGE_TOKEN, "token_type": "Bearer"})
        if path.endswith("/webpayment"):
            return httpx.Response(
                201,
                json={
                    "status": 201,
                    "message": "OK",
                    "pay_token": ORANGE_PAY_TOKEN,
                    "payment_url": f"https://webpayment.orange.test/pay/{ORANGE_PAY_TOKEN}",
                },
            )
        if path.endswith("/transactionstatus"):
            return httpx.Response(200, json={"status": self.query_status["orange.test"]})
        return httpx.Response(404)


# ---------------------------------------------------------------------------
# Signed webhook builders: each returns (headers, body)
# ---------------------------------------------------------------------------


def _md5(message: str | bytes) -> str:
    if isinstance(message, str):
        message = message.encode()
    return hashlib.md5(message).hexdigest()


def paygate_webhook(reference: str, order_id: str, status: str = "1", secret: str = PAYGATE.secret_key):
    fields = {
        "PAYGATE_ID": PAYGATE.paygate_id,
        "PAY_REQUEST_ID": PAY_REQUEST_ID,
        "REFERENCE": reference,
        "TRANSACTION_STATUS": status,
        "RESULT_CODE": "990017",
        "USER1": order_id,
    }
    values = "".join(fields[key] for key in sorted(fields))
    fields["CHECKSUM"] = _md5(values + secret).upper()
    headers = {"content-type": "application/x-www-form-urlencoded", "x-paygate-signature": fields["CHECKSUM"]}
    return headers, urlencode(fields).encode()


def payfast_webhook(
    reference: str, order_id: str, status: str = "COMPLETE", passphrase: str = PAYFAST.passphrase
):
    fields = {
        "m_payment_id": reference,
        "pf_payment_id": "1089250",
        "payment_status": status,
        "item_name": "Order #TEST",
        "amount_gross": "1000.00",
        "custom_str1": order_id,
        "merchant_id": PAYFAST.merchant_id,
    }
    query = "&".join(f"{key}={quote_plus(fields[key])}" for key in sorted(fields))
    fields["signature"] = _md5(f"{query}&passphrase={quote_plus(passphrase)}")
    headers = {"content-type": "application/x-www-form-urlencoded", "x-payfast-signature": fields["signature"]}
    return headers, urlencode(fields).encode()


def kora_webhook(reference: str, order_id: str, event: str = "charge.success", secret: str = KORA.webhook_secret):
    data = {
        "reference": reference,
        "payment_reference": "KPY-CA-1234",
        "amount": 1000,
        "currency": "ZAR",
        "status": event.split(".")[1],
        "metadata": {"order_id": order_id},
    }
    signature = hmac.new(
        secret.encode(), json.dumps(data, separators=(",", ":")).encode(), hashlib.sha512
    ).hexdigest()
    body = json.dumps({"event": event, "data": data}).encode()
    return {"content-type": "application/json", "x-kora-signature": signature}, body


def mtn_webhook(reference: str, status: str = "SUCCESSFUL", secret: str = MTN.webhook_secret):
    body = json.dumps(
        {
            "externalId": reference,
            "financialTransactionId": "363440463",
            "amount": "1000",
            "currency": "XAF",
            "status": status,
        }
    ).encode()
    signature = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return {"content-type": "application/json", "x-mtn-signature": signature}, body


def orange_webhook(reference: str, status: str = "SUCCESS", merchant_key: str = ORANGE.merchant_key):
    body = json.dumps({"status": status, "order_id": reference, "txnid": "MP200101.1234.A12345"}).encode()
    signature = _md5(body + merchant_key.encode())
    return {"content-type": "application/json", "x-orange-signature": signature}, body
