import hashlib
from decimal import Decimal
from urllib.parse import parse_qsl, quote_plus, urlsplit

import pytest

from gateways.base import GatewayStatus, InitiationRequest
from gateways.config import GatewaySettings
from gateways.errors import SignatureInvalid, VerificationUnavailable
from gateways.payfast import PayFastAdapter
from support import PAYFAST, payfast_webhook

REFERENCE = "mg_ord_1_1718000000000"


def _request():
    return InitiationRequest(
        order_id="ord_1",
        amount=Decimal("1000"),
        user_id="user-za",
        email="thandi@example.com",
        full_name="Thandi van der Merwe",
        country="ZA",
        return_url="https://shop.test/orders/ord_1",
        attempted_at_ms=1718000000000,
    )


@pytest.mark.asyncio
async def test_initiate_builds_signed_redirect_without_network(registry, providers):
    result = await registry.get("payfast").initiate(_request())

    url = urlsplit(result.payment_url)
    assert f"{url.scheme}://{url.netloc}{url.path}" == "https://sandbox.payfast.test/eng/process"
    fields = dict(parse_qsl(url.query))
    assert fields["m_payment_id"] == REFERENCE
    assert fields["amount"] == "1000.00"
    assert fields["name_first"] == "Thandi"
    assert fields["name_last"] == "van der Merwe"
    assert fields["return_url"] == "https://shop.test/orders/ord_1"

    signature = fields.pop("signature")
    canonical = "&".join(f"{key}={quote_plus(fields[key])}" for key in sorted(fields))
    expected = hashlib.md5(f"{canonical}&passphrase={quote_plus(PAYFAST.passphrase)}".encode()).hexdigest()
    assert signature == expected

    assert "merchant_key" not in result.raw_response
    assert providers.requests == []


def test_production_uses_live_host(http_client):
    adapter = PayFastAdapter(PAYFAST, GatewaySettings(environment="production"), http_client)
    assert adapter.host == "https://payfast.test"


@pytest.mark.asyncio
async def test_webhook_is_confirmed_with_provider(registry, providers):
    headers, body = payfast_webhook(REFERENCE, "ord_1")
    result = await registry.get("payfast").parse_webhook(body, headers)

    assert result.status is GatewayStatus.SUCCESS
    assert result.order_id == "ord_1"
    assert result.transaction_id == "1089250"
    (validation,) = providers.calls_to("sandbox.payfast.test")
    assert validation.url.path == "/eng/query/validate"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status, expected",
    [("COMPLETE", GatewayStatus.SUCCESS), ("FAILED", GatewayStatus.FAILED), ("CANCELLED", GatewayStatus.FAILED),
     ("PENDING", GatewayStatus.PENDING)],
)
async def test_webhook_status_vocabulary(registry, status, expected):
    headers, body = payfast_webhook(REFERENCE, "ord_1", status=status)
    result = await registry.get("payfast").parse_webhook(body, headers)
    assert result.status is expected


@pytest.mark.asyncio
async def test_webhook_not_confirmed_by_provider_is_rejected(registry, providers):
    providers.payfast_validation = "INVALID"
    headers, body = payfast_webhook(REFERENCE, "ord_1")

    with pytest.raises(SignatureInvalid):
        await registry.get("payfast").parse_webhook(body, headers)


@pytest.mark.asyncio
async def test_tampered_signature_is_rejected_before_validation(registry, providers):
    headers, body = payfast_webhook(REFERENCE, "ord_1", passphrase="wrong")

    with pytest.raises(SignatureInvalid):
        await registry.get("payfast").parse_webhook(body, headers)
    assert providers.requests == []


@pytest.mark.asyncio
async def test_validation_can_be_switched_off(http_client, providers):
    settings = PAYFAST.model_copy(update={"validate_itn": False})
    adapter = PayFastAdapter(settings, GatewaySettings(environment="test"), http_client)
    headers, body = payfast_webhook(REFERENCE, "ord_1")

    result = await adapter.parse_webhook(body, headers)
    assert result.status is GatewayStatus.SUCCESS
    assert providers.requests == []


@pytest.mark.asyncio
async def test_verify_is_unavailable(registry):
    with pytest.raises(VerificationUnavailable):
        await registry.get("payfast").verify(REFERENCE, None)
