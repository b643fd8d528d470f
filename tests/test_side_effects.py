import json
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from shared.events import PaymentCompletedEvent
from storefront.services.affiliates import AffiliateCommissions
from storefront.services.notifications import KafkaNotificationSink, LoggingNotificationSink
from support import CM_ORDER_ID, ORDER_ID


def _event():
    return PaymentCompletedEvent(
        correlation_id=f"mg_{ORDER_ID}_1",
        order_id=ORDER_ID,
        order_number=ORDER_ID[-8:].upper(),
        payment_id=f"mg_{ORDER_ID}_1",
        user_id="user-za",
        customer_email="thandi@example.com",
        customer_name="Thandi Nkosi",
        amount=Decimal("1000.00"),
        currency="ZAR",
        payment_method="paygate",
        transaction_id="PAY-1",
    )


@pytest.mark.asyncio
async def test_kafka_sink_publishes_payment_completed_keyed_by_order():
    producer = AsyncMock()
    sink = KafkaNotificationSink(producer, "payment.completed")

    await sink.notify(_event())

    producer.send_and_wait.assert_awaited_once()
    args, kwargs = producer.send_and_wait.call_args
    assert args == ("payment.completed",)
    assert kwargs["key"] == ORDER_ID.encode()
    payload = json.loads(kwargs["value"])
    assert payload["order_number"] == "7F3A9C21"
    assert payload["amount"] == "1000.00"
    assert isinstance(kwargs["headers"], list)


@pytest.mark.asyncio
async def test_kafka_sink_propagates_broker_errors():
    producer = AsyncMock()
    producer.send_and_wait.side_effect = ConnectionError("broker down")

    with pytest.raises(ConnectionError):
        await KafkaNotificationSink(producer, "payment.completed").notify(_event())


@pytest.mark.asyncio
async def test_logging_sink_accepts_event():
    await LoggingNotificationSink().notify(_event())


@pytest.mark.asyncio
async def test_commission_recorded_once_per_order(session_factory, seeded):
    affiliates = AffiliateCommissions(session_factory)

    assert await affiliates.record(ORDER_ID) is True
    assert await affiliates.record(ORDER_ID) is False


@pytest.mark.asyncio
async def test_no_commission_without_affiliate_promo(session_factory, seeded):
    assert await AffiliateCommissions(session_factory).record(CM_ORDER_ID) is False
