"""
Payment confirmation hand-off to the email service.

The email service consumes ``payment.completed`` from Kafka. Without
configured brokers the event is only logged.
"""

import logging
from typing import Protocol

from aiokafka import AIOKafkaProducer
from opentelemetry.propagate import inject

from shared.events import PaymentCompletedEvent

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    async def notify(self, event: PaymentCompletedEvent) -> None:
        ...


class KafkaNotificationSink:
    def __init__(self, producer: AIOKafkaProducer, topic: str) -> None:
        self.producer = producer
        self.topic = topic

    async def notify(self, event: PaymentCompletedEvent) -> None:
        # Propagate trace context into the downstream Kafka message
        outgoing_headers: dict[str, str] = {}
        inject(outgoing_headers)
        kafka_headers = [(k, v.encode()) for k, v in outgoing_headers.items()]

        await self.producer.send_and_wait(
            self.topic,
            key=event.order_id.encode(),
            value=event.model_dump_json().encode(),
            headers=kafka_headers,
        )
        logger.info(
            "Published payment.completed event",
            extra={"order_id": event.order_id, "payment_id": event.payment_id, "topic": self.topic},
        )


class LoggingNotificationSink:
    async def notify(self, event: PaymentCompletedEvent) -> None:
        logger.info(
            "payment.completed (no broker configured)",
            extra={"order_id": event.order_id, "payment_id": event.payment_id, "event": event.model_dump(mode="json")},
        )
