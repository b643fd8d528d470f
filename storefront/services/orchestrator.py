"""
Payment state machine.

initialize() creates a pending Payment only after the provider accepted the
attempt. reconcile() is the only path that resolves a Payment and its Order:
both rows move out of ``pending`` through conditional updates inside one
transaction, so concurrent or replayed webhooks resolve a payment once.
Notification and affiliate side effects run after commit and never fail the
webhook.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum

from opentelemetry import trace
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from gateways.base import (
    GatewayStatus,
    InitiationRequest,
    MethodDescriptor,
    VerificationResult,
    WebhookResult,
    order_number,
)
from gateways.currency import currency_for
from gateways.errors import GatewayError, UnsupportedMethod, WebhookError
from gateways.registry import GatewayRegistry
from shared.events import PaymentCompletedEvent
from storefront.errors import (
    AlreadyProcessed,
    OrderNotFound,
    PaymentInitFailed,
    PaymentNotFound,
    ValidationError,
    VerificationFailed,
)
from storefront.metrics import NOTIFICATION_FAILURES, PAYMENT_INITIALIZATIONS, WEBHOOKS
from storefront.models.payment import Payment, PaymentStatus
from storefront.models.user import User
from storefront.services.affiliates import AffiliateCommissions
from storefront.services.notifications import NotificationSink
from storefront.services.stores import OrderStore, PaymentStore

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class ReconcileOutcome(str, Enum):
    APPLIED = "applied"
    DUPLICATE = "duplicate"
    PENDING = "pending"
    ORDER_ALREADY_RESOLVED = "order_already_resolved"


@dataclass
class PaymentInitResult:
    payment_id: str
    payment_url: str | None
    payment_method: str
    amount: Decimal
    currency: str
    expires_at: datetime
    instructions: str


class PaymentOrchestrator:
    def __init__(
        self,
        registry: GatewayRegistry,
        session_factory: async_sessionmaker[AsyncSession],
        notifier: NotificationSink,
        affiliates: AffiliateCommissions | None = None,
        default_country: str = "ZA",
    ) -> None:
        self.registry = registry
        self.session_factory = session_factory
        self.notifier = notifier
        self.affiliates = affiliates
        self.default_country = default_country

    # ---------------------------------------------------------------------------
    # Method listing
    # ---------------------------------------------------------------------------

    def list_methods(self, country: str | None) -> tuple[str, str, list[MethodDescriptor]]:
        country = (country or self.default_country).upper()
        return country, currency_for(country, "USD"), self.registry.list_available_methods(country)

    # ---------------------------------------------------------------------------
    # Initialise
    # ---------------------------------------------------------------------------

    async def initialize(
        self,
        order_id: str,
        user: User,
        method_id: str,
        *,
        return_url: str | None = None,
        phone_number: str | None = None,
    ) -> PaymentInitResult:
        with tracer.start_as_current_span("payments.initialize") as span:
            span.set_attribute("payment.method", method_id)
            span.set_attribute("order.id", order_id)

            async with self.session_factory() as db:
                order = await OrderStore(db).get_for_owner(order_id, user.id)
            if order is None:
                raise OrderNotFound()

            # checked before any provider call; a failed order is blocked as well
            if order.payment_status is not PaymentStatus.PENDING:
                PAYMENT_INITIALIZATIONS.labels(method_id, "rejected").inc()
                raise AlreadyProcessed()

            country = user.country or self.default_country
            try:
                adapter = self.registry.resolve(method_id, country)
            except UnsupportedMethod:
                PAYMENT_INITIALIZATIONS.labels(method_id, "rejected").inc()
                raise

            if order.total_amount <= 0:
                raise ValidationError("Order total must be greater than zero", "order_id")
            phone = phone_number or user.phone_number
            if adapter.requires_phone and not phone:
                raise ValidationError("Phone number is required for mobile money payments", "phone_number")

            request = InitiationRequest(
                order_id=order.id,
                amount=order.total_amount,
                user_id=user.id,
                email=user.email,
                full_name=user.full_name,
                country=country,
                phone_number=phone,
                return_url=return_url,
                item_count=order.item_count,
            )
            try:
                result = await adapter.initiate(request)
            except GatewayError as exc:
                PAYMENT_INITIALIZATIONS.labels(method_id, "failed").inc()
                span.set_attribute("error", True)
                raise PaymentInitFailed(adapter.method_id, order.id, exc) from exc

            # persisted only after the provider accepted the attempt
            async with self.session_factory() as db:
                PaymentStore(db).add(
                    Payment(
                        id=result.payment_id,
                        order_id=order.id,
                        user_id=user.id,
                        payment_method=adapter.method_id,
                        amount=order.total_amount,
                        currency=result.currency,
                        status=PaymentStatus.PENDING,
                        gateway_transaction_id=result.transaction_id,
                        provider_reference=result.transaction_id,
                        gateway_response=result.raw_response,
                    )
                )
                await db.commit()

            PAYMENT_INITIALIZATIONS.labels(method_id, "created").inc()
            span.set_attribute("payment.id", result.payment_id)
            logger.info(
                "Payment initialised",
                extra={
                    "order_id": order.id,
                    "payment_id": result.payment_id,
                    "provider": adapter.method_id,
                    "currency": result.currency,
                },
            )
            return PaymentInitResult(
                payment_id=result.payment_id,
                payment_url=result.payment_url,
                payment_method=adapter.method_id,
                amount=order.total_amount,
                currency=result.currency,
                expires_at=result.expires_at,
                instructions=result.instructions,
            )

    # ---------------------------------------------------------------------------
    # Reconcile
    # ---------------------------------------------------------------------------

    async def reconcile(self, headers: Mapping[str, str], body: bytes) -> ReconcileOutcome:
        adapter = self.registry.for_webhook(headers)
        provider = adapter.method_id

        with tracer.start_as_current_span("payments.reconcile") as span:
            span.set_attribute("payment.provider", provider)
            try:
                webhook = await adapter.parse_webhook(body, headers)
            except WebhookError:
                WEBHOOKS.labels(provider, "rejected").inc()
                raise
            span.set_attribute("payment.id", webhook.payment_id)

            outcome, payment = await self._apply(provider, webhook)
            WEBHOOKS.labels(provider, outcome.value).inc()
            span.set_attribute("payment.outcome", outcome.value)

        if outcome is ReconcileOutcome.APPLIED and webhook.status is GatewayStatus.SUCCESS:
            await self._after_success(payment, webhook)
        return outcome

    async def _apply(self, provider: str, webhook: WebhookResult) -> tuple[ReconcileOutcome, Payment | None]:
        context = {"provider": provider, "payment_id": webhook.payment_id, "status": webhook.status.value}

        async with self.session_factory() as db:
            payments = PaymentStore(db)
            payment = await payments.get(webhook.payment_id)
            if (
                payment is None
                or payment.payment_method != provider
                or (webhook.order_id is not None and webhook.order_id != payment.order_id)
            ):
                WEBHOOKS.labels(provider, "not_found").inc()
                logger.warning("Webhook for unknown payment", extra={**context, "order_id": webhook.order_id})
                raise PaymentNotFound()

            context["order_id"] = payment.order_id
            if payment.status.is_terminal:
                logger.info("Webhook replay ignored", extra={**context, "current_status": payment.status.value})
                return ReconcileOutcome.DUPLICATE, payment

            if webhook.status is GatewayStatus.PENDING:
                logger.info("Provider reports payment still pending", extra=context)
                return ReconcileOutcome.PENDING, payment

            status = PaymentStatus(webhook.status.value)
            won = await payments.resolve(payment.id, status, webhook.transaction_id, webhook.raw_payload)
            if not won:
                logger.info("Concurrent webhook already resolved payment", extra=context)
                return ReconcileOutcome.DUPLICATE, payment

            orders = OrderStore(db)
            if status is PaymentStatus.SUCCESS:
                if not await orders.mark_paid(payment.order_id):
                    await db.rollback()
                    logger.error("Payment succeeded for an order that is already resolved", extra=context)
                    return ReconcileOutcome.ORDER_ALREADY_RESOLVED, payment
            elif not await orders.mark_failed(payment.order_id):
                logger.info("Order already resolved; recording failed attempt only", extra=context)

            await db.commit()

        logger.info("Payment resolved", extra=context)
        return ReconcileOutcome.APPLIED, payment

    async def _after_success(self, payment: Payment, webhook: WebhookResult) -> None:
        # the payment is committed by now: nothing below may fail the webhook
        has_promo_code = True
        try:
            async with self.session_factory() as db:
                order = await OrderStore(db).get(payment.order_id)
            has_promo_code = order.promo_code_id is not None
            event = PaymentCompletedEvent(
                correlation_id=payment.id,
                order_id=payment.order_id,
                order_number=order_number(payment.order_id),
                payment_id=payment.id,
                user_id=payment.user_id,
                customer_email=order.user.email,
                customer_name=order.user.full_name,
                amount=payment.amount,
                currency=payment.currency,
                payment_method=payment.payment_method,
                transaction_id=webhook.transaction_id,
            )
            await self.notifier.notify(event)
        except Exception as exc:
            NOTIFICATION_FAILURES.labels("notification").inc()
            logger.error(
                "Payment confirmation could not be dispatched",
                extra={"order_id": payment.order_id, "payment_id": payment.id, "error": str(exc)},
            )

        # without the order, record() itself finds out whether a promo code applies
        if self.affiliates is None or not has_promo_code:
            return
        try:
            await self.affiliates.record(payment.order_id)
        except Exception as exc:
            NOTIFICATION_FAILURES.labels("affiliate").inc()
            logger.error(
                "Affiliate commission could not be recorded",
                extra={"order_id": payment.order_id, "error": str(exc)},
            )

    # ---------------------------------------------------------------------------
    # Queries
    # ---------------------------------------------------------------------------

    async def status(self, payment_id: str, user_id: str) -> Payment:
        async with self.session_factory() as db:
            payment = await PaymentStore(db).get_for_owner(payment_id, user_id)
        if payment is None:
            raise PaymentNotFound()
        return payment

    async def verify(
        self, payment_id: str, user_id: str, transaction_reference: str | None = None
    ) -> VerificationResult:
        """Ask the provider for the current status. Advisory: nothing is written."""
        payment = await self.status(payment_id, user_id)
        adapter = self.registry.get(payment.payment_method)
        reference = transaction_reference or payment.provider_reference

        try:
            result = await adapter.verify(payment.id, reference)
        except GatewayError as exc:
            raise VerificationFailed(adapter.method_id, payment.id, exc) from exc

        logger.info(
            "Payment verified with provider",
            extra={
                "payment_id": payment.id,
                "provider": adapter.method_id,
                "provider_status": result.status.value,
                "stored_status": payment.status.value,
            },
        )
        return result
