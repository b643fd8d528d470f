import logging
from dataclasses import asdict
from datetime import datetime

from fastapi import APIRouter, Depends, Query, Request

from storefront.dependencies import get_current_user, get_orchestrator
from storefront.models.user import User
from storefront.schemas.payment import (
    InitializePaymentRequest,
    InitializePaymentResponse,
    OrderSummary,
    PaymentMethodResponse,
    PaymentMethodsResponse,
    PaymentStatusResponse,
    VerifyPaymentRequest,
    VerifyPaymentResponse,
    WebhookResponse,
)
from storefront.services.orchestrator import PaymentOrchestrator

router = APIRouter()
logger = logging.getLogger(__name__)


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "unknown")


@router.get("/methods", response_model=PaymentMethodsResponse)
async def list_methods(
    country: str | None = Query(default=None, min_length=2, max_length=2),
    orchestrator: PaymentOrchestrator = Depends(get_orchestrator),
) -> PaymentMethodsResponse:
    country, currency, methods = orchestrator.list_methods(country)
    return PaymentMethodsResponse(
        country=country,
        currency=currency,
        payment_methods=[PaymentMethodResponse(**asdict(method)) for method in methods],
    )


@router.post("/initialize", response_model=InitializePaymentResponse)
async def initialize_payment(
    body: InitializePaymentRequest,
    request: Request,
    user: User = Depends(get_current_user),
    orchestrator: PaymentOrchestrator = Depends(get_orchestrator),
) -> InitializePaymentResponse:
    logger.info(
        "Received initialize_payment request",
        extra={
            "request_id": _request_id(request),
            "order_id": body.order_id,
            "payment_method": body.payment_method,
        },
    )
    result = await orchestrator.initialize(
        body.order_id,
        user,
        body.payment_method,
        return_url=body.return_url,
        phone_number=body.phone_number,
    )
    return InitializePaymentResponse(
        payment_id=result.payment_id,
        payment_url=result.payment_url,
        payment_method=result.payment_method,
        amount=result.amount,
        currency=result.currency,
        expires_at=result.expires_at,
        instructions=result.instructions,
    )


@router.post("/webhook", response_model=WebhookResponse)
async def payment_webhook(
    request: Request,
    orchestrator: PaymentOrchestrator = Depends(get_orchestrator),
) -> WebhookResponse:
    # unauthenticated: providers are identified by marker header and signature
    body = await request.body()
    outcome = await orchestrator.reconcile(request.headers, body)
    logger.info(
        "Webhook processed",
        extra={"request_id": _request_id(request), "outcome": outcome.value},
    )
    return WebhookResponse(outcome=outcome.value)


@router.get("/status/{payment_id}", response_model=PaymentStatusResponse)
async def payment_status(
    payment_id: str,
    user: User = Depends(get_current_user),
    orchestrator: PaymentOrchestrator = Depends(get_orchestrator),
) -> PaymentStatusResponse:
    payment = await orchestrator.status(payment_id, user.id)
    return PaymentStatusResponse(
        payment_id=payment.id,
        status=payment.status,
        amount=payment.amount,
        currency=payment.currency,
        payment_method=payment.payment_method,
        created_at=payment.created_at,
        processed_at=payment.processed_at,
        order=OrderSummary.model_validate(payment.order),
    )


@router.post("/verify", response_model=VerifyPaymentResponse)
async def verify_payment(
    body: VerifyPaymentRequest,
    request: Request,
    user: User = Depends(get_current_user),
    orchestrator: PaymentOrchestrator = Depends(get_orchestrator),
) -> VerifyPaymentResponse:
    logger.info(
        "Received verify_payment request",
        extra={"request_id": _request_id(request), "payment_id": body.payment_id},
    )
    result = await orchestrator.verify(body.payment_id, user.id, body.transaction_reference)
    return VerifyPaymentResponse(
        payment_id=result.payment_id,
        verification_status=result.status,
        gateway_response=result.raw_response,
        verified_at=datetime.utcnow(),
    )
