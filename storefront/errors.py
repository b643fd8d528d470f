"""
Application errors and their HTTP translation.

Responses share one envelope: ``{"success": false, "error": {code, message, field?}}``.
Gateway internals never reach the response body; they are logged here.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from gateways.errors import (
    GatewayError,
    GatewayErrorKind,
    UnknownWebhookSource,
    UnsupportedMethod,
    VerificationUnavailable,
    WebhookError,
)

logger = logging.getLogger(__name__)


class StorefrontError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "INTERNAL_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(StorefrontError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class NotFoundError(StorefrontError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"


class OrderNotFound(NotFoundError):
    def __init__(self) -> None:
        super().__init__("Order not found")


class PaymentNotFound(NotFoundError):
    def __init__(self) -> None:
        super().__init__("Payment not found")


class AlreadyProcessed(StorefrontError):
    status_code = status.HTTP_409_CONFLICT
    code = "ALREADY_PROCESSED"

    def __init__(self) -> None:
        super().__init__("Order payment has already been processed")


class PaymentInitFailed(StorefrontError):
    """Wraps any adapter failure during initiation; ``cause`` is for logs only."""

    status_code = status.HTTP_502_BAD_GATEWAY
    code = "PAYMENT_INIT_FAILED"

    def __init__(self, provider: str, order_id: str, cause: Exception | None = None) -> None:
        super().__init__("Payment initialization failed")
        self.provider = provider
        self.order_id = order_id
        self.cause = cause


class VerificationFailed(StorefrontError):
    status_code = status.HTTP_502_BAD_GATEWAY
    code = "VERIFICATION_FAILED"

    def __init__(self, provider: str, payment_id: str, cause: Exception | None = None) -> None:
        super().__init__("Payment verification failed")
        self.provider = provider
        self.payment_id = payment_id
        self.cause = cause


def _envelope(status_code: int, code: str, message: str, field: str | None = None) -> JSONResponse:
    error = {"code": code, "message": message}
    if field:
        error["field"] = field
    return JSONResponse(status_code=status_code, content={"success": False, "error": error})


def _context(request: Request) -> dict:
    return {
        "path": request.url.path,
        "method": request.method,
        "request_id": getattr(request.state, "request_id", "unknown"),
    }


async def _storefront_error(request: Request, exc: StorefrontError) -> JSONResponse:
    if isinstance(exc, (PaymentInitFailed, VerificationFailed)):
        logger.error(
            exc.message,
            extra={**_context(request), "provider": exc.provider, "cause": repr(exc.cause)},
        )
    elif isinstance(exc, ValidationError):
        logger.info("Validation error", extra={**_context(request), "error": exc.message, "field": exc.field})
    else:
        logger.warning("Client error", extra={**_context(request), "code": exc.code, "error": exc.message})
    return _envelope(exc.status_code, exc.code, exc.message, getattr(exc, "field", None))


async def _request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    loc = [str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path", "header")]
    field = ".".join(loc) or None
    message = first.get("msg", "Invalid request")
    logger.info("Validation error", extra={**_context(request), "error": message, "field": field})
    return _envelope(status.HTTP_400_BAD_REQUEST, "VALIDATION_ERROR", message, field)


async def _unsupported_method(request: Request, exc: UnsupportedMethod) -> JSONResponse:
    logger.info("Unsupported payment method", extra={**_context(request), "method": exc.method_id})
    return _envelope(
        status.HTTP_400_BAD_REQUEST, "UNSUPPORTED_METHOD", "Unsupported payment method", "payment_method"
    )


async def _webhook_rejected(request: Request, exc: Exception) -> JSONResponse:
    logger.warning("Webhook rejected", extra={**_context(request), "reason": str(exc)})
    return _envelope(status.HTTP_400_BAD_REQUEST, "WEBHOOK_REJECTED", "Webhook rejected")


async def _gateway_error(request: Request, exc: GatewayError) -> JSONResponse:
    logger.error(
        "Payment provider error",
        extra={**_context(request), "provider": exc.provider, "kind": exc.kind.value, "detail": exc.detail},
    )
    if exc.kind is GatewayErrorKind.NOT_CONFIGURED:
        return _envelope(status.HTTP_503_SERVICE_UNAVAILABLE, "GATEWAY_UNAVAILABLE", "Payment provider unavailable")
    return _envelope(status.HTTP_502_BAD_GATEWAY, "GATEWAY_ERROR", "Payment provider error")


async def _verification_unavailable(request: Request, exc: VerificationUnavailable) -> JSONResponse:
    logger.info("Verification unavailable", extra={**_context(request), "provider": exc.provider})
    return _envelope(
        status.HTTP_409_CONFLICT,
        "VERIFICATION_UNAVAILABLE",
        "This payment method cannot be verified on demand; its status is updated by the provider",
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, _request_validation)
    app.add_exception_handler(StorefrontError, _storefront_error)
    app.add_exception_handler(UnsupportedMethod, _unsupported_method)
    app.add_exception_handler(WebhookError, _webhook_rejected)
    app.add_exception_handler(UnknownWebhookSource, _webhook_rejected)
    app.add_exception_handler(GatewayError, _gateway_error)
    app.add_exception_handler(VerificationUnavailable, _verification_unavailable)
