from gateways.base import (
    GatewayAdapter,
    GatewayStatus,
    InitiationRequest,
    InitiationResult,
    MethodDescriptor,
    MethodType,
    VerificationResult,
    WebhookResult,
)
from gateways.errors import (
    GatewayError,
    GatewayErrorKind,
    SignatureInvalid,
    UnknownWebhookSource,
    UnparseablePayload,
    UnsupportedMethod,
    VerificationUnavailable,
    WebhookError,
)
from gateways.registry import GatewayRegistry, build_registry

__all__ = [
    "GatewayAdapter",
    "GatewayError",
    "GatewayErrorKind",
    "GatewayRegistry",
    "GatewayStatus",
    "InitiationRequest",
    "InitiationResult",
    "MethodDescriptor",
    "MethodType",
    "SignatureInvalid",
    "UnknownWebhookSource",
    "UnparseablePayload",
    "UnsupportedMethod",
    "VerificationResult",
    "VerificationUnavailable",
    "WebhookError",
    "WebhookResult",
    "build_registry",
]
