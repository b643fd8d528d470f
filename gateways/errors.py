"""
Exception taxonomy for the gateway layer.

Adapters raise these; the orchestrator wraps them with order context
before they reach the HTTP layer.
"""

from enum import Enum


class GatewayErrorKind(str, Enum):
    NETWORK_FAILURE = "network_failure"
    INVALID_RESPONSE = "invalid_response"
    PROVIDER_REJECTED = "provider_rejected"
    NOT_CONFIGURED = "not_configured"


class GatewayError(Exception):
    """A call to an external payment provider did not produce a usable answer."""

    def __init__(self, provider: str, kind: GatewayErrorKind, detail: str) -> None:
        super().__init__(f"{provider}: {kind.value}: {detail}")
        self.provider = provider
        self.kind = kind
        self.detail = detail


class WebhookError(Exception):
    """Base class for inbound notifications that must be rejected."""

    def __init__(self, provider: str, detail: str) -> None:
        super().__init__(f"{provider}: {detail}")
        self.provider = provider
        self.detail = detail


class SignatureInvalid(WebhookError):
    """Checksum or signature on a webhook did not match."""


class UnparseablePayload(WebhookError):
    """Webhook body could not be decoded or lacks required fields."""


class VerificationUnavailable(Exception):
    """Provider exposes no query endpoint; status is only known via webhook."""

    def __init__(self, provider: str) -> None:
        super().__init__(f"{provider}: verification must rely on webhook")
        self.provider = provider


class UnsupportedMethod(Exception):
    """Payment method unknown, or not offered in the requested country."""

    def __init__(self, method_id: str, country: str | None) -> None:
        super().__init__(f"Payment method {method_id!r} is not available for country {country!r}")
        self.method_id = method_id
        self.country = country


class UnknownWebhookSource(Exception):
    """No registered adapter recognises the inbound webhook."""
