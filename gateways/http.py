"""
Outbound HTTP for adapters.

Every provider call goes through ``send`` so that timeouts, transport
errors and non-2xx answers surface as GatewayError with a consistent kind,
and so latency is recorded per provider.
"""

import json
import logging
import time
from typing import Any

import httpx
from opentelemetry import trace

from gateways.errors import GatewayError, GatewayErrorKind
from gateways.metrics import GATEWAY_CALLS, GATEWAY_LATENCY

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


async def send(
    client: httpx.AsyncClient,
    provider: str,
    operation: str,
    method: str,
    url: str,
    *,
    expected: tuple[int, ...] = (200, 201, 202),
    **kwargs: Any,
) -> httpx.Response:
    start = time.perf_counter()
    try:
        with tracer.start_as_current_span(f"{provider}.{operation}") as span:
            span.set_attribute("gateway.provider", provider)
            span.set_attribute("http.method", method)
            response = await client.request(method, url, **kwargs)
            span.set_attribute("http.status_code", response.status_code)
    except httpx.TimeoutException as exc:
        _record(provider, operation, "network_failure", start)
        raise GatewayError(provider, GatewayErrorKind.NETWORK_FAILURE, f"timed out calling {operation}") from exc
    except httpx.TransportError as exc:
        _record(provider, operation, "network_failure", start)
        raise GatewayError(provider, GatewayErrorKind.NETWORK_FAILURE, f"{operation}: {exc}") from exc

    if response.status_code not in expected:
        _record(provider, operation, "provider_rejected", start)
        logger.warning(
            "Provider rejected request",
            extra={
                "provider": provider,
                "operation": operation,
                "status_code": response.status_code,
                "body": response.text[:2000],
            },
        )
        raise GatewayError(
            provider,
            GatewayErrorKind.PROVIDER_REJECTED,
            f"{operation} returned HTTP {response.status_code}: {response.text[:500]}",
        )

    _record(provider, operation, "ok", start)
    return response


def json_body(response: httpx.Response, provider: str, operation: str) -> dict[str, Any]:
    try:
        body = response.json()
    except (json.JSONDecodeError, ValueError) as exc:
        GATEWAY_CALLS.labels(provider, operation, "invalid_response").inc()
        raise GatewayError(provider, GatewayErrorKind.INVALID_RESPONSE, f"{operation}: body is not JSON") from exc
    if not isinstance(body, dict):
        GATEWAY_CALLS.labels(provider, operation, "invalid_response").inc()
        raise GatewayError(provider, GatewayErrorKind.INVALID_RESPONSE, f"{operation}: expected a JSON object")
    return body


def _record(provider: str, operation: str, outcome: str, start: float) -> None:
    GATEWAY_CALLS.labels(provider, operation, outcome).inc()
    GATEWAY_LATENCY.labels(provider, operation).observe(time.perf_counter() - start)
