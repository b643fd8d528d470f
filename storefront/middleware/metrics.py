import re
import time

from prometheus_client import Counter, Histogram
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)

# upper buckets cover the provider timeout on /payments/initialize and /payments/verify
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "path"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 15.0],
)

_UNTRACKED = frozenset({"/metrics", "/health"})

_ROUTES = [
    (re.compile(r"^/payments/status/[^/]+/?$"), "/payments/status/{payment_id}"),
    (re.compile(r"^/payments/(methods|initialize|webhook|verify)/?$"), None),
]


def route_label(path: str, status_code: int) -> str:
    """Known payment routes keep their template; anything else collapses to one label."""
    for pattern, template in _ROUTES:
        if pattern.match(path):
            return template or path.rstrip("/")
    return "unmatched" if status_code == 404 else "other"


class MetricsMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        if request.url.path in _UNTRACKED:
            return await call_next(request)

        start = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - start

        path = route_label(request.url.path, response.status_code)
        REQUEST_COUNT.labels(method=request.method, path=path, status=str(response.status_code)).inc()
        REQUEST_LATENCY.labels(method=request.method, path=path).observe(elapsed)
        return response
