from prometheus_client import Counter, Histogram

GATEWAY_CALLS = Counter(
    "gateway_calls_total",
    "Outbound calls to payment providers",
    ["provider", "operation", "outcome"],  # ok | network_failure | provider_rejected | invalid_response
)

GATEWAY_LATENCY = Histogram(
    "gateway_call_duration_seconds",
    "Outbound payment provider call latency",
    ["provider", "operation"],
    buckets=[0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 20.0],
)
