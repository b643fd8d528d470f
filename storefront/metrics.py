from prometheus_client import Counter

PAYMENT_INITIALIZATIONS = Counter(
    "payment_initializations_total",
    "Payment initialisation attempts",
    ["method", "outcome"],  # created | rejected | failed
)

WEBHOOKS = Counter(
    "payment_webhooks_total",
    "Inbound payment webhooks",
    ["provider", "outcome"],  # applied | duplicate | pending | order_already_resolved | rejected | not_found
)

NOTIFICATION_FAILURES = Counter(
    "payment_notification_failures_total",
    "Best-effort side effects that failed after a successful payment",
    ["effect"],  # notification | affiliate
)
