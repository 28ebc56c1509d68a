"""Prometheus metric definitions shared across the relay."""

from prometheus_client import Counter, Histogram, generate_latest
from starlette.responses import Response


http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["service", "route", "method", "status_code"],
)
http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration seconds",
    ["service", "route", "method"],
)
upstream_requests_total = Counter(
    "upstream_requests_total",
    "Outbound calls by dependency and result",
    ["dependency", "result"],
)
upstream_request_duration_seconds = Histogram(
    "upstream_request_duration_seconds",
    "Outbound call duration seconds",
    ["dependency"],
)
token_refresh_total = Counter("token_refresh_total", "Accounting access token refreshes", ["result"])
hosted_token_requests_total = Counter(
    "hosted_token_requests_total",
    "Hosted payment page token requests",
    ["result"],
)
webhook_signature_failures_total = Counter(
    "webhook_signature_failures_total",
    "Webhook deliveries rejected on signature check",
)
reconciliation_outcomes_total = Counter(
    "reconciliation_outcomes_total",
    "Reconciliation outcomes for capture events",
    ["service", "outcome"],
)


def metrics_response() -> Response:
    """Expose all registered Prometheus metrics in text format."""

    return Response(content=generate_latest(), media_type="text/plain")
