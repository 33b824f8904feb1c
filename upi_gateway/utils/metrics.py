"""
Prometheus metrics for observability
"""

import re
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from prometheus_client.core import CollectorRegistry

# Custom registry so test imports never collide with the default one
metrics_registry = CollectorRegistry()

# HTTP request metrics
http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["path", "method", "status"],
    registry=metrics_registry,
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["path", "method"],
    registry=metrics_registry,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# Payment lifecycle metrics
payments_created_total = Counter(
    "payments_created_total",
    "Total payments created",
    ["bank", "method"],
    registry=metrics_registry,
)

payment_transitions_total = Counter(
    "payment_transitions_total",
    "Total payment status transitions",
    ["source", "status"],  # source: reconciliation, webhook, callback, refund, cancel, expiry
    registry=metrics_registry,
)

# Bank adapter metrics
bank_fallback_total = Counter(
    "bank_fallback_total",
    "Bank API calls answered by the local fallback instead of the bank",
    ["bank", "operation"],  # operation: create, status
    registry=metrics_registry,
)

bank_refund_failures_total = Counter(
    "bank_refund_failures_total",
    "Bank refund calls that did not reach the bank or got no usable answer",
    ["bank", "reason"],  # http_error, transport_error
    registry=metrics_registry,
)

# Webhook metrics
bank_webhook_received_total = Counter(
    "bank_webhook_received_total",
    "Total bank webhook requests with a verified signature",
    ["bank"],
    registry=metrics_registry,
)

bank_webhook_rejected_total = Counter(
    "bank_webhook_rejected_total",
    "Total bank webhook requests rejected",
    ["bank", "reason"],  # signature_invalid, unknown_provider, invalid_payload, not_found
    registry=metrics_registry,
)

# Rate limiting metrics
rate_limited_total = Counter(
    "rate_limited_total",
    "Total requests rate limited",
    ["group"],  # webhook, api
    registry=metrics_registry,
)


def record_http_request(
    path: str,
    method: str,
    status_code: int,
    duration_seconds: float,
) -> None:
    """
    Record HTTP request metrics.

    Args:
        path: Request path (normalized)
        method: HTTP method
        status_code: Response status code
        duration_seconds: Request duration in seconds
    """
    normalized_path = _normalize_path(path)

    http_requests_total.labels(
        path=normalized_path,
        method=method.upper(),
        status=str(status_code),
    ).inc()

    http_request_duration_seconds.labels(
        path=normalized_path,
        method=method.upper(),
    ).observe(duration_seconds)


def record_payment_created(bank: str, method: str) -> None:
    """Record a newly created payment"""
    payments_created_total.labels(bank=bank, method=method).inc()


def record_payment_transition(source: str, status: str) -> None:
    """
    Record a payment status transition.

    Args:
        source: What applied the transition (reconciliation, webhook, refund, ...)
        status: New status
    """
    payment_transitions_total.labels(source=source, status=status).inc()


def record_bank_fallback(bank: str, operation: str) -> None:
    """Record a bank call answered locally (simulated or PENDING fallback)"""
    bank_fallback_total.labels(bank=bank, operation=operation).inc()


def record_bank_refund_failure(bank: str, reason: str) -> None:
    bank_refund_failures_total.labels(bank=bank, reason=reason).inc()


def record_webhook_received(bank: str) -> None:
    """Record webhook with a verified signature"""
    bank_webhook_received_total.labels(bank=bank).inc()


def record_webhook_rejected(bank: str, reason: str) -> None:
    """
    Record webhook rejection.

    Args:
        bank: Bank code, or the raw X-Bank-Name value for the generic endpoint
        reason: Rejection reason (signature_invalid, unknown_provider, ...)
    """
    bank_webhook_rejected_total.labels(bank=bank, reason=reason).inc()


def record_rate_limit_exceeded(group: str) -> None:
    """
    Record rate limit exceeded.

    Args:
        group: Endpoint group (webhook, api)
    """
    rate_limited_total.labels(group=group).inc()


def _normalize_path(path: str) -> str:
    """
    Normalize path for metrics (replace transaction ids and UUIDs with placeholders).

    Examples:
        /api/v1/payments -> /api/v1/payments
        /api/v1/payments/TXN1718000000000A1B2C3 -> /api/v1/payments/{id}
        /api/v1/payments/TXN1718000000000A1B2C3/refund -> /api/v1/payments/{id}/refund
    """
    path = re.sub(
        r'[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}',
        '{id}',
        path,
        flags=re.IGNORECASE,
    )
    path = re.sub(r'/TXN[0-9A-Z]+', '/{id}', path)
    path = re.sub(r'/\d+', '/{id}', path)

    return path


def get_metrics_output() -> bytes:
    """Get Prometheus metrics output"""
    return generate_latest(metrics_registry)


__all__ = [
    "CONTENT_TYPE_LATEST",
    "get_metrics_output",
    "record_http_request",
    "record_payment_created",
    "record_payment_transition",
    "record_bank_fallback",
    "record_bank_refund_failure",
    "record_webhook_received",
    "record_webhook_rejected",
    "record_rate_limit_exceeded",
]
