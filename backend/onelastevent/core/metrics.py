"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Registration metrics
registration_attempts = Counter(
    'registration_attempts_total',
    'Total event registration attempts',
    ['result']  # confirmed, pending, full, rejected
)

registration_latency = Histogram(
    'registration_latency_seconds',
    'Registration use case latency',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

# Capacity metrics
capacity_reservations = Counter(
    'capacity_reservations_total',
    'Capacity check-and-increment outcomes',
    ['result']  # reserved, full
)

capacity_releases = Counter(
    'capacity_releases_total',
    'Capacity slots released back to events'
)

# Payment metrics
payment_transitions = Counter(
    'payment_transitions_total',
    'Payment status transitions',
    ['status']  # PAID, FAILED, REFUNDED
)

provider_callbacks = Counter(
    'provider_callbacks_total',
    'Payment provider callbacks received',
    ['type', 'outcome']  # outcome: applied, duplicate, ignored
)

processor_failures = Counter(
    'payment_processor_failures_total',
    'Failed calls to the external payment processor',
    ['operation']  # create_intent, refund
)

# Cache metrics
cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set, hit/miss
)


def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_registration(result: str):
    """Record registration attempt. Result: confirmed, pending, full, rejected"""
    registration_attempts.labels(result=result).inc()


def record_reservation(reserved: bool):
    result = "reserved" if reserved else "full"
    capacity_reservations.labels(result=result).inc()


def record_payment_transition(status: str):
    payment_transitions.labels(status=status).inc()


def record_provider_callback(event_type: str, outcome: str):
    provider_callbacks.labels(type=event_type, outcome=outcome).inc()


def record_cache_operation(operation: str, hit: bool):
    """Record cache operation."""
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()
