"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from fastapi import Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

# Allocation outcomes
booking_outcomes = Counter(
    'ticket_booking_outcomes_total',
    'Book requests by outcome',
    ['outcome']  # booked, waitlisted
)

cancellation_outcomes = Counter(
    'ticket_cancellation_outcomes_total',
    'Cancellations by outcome',
    ['outcome']  # promoted, released
)

allocation_failures = Counter(
    'ticket_allocation_failures_total',
    'Allocation operations that raised, by error code',
    ['operation', 'code']
)

allocation_latency = Histogram(
    'ticket_allocation_latency_seconds',
    'Time spent inside the allocation transaction',
    ['operation'],
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 5.0]
)

# Notifications
notification_deliveries = Counter(
    'ticket_notification_deliveries_total',
    'Notification delivery attempts',
    ['result']  # sent, failed, skipped
)

# Cache metrics
cache_operations = Counter(
    'ticket_cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set, hit/miss
)


def metrics_endpoint() -> Response:
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_booking_outcome(outcome: str):
    """Outcome: booked, waitlisted"""
    booking_outcomes.labels(outcome=outcome).inc()


def record_cancellation_outcome(outcome: str):
    """Outcome: promoted, released"""
    cancellation_outcomes.labels(outcome=outcome).inc()


def record_allocation_failure(operation: str, code: str):
    allocation_failures.labels(operation=operation, code=code).inc()


def record_notification(result: str):
    """Result: sent, failed, skipped"""
    notification_deliveries.labels(result=result).inc()


def record_cache_operation(operation: str, hit: bool):
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()
