"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Booking metrics
booking_attempts = Counter(
    'booking_attempts_total',
    'Total booking attempts',
    ['status']  # success, capacity_exceeded, not_found, error
)

booking_latency = Histogram(
    'booking_latency_seconds',
    'Booking request latency',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

booking_cancellations = Counter(
    'booking_cancellations_total',
    'Booking cancellation attempts',
    ['result']  # cancelled or a lower-cased error code
)

# Ticket scanning metrics
ticket_validations = Counter(
    'ticket_validations_total',
    'Ticket validation outcomes',
    ['outcome']  # valid or a failure reason code
)

ticket_check_ins = Counter(
    'ticket_check_ins_total',
    'Ticket check-in outcomes',
    ['outcome']  # checked_in or a failure reason code
)

# Database metrics
db_retries = Counter(
    'db_transaction_retries_total',
    'Transactions retried after a persistence error',
    ['operation']  # create_booking, cancel_booking, check_in
)

# Cache metrics
cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set, hit/miss
)

# Notification metrics
notification_failures = Counter(
    'notification_failures_total',
    'Notifications that could not be delivered',
    ['kind']  # booking_confirmed, booking_checked_in
)


def metrics_endpoint() -> Response:
    """
    Prometheus metrics endpoint.

    Usage:
        @app.get("/metrics")
        def metrics():
            return metrics_endpoint()
    """
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )

# Convenience functions for instrumentation
def record_booking_attempt(status: str):
    """Record booking attempt. Status: success, capacity_exceeded, not_found, error"""
    booking_attempts.labels(status=status).inc()

def record_cancellation(result: str):
    booking_cancellations.labels(result=result).inc()

def record_validation(outcome: str):
    ticket_validations.labels(outcome=outcome).inc()

def record_check_in(outcome: str):
    ticket_check_ins.labels(outcome=outcome).inc()

def record_db_retry(operation: str):
    """Record a transaction retry. Operation: create_booking, cancel_booking, check_in"""
    db_retries.labels(operation=operation).inc()

def record_cache_operation(operation: str, hit: bool):
    """Record cache operation."""
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()

def record_notification_failure(kind: str):
    notification_failures.labels(kind=kind).inc()
