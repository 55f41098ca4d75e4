"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Reservation metrics
booking_attempts = Counter(
    'booking_attempts_total',
    'Total booking attempts',
    ['status']  # success, conflict, rejected, error
)

booking_latency = Histogram(
    'booking_latency_seconds',
    'Reservation transaction latency',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

# Lifecycle metrics
settlements = Counter(
    'booking_settlements_total',
    'Staff settlement decisions',
    ['outcome']  # success, rejected
)

payment_uploads = Counter(
    'payment_proof_uploads_total',
    'Payment proof upload attempts',
    ['result']  # accepted, conflict, expired, invalid_state
)

bookings_expired = Counter(
    'bookings_expired_total',
    'Bookings moved to expired by the reaper'
)

seats_released = Counter(
    'seats_released_total',
    'Seats returned to the ledger',
    ['reason']  # expired, rejected
)

reaper_last_run = Gauge(
    'reaper_last_run_timestamp_seconds',
    'Unix time of the last successful reaper run'
)

# Database metrics
db_read_retries = Counter(
    'db_read_retry_attempts_total',
    'Read-only query retries after transient storage errors'
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


def record_booking_attempt(status: str):
    """Record booking attempt. Status: success, conflict, rejected, error"""
    booking_attempts.labels(status=status).inc()


def record_settlement(outcome: str):
    settlements.labels(outcome=outcome).inc()


def record_payment_upload(result: str):
    payment_uploads.labels(result=result).inc()


def record_seats_released(reason: str, count: int):
    if count:
        seats_released.labels(reason=reason).inc(count)


def record_cache_operation(operation: str, hit: bool):
    """Record cache operation."""
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()
