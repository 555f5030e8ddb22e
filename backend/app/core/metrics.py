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
    ['status']  # success, capacity_exceeded, rejected
)

booking_latency = Histogram(
    'booking_latency_seconds',
    'Booking request latency',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

# Capacity ledger metrics
capacity_retries = Counter(
    'capacity_retry_attempts_total',
    'Reservation retries due to version conflicts'
)

# Payment verification
payment_decisions = Counter(
    'payment_decisions_total',
    'Organizer payment decisions',
    ['decision']  # approve, reject, refund, void
)

# Check-in metrics
checkin_results = Counter(
    'checkin_results_total',
    'Check-in outcomes',
    ['kind']  # success, already_checked_in, warning, error
)

# Achievements
achievements_awarded = Counter(
    'achievements_awarded_total',
    'Badges and borders awarded',
    ['artifact']  # badge, border
)

# Background worker pool
background_jobs = Counter(
    'background_jobs_total',
    'Background job outcomes',
    ['job', 'result']  # succeeded, retried, failed, dropped
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


# Convenience functions for instrumentation
def record_booking_attempt(status: str):
    """Record booking attempt. Status: success, capacity_exceeded, rejected"""
    booking_attempts.labels(status=status).inc()

def record_checkin(kind: str):
    checkin_results.labels(kind=kind).inc()

def record_award(artifact: str, count: int = 1):
    if count:
        achievements_awarded.labels(artifact=artifact).inc(count)

def record_background_job(job: str, result: str):
    background_jobs.labels(job=job, result=result).inc()

def record_cache_operation(operation: str, hit: bool):
    """Record cache operation."""
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()
