"""
Prometheus instrumentation, served at /metrics.

Side effects that are allowed to fail (calendar blocking, emails, counter
decrements) are counted here so a silent failure still shows up on a
dashboard.
"""

from fastapi import Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest

# status: success, conflict, rejected, error
booking_attempts = Counter("booking_attempts", "Booking creation attempts by outcome", ["status"])

booking_latency = Histogram(
    "booking_latency_seconds",
    "Time spent admitting a booking",
    buckets=(0.002, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

admission_requests = Counter("admission_requests", "Admission gate answers", ["result"])

status_transitions = Counter("status_transitions", "Stored booking status changes", ["status"])

# effect: calendar, notification, counter
side_effect_failures = Counter("side_effect_failures", "Best-effort side effects that failed", ["effect"])

notifications = Counter("notifications", "Member notifications by result", ["result"])

cache_operations = Counter("cache_operations", "Redis cache reads and writes", ["operation", "result"])

redis_connection_errors = Counter("redis_connection_errors", "Failed Redis round trips")

redis_circuit_breaker_open = Gauge("redis_circuit_breaker_open", "1 while Redis calls are short-circuited")


def metrics_endpoint() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


def record_booking_attempt(status: str):
    booking_attempts.labels(status=status).inc()


def record_admission(admitted: bool):
    admission_requests.labels(result="admitted" if admitted else "rejected").inc()


def record_status_transition(status: str):
    status_transitions.labels(status=status).inc()


def record_side_effect_failure(effect: str):
    side_effect_failures.labels(effect=effect).inc()


def record_notification(result: str):
    notifications.labels(result=result).inc()


def record_cache_operation(operation: str, hit: bool):
    cache_operations.labels(operation=operation, result="hit" if hit else "miss").inc()
