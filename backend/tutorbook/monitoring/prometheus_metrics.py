"""
Prometheus instrumentation for the booking engine.

Operation timings come from ``BaseService.measure_operation``. The two
domain counters cover overlap rejections and teacher-lock contention.
"""

from threading import Lock
from time import monotonic
from typing import Optional, Tuple, cast

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

# Own registry so re-importing the app in tests does not hit duplicate names
REGISTRY = CollectorRegistry()

OPERATION_BUCKETS = (0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5)

service_operation_duration_seconds = Histogram(
    "tutorbook_service_operation_duration_seconds",
    "Wall time of a service operation",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=OPERATION_BUCKETS,
)

service_operations_total = Counter(
    "tutorbook_service_operations_total",
    "Service operations by outcome",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "tutorbook_errors_total",
    "Service operations that raised, by exception class",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

booking_conflicts_total = Counter(
    "tutorbook_booking_conflicts_total",
    "Bookings rejected because they overlap an active booking",
    ["operation"],  # create | reschedule
    registry=REGISTRY,
)

teacher_lock_events_total = Counter(
    "tutorbook_teacher_lock_events_total",
    "Teacher serialization lock events",
    ["backend", "outcome"],  # backend: local | redis
    registry=REGISTRY,
)


class PrometheusMetrics:
    """
    Recording helpers plus a scrape endpoint payload.

    ``get_metrics`` memoizes the exposition text for a second; any recorded
    sample drops the memo so the next scrape is fresh.
    """

    SNAPSHOT_TTL_SECONDS = 1.0

    _lock = Lock()
    _snapshot: Optional[Tuple[float, bytes]] = None

    @classmethod
    def _touch(cls) -> None:
        with cls._lock:
            cls._snapshot = None

    @classmethod
    def record_service_operation(
        cls,
        service: str,
        operation: str,
        duration: float,
        status: str = "success",
        error_type: Optional[str] = None,
    ) -> None:
        service_operation_duration_seconds.labels(service, operation).observe(duration)
        service_operations_total.labels(service, operation, status).inc()
        if status == "error" and error_type:
            errors_total.labels(service, operation, error_type).inc()
        cls._touch()

    @classmethod
    def record_booking_conflict(cls, operation: str) -> None:
        booking_conflicts_total.labels(operation=operation).inc()
        cls._touch()

    @classmethod
    def record_teacher_lock(cls, backend: str, outcome: str) -> None:
        # outcome: acquired | timeout | released | unavailable | error
        teacher_lock_events_total.labels(backend=backend, outcome=outcome).inc()
        cls._touch()

    @classmethod
    def get_metrics(cls) -> bytes:
        with cls._lock:
            now = monotonic()
            if cls._snapshot is not None and now - cls._snapshot[0] <= cls.SNAPSHOT_TTL_SECONDS:
                return cls._snapshot[1]
            payload = cast(bytes, generate_latest(REGISTRY))
            cls._snapshot = (now, payload)
            return payload

    @staticmethod
    def get_content_type() -> str:
        return cast(str, CONTENT_TYPE_LATEST)


prometheus_metrics = PrometheusMetrics()
