# backend/tutorbook/services/base.py
"""
Shared plumbing for service classes: one transaction per operation and
per-operation timing exported to Prometheus.
"""

from contextlib import contextmanager
from dataclasses import dataclass
from functools import wraps
import logging
import time
from typing import Any, Callable, Dict, Iterator, Optional, TypeVar, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ..core.exceptions import ConflictException, ServiceException
from ..monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

SLOW_OPERATION_SECONDS = 1.0


@dataclass
class OperationStats:
    """Running timings for one (service, operation) pair."""

    calls: int = 0
    failures: int = 0
    total: float = 0.0
    fastest: float = float("inf")
    slowest: float = 0.0

    def add(self, elapsed: float, ok: bool) -> None:
        self.calls += 1
        self.total += elapsed
        self.fastest = min(self.fastest, elapsed)
        self.slowest = max(self.slowest, elapsed)
        if not ok:
            self.failures += 1

    def summary(self) -> Dict[str, Any]:
        return {
            "count": self.calls,
            "avg_time": self.total / self.calls,
            "min_time": self.fastest,
            "max_time": self.slowest,
            "success_rate": (self.calls - self.failures) / self.calls,
            "failure_count": self.failures,
        }


class BaseService:
    """Holds the session and the transaction/measurement helpers."""

    # keyed by service class name, then operation name
    _stats: Dict[str, Dict[str, OperationStats]] = {}

    def __init__(self, db: Session):
        self.db = db
        self.logger = logging.getLogger(self.__class__.__name__)

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """
        Run the enclosed block as one unit of work.

        Commits when the block exits normally. On any exception the session
        is rolled back; SQLAlchemy errors surface as ServiceException, domain
        errors pass through untouched.
        """
        try:
            yield self.db
            self.db.commit()
        except SQLAlchemyError as e:
            self.logger.error(f"Rolling back after store error: {e}")
            self.db.rollback()
            raise ServiceException(f"Database operation failed: {e}") from e
        except Exception:
            self.db.rollback()
            raise
        self.logger.debug("Transaction committed")

    def flush_or_conflict(self, what: str = "record") -> None:
        """
        Flush pending changes, turning a version mismatch into a 409.

        Versioned rows only update when the version read is still current;
        a concurrent commit in between makes the flush match zero rows.
        """
        try:
            self.db.flush()
        except StaleDataError as exc:
            self.logger.warning(f"Stale write rejected for {what}: {exc}")
            raise ConflictException(
                f"The {what} was changed by another request, please retry",
                code="STALE_WRITE",
            ) from exc

    @staticmethod
    def measure_operation(operation_name: str) -> Callable[[F], F]:
        """Time the wrapped method and report it under ``operation_name``."""

        def decorator(func: F) -> F:
            @wraps(func)
            def wrapper(self: "BaseService", *args: Any, **kwargs: Any) -> Any:
                started = time.perf_counter()
                error_type: Optional[str] = None
                try:
                    return func(self, *args, **kwargs)
                except Exception as e:
                    error_type = type(e).__name__
                    raise
                finally:
                    self._observe(operation_name, time.perf_counter() - started, error_type)

            return cast(F, wrapper)

        return decorator

    def _observe(self, operation: str, elapsed: float, error_type: Optional[str]) -> None:
        service = self.__class__.__name__
        per_service = BaseService._stats.setdefault(service, {})
        per_service.setdefault(operation, OperationStats()).add(elapsed, error_type is None)

        if elapsed > SLOW_OPERATION_SECONDS:
            self.logger.warning(f"Slow operation detected: {operation} took {elapsed:.2f}s")

        prometheus_metrics.record_service_operation(
            service=service,
            operation=operation,
            duration=elapsed,
            status="error" if error_type else "success",
            error_type=error_type,
        )

    def log_operation(self, operation: str, **context: Any) -> None:
        self.logger.info(f"Operation: {operation}", extra={"operation": operation, **context})

    def get_metrics(self) -> Dict[str, Any]:
        """Per-operation summaries for this service class."""
        stats = BaseService._stats.get(self.__class__.__name__, {})
        return {name: entry.summary() for name, entry in stats.items() if entry.calls}
