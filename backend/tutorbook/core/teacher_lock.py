"""
Per-teacher serialization point for booking mutations.

Any operation that can occupy or free a teacher's time (create, reschedule,
status changes) runs inside ``teacher_lock(teacher_id)``. Two layers:

- an in-process ``threading.Lock`` per teacher, always taken and dropped
  again once no request holds or waits for it;
- a Redis lock on ``teacher:{id}:bookings`` when ``REDIS_URL`` is set, so
  several worker processes serialize too.

If Redis cannot be reached the in-process lock still applies and a warning
is logged; the unique index on the bookings table backs both up.
"""

from __future__ import annotations

from contextlib import contextmanager
import logging
import threading
from typing import Dict, Iterator, Optional, Tuple

from redis import Redis
from redis.exceptions import LockError, RedisError
from redis.lock import Lock as RedisLock

from ..monitoring.prometheus_metrics import prometheus_metrics
from .config import settings
from .exceptions import BookingConflictException

logger = logging.getLogger(__name__)

# teacher_id -> (lock, holders + waiters); dropped when the count reaches zero
_LOCAL_LOCKS: Dict[str, Tuple[threading.Lock, int]] = {}
_LOCAL_LOCKS_GUARD = threading.Lock()

_SYNC_REDIS: Optional[Redis] = None
_SYNC_REDIS_LOCK = threading.Lock()


def _lock_key(teacher_id: str) -> str:
    return f"teacher:{teacher_id}:bookings"


def _checkout_local_lock(teacher_id: str) -> threading.Lock:
    with _LOCAL_LOCKS_GUARD:
        entry = _LOCAL_LOCKS.get(teacher_id)
        lock, users = entry if entry is not None else (threading.Lock(), 0)
        _LOCAL_LOCKS[teacher_id] = (lock, users + 1)
        return lock


def _return_local_lock(teacher_id: str) -> None:
    with _LOCAL_LOCKS_GUARD:
        lock, users = _LOCAL_LOCKS[teacher_id]
        if users <= 1:
            del _LOCAL_LOCKS[teacher_id]
        else:
            _LOCAL_LOCKS[teacher_id] = (lock, users - 1)


def _get_sync_redis() -> Optional[Redis]:
    global _SYNC_REDIS
    if not settings.redis_url:
        return None
    if _SYNC_REDIS is not None:
        return _SYNC_REDIS
    with _SYNC_REDIS_LOCK:
        if _SYNC_REDIS is not None:
            return _SYNC_REDIS
        try:
            client = Redis.from_url(settings.redis_url, encoding="utf-8", decode_responses=True)
            client.ping()
        except RedisError as exc:
            prometheus_metrics.record_teacher_lock("redis", "unavailable")
            logger.warning("teacher_lock_redis_unavailable: %s", exc)
            return None
        _SYNC_REDIS = client
        return _SYNC_REDIS


def reset_redis_client() -> None:
    """Drop the cached Redis client (used after reconfiguration and in tests)."""
    global _SYNC_REDIS
    with _SYNC_REDIS_LOCK:
        _SYNC_REDIS = None


def _busy(teacher_id: str, backend: str) -> BookingConflictException:
    prometheus_metrics.record_teacher_lock(backend, "timeout")
    logger.warning(
        "teacher_lock_timeout",
        extra={"teacher_id": teacher_id, "backend": backend},
    )
    return BookingConflictException(
        "The teacher's schedule is being updated, please retry",
        code="BOOKING_BUSY",
        details={"teacher_id": teacher_id},
    )


def _acquire_redis_lock(teacher_id: str, timeout: float, ttl_s: int) -> Optional[RedisLock]:
    client = _get_sync_redis()
    if client is None:
        return None

    lock = client.lock(_lock_key(teacher_id), timeout=ttl_s, blocking_timeout=timeout)
    try:
        acquired = lock.acquire(blocking=True)
    except RedisError as exc:
        prometheus_metrics.record_teacher_lock("redis", "error")
        logger.warning(
            "teacher_lock_redis_acquire_failed",
            extra={
                "teacher_id": teacher_id,
                "error": str(exc),
                "error_type": type(exc).__name__,
            },
        )
        return None

    if not acquired:
        raise _busy(teacher_id, "redis")
    prometheus_metrics.record_teacher_lock("redis", "acquired")
    return lock


def _release_redis_lock(lock: RedisLock, teacher_id: str) -> None:
    try:
        lock.release()
        prometheus_metrics.record_teacher_lock("redis", "released")
    except (LockError, RedisError) as exc:
        # Expired under us or Redis went away; the row lock and index still hold
        prometheus_metrics.record_teacher_lock("redis", "error")
        logger.warning(
            "teacher_lock_redis_release_failed",
            extra={
                "teacher_id": teacher_id,
                "error": str(exc),
                "error_type": type(exc).__name__,
            },
        )


@contextmanager
def teacher_lock(
    teacher_id: str,
    timeout: Optional[float] = None,
    ttl_s: Optional[int] = None,
) -> Iterator[None]:
    """
    Serialize booking mutations for one teacher.

    Args:
        teacher_id: Teacher whose schedule is being changed
        timeout: Seconds to wait for the lock (defaults to settings)
        ttl_s: Redis lock expiry (defaults to settings)

    Raises:
        BookingConflictException: code BOOKING_BUSY when the lock is not
            obtained in time. Callers may retry.
    """
    wait = settings.teacher_lock_timeout_seconds if timeout is None else timeout
    ttl = settings.teacher_lock_ttl_seconds if ttl_s is None else ttl_s

    local = _checkout_local_lock(teacher_id)
    try:
        if not local.acquire(timeout=wait):
            raise _busy(teacher_id, "local")
        prometheus_metrics.record_teacher_lock("local", "acquired")

        redis_lock: Optional[RedisLock] = None
        try:
            redis_lock = _acquire_redis_lock(teacher_id, wait, ttl)
            yield
        finally:
            if redis_lock is not None:
                _release_redis_lock(redis_lock, teacher_id)
            local.release()
            prometheus_metrics.record_teacher_lock("local", "released")
    finally:
        _return_local_lock(teacher_id)
