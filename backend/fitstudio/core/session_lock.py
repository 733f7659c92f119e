from __future__ import annotations

from contextlib import contextmanager
import logging
import threading
import time
from typing import Dict, Iterator, List, Optional

from redis import Redis
from redis.exceptions import LockError, RedisError

from fitstudio.core.config import get_settings
from fitstudio.core.exceptions import SessionBusyException
from fitstudio.monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

REDIS_RETRY_BACKOFF_SECONDS = 30.0

_SYNC_REDIS: Optional[Redis] = None
_SYNC_REDIS_URL: Optional[str] = None
_SYNC_REDIS_LOCK = threading.Lock()
_REDIS_RETRY_AT = 0.0

# class_session_id -> [lock, holders + waiters]
_LOCAL_LOCKS: Dict[str, List] = {}
_LOCAL_LOCKS_GUARD = threading.Lock()


def _lock_key(class_session_id: str) -> str:
    return f"fitstudio:lock:class_session:{class_session_id}"


def _get_sync_redis() -> Optional[Redis]:
    """
    Return a shared Redis client, or None when no Redis URL is configured or reachable.

    A failed connect is not retried for ``REDIS_RETRY_BACKOFF_SECONDS``; mutations
    fall back to the local lock in the meantime.
    """
    global _SYNC_REDIS, _SYNC_REDIS_URL, _REDIS_RETRY_AT
    url = get_settings().redis_url
    if not url:
        return None
    if _SYNC_REDIS is not None and _SYNC_REDIS_URL == url:
        return _SYNC_REDIS
    if time.monotonic() < _REDIS_RETRY_AT:
        return None
    with _SYNC_REDIS_LOCK:
        if _SYNC_REDIS is not None and _SYNC_REDIS_URL == url:
            return _SYNC_REDIS
        if time.monotonic() < _REDIS_RETRY_AT:
            return None
        try:
            client = Redis.from_url(url, decode_responses=True)
            client.ping()
        except RedisError as exc:
            _REDIS_RETRY_AT = time.monotonic() + REDIS_RETRY_BACKOFF_SECONDS
            logger.warning(
                "session_lock_redis_unavailable: %s (retrying in %.0fs)",
                exc,
                REDIS_RETRY_BACKOFF_SECONDS,
            )
            return None
        _SYNC_REDIS = client
        _SYNC_REDIS_URL = url
        _REDIS_RETRY_AT = 0.0
        return _SYNC_REDIS


def _checkout_local_lock(class_session_id: str) -> threading.Lock:
    with _LOCAL_LOCKS_GUARD:
        entry = _LOCAL_LOCKS.get(class_session_id)
        if entry is None:
            entry = [threading.Lock(), 0]
            _LOCAL_LOCKS[class_session_id] = entry
        entry[1] += 1
        return entry[0]


def _return_local_lock(class_session_id: str) -> None:
    with _LOCAL_LOCKS_GUARD:
        entry = _LOCAL_LOCKS.get(class_session_id)
        if entry is None:
            return
        entry[1] -= 1
        if entry[1] <= 0:
            del _LOCAL_LOCKS[class_session_id]


@contextmanager
def _redis_session_lock(
    client: Redis, class_session_id: str, timeout_s: float, ttl_s: int
) -> Iterator[None]:
    lock = client.lock(_lock_key(class_session_id), timeout=ttl_s, blocking_timeout=timeout_s)
    if not lock.acquire():
        prometheus_metrics.record_session_lock("acquire", "timeout")
        logger.warning(
            "session_lock_timeout",
            extra={"class_session_id": class_session_id, "backend": "redis"},
        )
        raise SessionBusyException(class_session_id)
    prometheus_metrics.record_session_lock("acquire", "success")
    try:
        yield
    finally:
        try:
            lock.release()
            prometheus_metrics.record_session_lock("release", "success")
        except LockError as exc:
            # TTL expired before release; another holder may own the key now.
            prometheus_metrics.record_session_lock("release", "error")
            logger.warning(
                "session_lock_release_failed",
                extra={"class_session_id": class_session_id, "error": str(exc)},
            )


@contextmanager
def _local_session_lock(class_session_id: str, timeout_s: float) -> Iterator[None]:
    lock = _checkout_local_lock(class_session_id)
    try:
        if not lock.acquire(timeout=timeout_s):
            prometheus_metrics.record_session_lock("acquire", "timeout")
            logger.warning(
                "session_lock_timeout",
                extra={"class_session_id": class_session_id, "backend": "local"},
            )
            raise SessionBusyException(class_session_id)
        prometheus_metrics.record_session_lock("acquire", "success")
        try:
            yield
        finally:
            lock.release()
            prometheus_metrics.record_session_lock("release", "success")
    finally:
        _return_local_lock(class_session_id)


@contextmanager
def session_lock(
    class_session_id: str,
    timeout_s: Optional[float] = None,
    ttl_s: Optional[int] = None,
) -> Iterator[None]:
    """
    Serialize mutations of one class session.

    Uses a Redis lock when ``redis_url`` is configured so several API processes
    share the mutex; otherwise a process-local lock keyed by session id.
    Raises SessionBusyException when the lock is not acquired within the timeout.
    """
    cfg = get_settings()
    timeout = cfg.session_lock_timeout_seconds if timeout_s is None else timeout_s
    ttl = cfg.session_lock_ttl_seconds if ttl_s is None else ttl_s

    client = _get_sync_redis()
    if client is not None:
        with _redis_session_lock(client, class_session_id, timeout, ttl):
            yield
        return

    with _local_session_lock(class_session_id, timeout):
        yield
