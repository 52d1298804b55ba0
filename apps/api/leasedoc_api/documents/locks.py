"""Single-flight render locks keyed on (owner, kind).

Concurrent cache misses for the same lease coalesce: the first request
renders while the others wait on the lock, then re-check the index and find
the fresh artifact.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Iterator, Optional

import redis
from redis.exceptions import LockError, RedisError

from leasedoc_api.settings import Settings, get_settings

logger = logging.getLogger(__name__)


class RenderLockTimeout(Exception):
    """The lock could not be acquired within the blocking timeout."""


def lock_name(owner_id: str, kind: str) -> str:
    return f"leasedoc:render:{kind}:{owner_id}"


class LocalRenderLock:
    """Per-key ``threading.Lock``. Coalesces renders inside one process only."""

    def __init__(self, blocking_timeout: float = 90.0):
        self.blocking_timeout = blocking_timeout
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def _lock_for(self, name: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(name)
            if lock is None:
                lock = self._locks[name] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, owner_id: str, kind: str) -> Iterator[None]:
        lock = self._lock_for(lock_name(owner_id, kind))
        if not lock.acquire(timeout=self.blocking_timeout):
            raise RenderLockTimeout(lock_name(owner_id, kind))
        try:
            yield
        finally:
            lock.release()


class RedisRenderLock:
    """Distributed lock backed by redis-py ``Lock``.

    The TTL bounds how long a crashed holder can block others; it must exceed
    the render timeout plus upload time.
    """

    def __init__(
        self,
        client: redis.Redis,
        ttl_seconds: int = 120,
        blocking_timeout: float = 90.0,
    ):
        self.client = client
        self.ttl_seconds = ttl_seconds
        self.blocking_timeout = blocking_timeout

    @contextmanager
    def hold(self, owner_id: str, kind: str) -> Iterator[None]:
        name = lock_name(owner_id, kind)
        lock = self.client.lock(name, timeout=self.ttl_seconds, blocking_timeout=self.blocking_timeout)
        try:
            acquired = lock.acquire()
        except RedisError as e:
            logger.error(f"Render lock unavailable: {e}", extra={"lock": name})
            raise RenderLockTimeout(name) from e
        if not acquired:
            raise RenderLockTimeout(name)
        try:
            yield
        finally:
            try:
                lock.release()
            except LockError:
                # TTL expired while rendering; another holder may own it now
                logger.warning("Render lock expired before release", extra={"lock": name})

    def ping(self) -> bool:
        try:
            return bool(self.client.ping())
        except RedisError:
            return False


def build_render_lock(settings: Optional[Settings] = None):
    """Build the render lock selected by ``RENDER_LOCK_BACKEND``."""
    settings = settings or get_settings()
    if settings.render_lock_backend == "local":
        return LocalRenderLock(blocking_timeout=settings.render_lock_blocking_timeout_seconds)
    if settings.render_lock_backend == "redis":
        client = redis.from_url(settings.redis_url)
        return RedisRenderLock(
            client,
            ttl_seconds=settings.render_lock_ttl_seconds,
            blocking_timeout=settings.render_lock_blocking_timeout_seconds,
        )
    raise ValueError(f"Unknown render lock backend: {settings.render_lock_backend}")


# Global instance
_render_lock = None


def get_render_lock():
    """Get or create the render lock."""
    global _render_lock
    if _render_lock is None:
        _render_lock = build_render_lock()
    return _render_lock
