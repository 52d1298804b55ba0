"""Tests for single-flight render locks."""

import threading
from unittest.mock import MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import LockError

from leasedoc_api.documents.locks import (
    LocalRenderLock,
    RedisRenderLock,
    RenderLockTimeout,
    build_render_lock,
    lock_name,
)
from leasedoc_api.settings import Settings


def test_lock_name():
    assert lock_name("lease-1", "lease-document") == "leasedoc:render:lease-document:lease-1"


class TestLocalRenderLock:
    def test_second_holder_times_out(self):
        lock = LocalRenderLock(blocking_timeout=0.05)
        held = threading.Event()
        release = threading.Event()

        def holder():
            with lock.hold("lease-1", "lease-document"):
                held.set()
                release.wait(5)

        thread = threading.Thread(target=holder)
        thread.start()
        held.wait(5)
        try:
            with pytest.raises(RenderLockTimeout):
                with lock.hold("lease-1", "lease-document"):
                    pass
        finally:
            release.set()
            thread.join(5)

    def test_keys_are_independent(self):
        lock = LocalRenderLock(blocking_timeout=0.05)

        with lock.hold("lease-1", "lease-document"):
            with lock.hold("lease-2", "lease-document"):
                pass

    def test_released_after_error(self):
        lock = LocalRenderLock(blocking_timeout=0.05)

        with pytest.raises(RuntimeError):
            with lock.hold("lease-1", "lease-document"):
                raise RuntimeError("render failed")

        with lock.hold("lease-1", "lease-document"):
            pass


class TestRedisRenderLock:
    def test_acquire_and_release(self):
        client = MagicMock()
        client.lock.return_value.acquire.return_value = True
        lock = RedisRenderLock(client, ttl_seconds=120, blocking_timeout=90)

        with lock.hold("lease-1", "lease-document"):
            pass

        client.lock.assert_called_once_with(
            "leasedoc:render:lease-document:lease-1", timeout=120, blocking_timeout=90
        )
        client.lock.return_value.release.assert_called_once()

    def test_not_acquired(self):
        client = MagicMock()
        client.lock.return_value.acquire.return_value = False

        with pytest.raises(RenderLockTimeout):
            with RedisRenderLock(client).hold("lease-1", "lease-document"):
                pass

    def test_redis_down(self):
        client = MagicMock()
        client.lock.return_value.acquire.side_effect = RedisConnectionError("refused")

        with pytest.raises(RenderLockTimeout):
            with RedisRenderLock(client).hold("lease-1", "lease-document"):
                pass

    def test_expired_lock_release_is_tolerated(self):
        client = MagicMock()
        client.lock.return_value.acquire.return_value = True
        client.lock.return_value.release.side_effect = LockError("Cannot release an unlocked lock")

        with RedisRenderLock(client).hold("lease-1", "lease-document"):
            pass

    def test_ping(self):
        client = MagicMock()
        client.ping.side_effect = RedisConnectionError("refused")

        assert RedisRenderLock(client).ping() is False


class TestBuildRenderLock:
    def test_local(self):
        lock = build_render_lock(Settings(database_url="sqlite://", render_lock_backend="local"))

        assert isinstance(lock, LocalRenderLock)

    def test_redis(self):
        lock = build_render_lock(
            Settings(database_url="sqlite://", render_lock_backend="redis", redis_url="redis://localhost:6379/3")
        )

        assert isinstance(lock, RedisRenderLock)

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            build_render_lock(Settings(database_url="sqlite://", render_lock_backend="memcached"))
