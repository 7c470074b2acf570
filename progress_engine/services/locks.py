"""Per-key mutual exclusion for reconciliation.

Every write takes the enrollment lock (when the event is
enrollment-scoped) and then the learner lock, always in that order, so
two operations can never wait on each other in a cycle.  Both backends
give up after a timeout with LockTimeout instead of blocking forever.

InMemoryLockManager: asyncio.Lock per key.  Only serializes within one
  process; fine for dev, tests and single-instance deployments.

RedisLockManager: SET key token NX PX ttl.  Shared by every API
  instance.  The TTL bounds how long a crashed holder can block others.
  Release runs a Lua compare-and-delete so one holder can never delete a
  lock that expired and was re-acquired by someone else.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Protocol, runtime_checkable

from progress_engine.core.config import SETTINGS
from progress_engine.core.errors import LockTimeout
from progress_engine.db.redis import redis_pool

logger = logging.getLogger(__name__)


@runtime_checkable
class LockManager(Protocol):
    def hold(self, key: str, timeout: float) -> AbstractAsyncContextManager[None]: ...


class InMemoryLockManager:
    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str, timeout: float) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            try:
                await asyncio.wait_for(lock.acquire(), timeout)
            except TimeoutError:
                raise LockTimeout(key, timeout) from None
            try:
                yield
            finally:
                lock.release()
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                # Last user gone: drop the entry so idle keys do not accumulate
                del self._users[key]
                self._locks.pop(key, None)

    def clear(self) -> None:
        self._locks.clear()
        self._users.clear()


class RedisLockManager:
    # KEYS[1] = lock key, ARGV[1] = holder token
    _RELEASE_SCRIPT = """
    if redis.call('GET', KEYS[1]) == ARGV[1] then
        return redis.call('DEL', KEYS[1])
    end
    return 0
    """

    _PREFIX = "lock:"
    _POLL_SECONDS = 0.02

    def __init__(self, redis_client, *, ttl_seconds: int = 30) -> None:
        self._redis = redis_client
        self._ttl_ms = ttl_seconds * 1000
        self._release = None

    def _release_script(self):
        if self._release is None:
            self._release = self._redis.register_script(self._RELEASE_SCRIPT)
        return self._release

    @asynccontextmanager
    async def hold(self, key: str, timeout: float) -> AsyncIterator[None]:
        redis_key = f"{self._PREFIX}{key}"
        token = uuid.uuid4().hex
        deadline = time.monotonic() + timeout
        while not await self._redis.set(redis_key, token, nx=True, px=self._ttl_ms):
            if time.monotonic() >= deadline:
                raise LockTimeout(key, timeout)
            await asyncio.sleep(self._POLL_SECONDS)
        try:
            yield
        finally:
            released = await self._release_script()(keys=[redis_key], args=[token])
            if not released:
                logger.warning(
                    "Lock %s expired before release (ttl=%dms)", key, self._ttl_ms
                )


def enrollment_lock_key(enrollment_id: str) -> str:
    return f"enrollment:{enrollment_id}"


def learner_lock_key(learner_id: str) -> str:
    return f"learner:{learner_id}"


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

if redis_pool is not None:
    lock_manager: LockManager = RedisLockManager(
        redis_pool, ttl_seconds=SETTINGS.lock_ttl_seconds
    )
else:
    lock_manager = InMemoryLockManager()
