"""Sweep guards — at most one settlement sweep in flight.

`try_acquire()` never waits: a sweep that finds the guard taken is skipped,
and the next trigger or timer tick picks the work up. A long sweep calls
`refresh()` between items and stops if the guard is no longer its own.

LocalSweepGuard covers one process. RedisSweepGuard covers several workers
sharing one database; its lock expires after `ttl_seconds` so a crashed
holder cannot block settlement forever. It also holds a local lock, so a
second sweep in the same process cannot start while the first is running,
even after the Redis key has expired.
"""

import asyncio
import logging
import uuid

import redis.asyncio as aioredis

logger = logging.getLogger(__name__)


class LocalSweepGuard:
    def __init__(self) -> None:
        self._lock = asyncio.Lock()

    async def try_acquire(self) -> bool:
        if self._lock.locked():
            return False
        await self._lock.acquire()
        return True

    async def refresh(self) -> bool:
        return self._lock.locked()

    async def release(self) -> None:
        if self._lock.locked():
            self._lock.release()


# Delete only if we still own the lock
_RELEASE_SCRIPT = """
if redis.call("GET", KEYS[1]) == ARGV[1] then
    return redis.call("DEL", KEYS[1])
end
return 0
"""

# Extend the TTL only if we still own the lock
_REFRESH_SCRIPT = """
if redis.call("GET", KEYS[1]) == ARGV[1] then
    return redis.call("PEXPIRE", KEYS[1], ARGV[2])
end
return 0
"""


class RedisSweepGuard:
    def __init__(
        self,
        redis: aioredis.Redis,
        key: str = "tz:settlement:sweep",
        ttl_seconds: int = 60,
    ) -> None:
        self._redis = redis
        self._key = key
        self._ttl_ms = ttl_seconds * 1000
        self._local = asyncio.Lock()
        self._token: str | None = None

    async def try_acquire(self) -> bool:
        if self._local.locked():
            return False
        await self._local.acquire()
        token = uuid.uuid4().hex
        try:
            acquired = await self._redis.set(self._key, token, nx=True, px=self._ttl_ms)
        except Exception:
            self._local.release()
            raise
        if not acquired:
            self._local.release()
            return False
        self._token = token
        return True

    async def refresh(self) -> bool:
        token = self._token
        if token is None:
            return False
        refreshed = await self._redis.eval(_REFRESH_SCRIPT, 1, self._key, token, self._ttl_ms)
        if not refreshed:
            logger.error("Sweep lock %s was lost to another holder", self._key)
            return False
        return True

    async def release(self) -> None:
        token, self._token = self._token, None
        try:
            if token is None:
                return
            released = await self._redis.eval(_RELEASE_SCRIPT, 1, self._key, token)
            if not released:
                logger.warning("Sweep lock %s expired before release", self._key)
        finally:
            if self._local.locked():
                self._local.release()
