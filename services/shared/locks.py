"""Distributed per-key locks backed by Redis.

``acquire`` never waits: it either grants a leased lock or returns None,
which callers treat as "another worker owns this step".
"""

import logging
import uuid
from typing import Optional

logger = logging.getLogger(__name__)

# Delete the key only if it still holds our token, so an expired lease that
# was re-acquired by another worker is never released by the old owner.
RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


class LockHandle:
    """A granted lock. Release it explicitly or use it as an async context manager."""

    def __init__(self, manager: 'LockManager', key: str, token: str):
        self.manager = manager
        self.key = key
        self.token = token
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    async def release(self) -> bool:
        """Release the lock; returns False if the lease had already expired or been taken over."""
        if self._released:
            return False
        self._released = True
        return await self.manager._release(self.key, self.token)

    async def __aenter__(self) -> 'LockHandle':
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.release()


class LockManager:
    """Non-blocking, leased mutual exclusion over a shared Redis."""

    def __init__(self, redis_client, lease_seconds: int = 60, prefix: str = "lock:"):
        """
        Args:
            redis_client: a ``redis.asyncio.Redis`` client (or compatible)
            lease_seconds: lease after which an unreleased lock auto-expires
            prefix: namespace prepended to every key
        """
        self.redis = redis_client
        self.lease_seconds = lease_seconds
        self.prefix = prefix

    def _full_key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    async def acquire(self, key: str, lease_seconds: Optional[int] = None) -> Optional[LockHandle]:
        """Try to take the lock for ``key`` without waiting.

        Returns:
            A LockHandle when granted, None when someone else holds the lock.
        """
        token = uuid.uuid4().hex
        lease_ms = int((lease_seconds or self.lease_seconds) * 1000)
        full_key = self._full_key(key)

        acquired = await self.redis.set(full_key, token, nx=True, px=lease_ms)
        if not acquired:
            logger.debug(f"Lock busy: {full_key}")
            return None

        logger.debug(f"Lock acquired: {full_key} (lease {lease_ms}ms)")
        return LockHandle(self, full_key, token)

    async def _release(self, full_key: str, token: str) -> bool:
        try:
            released = await self.redis.eval(RELEASE_SCRIPT, 1, full_key, token)
        except Exception as e:
            # The lease still bounds how long the key can stay held
            logger.error(f"Failed to release lock {full_key}: {e}")
            return False

        if not released:
            logger.warning(f"Lock {full_key} expired before release")
        return bool(released)
