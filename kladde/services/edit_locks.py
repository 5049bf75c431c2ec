"""
Advisory row locks for concurrent editing of a gameday.

A lock only tells other editors that someone is working on a row; it is not
a correctness mechanism (that is the version column on the attendance row).
Locks expire after EDIT_LOCK_TTL_SECONDS unless renewed by their holder.

Two backends share one interface:
- InMemoryEditLockService: single process, asyncio.Lock-guarded dict
- RedisEditLockService: shared between processes via SET NX PX
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

import redis.asyncio as redis

from kladde.config import Config

logger = logging.getLogger(__name__)

LOCK_KEY_PREFIX = 'kladde:edit_lock:'


@dataclass(frozen=True)
class EditLock:
    key: str
    holder: str
    expires_at: float


class EditLockService(ABC):
    """Capability interface for advisory edit locks."""

    def __init__(self, ttl_seconds: float = Config.EDIT_LOCK_TTL_SECONDS):
        self.ttl_seconds = ttl_seconds

    @staticmethod
    def row_key(gameday_id: int, member_id: int) -> str:
        return f"{gameday_id}_{member_id}"

    @abstractmethod
    async def try_lock(self, key: str, holder: str) -> bool:
        """Take the lock if it is free, expired or already held by holder"""
        pass

    @abstractmethod
    async def renew(self, key: str, holder: str) -> bool:
        """Extend the lock; False if holder does not own it (anymore)"""
        pass

    @abstractmethod
    async def release(self, key: str, holder: str) -> bool:
        pass

    @abstractmethod
    async def list_active(self, prefix: str = '', exclude_holder: Optional[str] = None) -> List[EditLock]:
        """Unexpired locks whose key starts with prefix, e.g. ``"12_"`` for one gameday"""
        pass

    async def close(self):
        pass


class InMemoryEditLockService(EditLockService):
    """Process-local lock table."""

    def __init__(self, ttl_seconds: float = Config.EDIT_LOCK_TTL_SECONDS,
                 clock: Callable[[], float] = time.monotonic):
        super().__init__(ttl_seconds)
        self._clock = clock
        self._locks: Dict[str, EditLock] = {}
        self._lock = asyncio.Lock()

    async def try_lock(self, key: str, holder: str) -> bool:
        async with self._lock:
            now = self._clock()
            current = self._locks.get(key)
            if current and current.expires_at > now and current.holder != holder:
                return False
            self._locks[key] = EditLock(key, holder, now + self.ttl_seconds)
            return True

    async def renew(self, key: str, holder: str) -> bool:
        async with self._lock:
            now = self._clock()
            current = self._locks.get(key)
            if not current or current.holder != holder or current.expires_at <= now:
                return False
            self._locks[key] = EditLock(key, holder, now + self.ttl_seconds)
            return True

    async def release(self, key: str, holder: str) -> bool:
        async with self._lock:
            current = self._locks.get(key)
            if not current or current.holder != holder:
                return False
            del self._locks[key]
            return True

    async def list_active(self, prefix: str = '', exclude_holder: Optional[str] = None) -> List[EditLock]:
        async with self._lock:
            now = self._clock()
            # Drop expired entries while we hold the lock anyway
            for key in [key for key, lock in self._locks.items() if lock.expires_at <= now]:
                del self._locks[key]
            return sorted(
                (lock for key, lock in self._locks.items()
                 if key.startswith(prefix) and lock.holder != exclude_holder),
                key=lambda lock: lock.key
            )


# Compare-and-set scripts so that only the holder can extend or drop a lock
_RENEW_SCRIPT = """
if redis.call('get', KEYS[1]) == ARGV[1] then
    return redis.call('pexpire', KEYS[1], ARGV[2])
end
return 0
"""

_RELEASE_SCRIPT = """
if redis.call('get', KEYS[1]) == ARGV[1] then
    return redis.call('del', KEYS[1])
end
return 0
"""


class RedisEditLockService(EditLockService):
    """Locks shared by every bot instance connected to the same Redis."""

    def __init__(self, client, ttl_seconds: float = Config.EDIT_LOCK_TTL_SECONDS):
        super().__init__(ttl_seconds)
        self.client = client
        self._renew = client.register_script(_RENEW_SCRIPT)
        self._release = client.register_script(_RELEASE_SCRIPT)

    @property
    def _ttl_ms(self) -> int:
        return int(self.ttl_seconds * 1000)

    async def try_lock(self, key: str, holder: str) -> bool:
        redis_key = LOCK_KEY_PREFIX + key
        if await self.client.set(redis_key, holder, px=self._ttl_ms, nx=True):
            return True
        # Re-entrant for the current holder
        return bool(await self._renew(keys=[redis_key], args=[holder, self._ttl_ms]))

    async def renew(self, key: str, holder: str) -> bool:
        return bool(await self._renew(keys=[LOCK_KEY_PREFIX + key], args=[holder, self._ttl_ms]))

    async def release(self, key: str, holder: str) -> bool:
        return bool(await self._release(keys=[LOCK_KEY_PREFIX + key], args=[holder]))

    async def list_active(self, prefix: str = '', exclude_holder: Optional[str] = None) -> List[EditLock]:
        now = time.time()
        locks = []
        async for redis_key in self.client.scan_iter(match=f"{LOCK_KEY_PREFIX}{prefix}*"):
            holder = await self.client.get(redis_key)
            if holder is None:
                continue  # Expired between SCAN and GET
            ttl_ms = await self.client.pttl(redis_key)
            if ttl_ms is None or ttl_ms < 0:
                continue
            if isinstance(redis_key, bytes):
                redis_key = redis_key.decode()
            if isinstance(holder, bytes):
                holder = holder.decode()
            if holder == exclude_holder:
                continue
            locks.append(EditLock(redis_key[len(LOCK_KEY_PREFIX):], holder, now + ttl_ms / 1000))
        return sorted(locks, key=lambda lock: lock.key)

    async def close(self):
        await self.client.aclose()


async def create_edit_lock_service(redis_url: Optional[str] = None) -> EditLockService:
    """
    Build the lock backend from configuration.

    Uses Redis when a URL is configured and reachable, otherwise the
    process-local backend.
    """
    redis_url = redis_url if redis_url is not None else Config.REDIS_URL
    if not redis_url:
        logger.info("No REDIS_URL configured, using in-memory edit locks")
        return InMemoryEditLockService()

    client = redis.from_url(redis_url, decode_responses=True)
    try:
        await client.ping()
    except (redis.ConnectionError, redis.TimeoutError, OSError) as e:
        logger.error(f"Failed to connect to Redis: {e}. Falling back to in-memory edit locks.")
        await client.aclose()
        return InMemoryEditLockService()

    logger.info("Successfully connected to Redis for edit locks.")
    return RedisEditLockService(client)
