# class_registration/core/locks.py
"""Keyed mutexes used to serialize work on a single class, teacher or room."""
import asyncio
import contextlib
import logging
from typing import AsyncIterator, Dict, List, Optional

import redis.asyncio as redis
from redis.exceptions import LockError

from .config import settings
from .exceptions import ConcurrencyConflict

logger = logging.getLogger(__name__)


class LocalLockBackend:
    """In-process asyncio locks, one per key, dropped once nobody holds or waits on them."""

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}

    @contextlib.asynccontextmanager
    async def hold(self, key: str, timeout: Optional[float] = None) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            try:
                await asyncio.wait_for(lock.acquire(), timeout or settings.lock_timeout_seconds)
            except asyncio.TimeoutError:
                logger.warning(f"Timed out waiting for lock {key}")
                raise ConcurrencyConflict()
            try:
                yield
            finally:
                lock.release()
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    def held_keys(self) -> List[str]:
        return [key for key, lock in self._locks.items() if lock.locked()]

    async def close(self):
        pass


class RedisLockBackend:
    """Distributed locks for deployments running several API workers."""

    def __init__(self, redis_url: str, prefix: str = "class-registration:lock:"):
        self.redis_url = redis_url
        self.prefix = prefix
        self.redis: Optional[redis.Redis] = None

    async def connect(self):
        """Initialize Redis connection."""
        if not self.redis:
            self.redis = redis.from_url(self.redis_url, encoding="utf-8", decode_responses=True)

    @contextlib.asynccontextmanager
    async def hold(self, key: str, timeout: Optional[float] = None) -> AsyncIterator[None]:
        if not self.redis:
            await self.connect()

        lock = self.redis.lock(
            self.prefix + key,
            timeout=settings.lock_expire_seconds,
            blocking_timeout=timeout or settings.lock_timeout_seconds,
        )
        acquired = await lock.acquire()
        if not acquired:
            logger.warning(f"Timed out waiting for redis lock {key}")
            raise ConcurrencyConflict()
        try:
            yield
        finally:
            try:
                await lock.release()
            except LockError:
                # Expired while held; the row lock still guarded the transaction
                logger.error(f"Redis lock {key} expired before release")

    async def close(self):
        """Close Redis connection."""
        if self.redis:
            await self.redis.close()
            self.redis = None


_lock_backend = None


def get_lock_backend():
    """Process-wide lock backend selected by settings.lock_backend"""
    global _lock_backend
    if _lock_backend is None:
        if settings.lock_backend == "redis":
            if not settings.redis_url:
                raise RuntimeError("lock_backend is 'redis' but redis_url is not configured")
            _lock_backend = RedisLockBackend(settings.redis_url)
        else:
            _lock_backend = LocalLockBackend()
    return _lock_backend
