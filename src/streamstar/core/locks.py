"""
Per-Generation Locks
Serialize concurrent webhook deliveries that target the same generation
"""

import asyncio
import time
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import AsyncContextManager, AsyncIterator, Dict

import redis.asyncio as redis

from .logging import performance_logger


class GenerationLockManager(ABC):
    """Base class for keyed locks around a generation's reconciliation"""

    backend = "none"

    @abstractmethod
    def lock(self, generation_id: str) -> AsyncContextManager[None]:
        """Hold the lock for one generation id for the duration of the block"""


class LocalLockManager(GenerationLockManager):
    """In-process asyncio locks, one per generation id.

    Entries are reference counted and dropped once nobody holds or waits
    on them, so the table only grows with in-flight generations.
    """

    backend = "local"

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._waiters: Dict[str, int] = {}

    @asynccontextmanager
    async def lock(self, generation_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(generation_id, asyncio.Lock())
        self._waiters[generation_id] = self._waiters.get(generation_id, 0) + 1

        start = time.perf_counter()
        try:
            async with lock:
                performance_logger.log_lock_wait(
                    generation_id, (time.perf_counter() - start) * 1000, self.backend
                )
                yield
        finally:
            self._waiters[generation_id] -= 1
            if self._waiters[generation_id] == 0:
                del self._waiters[generation_id]
                del self._locks[generation_id]

    def active_keys(self) -> int:
        return len(self._locks)


class RedisLockManager(GenerationLockManager):
    """Distributed locks for deployments with several worker processes"""

    backend = "redis"
    KEY_PREFIX = "streamstar:generation:"

    def __init__(self, client: redis.Redis, timeout: float = 30.0):
        self._client = client
        self._timeout = timeout

    @asynccontextmanager
    async def lock(self, generation_id: str) -> AsyncIterator[None]:
        start = time.perf_counter()
        redis_lock = self._client.lock(
            f"{self.KEY_PREFIX}{generation_id}",
            timeout=self._timeout,
            blocking_timeout=self._timeout,
        )
        async with redis_lock:
            performance_logger.log_lock_wait(
                generation_id, (time.perf_counter() - start) * 1000, self.backend
            )
            yield
