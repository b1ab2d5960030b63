"""Mutual exclusion for booking transitions and hostel inventory.

One lock per booking serialises transitions on the same booking, one per
hostel serialises bed selection and release, and one per student and hostel
serialises submissions so the duplicate-booking check cannot race.
Callers always take the booking lock before the hostel lock.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from uuid import UUID

import redis.asyncio as redis
from redis.exceptions import LockError

from hostelhub.config import Settings
from hostelhub.core.exceptions import LockTimeoutError

logger = logging.getLogger(__name__)


def booking_lock_key(booking_id: UUID) -> str:
    return f"booking:{booking_id}"


def hostel_lock_key(hostel_id: UUID) -> str:
    return f"hostel:{hostel_id}"


def submission_lock_key(student_id: UUID, hostel_id: UUID) -> str:
    return f"submission:{student_id}:{hostel_id}"


class LockProvider(ABC):
    """Hands out named async locks."""

    @abstractmethod
    def lock(self, key: str) -> AbstractAsyncContextManager[None]:
        """Return an async context manager holding ``key`` for its duration."""


class LocalLockProvider(LockProvider):
    """In-process locks, correct for a single worker process."""

    def __init__(self, blocking_timeout: float | None = None) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = {}
        self.blocking_timeout = blocking_timeout

    @asynccontextmanager
    async def lock(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            try:
                if self.blocking_timeout is None:
                    await lock.acquire()
                else:
                    await asyncio.wait_for(lock.acquire(), timeout=self.blocking_timeout)
            except TimeoutError as exc:
                raise LockTimeoutError(key) from exc
            try:
                yield
            finally:
                lock.release()
        finally:
            self._waiters[key] -= 1
            if not self._waiters[key]:
                # Drop idle locks so the registry does not grow with every booking
                del self._waiters[key]
                self._locks.pop(key, None)


class RedisLockProvider(LockProvider):
    """Distributed locks shared by every API and worker process."""

    def __init__(
        self,
        client: redis.Redis,
        timeout: float = 30.0,
        blocking_timeout: float = 10.0,
        prefix: str = "hostelhub:lock",
    ) -> None:
        self._client = client
        self.timeout = timeout
        self.blocking_timeout = blocking_timeout
        self.prefix = prefix

    @asynccontextmanager
    async def lock(self, key: str) -> AsyncIterator[None]:
        lock = self._client.lock(
            f"{self.prefix}:{key}",
            timeout=self.timeout,
            blocking_timeout=self.blocking_timeout,
        )
        try:
            acquired = await lock.acquire()
        except LockError as exc:
            raise LockTimeoutError(key) from exc
        if not acquired:
            raise LockTimeoutError(key)
        try:
            yield
        finally:
            try:
                await lock.release()
            except LockError:
                # Expired while held; the work already ran under the lock's lifetime
                logger.warning(f"Lock {key} expired before release")


def build_lock_provider(settings: Settings) -> LockProvider:
    """Create the lock provider selected by ``settings.lock_backend``."""
    if settings.lock_backend == "redis":
        client = redis.from_url(settings.redis_url, encoding="utf-8", decode_responses=True)
        return RedisLockProvider(
            client,
            timeout=settings.lock_timeout_seconds,
            blocking_timeout=settings.lock_blocking_timeout_seconds,
        )
    return LocalLockProvider(blocking_timeout=settings.lock_blocking_timeout_seconds)
