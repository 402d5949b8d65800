"""
Confirmation arbitration.

Mutations that touch shared hoarding state (create, confirm, assign fitter,
installation going live, finalize) run inside an exclusive critical section
keyed by hoarding id. Whoever commits first wins; the loser re-reads the
committed state inside the section and is rejected by the state machine's
guards with a structured conflict.

Exclusivity is layered:
- a named lock per hoarding (in-process, or Redis when several processes
  serve the same database), acquired with a bounded wait;
- `SELECT ... FOR UPDATE` on the hoarding row inside the transaction.

A lock that cannot be obtained in time raises LockTimeoutError
(RETRYABLE_CONFLICT). A caller-supplied Deadline caps every wait and is
checked again before commit (TIMEOUT).
"""

import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from functools import lru_cache
from typing import Dict, Iterator, Optional

import redis
from redis.exceptions import LockError

from hoarding_rental.config.settings import settings
from hoarding_rental.core.exceptions import DeadlineExceededError, LockTimeoutError
from hoarding_rental.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class Deadline:
    """Absolute point (monotonic clock) by which an operation must finish."""

    at: float

    @classmethod
    def after(cls, seconds: float) -> "Deadline":
        return cls(at=time.monotonic() + seconds)

    def remaining(self) -> float:
        return self.at - time.monotonic()

    @property
    def expired(self) -> bool:
        return self.remaining() <= 0

    def check(self, operation: str) -> None:
        if self.expired:
            raise DeadlineExceededError(operation)


class _LockEntry:
    __slots__ = ("lock", "users")

    def __init__(self):
        self.lock = threading.Lock()
        self.users = 0


class InProcessLockBackend:
    """
    One threading.Lock per hoarding id.

    An entry lives only while some thread holds or waits for it, so the map
    stays as small as the set of hoardings currently being worked on.
    """

    def __init__(self):
        self._locks: Dict[str, _LockEntry] = {}
        self._registry_lock = threading.Lock()

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._locks)

    def _checkout(self, hoarding_id: str) -> _LockEntry:
        with self._registry_lock:
            entry = self._locks.get(hoarding_id)
            if entry is None:
                entry = self._locks[hoarding_id] = _LockEntry()
            entry.users += 1
            return entry

    def _checkin(self, hoarding_id: str, entry: _LockEntry) -> None:
        with self._registry_lock:
            entry.users -= 1
            if entry.users == 0:
                del self._locks[hoarding_id]

    @contextmanager
    def hold(self, hoarding_id: str, timeout: float) -> Iterator[None]:
        entry = self._checkout(hoarding_id)
        try:
            if not entry.lock.acquire(timeout=max(timeout, 0)):
                raise LockTimeoutError(hoarding_id, timeout)
            try:
                yield
            finally:
                entry.lock.release()
        finally:
            self._checkin(hoarding_id, entry)


class RedisLockBackend:
    """
    Distributed lock per hoarding id using redis-py's Lock.

    The lease outlives any sane transaction; it only matters if a holder dies.
    """

    key_prefix = "hoarding-rental:hoarding-lock:"

    def __init__(self, client: Optional[redis.Redis] = None, lease_seconds: float = 30.0):
        self.client = client or redis.Redis.from_url(settings.REDIS_URL)
        self.lease_seconds = lease_seconds

    @contextmanager
    def hold(self, hoarding_id: str, timeout: float) -> Iterator[None]:
        lock = self.client.lock(
            f"{self.key_prefix}{hoarding_id}",
            timeout=self.lease_seconds,
            blocking_timeout=max(timeout, 0),
        )
        if not lock.acquire(blocking=True):
            raise LockTimeoutError(hoarding_id, timeout)
        try:
            yield
        finally:
            try:
                lock.release()
            except LockError as e:
                logger.warning(
                    "Hoarding lock lease expired before release",
                    extra={"hoarding_id": hoarding_id, "error": str(e)},
                )


class HoardingLockManager:
    """
    Bounded-wait exclusive section per hoarding.

    Usage:
        with lock_manager.acquire(hoarding_id, deadline=deadline):
            ...
    """

    def __init__(self, backend=None, default_timeout: Optional[float] = None):
        self.backend = backend if backend is not None else InProcessLockBackend()
        self.default_timeout = default_timeout or settings.HOARDING_LOCK_TIMEOUT_SECONDS

    @contextmanager
    def acquire(
        self,
        hoarding_id: str,
        timeout: Optional[float] = None,
        deadline: Optional[Deadline] = None,
        operation: str = "hoarding update",
    ) -> Iterator[float]:
        """
        Enter the critical section for `hoarding_id`.

        Yields the wait budget that is left for inner waits such as the
        database row lock.

        Raises:
            LockTimeoutError: Lock still held by someone else after the wait
            DeadlineExceededError: The caller's deadline ran out first
        """
        wait = timeout if timeout is not None else self.default_timeout
        capped_by_deadline = False
        if deadline is not None:
            deadline.check(operation)
            if deadline.remaining() < wait:
                wait = deadline.remaining()
                capped_by_deadline = True

        started = time.monotonic()
        try:
            with self.backend.hold(hoarding_id, wait):
                waited = time.monotonic() - started
                logger.debug(
                    "Hoarding lock acquired",
                    extra={"hoarding_id": hoarding_id, "waited_seconds": round(waited, 4)},
                )
                yield max(wait - waited, 0.001)
        except LockTimeoutError as e:
            if capped_by_deadline:
                raise DeadlineExceededError(operation) from e
            logger.warning(
                "Hoarding lock wait timed out",
                extra={"hoarding_id": hoarding_id, "waited_seconds": round(wait, 4)},
            )
            raise


def build_lock_manager(backend_name: Optional[str] = None) -> HoardingLockManager:
    name = (backend_name or settings.LOCK_BACKEND or "memory").lower()
    if name == "redis":
        return HoardingLockManager(RedisLockBackend())
    if name != "memory":
        raise ValueError(f"Unknown LOCK_BACKEND: {name}")
    return HoardingLockManager(InProcessLockBackend())


@lru_cache()
def get_lock_manager() -> HoardingLockManager:
    """Process-wide lock manager; all sessions must share it."""
    return build_lock_manager()
