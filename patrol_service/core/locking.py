# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Serialization boundary for mutating operations.

A unit of work takes locks on a sorted key set (``incident:<id>`` and
``staff:<id>:<date>``), then opens one transaction. Conflict reads, writes,
incident status sync and audit events all share that transaction.
"""
import hashlib
import threading
import time
import zlib
from contextlib import contextmanager
from datetime import date
from typing import Callable, Iterable, Iterator, TypeVar

from sqlalchemy import text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import DBAPIError

from patrol_service.core.config import settings
from patrol_service.core.errors import LockTimeoutError
from patrol_service.core.logging import get_logger
from patrol_service.metrics import LOCK_WAIT, TX_RETRIES

logger = get_logger(__name__)

T = TypeVar("T")

# SQLite has a single writer, so every key maps onto this one.
SQLITE_GLOBAL_KEY = "database"

RETRYABLE_SQLSTATES = {"40001", "40P01"}
LOCK_NOT_AVAILABLE = "55P03"


def incident_key(incident_id: int) -> str:
    return f"incident:{incident_id}"


def staff_key(staff_id: int, patrol_date: date) -> str:
    return f"staff:{staff_id}:{patrol_date.isoformat()}"


def _sqlstate(exc: DBAPIError) -> str | None:
    orig = getattr(exc, "orig", None)
    return getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)


def _advisory_id(key: str) -> int:
    digest = hashlib.blake2b(key.encode(), digest_size=8).digest()
    return int.from_bytes(digest, "big", signed=True)


class StripedLocks:
    """Fixed pool of in-process locks; keys hash onto stripes."""

    def __init__(self, stripes: int) -> None:
        self._locks = [threading.Lock() for _ in range(max(stripes, 1))]

    def stripes_for(self, keys: Iterable[str]) -> list[int]:
        """Distinct stripe indexes, ascending, so every caller locks in the same order."""
        n = len(self._locks)
        return sorted({zlib.crc32(k.encode()) % n for k in keys})

    @contextmanager
    def hold(self, keys: Iterable[str], timeout: float) -> Iterator[None]:
        acquired: list[int] = []
        started = time.monotonic()
        try:
            for idx in self.stripes_for(keys):
                remaining = timeout - (time.monotonic() - started)
                if remaining <= 0 or not self._locks[idx].acquire(timeout=remaining):
                    raise LockTimeoutError(
                        f"Timed out after {timeout:.1f}s waiting for scheduling lock"
                    )
                acquired.append(idx)
            LOCK_WAIT.observe(time.monotonic() - started)
            yield
        finally:
            for idx in reversed(acquired):
                self._locks[idx].release()


class TransactionManager:
    """Runs callables as atomic, serialized units of work."""

    def __init__(self, engine: Engine, locks: StripedLocks | None = None) -> None:
        self._engine = engine
        self._locks = locks or StripedLocks(settings.LOCK_STRIPES)

    @property
    def dialect(self) -> str:
        return self._engine.dialect.name

    def _effective_keys(self, keys: Iterable[str]) -> list[str]:
        if self.dialect == "sqlite":
            return [SQLITE_GLOBAL_KEY]
        return sorted(set(keys))

    @contextmanager
    def unit_of_work(self, keys: Iterable[str]) -> Iterator[Connection]:
        lock_keys = self._effective_keys(keys)
        with self._locks.hold(lock_keys, settings.LOCK_TIMEOUT_SECONDS):
            with self._engine.begin() as conn:
                if self.dialect == "postgresql":
                    timeout_ms = int(settings.LOCK_TIMEOUT_SECONDS * 1000)
                    conn.execute(text(f"SET LOCAL lock_timeout = '{timeout_ms}ms'"))
                    for key in lock_keys:
                        conn.execute(
                            text("SELECT pg_advisory_xact_lock(:k)"),
                            {"k": _advisory_id(key)},
                        )
                yield conn

    def run(self, keys: Iterable[str], work: Callable[[Connection], T]) -> T:
        """Execute ``work`` inside a unit of work, retrying serialization failures."""
        keys = list(keys)
        attempts = max(settings.TX_MAX_RETRIES, 0) + 1
        for attempt in range(1, attempts + 1):
            try:
                with self.unit_of_work(keys) as conn:
                    return work(conn)
            except DBAPIError as exc:
                state = _sqlstate(exc)
                if state == LOCK_NOT_AVAILABLE:
                    raise LockTimeoutError("Timed out waiting for database lock") from exc
                if state not in RETRYABLE_SQLSTATES or attempt == attempts:
                    raise
                TX_RETRIES.inc()
                logger.warning(
                    "Retrying unit of work attempt=%d sqlstate=%s keys=%s",
                    attempt, state, keys,
                )
        raise RuntimeError("unreachable")
