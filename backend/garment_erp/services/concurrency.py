# Overview: Service-layer operations for concurrency; transaction retry, row locks and per-key mutexes.

from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from typing import Callable, Hashable, Iterable, TypeVar

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db

T = TypeVar("T")


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def run_with_retry(func: Callable[[], T], *, attempts: int | None = None, backoff_base: float | None = None) -> T:
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, lock timeouts) and StaleDataError
    (optimistic locking conflicts). The session is rolled back between
    attempts, so ``func`` must redo all of its reads.
    """
    if attempts is None:
        attempts = current_app.config.get("DB_RETRY_ATTEMPTS", 5)
    if backoff_base is None:
        backoff_base = current_app.config.get("DB_RETRY_BACKOFF", 0.05)
    attempts = max(1, attempts)

    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            current_app.logger.warning(
                "Retrying after concurrency failure (attempt %s/%s): %s",
                attempt + 1,
                attempts,
                exc.__class__.__name__,
            )
            time.sleep(backoff_base * (2 ** attempt))
    raise RuntimeError("unreachable")


def run_atomic(func: Callable[[], T], **retry_kwargs) -> T:
    """
    Run ``func`` as one transaction: commit on success, roll back on any error.

    Numbers issued by the sequence service inside ``func`` share the same
    transaction, so a rejected write never consumes a number.
    """
    def _op() -> T:
        try:
            result = func()
            db.session.commit()
            return result
        except Exception:
            db.session.rollback()
            raise

    return run_with_retry(_op, **retry_kwargs)


class KeyedLocks:
    """
    Process-wide registry of mutexes, one per key.

    ``hold`` acquires every requested key in sorted order so two callers
    asking for overlapping key sets cannot deadlock each other. Each entry
    carries a count of callers holding or waiting on it and is dropped when
    the count returns to zero, so the registry only holds keys in use.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[Hashable, list] = {}  # key -> [lock, users]

    def _checkout(self, key: Hashable) -> threading.Lock:
        with self._guard:
            slot = self._locks.get(key)
            if slot is None:
                slot = [threading.Lock(), 0]
                self._locks[key] = slot
            slot[1] += 1
            return slot[0]

    def _checkin(self, key: Hashable) -> None:
        with self._guard:
            slot = self._locks[key]
            slot[1] -= 1
            if slot[1] <= 0:
                del self._locks[key]

    @contextmanager
    def hold(self, keys: Iterable[Hashable]):
        checked_out: list[Hashable] = []
        acquired: list[threading.Lock] = []
        try:
            for key in sorted(set(keys)):
                lock = self._checkout(key)
                checked_out.append(key)
                lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
            for key in reversed(checked_out):
                self._checkin(key)

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


# (store_entry_id, item_name) -> mutex, shared by every store-log writer in this process
ledger_locks = KeyedLocks()
