# Overview: Row locking, transaction timeouts, and retry helpers for ledger writes.

from __future__ import annotations

import logging
import time

from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db

logger = logging.getLogger(__name__)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    SQLite serializes writers at the database level instead.
    """
    return query.with_for_update()


def apply_transaction_timeout(seconds: int) -> None:
    """
    Bound lock waits and statement time for the current transaction.

    Only PostgreSQL supports SET LOCAL; other dialects keep their defaults.
    The settings die with the transaction.
    """
    if not seconds:
        return
    if db.session.get_bind().dialect.name != "postgresql":
        return
    millis = int(seconds * 1000)
    db.session.execute(text(f"SET LOCAL lock_timeout = {millis}"))
    db.session.execute(text(f"SET LOCAL statement_timeout = {millis}"))


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, lock timeouts) and StaleDataError
    (optimistic locking conflicts). func must be safe to re-run: it either
    commits everything or leaves nothing behind.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            logger.warning("Retrying after concurrency conflict (attempt %s): %s", attempt + 1, exc)
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc
