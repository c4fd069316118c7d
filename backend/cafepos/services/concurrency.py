# Overview: Retry and failure wrapping for writes against the database.

from __future__ import annotations

import time

from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


class PersistenceError(Exception):
    """
    Raised when the database cannot complete a read or write (network,
    lock timeout, disk). Safe to retry for reads and full-overwrite writes.
    """
    pass


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). func must be safe to re-run from
    scratch: the session is rolled back before every retry.
    """
    attempts = max(1, attempts)
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise PersistenceError(f"Database operation failed after {attempts} attempts: {exc}") from exc
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise PersistenceError(str(last_exc)) from last_exc


def commit_or_raise():
    """Commit the current session; roll back and wrap any database failure."""
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise PersistenceError(f"Commit failed: {exc}") from exc
