# Overview: Service-layer helpers for row locking and bounded commit retries.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


# Lock timeouts, deadlocks and "database is locked" surface as OperationalError
RETRYABLE_ERRORS = (OperationalError, StaleDataError)


def lock_for_update(query):
    """
    SELECT ... FOR UPDATE on the rows the query returns.

    SQLite has no row locks and drops the clause; its writer lock serialises
    commits instead. PostgreSQL and MySQL hold the row until commit.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Call func until it succeeds or attempts run out.

    func must do its own reads and its own commit: the session is rolled
    back after every failed attempt, so nothing loaded earlier survives.
    Sleeps backoff_base * 2**n between attempts. The last RETRYABLE_ERRORS
    exception is re-raised; anything else propagates immediately.
    """
    for attempt in range(1, attempts + 1):
        try:
            return func()
        except RETRYABLE_ERRORS as exc:
            db.session.rollback()
            if attempt == attempts:
                raise
            current_app.logger.warning(
                "Retrying database operation after %s (attempt %d of %d)",
                type(exc).__name__, attempt, attempts,
            )
            time.sleep(backoff_base * (2 ** (attempt - 1)))
