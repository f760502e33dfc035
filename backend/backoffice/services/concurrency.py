# Overview: Locking and retry helpers for database operations that can lose a race.

from __future__ import annotations

import time

from sqlalchemy.exc import OperationalError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1, retry_on=(OperationalError,)):
    """
    Execute a whole unit of work, retrying on the given exception types.

    The session is rolled back before each retry, so func must redo the
    unit of work from scratch (load, modify, commit).
    """
    for attempt in range(attempts):
        try:
            return func()
        except retry_on:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
