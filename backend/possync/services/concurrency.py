# Overview: Service-layer operations for concurrency; row locking, savepoints and retry on lock contention.

from __future__ import annotations

import time

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for the read-compare-write of one record id.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    SQLite serializes writers at the database level instead.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts).
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
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc


def in_savepoint(func, *, retry_on_conflict: bool = True):
    """
    Run func inside a SAVEPOINT so a failure rolls back only its own writes.

    If another request inserted the same primary key first (IntegrityError),
    the savepoint is rolled back and func runs once more: the second pass
    sees the committed row and takes the update path instead.
    """
    attempts = 2 if retry_on_conflict else 1
    for attempt in range(attempts):
        savepoint = db.session.begin_nested()
        try:
            result = func()
            db.session.flush()
        except IntegrityError:
            savepoint.rollback()
            if attempt >= attempts - 1:
                raise
            continue
        except Exception:
            savepoint.rollback()
            raise
        savepoint.commit()
        return result
