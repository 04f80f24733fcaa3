# Overview: Transaction helpers shared by every invariant-bearing unit of work.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..validation import PersistenceError, ServiceError


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    The conditional UPDATEs in the services are what actually serialize
    writers on SQLite.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (database locked) and StaleDataError
    (optimistic locking conflicts). The whole callable is replayed, so it
    must start its own unit of work from scratch.
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


def run_atomic(func, *, label: str, attempts: int = 3, backoff_base: float = 0.1):
    """
    Run func() and commit as one transaction.

    - any exception rolls the whole unit back
    - ServiceError propagates unchanged (validation/conflict)
    - lock contention and stale rows are retried, replaying func()
    - any other SQLAlchemyError becomes PersistenceError
    """
    def _unit():
        try:
            result = func()
            db.session.commit()
            return result
        except Exception:
            db.session.rollback()
            raise

    try:
        return run_with_retry(_unit, attempts=attempts, backoff_base=backoff_base)
    except ServiceError:
        raise
    except (SQLAlchemyError, StaleDataError) as exc:
        current_app.logger.error("%s failed and was rolled back: %s", label, exc)
        raise PersistenceError(f"{label} failed; nothing was saved", {"reason": str(exc)}) from exc
