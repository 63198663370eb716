# Overview: Service-layer operations for concurrency; transaction boundaries, row locks and retries.

from __future__ import annotations

import time
from contextlib import contextmanager

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import InfrastructureError
from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    Rows are re-read from the database even if already present in the
    identity map, so the caller always sees the locked values.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; there the unit of work holds
    a BEGIN IMMEDIATE write lock instead.
    """
    return query.with_for_update().populate_existing()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, "database is locked") and
    StaleDataError (optimistic locking conflicts on Product.version_id).
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


@contextmanager
def unit_of_work():
    """
    One database transaction: commit on clean exit, rollback on any error.

    On SQLite the write lock is taken up front (BEGIN IMMEDIATE) so two
    writers can never interleave their check-then-act sequences.
    """
    if db.engine.dialect.name == "sqlite":
        db.session.execute(text("BEGIN IMMEDIATE"))
    try:
        yield db.session
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise


def run_atomic(func, *, attempts: int | None = None):
    """
    Run func inside a unit of work with the retry policy applied.

    Domain errors propagate unchanged after rollback. Persistence errors that
    survive the retries are logged and surface as InfrastructureError.
    """
    if attempts is None:
        attempts = current_app.config.get("DB_RETRY_ATTEMPTS", 3)

    def _op():
        with unit_of_work():
            return func()

    try:
        return run_with_retry(_op, attempts=attempts)
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Unit of work failed after rollback")
        raise InfrastructureError() from exc
