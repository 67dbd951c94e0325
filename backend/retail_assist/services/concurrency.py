# Overview: Transaction boundary and retry helpers shared by the write paths.

from __future__ import annotations

import time
from contextlib import contextmanager

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; begin_write() covers it there.
    """
    return query.with_for_update()


def begin_write():
    """
    Take the database write lock up front on SQLite.

    SQLite has no row locks, so a unit of work that reads then writes must
    start with BEGIN IMMEDIATE or two writers can interleave between the read
    and the write. Other dialects rely on row locks taken by the UPDATEs.
    """
    if db.engine.dialect.name != "sqlite":
        return
    raw = db.session.connection().connection.dbapi_connection
    if not raw.in_transaction:
        db.session.execute(text("BEGIN IMMEDIATE"))


@contextmanager
def unit_of_work():
    """
    All-or-nothing boundary for multi-row mutations.

    Sub-operations inside the block must not commit. The block commits on a
    clean exit and rolls back on any exception, which then propagates.
    """
    begin_write()
    try:
        yield db.session
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1, retry_on=()):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks), StaleDataError
    (optimistic locking conflicts) and any extra exception types in retry_on.
    Business errors propagate on the first failure.
    """
    retryable = (OperationalError, StaleDataError) + tuple(retry_on)
    for attempt in range(attempts):
        try:
            return func()
        except retryable as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            current_app.logger.warning(
                "Retrying after store conflict (attempt %s/%s): %s",
                attempt + 1, attempts, exc.__class__.__name__,
            )
            time.sleep(backoff_base * (2 ** attempt))
