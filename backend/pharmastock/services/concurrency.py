# Overview: Transaction coordinator for inventory movements; atomic scope, row locking, and bounded retry.

from __future__ import annotations

import logging
import time

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..exceptions import ConflictError, PersistenceError
from ..extensions import db

logger = logging.getLogger(__name__)

"""
Atomic scope semantics (authoritative)

- run_atomic(fn) runs fn() and commits the session; fn must not commit.
- Any exception rolls the whole session back before it propagates, so a
  failed movement leaves neither the ledger row nor the movement log touched.
- Medication rows are versioned (version_id_col). A write based on a stale
  read raises StaleDataError at flush; together with OperationalError
  (locked database, deadlock) this is the only failure that is retried.
  Each retry re-runs fn from scratch: re-read, re-validate, re-write.
- On SQLite, begin_write_scope() takes the write lock up front, so
  concurrent movements on one medication run one after another.
- When retries are exhausted, StaleDataError and lock-contention
  OperationalErrors surface as ConflictError; any other OperationalError
  (connection lost, file unavailable) as PersistenceError. Any other
  SQLAlchemyError becomes PersistenceError immediately. Business exceptions propagate unchanged.
"""


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    On SQLite call begin_write_scope() first.
    """
    return query.with_for_update()


def begin_write_scope():
    """
    Take the database write lock before the locked read on SQLite.

    pysqlite runs SELECTs outside the write transaction, so without this a
    read-then-write is only protected by the version_id check. Must be the
    first statement of the scope; a connection already inside a write
    transaction holds the lock and is left alone.
    """
    if db.engine.dialect.name != "sqlite":
        return
    raw = db.session.connection().connection.dbapi_connection
    if not raw.in_transaction:
        db.session.execute(text("BEGIN IMMEDIATE"))


# OperationalError messages that mean "another writer holds the lock"
LOCK_CONTENTION_MARKERS = (
    "database is locked",
    "database table is locked",
    "deadlock",
    "lock wait timeout",
    "could not serialize",
    "could not obtain lock",
)


def is_lock_contention(exc: OperationalError) -> bool:
    message = str(getattr(exc, "orig", None) or exc).lower()
    return any(marker in message for marker in LOCK_CONTENTION_MARKERS)


def _retry_settings(attempts: int | None, backoff_base: float | None) -> tuple[int, float]:
    if attempts is None:
        attempts = current_app.config.get("MOVEMENT_RETRY_ATTEMPTS", 3)
    if backoff_base is None:
        backoff_base = current_app.config.get("MOVEMENT_RETRY_BACKOFF", 0.05)
    return max(1, int(attempts)), max(0.0, float(backoff_base))


def run_atomic(func, *, attempts: int | None = None, backoff_base: float | None = None, label: str = "operation"):
    """
    Execute func inside one all-or-nothing DB transaction and commit it.

    Retries on OperationalError (locks, deadlocks) and StaleDataError
    (optimistic locking conflicts) with exponential backoff.
    """
    attempts, backoff_base = _retry_settings(attempts, backoff_base)

    for attempt in range(attempts):
        try:
            result = func()
            db.session.commit()
            return result
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                if isinstance(exc, StaleDataError) or is_lock_contention(exc):
                    logger.warning("%s: concurrency conflict after %d attempts: %s", label, attempts, exc)
                    raise ConflictError(
                        "Stock changed concurrently; the movement could not be applied. Please retry."
                    ) from exc
                logger.error("%s: storage unavailable after %d attempts: %s", label, attempts, exc)
                raise PersistenceError("Storage unavailable; no changes were saved") from exc
            logger.warning("%s: retrying after %s (attempt %d/%d)", label, type(exc).__name__, attempt + 1, attempts)
            time.sleep(backoff_base * (2 ** attempt))
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.error("%s: persistence failure: %s", label, exc)
            raise PersistenceError("Storage failure; no changes were saved") from exc
        except Exception:
            db.session.rollback()
            raise
