import logging
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session

from washboard.core.config import settings
from washboard.core.errors import ConcurrencyConflict
from washboard.core.metrics import QUEUE_CONFLICTS

logger = logging.getLogger("washboard.db")

PG_LOCK_NOT_AVAILABLE_SQLSTATE = "55P03"
PG_SERIALIZATION_FAILURE_SQLSTATE = "40001"
PG_DEADLOCK_DETECTED_SQLSTATE = "40P01"
PG_QUERY_CANCELED_SQLSTATE = "57014"

RETRYABLE_SQLSTATES = {
    PG_LOCK_NOT_AVAILABLE_SQLSTATE,
    PG_SERIALIZATION_FAILURE_SQLSTATE,
    PG_DEADLOCK_DETECTED_SQLSTATE,
    PG_QUERY_CANCELED_SQLSTATE,
}


def is_postgresql_session(db: Session) -> bool:
    bind = db.get_bind()
    return bind is not None and bind.dialect.name == "postgresql"


def apply_lock_timeout(db: Session) -> None:
    """Bound lock waits for the current transaction.

    PostgreSQL only; SQLite waits on the driver's busy timeout instead.
    """
    if is_postgresql_session(db):
        timeout_ms = int(settings.db_lock_timeout_ms)
        db.execute(text(f"SET LOCAL lock_timeout = '{timeout_ms}ms'"))


def is_retryable_conflict(exc: DBAPIError) -> bool:
    original_error = getattr(exc, "orig", None)
    if original_error is None:
        return False

    sqlstate = getattr(original_error, "sqlstate", None)
    if sqlstate is None:
        sqlstate = getattr(original_error, "pgcode", None)
    if sqlstate in RETRYABLE_SQLSTATES:
        return True

    return "database is locked" in str(original_error).lower()


@contextmanager
def unit_of_work(db: Session) -> Iterator[Session]:
    """Commit everything done in the block as one transaction, or nothing.

    Lock timeouts, serialization failures and deadlocks surface as
    ``ConcurrencyConflict`` after the rollback so that callers can retry the
    whole operation.
    """
    try:
        yield db
        db.commit()
    except DBAPIError as exc:
        db.rollback()
        if is_retryable_conflict(exc):
            QUEUE_CONFLICTS.inc()
            logger.warning("queue_transaction_conflict error=%s", exc.__class__.__name__)
            raise ConcurrencyConflict() from None
        raise
    except BaseException:
        db.rollback()
        raise
