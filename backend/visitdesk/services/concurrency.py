# Overview: Transaction helpers shared by every service that writes.

from __future__ import annotations

import logging
import time

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import ConflictError
from ..extensions import db

logger = logging.getLogger(__name__)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    On SQLite the version_id columns on Visit/VisitSeat catch the same races
    at flush time as StaleDataError.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation, rolling back on any failure.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). Once attempts are exhausted the race
    is reported as ConflictError. Pass attempts=1 for operations that must
    never be repeated behind the caller's back (anything that charges money).
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                logger.warning("Concurrent update lost after %d attempt(s): %s", attempt + 1, exc)
                raise ConflictError("The visit was changed by another request; reload and try again") from exc
            time.sleep(backoff_base * (2 ** attempt))
        except IntegrityError as exc:
            db.session.rollback()
            logger.warning("Constraint violated by concurrent write: %s", exc.orig)
            raise ConflictError("The request conflicts with data written by another request") from exc
        except Exception:
            db.session.rollback()
            raise
    raise ConflictError("Operation could not be completed")


def insert_if_absent(model, rows: list[dict], *, index_elements: list[str]) -> int:
    """
    Insert rows, silently skipping any that collide on ``index_elements``.

    Never overwrites an existing row. Returns the number of rows inserted
    where the driver reports it.
    """
    if not rows:
        return 0

    dialect = db.session.get_bind().dialect.name
    if dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    elif dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    else:
        return _insert_if_absent_generic(model, rows, index_elements)

    stmt = insert(model.__table__).values(rows).on_conflict_do_nothing(index_elements=index_elements)
    result = db.session.execute(stmt)
    return max(result.rowcount or 0, 0)


def _insert_if_absent_generic(model, rows: list[dict], index_elements: list[str]) -> int:
    inserted = 0
    for row in rows:
        key = {k: row[k] for k in index_elements}
        if db.session.query(model).filter_by(**key).first() is not None:
            continue
        try:
            with db.session.begin_nested():
                db.session.add(model(**row))
            inserted += 1
        except IntegrityError:
            # Lost the race to a concurrent insert; the existing row wins
            continue
    return inserted
