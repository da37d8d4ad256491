# Overview: Per-seat expiry state for a visit; the canonical source of "people still inside".

"""
Seat Ledger

TIMER MODEL:
    A visit starts with no seat rows and a single group clock
    (Visit.estimated_end_time). The first partial operation (split checkout,
    per-seat extension) materializes one row per pax, all inheriting the
    group clock. From then on each seat expires independently.

RULES:
1. A seat is active iff end_time is NULL or end_time > now.
2. people_remaining is the only occupancy count; every report uses it.
3. materialize is insert-if-absent keyed by (visit_id, seat_no): a second
   call, concurrent or not, never duplicates rows or resets an end_time.
4. Group display time is derived from seat state whenever seats exist.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from flask import current_app

from ..errors import NotFoundError, VisitNotActiveError
from ..extensions import db
from ..models import Visit, VisitSeat
from ..models.visits import VISIT_STATUS_ACTIVE
from visitdesk.time_utils import utcnow
from .change_feed import publish, seat_changed
from .concurrency import insert_if_absent, lock_for_update, run_with_retry

logger = logging.getLogger(__name__)

DEFAULT_FALLBACK_MINUTES = 60


def is_active(seat: VisitSeat, now: datetime) -> bool:
    return seat.end_time is None or seat.end_time > now


def active_seats(visit: Visit, now: datetime | None = None) -> list[VisitSeat]:
    """Active seats ordered by seat_no."""
    now = now or utcnow()
    return [s for s in sorted(visit.seats, key=lambda s: s.seat_no) if is_active(s, now)]


def present_seats(visit: Visit) -> list[VisitSeat]:
    """Seats not yet checked out, ordered by seat_no. Includes seats whose time has lapsed."""
    return [s for s in sorted(visit.seats, key=lambda s: s.seat_no) if s.ended_at is None]


def has_seat_rows(visit: Visit) -> bool:
    return len(visit.seats) > 0


def people_remaining(visit: Visit, now: datetime | None = None) -> int:
    if has_seat_rows(visit):
        return len(active_seats(visit, now))
    return visit.pax


def group_end_time(visit: Visit, now: datetime | None = None) -> datetime | None:
    """
    Time shown as "time remaining" for the whole visit.

    Latest end_time over active seats; falls back to the group clock when
    no seat is active or none of them carries an end_time.
    """
    ends = [s.end_time for s in active_seats(visit, now) if s.end_time is not None]
    if ends:
        return max(ends)
    return visit.estimated_end_time


def selectable_seat_nos(visit: Visit, now: datetime | None = None) -> list[int]:
    """Seat numbers an operator may pick for extension or checkout."""
    if has_seat_rows(visit):
        return [s.seat_no for s in active_seats(visit, now)]
    return list(range(1, visit.pax + 1))


def _fallback_minutes() -> int:
    return int(current_app.config.get("MATERIALIZE_FALLBACK_MINUTES", DEFAULT_FALLBACK_MINUTES))


def materialize_locked(visit: Visit, now: datetime) -> int:
    """
    Create seat rows 1..pax for ``visit`` inside the caller's transaction.

    Does not commit. Returns the number of rows created (0 when the visit
    was already split).
    """
    existing = db.session.query(VisitSeat.id).filter_by(visit_id=visit.id).first()
    if existing is not None:
        return 0

    start = visit.estimated_end_time
    if start is None:
        start = now + timedelta(minutes=_fallback_minutes())
        logger.warning("Visit %s has no end time; seats start from fallback %s", visit.id, start)

    rows = [
        {"visit_id": visit.id, "seat_no": seat_no, "end_time": start, "version_id": 1}
        for seat_no in range(1, visit.pax + 1)
    ]
    inserted = insert_if_absent(VisitSeat, rows, index_elements=["visit_id", "seat_no"])

    # Seat collection was loaded before the insert
    db.session.expire(visit, ["seats"])
    return inserted


def materialize(visit_id: str) -> Visit:
    """
    Split a visit's group clock into per-seat clocks. Idempotent.

    Raises:
        NotFoundError: unknown visit
        VisitNotActiveError: visit is DRAFT or CLOSED
    """
    def _op():
        visit = lock_for_update(db.session.query(Visit).filter_by(id=visit_id)).first()
        if not visit:
            raise NotFoundError(f"Visit {visit_id} not found")
        if visit.status != VISIT_STATUS_ACTIVE:
            raise VisitNotActiveError(f"Cannot split seats of a {visit.status} visit")

        inserted = materialize_locked(visit, utcnow())
        db.session.commit()
        return visit, inserted

    visit, inserted = run_with_retry(_op)
    if inserted:
        logger.info("Materialized %d seat(s) for visit %s", inserted, visit_id)
        publish(seat_changed, visit_id=visit_id, kind="materialized")
    return visit
