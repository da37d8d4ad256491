# Overview: Visit lifecycle (check-in, activation, checkout); encapsulates business logic and database work.

"""
Visit Lifecycle Service

================================================================================
STATE MACHINE:
    DRAFT -> ACTIVE -> CLOSED

    DRAFT:   Created at the counter, nothing paid, no clock. May be abandoned
             (row deleted) but never transitions back.
    ACTIVE:  Paid. Either one group clock or per-seat clocks (see
             seat_ledger_service).
    CLOSED:  Terminal. Nothing about the visit changes after this.

TRANSITIONS:
    create_visit              -> DRAFT
    start_visit               DRAFT -> ACTIVE (payment + clock, atomically)
    abandon_draft             DRAFT -> (removed)
    end_visit                 ACTIVE -> CLOSED
    end_seat / end_people     ACTIVE -> CLOSED once nobody is left inside
================================================================================
"""

from __future__ import annotations

import logging
from datetime import timedelta

from flask import current_app
from sqlalchemy.orm import selectinload

from ..errors import (
    ConflictError,
    InvalidInputError,
    InvalidSeatError,
    InvalidTransitionError,
    NotFoundError,
    VisitNotActiveError,
)
from ..extensions import db
from ..models import Payment, Visit, VisitSeat
from ..models.visits import VISIT_STATUS_ACTIVE, VISIT_STATUS_CLOSED, VISIT_STATUS_DRAFT
from ..validation import MAX_HOURS, MAX_PAX, parse_int, parse_positive_int
from visitdesk.time_utils import utcnow
from . import payment_service, pricing_service
from .change_feed import publish, seat_changed, visit_changed
from .concurrency import lock_for_update, run_with_retry
from .seat_ledger_service import active_seats, group_end_time, has_seat_rows, materialize_locked

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 120
MAX_BUFFER_MINUTES = 120


# =============================================================================
# LOOKUPS
# =============================================================================

def get_visit(visit_id: str) -> Visit:
    visit = db.session.get(Visit, visit_id)
    if not visit:
        raise NotFoundError(f"Visit {visit_id} not found")
    return visit


def list_active_visits() -> list[Visit]:
    """ACTIVE visits, soonest group clock first, seats preloaded."""
    return (
        db.session.query(Visit)
        .options(selectinload(Visit.seats))
        .filter(Visit.status == VISIT_STATUS_ACTIVE)
        .order_by(Visit.estimated_end_time.asc(), Visit.created_at.asc())
        .all()
    )


def _lock_visit(visit_id: str) -> Visit:
    visit = lock_for_update(db.session.query(Visit).filter_by(id=visit_id)).first()
    if not visit:
        raise NotFoundError(f"Visit {visit_id} not found")
    return visit


def _require_active(visit: Visit) -> None:
    if visit.status != VISIT_STATUS_ACTIVE:
        raise VisitNotActiveError(f"Visit {visit.id} is {visit.status}, not ACTIVE")


# =============================================================================
# CREATION
# =============================================================================

def create_visit(name, pax) -> Visit:
    """Create a DRAFT visit. No payment, no seats, no clock."""
    if not isinstance(name, str) or not name.strip():
        raise InvalidInputError("name is required")
    name = name.strip()
    if len(name) > MAX_NAME_LENGTH:
        raise InvalidInputError(f"name exceeds max length {MAX_NAME_LENGTH}")
    pax = parse_positive_int(pax, "pax", maximum=MAX_PAX)

    def _op():
        visit = Visit(name=name, pax=pax, status=VISIT_STATUS_DRAFT, drinks_collected=0)
        db.session.add(visit)
        db.session.commit()
        return visit

    visit = run_with_retry(_op, attempts=1)
    logger.info("Visit %s created for %r (pax=%d)", visit.id, name, pax)
    publish(visit_changed, visit_id=visit.id, kind="created")
    return visit


# =============================================================================
# ACTIVATION
# =============================================================================

def start_visit(
    visit_id: str,
    hours,
    buffer_minutes=None,
    method: str = payment_service.METHOD_CASH,
    *,
    idempotency_key: str | None = None,
    price_lookup: pricing_service.PriceLookup | None = None,
) -> Payment:
    """
    Collect the check-in payment and start the group clock.

    total = (first-hour rate + (hours - 1) * subsequent-hour rate) * pax
    estimated_end_time = now + hours * 60 min + buffer_minutes

    The payment row and the DRAFT -> ACTIVE change commit together or not
    at all. Replaying a call with the same idempotency_key returns the
    original payment without charging again.

    Raises:
        InvalidInputError: hours < 1, bad buffer, unknown method
        NotFoundError: unknown visit
        InvalidTransitionError: visit is not DRAFT
        PricingUnavailableError: time products missing or inactive
    """
    hours = parse_positive_int(hours, "hours", maximum=MAX_HOURS)
    if buffer_minutes is None:
        buffer_minutes = current_app.config.get("DEFAULT_BUFFER_MINUTES", 10)
    buffer_minutes = parse_int(buffer_minutes, "buffer_minutes")
    if buffer_minutes < 0 or buffer_minutes > MAX_BUFFER_MINUTES:
        raise InvalidInputError(f"buffer_minutes must be between 0 and {MAX_BUFFER_MINUTES}")
    payment_service.validate_method(method)
    idempotency_key = payment_service.validate_idempotency_key(idempotency_key)

    def _op():
        replay = payment_service.find_by_idempotency_key(idempotency_key)
        if replay is not None:
            if replay.visit_id != visit_id or replay.kind != payment_service.KIND_CHECKIN:
                raise ConflictError("idempotency_key was already used for a different payment")
            return replay, False

        visit = _lock_visit(visit_id)
        if visit.status != VISIT_STATUS_DRAFT:
            raise InvalidTransitionError(f"Visit {visit_id} is {visit.status}; only DRAFT visits can be started")

        amount = pricing_service.checkin_total_cents(hours, visit.pax, price_lookup)

        now = utcnow()
        payment = payment_service.record_payment(
            visit_id=visit.id,
            kind=payment_service.KIND_CHECKIN,
            method=method,
            amount_cents=amount,
            paid_at=now,
            idempotency_key=idempotency_key,
            note=f"hours={hours};pax={visit.pax};buffer_minutes={buffer_minutes}",
        )

        visit.status = VISIT_STATUS_ACTIVE
        visit.started_at = now
        visit.estimated_end_time = now + timedelta(minutes=hours * 60 + buffer_minutes)

        db.session.commit()
        return payment, True

    payment, applied = run_with_retry(_op, attempts=1)
    if applied:
        logger.info("Visit %s started: %d h, %d cents %s", visit_id, hours, payment.amount_cents, method)
        publish(visit_changed, visit_id=visit_id, kind="started")
    return payment


def abandon_draft(visit_id: str) -> None:
    """Delete an unpaid DRAFT visit. ACTIVE and CLOSED visits are never removed."""
    def _op():
        visit = _lock_visit(visit_id)
        if visit.status != VISIT_STATUS_DRAFT:
            raise InvalidTransitionError(f"Visit {visit_id} is {visit.status}; only DRAFT visits can be abandoned")
        db.session.delete(visit)
        db.session.commit()

    run_with_retry(_op, attempts=1)
    logger.info("Draft visit %s abandoned", visit_id)
    publish(visit_changed, visit_id=visit_id, kind="abandoned")


# =============================================================================
# CHECKOUT
# =============================================================================

def _close_locked(visit: Visit, now) -> None:
    for seat in visit.seats:
        if seat.ended_at is None:
            seat.ended_at = now
            if seat.end_time is None or seat.end_time > now:
                seat.end_time = now
    visit.status = VISIT_STATUS_CLOSED
    visit.closed_at = now


def _end_seat_locked(visit: Visit, seat: VisitSeat, now) -> None:
    if seat.ended_at is not None:
        raise InvalidSeatError(f"Seat {seat.seat_no} has already checked out")
    seat.ended_at = now
    if seat.end_time is None or seat.end_time > now:
        seat.end_time = now


def _finish_partial_checkout(visit: Visit, now) -> bool:
    """Close the visit if nobody is left; otherwise refresh the display clock."""
    if not active_seats(visit, now):
        _close_locked(visit, now)
        return True
    visit.estimated_end_time = group_end_time(visit, now)
    return False


def end_visit(visit_id: str) -> Visit:
    """Manual termination: ACTIVE -> CLOSED for everyone still inside."""
    def _op():
        visit = _lock_visit(visit_id)
        _require_active(visit)
        _close_locked(visit, utcnow())
        db.session.commit()
        return visit

    visit = run_with_retry(_op, attempts=1)
    logger.info("Visit %s closed manually", visit_id)
    publish(visit_changed, visit_id=visit_id, kind="closed")
    return visit


def end_seat(visit_id: str, seat_no) -> Visit:
    """
    Check out one seat; closes the visit when it was the last one inside.

    A visit that was never split is materialized first (pax > 1). A single
    pax visit without seat rows simply closes.

    Raises:
        NotFoundError, VisitNotActiveError
        InvalidSeatError: seat_no outside 1..pax, or already checked out
    """
    seat_no = parse_int(seat_no, "seat_no")

    def _op():
        visit = _lock_visit(visit_id)
        _require_active(visit)
        if seat_no < 1 or seat_no > visit.pax:
            raise InvalidSeatError(f"Seat {seat_no} is not part of this visit (1..{visit.pax})")

        now = utcnow()
        if not has_seat_rows(visit) and visit.pax == 1:
            _close_locked(visit, now)
            db.session.commit()
            return visit, True

        materialize_locked(visit, now)
        seat = lock_for_update(
            db.session.query(VisitSeat).filter_by(visit_id=visit.id, seat_no=seat_no)
        ).first()
        if not seat:
            raise InvalidSeatError(f"Seat {seat_no} not found")

        _end_seat_locked(visit, seat, now)
        closed = _finish_partial_checkout(visit, now)
        db.session.commit()
        return visit, closed

    visit, closed = run_with_retry(_op, attempts=1)
    logger.info("Visit %s seat %d checked out%s", visit_id, seat_no, " (visit closed)" if closed else "")
    publish(seat_changed, visit_id=visit_id, kind="ended", seat_nos=[seat_no])
    if closed:
        publish(visit_changed, visit_id=visit_id, kind="closed")
    return visit


def end_people(visit_id: str, people) -> Visit:
    """
    Check out ``people`` guests, lowest active seat numbers first.

    Checking out everyone still inside closes the visit.
    """
    people = parse_positive_int(people, "people", maximum=MAX_PAX)

    def _op():
        visit = _lock_visit(visit_id)
        _require_active(visit)
        now = utcnow()

        inside = len(active_seats(visit, now)) if has_seat_rows(visit) else visit.pax
        if people > inside:
            raise InvalidInputError(f"Only {inside} guest(s) are still inside")

        if people == inside and not has_seat_rows(visit):
            _close_locked(visit, now)
            db.session.commit()
            return visit, [], True

        materialize_locked(visit, now)
        chosen = active_seats(visit, now)[:people]
        for seat in chosen:
            _end_seat_locked(visit, seat, now)
        closed = _finish_partial_checkout(visit, now)
        db.session.commit()
        return visit, [s.seat_no for s in chosen], closed

    visit, seat_nos, closed = run_with_retry(_op, attempts=1)
    logger.info("Visit %s checked out %d guest(s)%s", visit_id, people, " (visit closed)" if closed else "")
    if seat_nos:
        publish(seat_changed, visit_id=visit_id, kind="ended", seat_nos=seat_nos)
    if closed:
        publish(visit_changed, visit_id=visit_id, kind="closed")
    return visit
