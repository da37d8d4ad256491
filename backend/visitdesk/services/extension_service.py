# Overview: Paid time extensions for seats of an ACTIVE visit.

"""
Extension / Payment Transaction

WHY: Adding time and taking money must never drift apart. Every entry point
here runs ONE transaction that:

    1. materializes seat rows if the visit was never split
    2. sets end_time = max(current end_time, now) + add_hours for each seat
    3. appends one Payment for seats * hours * "Extension hour" price
    4. refreshes Visit.estimated_end_time (display cache) from seat state

and commits it as a unit. Any failure rolls back all four steps.

ANCHORING: a seat whose time already lapsed is extended from now, not from
its stale end_time, so a paid hour is always a full hour from the moment
of payment.

RETRIES: none. A lost race surfaces as ConflictError; the caller decides
whether to repeat, and must send an idempotency_key if it does.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from ..errors import ConflictError, InvalidInputError, InvalidSeatError, NotFoundError, VisitNotActiveError
from ..extensions import db
from ..models import Payment, Visit, VisitSeat
from ..models.visits import VISIT_STATUS_ACTIVE
from ..validation import MAX_HOURS, MAX_PAX, parse_int_list, parse_positive_int
from visitdesk.time_utils import utcnow
from . import payment_service, pricing_service
from .change_feed import publish, seat_changed, visit_changed
from .concurrency import lock_for_update, run_with_retry
from .seat_ledger_service import group_end_time, has_seat_rows, materialize_locked, present_seats

logger = logging.getLogger(__name__)


def _extended(end_time: datetime | None, now: datetime, add_hours: int) -> datetime:
    base = end_time if end_time is not None and end_time > now else now
    return base + timedelta(hours=add_hours)


def _lock_active_visit(visit_id: str) -> Visit:
    visit = lock_for_update(db.session.query(Visit).filter_by(id=visit_id)).first()
    if not visit:
        raise NotFoundError(f"Visit {visit_id} not found")
    if visit.status != VISIT_STATUS_ACTIVE:
        raise VisitNotActiveError(f"Visit {visit_id} is {visit.status}; only ACTIVE visits can be extended")
    return visit


def _check_replay(idempotency_key: str | None, visit_id: str) -> Payment | None:
    replay = payment_service.find_by_idempotency_key(idempotency_key)
    if replay is None:
        return None
    if replay.visit_id != visit_id or replay.kind != payment_service.KIND_EXTENSION:
        raise ConflictError("idempotency_key was already used for a different payment")
    return replay


def _validate_common(add_hours, method, idempotency_key) -> tuple[int, str | None]:
    add_hours = parse_positive_int(add_hours, "add_hours", maximum=MAX_HOURS)
    payment_service.validate_method(method)
    return add_hours, payment_service.validate_idempotency_key(idempotency_key)


def _extend_seats_locked(
    visit: Visit,
    seat_nos: list[int],
    add_hours: int,
    method: str,
    now: datetime,
    idempotency_key: str | None,
    price_lookup,
) -> Payment:
    for seat_no in seat_nos:
        if seat_no < 1 or seat_no > visit.pax:
            raise InvalidSeatError(f"Seat {seat_no} is not part of this visit (1..{visit.pax})")

    # Price first: a missing catalog entry must abort before anything changes
    amount, unit = pricing_service.extension_total_cents(len(seat_nos), add_hours, price_lookup)

    materialize_locked(visit, now)

    seats = (
        lock_for_update(
            db.session.query(VisitSeat)
            .filter(VisitSeat.visit_id == visit.id, VisitSeat.seat_no.in_(seat_nos))
        )
        .order_by(VisitSeat.seat_no)
        .all()
    )
    found = {s.seat_no for s in seats}
    missing = [n for n in seat_nos if n not in found]
    if missing:
        raise InvalidSeatError(f"Seat(s) {', '.join(map(str, missing))} not found")

    for seat in seats:
        if seat.ended_at is not None:
            raise InvalidSeatError(f"Seat {seat.seat_no} has already checked out")
        seat.end_time = _extended(seat.end_time, now, add_hours)

    payment = payment_service.record_payment(
        visit_id=visit.id,
        kind=payment_service.KIND_EXTENSION,
        method=method,
        amount_cents=amount,
        paid_at=now,
        idempotency_key=idempotency_key,
        note=f"seats={','.join(map(str, sorted(seat_nos)))};hours={add_hours};unit_cents={unit}",
    )

    visit.estimated_end_time = group_end_time(visit, now)
    return payment


def _extend_group_clock_locked(
    visit: Visit,
    add_hours: int,
    method: str,
    now: datetime,
    idempotency_key: str | None,
    price_lookup,
) -> Payment:
    """Whole-party extension for a visit that was never split: no seat rows needed."""
    amount, unit = pricing_service.extension_total_cents(visit.pax, add_hours, price_lookup)

    visit.estimated_end_time = _extended(visit.estimated_end_time, now, add_hours)

    return payment_service.record_payment(
        visit_id=visit.id,
        kind=payment_service.KIND_EXTENSION,
        method=method,
        amount_cents=amount,
        paid_at=now,
        idempotency_key=idempotency_key,
        note=f"group;pax={visit.pax};hours={add_hours};unit_cents={unit}",
    )


def _run_extension(visit_id: str, pick, add_hours: int, method: str, idempotency_key, price_lookup) -> Payment:
    """
    Shared transaction wrapper. ``pick(visit, now)`` returns the seat numbers
    to extend, or None to extend the un-split group clock.
    """
    def _op():
        replay = _check_replay(idempotency_key, visit_id)
        if replay is not None:
            return replay, None, True

        visit = _lock_active_visit(visit_id)
        now = utcnow()
        seat_nos = pick(visit, now)
        if seat_nos is None:
            payment = _extend_group_clock_locked(visit, add_hours, method, now, idempotency_key, price_lookup)
        else:
            payment = _extend_seats_locked(visit, seat_nos, add_hours, method, now, idempotency_key, price_lookup)

        db.session.commit()
        return payment, seat_nos, False

    payment, seat_nos, replayed = run_with_retry(_op, attempts=1)
    if replayed:
        logger.info("Extension replayed for visit %s (payment %s)", visit_id, payment.id)
    else:
        _announce(visit_id, payment, seat_nos)
    return payment


def _announce(visit_id: str, payment: Payment, seat_nos) -> None:
    logger.info(
        "Visit %s extended (%s): %d cents %s",
        visit_id,
        "seats " + ",".join(map(str, seat_nos)) if seat_nos else "group",
        payment.amount_cents,
        payment.method,
    )
    if seat_nos:
        publish(seat_changed, visit_id=visit_id, kind="extended", seat_nos=list(seat_nos))
    publish(visit_changed, visit_id=visit_id, kind="extended")


# =============================================================================
# PUBLIC OPERATIONS
# =============================================================================

def extend_seats_and_collect_payment(
    visit_id: str,
    seat_nos,
    add_hours,
    method: str,
    *,
    idempotency_key: str | None = None,
    price_lookup: pricing_service.PriceLookup | None = None,
) -> Payment:
    """
    Extend the named seats by ``add_hours`` and record one payment.

    amount = len(seat_nos) * add_hours * "Extension hour" price (looked up
    inside the transaction).

    Raises:
        InvalidInputError: add_hours < 1, empty or duplicated seat_nos, bad method
        InvalidSeatError: seat outside 1..pax or already checked out
        NotFoundError, VisitNotActiveError, PricingUnavailableError
        ConflictError: concurrent modification of the same visit
    """
    add_hours, idempotency_key = _validate_common(add_hours, method, idempotency_key)
    seat_nos = parse_int_list(seat_nos, "seat_nos")
    if not seat_nos:
        raise InvalidInputError("Select at least 1 seat to extend")
    if len(set(seat_nos)) != len(seat_nos):
        raise InvalidInputError("seat_nos contains duplicates")

    return _run_extension(
        visit_id, lambda visit, now: list(seat_nos), add_hours, method, idempotency_key, price_lookup
    )


def extend_visit(
    visit_id: str,
    add_hours,
    method: str,
    *,
    idempotency_key: str | None = None,
    price_lookup: pricing_service.PriceLookup | None = None,
) -> Payment:
    """
    Extend everyone who has not checked out.

    Un-split visits move their group clock (no seat rows are created);
    split visits extend every seat without ended_at, re-anchoring lapsed
    seats from now.
    """
    add_hours, idempotency_key = _validate_common(add_hours, method, idempotency_key)

    def _pick(visit: Visit, now: datetime):
        if not has_seat_rows(visit):
            return None
        seat_nos = [s.seat_no for s in present_seats(visit)]
        if not seat_nos:
            raise InvalidInputError("Every guest in this visit has checked out")
        return seat_nos

    return _run_extension(visit_id, _pick, add_hours, method, idempotency_key, price_lookup)


def extend_people(
    visit_id: str,
    people,
    add_hours,
    method: str,
    *,
    idempotency_key: str | None = None,
    price_lookup: pricing_service.PriceLookup | None = None,
) -> Payment:
    """Extend ``people`` guests, lowest seat numbers not yet checked out first."""
    add_hours, idempotency_key = _validate_common(add_hours, method, idempotency_key)
    people = parse_positive_int(people, "people", maximum=MAX_PAX)

    def _pick(visit: Visit, now: datetime):
        if not has_seat_rows(visit):
            if people == visit.pax:
                return None
            if people > visit.pax:
                raise InvalidInputError(f"Only {visit.pax} guest(s) are in this visit")
            return list(range(1, people + 1))
        seat_nos = [s.seat_no for s in present_seats(visit)]
        if people > len(seat_nos):
            raise InvalidInputError(f"Only {len(seat_nos)} guest(s) have not checked out")
        return seat_nos[:people]

    return _run_extension(visit_id, _pick, add_hours, method, idempotency_key, price_lookup)
