"""Visit lifecycle: check-in, activation, checkout."""

from datetime import timedelta

import pytest

from visitdesk.errors import (
    ConflictError,
    InvalidInputError,
    InvalidSeatError,
    InvalidTransitionError,
    NotFoundError,
    PricingUnavailableError,
    VisitNotActiveError,
)
from visitdesk.models import Payment, Visit, VisitSeat
from visitdesk.models.visits import VISIT_STATUS_ACTIVE, VISIT_STATUS_CLOSED, VISIT_STATUS_DRAFT
from visitdesk.services import extension_service, seat_ledger_service, visit_service


class TestCheckIn:
    def test_create_visit_is_draft_without_clock(self, db_session):
        visit = visit_service.create_visit("  Bob  ", 3)

        assert visit.status == VISIT_STATUS_DRAFT
        assert visit.name == "Bob"
        assert visit.pax == 3
        assert visit.drinks_collected == 0
        assert visit.estimated_end_time is None
        assert db_session.query(Payment).count() == 0

    @pytest.mark.parametrize("name,pax", [("", 2), ("   ", 2), (None, 2), ("Bob", 0), ("Bob", -1), ("Bob", "two")])
    def test_create_visit_rejects_bad_input(self, db_session, name, pax):
        with pytest.raises(InvalidInputError):
            visit_service.create_visit(name, pax)
        assert db_session.query(Visit).count() == 0

    def test_start_visit_charges_first_and_subsequent_hours(self, db_session, prices, clock):
        visit = visit_service.create_visit("Bob", 3)

        payment = visit_service.start_visit(visit.id, 2, 10, "CASH")

        visit = visit_service.get_visit(visit.id)
        assert payment.amount_cents == 6000
        assert payment.method == "CASH"
        assert payment.kind == "CHECKIN"
        assert payment.visit_id == visit.id
        assert visit.status == VISIT_STATUS_ACTIVE
        assert visit.started_at == clock.now()
        assert visit.estimated_end_time == clock.now() + timedelta(minutes=130)

    def test_start_visit_uses_configured_buffer(self, db_session, prices, clock):
        visit = visit_service.create_visit("Ann", 1)

        payment = visit_service.start_visit(visit.id, 1, method="PAYNOW")

        assert payment.amount_cents == 1500
        assert visit_service.get_visit(visit.id).estimated_end_time == clock.now() + timedelta(minutes=70)

    def test_start_visit_only_from_draft(self, db_session, start_visit):
        visit = start_visit(pax=2)

        with pytest.raises(InvalidTransitionError):
            visit_service.start_visit(visit.id, 1, 10, "CASH")
        assert db_session.query(Payment).filter_by(visit_id=visit.id).count() == 1

    @pytest.mark.parametrize("hours,method", [(0, "CASH"), (-1, "CASH"), (1.5, "CASH"), (1, "CARD"), (1, None)])
    def test_start_visit_rejects_bad_input(self, db_session, prices, clock, hours, method):
        visit = visit_service.create_visit("Bob", 2)

        with pytest.raises(InvalidInputError):
            visit_service.start_visit(visit.id, hours, 10, method)

        assert visit_service.get_visit(visit.id).status == VISIT_STATUS_DRAFT
        assert db_session.query(Payment).count() == 0

    def test_start_visit_without_pricing_leaves_draft(self, db_session, prices, clock):
        prices["Subsequent hour"].is_active = False
        db_session.commit()
        visit = visit_service.create_visit("Bob", 2)

        with pytest.raises(PricingUnavailableError):
            visit_service.start_visit(visit.id, 1, 10, "CASH")

        assert visit_service.get_visit(visit.id).status == VISIT_STATUS_DRAFT
        assert db_session.query(Payment).count() == 0

    def test_start_visit_replays_idempotency_key(self, db_session, prices, clock):
        visit = visit_service.create_visit("Bob", 2)

        first = visit_service.start_visit(visit.id, 1, 10, "CASH", idempotency_key="chk-1")
        second = visit_service.start_visit(visit.id, 1, 10, "CASH", idempotency_key="chk-1")

        assert first.id == second.id
        assert db_session.query(Payment).count() == 1

    def test_idempotency_key_cannot_cover_another_visit(self, db_session, prices, clock):
        a = visit_service.create_visit("A", 1)
        b = visit_service.create_visit("B", 1)
        visit_service.start_visit(a.id, 1, 10, "CASH", idempotency_key="shared")

        with pytest.raises(ConflictError):
            visit_service.start_visit(b.id, 1, 10, "CASH", idempotency_key="shared")
        assert visit_service.get_visit(b.id).status == VISIT_STATUS_DRAFT

    def test_unknown_visit(self, db_session, prices):
        with pytest.raises(NotFoundError):
            visit_service.start_visit("missing", 1, 10, "CASH")


class TestAbandon:
    def test_abandon_draft_deletes_it(self, db_session):
        visit = visit_service.create_visit("Bob", 2)

        visit_service.abandon_draft(visit.id)

        assert db_session.get(Visit, visit.id) is None

    def test_active_visit_cannot_be_abandoned(self, db_session, start_visit):
        visit = start_visit(pax=2)

        with pytest.raises(InvalidTransitionError):
            visit_service.abandon_draft(visit.id)
        assert visit_service.get_visit(visit.id).status == VISIT_STATUS_ACTIVE


class TestCheckout:
    def test_end_seat_closes_visit_after_last_seat(self, db_session, start_visit):
        visit = start_visit(pax=3)
        visit_service.end_seat(visit.id, 3)

        visit = visit_service.end_seat(visit.id, 2)
        assert visit.status == VISIT_STATUS_ACTIVE
        assert seat_ledger_service.people_remaining(visit) == 1
        ended = {s.seat_no for s in visit.seats if s.ended_at is not None}
        assert ended == {2, 3}

        visit = visit_service.end_seat(visit.id, 1)
        assert visit.status == VISIT_STATUS_CLOSED
        assert visit.closed_at is not None

    def test_end_seat_materializes_unsplit_visit(self, db_session, start_visit, clock):
        visit = start_visit(pax=2)

        visit = visit_service.end_seat(visit.id, 1)

        seats = {s.seat_no: s for s in visit.seats}
        assert seats[1].ended_at == clock.now()
        assert seats[1].end_time == clock.now()
        assert seats[2].ended_at is None
        assert visit.status == VISIT_STATUS_ACTIVE

    def test_end_seat_single_pax_closes_without_seat_rows(self, db_session, start_visit):
        visit = start_visit(pax=1)

        visit = visit_service.end_seat(visit.id, 1)

        assert visit.status == VISIT_STATUS_CLOSED
        assert db_session.query(VisitSeat).filter_by(visit_id=visit.id).count() == 0

    def test_end_seat_rejects_bad_seats(self, db_session, start_visit):
        visit = start_visit(pax=2)
        visit_service.end_seat(visit.id, 1)

        with pytest.raises(InvalidSeatError):
            visit_service.end_seat(visit.id, 3)
        with pytest.raises(InvalidSeatError):
            visit_service.end_seat(visit.id, 1)

    def test_end_seat_on_closed_visit(self, db_session, start_visit):
        visit = start_visit(pax=2)
        visit_service.end_visit(visit.id)

        with pytest.raises(VisitNotActiveError):
            visit_service.end_seat(visit.id, 1)

    def test_end_seat_refreshes_group_clock(self, db_session, start_visit, clock):
        visit = start_visit(pax=2)
        extension_service.extend_seats_and_collect_payment(visit.id, [2], 1, "CASH")

        visit = visit_service.end_seat(visit.id, 2)

        assert visit.estimated_end_time == clock.now() + timedelta(minutes=70)

    def test_end_people_checks_out_lowest_seats(self, db_session, start_visit):
        visit = start_visit(pax=3)

        visit = visit_service.end_people(visit.id, 2)

        active = [s.seat_no for s in seat_ledger_service.active_seats(visit)]
        assert active == [3]
        assert visit.status == VISIT_STATUS_ACTIVE

    def test_end_people_everyone_closes_unsplit_visit(self, db_session, start_visit):
        visit = start_visit(pax=3)

        visit = visit_service.end_people(visit.id, 3)

        assert visit.status == VISIT_STATUS_CLOSED
        assert db_session.query(VisitSeat).filter_by(visit_id=visit.id).count() == 0

    def test_end_people_more_than_inside(self, db_session, start_visit):
        visit = start_visit(pax=3)
        visit_service.end_seat(visit.id, 1)

        with pytest.raises(InvalidInputError):
            visit_service.end_people(visit.id, 3)

    def test_end_visit_ends_remaining_seats(self, db_session, start_visit, clock):
        visit = start_visit(pax=3)
        seat_ledger_service.materialize(visit.id)

        visit = visit_service.end_visit(visit.id)

        assert visit.status == VISIT_STATUS_CLOSED
        assert all(s.ended_at == clock.now() for s in visit.seats)
        assert seat_ledger_service.people_remaining(visit) == 0

    def test_closed_is_terminal(self, db_session, start_visit):
        visit = start_visit(pax=1)
        visit_service.end_visit(visit.id)

        with pytest.raises(VisitNotActiveError):
            visit_service.end_visit(visit.id)
        with pytest.raises(InvalidTransitionError):
            visit_service.start_visit(visit.id, 1, 10, "CASH")

    def test_list_active_visits_excludes_draft_and_closed(self, db_session, start_visit):
        visit_service.create_visit("Draft", 2)
        closed = start_visit(pax=1, name="Closed")
        visit_service.end_visit(closed.id)
        active = start_visit(pax=2, name="Active")

        assert [v.id for v in visit_service.list_active_visits()] == [active.id]
