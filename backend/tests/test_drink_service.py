"""Drink counter: bounded by pax, never decreasing."""

import pytest

from visitdesk.errors import InvalidInputError, NotFoundError, OverLimitError, VisitNotActiveError
from visitdesk.services import drink_service, visit_service


def test_collect_until_everyone_has_a_drink(db_session, start_visit):
    visit = start_visit(pax=3)

    assert drink_service.collect_drink(visit.id) == 1
    assert drink_service.collect_drink(visit.id, 2) == 3
    assert visit_service.get_visit(visit.id).drinks_collected == 3


def test_single_guest_second_drink_is_rejected(db_session, start_visit):
    visit = start_visit(pax=1)
    drink_service.collect_drink(visit.id, 1)

    with pytest.raises(OverLimitError) as excinfo:
        drink_service.collect_drink(visit.id, 1)

    assert excinfo.value.details == {"drinks_collected": 1, "pax": 1}
    assert visit_service.get_visit(visit.id).drinks_collected == 1


def test_overflow_is_rejected_not_clamped(db_session, start_visit):
    visit = start_visit(pax=3)
    drink_service.collect_drink(visit.id, 2)

    with pytest.raises(OverLimitError):
        drink_service.collect_drink(visit.id, 2)

    assert visit_service.get_visit(visit.id).drinks_collected == 2


@pytest.mark.parametrize("qty", [0, -1, "x", 1.0, True])
def test_qty_must_be_positive_integer(db_session, start_visit, qty):
    visit = start_visit(pax=2)

    with pytest.raises(InvalidInputError):
        drink_service.collect_drink(visit.id, qty)
    assert visit_service.get_visit(visit.id).drinks_collected == 0


def test_drinks_need_an_active_visit(db_session, start_visit, prices):
    draft = visit_service.create_visit("Early", 2)
    closed = start_visit(pax=2)
    visit_service.end_visit(closed.id)

    with pytest.raises(VisitNotActiveError):
        drink_service.collect_drink(draft.id)
    with pytest.raises(VisitNotActiveError):
        drink_service.collect_drink(closed.id)
    with pytest.raises(NotFoundError):
        drink_service.collect_drink("missing")


def test_drink_count_survives_partial_checkout(db_session, start_visit):
    visit = start_visit(pax=2)
    drink_service.collect_drink(visit.id, 2)

    visit = visit_service.end_seat(visit.id, 1)

    assert visit.drinks_collected == 2
