"""Derived occupancy: people inside, countdowns and the change feed."""

from datetime import timedelta

from visitdesk.models import VisitSeat
from visitdesk.services import (
    drink_service,
    extension_service,
    occupancy_service,
    seat_ledger_service,
    visit_service,
)
from visitdesk.services.occupancy_service import OccupancyWatcher


def test_total_counts_only_people_still_inside(db_session, start_visit, clock):
    split = start_visit(pax=4, name="Split")
    start_visit(pax=3, name="Whole")
    visit_service.create_visit("Draft", 5)

    seat_ledger_service.materialize(split.id)
    for seat in db_session.query(VisitSeat).filter(VisitSeat.visit_id == split.id, VisitSeat.seat_no <= 2):
        seat.end_time = clock.now() - timedelta(minutes=1)
    db_session.commit()

    assert seat_ledger_service.people_remaining(visit_service.get_visit(split.id)) == 2
    assert occupancy_service.total_people_inside() == 5


def test_total_drops_as_seats_expire(db_session, start_visit, clock):
    visit = start_visit(pax=2, hours=1)
    extension_service.extend_seats_and_collect_payment(visit.id, [2], 1, "CASH")

    assert occupancy_service.total_people_inside() == 2
    clock.advance(minutes=71)
    assert occupancy_service.total_people_inside() == 1
    clock.advance(hours=1)
    assert occupancy_service.total_people_inside() == 0


def test_visit_card_for_unsplit_visit(db_session, start_visit, clock):
    visit = start_visit(pax=3, hours=2)
    drink_service.collect_drink(visit.id, 1)

    card = occupancy_service.visit_card(visit_service.get_visit(visit.id))

    assert card["people_remaining"] == 3
    assert card["seconds_left"] == 130 * 60
    assert card["group_end_time"] == "2026-03-07T20:10:00Z"
    assert card["has_seat_rows"] is False
    assert card["can_partial_checkout"] is False
    assert card["selectable_seat_nos"] == [1, 2, 3]
    assert card["seat_timers"] == []
    assert card["drinks_collected"] == 1
    assert card["drinks_complete"] is False


def test_visit_card_groups_seat_timers(db_session, start_visit, clock):
    visit = start_visit(pax=3, hours=1)
    extension_service.extend_seats_and_collect_payment(visit.id, [3], 1, "CASH")

    card = occupancy_service.visit_card(visit_service.get_visit(visit.id))

    assert card["has_seat_rows"] is True
    assert card["can_partial_checkout"] is True
    assert card["seconds_left"] == 130 * 60
    assert card["seat_timers"] == [
        {"end_time": "2026-03-07T19:10:00Z", "count": 2, "seconds_left": 70 * 60},
        {"end_time": "2026-03-07T20:10:00Z", "count": 1, "seconds_left": 130 * 60},
    ]


def test_countdown_never_negative(db_session, start_visit, clock):
    visit = start_visit(pax=1)
    clock.advance(hours=5)

    card = occupancy_service.visit_card(visit_service.get_visit(visit.id))

    assert card["seconds_left"] == 0
    assert card["people_remaining"] == 1


def test_dashboard_lists_active_visits_soonest_first(db_session, start_visit, clock):
    later = start_visit(pax=2, hours=3, name="Later")
    sooner = start_visit(pax=1, hours=1, name="Sooner")

    data = occupancy_service.dashboard()

    assert [v["id"] for v in data["visits"]] == [sooner.id, later.id]
    assert data["total_people_inside"] == 3
    assert data["generated_at"] == "2026-03-07T18:00:00Z"


def test_watcher_recomputes_on_every_change(db_session, prices, clock):
    totals = []
    watcher = OccupancyWatcher(on_change=totals.append)
    try:
        visit = visit_service.create_visit("Watched", 3)
        visit_service.start_visit(visit.id, 1, 10, "CASH")
        drink_service.collect_drink(visit.id)
        visit_service.end_seat(visit.id, 1)
        visit_service.end_people(visit.id, 2)
    finally:
        watcher.close()

    kinds = [kind for kind, visit_id in watcher.events]
    assert kinds == ["created", "started", "collected", "ended", "ended", "closed"]
    assert all(visit_id == visit.id for _, visit_id in watcher.events)
    assert totals == [0, 3, 3, 2, 0, 0]
    assert watcher.last_total == 0


def test_closed_watcher_stops_receiving(db_session, prices, clock):
    watcher = OccupancyWatcher()
    watcher.close()

    visit_service.create_visit("Unwatched", 1)

    assert list(watcher.events) == []
    assert watcher.last_total is None


def test_watcher_keeps_bounded_history(db_session, prices, clock):
    watcher = OccupancyWatcher(history=2)
    try:
        first = visit_service.create_visit("One", 1)
        second = visit_service.create_visit("Two", 1)
        third = visit_service.create_visit("Three", 1)
    finally:
        watcher.close()

    assert list(watcher.events) == [("created", second.id), ("created", third.id)]
    assert ("created", first.id) not in watcher.events
