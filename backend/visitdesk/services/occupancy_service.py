# Overview: Derived occupancy views for the live dashboard.

"""
Occupancy Aggregator

Nothing here is stored. Every figure is recomputed from visit and seat
state at read time, so a countdown is just ``end_time - now`` evaluated on
each request.
"""

from __future__ import annotations

import logging
from collections import Counter, deque
from datetime import datetime
from typing import Callable, Iterable

from sqlalchemy.exc import SQLAlchemyError

from ..models import Visit
from ..models.visits import VISIT_STATUS_ACTIVE
from visitdesk.time_utils import seconds_until, to_utc_z, utcnow
from . import change_feed
from .visit_service import list_active_visits
from .seat_ledger_service import active_seats, group_end_time, has_seat_rows, people_remaining, selectable_seat_nos

logger = logging.getLogger(__name__)


def _people_or_pax(visit: Visit, now: datetime) -> int:
    try:
        return people_remaining(visit, now)
    except SQLAlchemyError:
        # Degrade to full pax for this visit
        logger.warning("Seats for visit %s failed to load; counting full pax", visit.id, exc_info=True)
        return visit.pax


def total_people_inside(visits: Iterable[Visit] | None = None, now: datetime | None = None) -> int:
    """Sum of people_remaining over ACTIVE visits."""
    now = now or utcnow()
    if visits is None:
        visits = list_active_visits()
    return sum(_people_or_pax(v, now) for v in visits if v.status == VISIT_STATUS_ACTIVE)


def seat_timers(visit: Visit, now: datetime) -> list[dict]:
    """Active seats grouped by shared end time, soonest first."""
    if not has_seat_rows(visit):
        return []
    fallback = group_end_time(visit, now)
    counts = Counter(s.end_time or fallback for s in active_seats(visit, now))
    return [
        {"end_time": to_utc_z(end), "count": count, "seconds_left": seconds_until(end, now)}
        for end, count in sorted(counts.items(), key=lambda item: (item[0] is None, item[0] or now))
    ]


def visit_card(visit: Visit, now: datetime | None = None) -> dict:
    now = now or utcnow()
    end = group_end_time(visit, now)
    inside = _people_or_pax(visit, now)
    return {
        "id": visit.id,
        "name": visit.name,
        "pax": visit.pax,
        "status": visit.status,
        "people_remaining": inside,
        "group_end_time": to_utc_z(end),
        "seconds_left": seconds_until(end, now),
        "has_seat_rows": has_seat_rows(visit),
        "can_partial_checkout": has_seat_rows(visit) and inside > 1,
        "selectable_seat_nos": selectable_seat_nos(visit, now),
        "seat_timers": seat_timers(visit, now),
        "drinks_collected": visit.drinks_collected,
        "drinks_complete": visit.drinks_collected >= visit.pax,
    }


def dashboard(now: datetime | None = None) -> dict:
    now = now or utcnow()
    visits = list_active_visits()
    return {
        "generated_at": to_utc_z(now),
        "visits": [visit_card(v, now) for v in visits],
        "total_people_inside": total_people_inside(visits, now),
    }


class OccupancyWatcher:
    """
    Change-feed subscriber that recomputes the head count on every event.

    Each watcher keeps only its own last result; nothing is shared between
    readers. ``on_change`` (optional) receives the fresh total. ``events``
    holds only the most recent ``history`` (kind, visit_id) pairs.
    """

    def __init__(self, on_change: Callable[[int], None] | None = None, history: int = 100):
        self.on_change = on_change
        self.last_total: int | None = None
        self.events: deque[tuple[str, str]] = deque(maxlen=history)
        for signal in change_feed.ALL_SIGNALS:
            signal.connect(self._handle, weak=False)

    def _handle(self, sender, **kwargs) -> None:
        self.events.append((kwargs.get("kind"), kwargs.get("visit_id")))
        self.last_total = total_people_inside()
        if self.on_change is not None:
            self.on_change(self.last_total)

    def close(self) -> None:
        for signal in change_feed.ALL_SIGNALS:
            signal.disconnect(self._handle)
