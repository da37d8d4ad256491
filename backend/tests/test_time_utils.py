"""Clock helpers."""

from datetime import datetime, timedelta, timezone

from visitdesk import time_utils


def test_utcnow_is_naive_wall_clock():
    now = time_utils.utcnow()
    wall = datetime.now(timezone.utc).replace(tzinfo=None)

    assert now.tzinfo is None
    assert abs((wall - now).total_seconds()) < 5


def test_clock_fixture_reaches_service_modules(clock):
    from visitdesk.services import occupancy_service, visit_service

    assert visit_service.utcnow() == clock.now()
    clock.advance(minutes=5)
    assert occupancy_service.utcnow() == datetime(2026, 3, 7, 18, 5, 0)


def test_seconds_until():
    now = datetime(2026, 1, 1, 12, 0, 0)

    assert time_utils.seconds_until(None, now) is None
    assert time_utils.seconds_until(now + timedelta(minutes=2), now) == 120
    assert time_utils.seconds_until(now - timedelta(minutes=2), now) == 0


def test_to_utc_z():
    assert time_utils.to_utc_z(None) is None
    assert time_utils.to_utc_z(datetime(2026, 1, 1, 12, 0, 0, 500)) == "2026-01-01T12:00:00Z"
    aware = datetime(2026, 1, 1, 20, 0, 0, tzinfo=timezone(timedelta(hours=8)))
    assert time_utils.to_utc_z(aware) == "2026-01-01T12:00:00Z"
