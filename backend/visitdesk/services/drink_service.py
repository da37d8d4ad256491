# Overview: Per-visit drink counter capped by party size.

"""
Drink Counter

drinks_collected only ever grows and never exceeds pax. The increment is a
single conditional UPDATE:

    UPDATE visits
       SET drinks_collected = drinks_collected + :qty
     WHERE id = :id AND status = 'ACTIVE' AND drinks_collected + :qty <= pax

so two simultaneous requests both apply (or the second is rejected) and no
read-modify-write window exists. Overflow is rejected, never clamped.
"""

from __future__ import annotations

import logging

from sqlalchemy import update

from ..errors import NotFoundError, OverLimitError, VisitNotActiveError
from ..extensions import db
from ..models import Visit
from ..models.visits import VISIT_STATUS_ACTIVE
from ..validation import MAX_PAX, parse_positive_int
from .change_feed import drink_count_changed, publish
from .concurrency import run_with_retry

logger = logging.getLogger(__name__)


def collect_drink(visit_id: str, qty=1) -> int:
    """
    Record ``qty`` drinks handed to the party; returns the new count.

    Raises:
        InvalidInputError: qty < 1
        NotFoundError: unknown visit
        VisitNotActiveError: visit is DRAFT or CLOSED
        OverLimitError: count would exceed pax (nothing is changed)
    """
    qty = parse_positive_int(qty, "qty", maximum=MAX_PAX)

    def _op():
        stmt = (
            update(Visit)
            .where(
                Visit.id == visit_id,
                Visit.status == VISIT_STATUS_ACTIVE,
                Visit.drinks_collected + qty <= Visit.pax,
            )
            .values(
                drinks_collected=Visit.drinks_collected + qty,
                version_id=Visit.version_id + 1,
            )
            .execution_options(synchronize_session=False)
        )
        result = db.session.execute(stmt)

        if result.rowcount != 1:
            db.session.rollback()
            _raise_rejection(visit_id, qty)

        new_count = db.session.query(Visit.drinks_collected).filter(Visit.id == visit_id).scalar()
        db.session.commit()
        return new_count

    new_count = run_with_retry(_op, attempts=1)
    logger.info("Visit %s collected %d drink(s), now %d", visit_id, qty, new_count)
    publish(drink_count_changed, visit_id=visit_id, kind="collected", drinks_collected=new_count)
    return new_count


def _raise_rejection(visit_id: str, qty: int) -> None:
    visit = db.session.get(Visit, visit_id)
    if visit is None:
        raise NotFoundError(f"Visit {visit_id} not found")
    # Identity map may hold a copy from before the UPDATE
    db.session.refresh(visit)
    if visit.status != VISIT_STATUS_ACTIVE:
        raise VisitNotActiveError(f"Visit {visit_id} is {visit.status}; drinks can only be collected while ACTIVE")
    remaining = visit.pax - visit.drinks_collected
    raise OverLimitError(
        f"Cannot collect {qty} drink(s): {visit.drinks_collected}/{visit.pax} already collected, {remaining} left",
        details={"drinks_collected": visit.drinks_collected, "pax": visit.pax},
    )
