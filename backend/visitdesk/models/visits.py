from __future__ import annotations

import uuid

from ..extensions import db
from visitdesk.time_utils import to_utc_z


VISIT_STATUS_DRAFT = "DRAFT"
VISIT_STATUS_ACTIVE = "ACTIVE"
VISIT_STATUS_CLOSED = "CLOSED"

VALID_VISIT_STATUSES = {VISIT_STATUS_DRAFT, VISIT_STATUS_ACTIVE, VISIT_STATUS_CLOSED}


def _new_visit_id() -> str:
    return uuid.uuid4().hex


class Visit(db.Model):
    """
    One checked-in party occupying the venue for a paid time window.

    TIMER MODEL:
    - No seat rows: estimated_end_time is the single group clock.
    - Seat rows exist: each seat carries its own end_time and
      estimated_end_time is only a display cache of max(active end_time).

    STATE MACHINE: DRAFT -> ACTIVE -> CLOSED (terminal). A DRAFT may be
    deleted outright; ACTIVE and CLOSED visits never are.
    """
    __tablename__ = "visits"
    __table_args__ = (
        db.CheckConstraint("pax >= 1", name="ck_visits_pax_positive"),
        db.CheckConstraint(
            "drinks_collected >= 0 AND drinks_collected <= pax",
            name="ck_visits_drinks_within_pax",
        ),
        db.Index("ix_visits_status_end", "status", "estimated_end_time"),
    )

    id = db.Column(db.String(32), primary_key=True, default=_new_visit_id)

    name = db.Column(db.String(120), nullable=False)
    pax = db.Column(db.Integer, nullable=False)

    status = db.Column(db.String(16), nullable=False, default=VISIT_STATUS_DRAFT, index=True)

    estimated_end_time = db.Column(db.DateTime, nullable=True)
    drinks_collected = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime, nullable=False, server_default=db.func.now())
    started_at = db.Column(db.DateTime, nullable=True)
    closed_at = db.Column(db.DateTime, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    seats = db.relationship(
        "VisitSeat",
        back_populates="visit",
        order_by="VisitSeat.seat_no",
        cascade="all, delete-orphan",
        lazy=True,
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "pax": self.pax,
            "status": self.status,
            "estimated_end_time": to_utc_z(self.estimated_end_time),
            "drinks_collected": self.drinks_collected,
            "created_at": to_utc_z(self.created_at),
            "started_at": to_utc_z(self.started_at),
            "closed_at": to_utc_z(self.closed_at),
            "seats": [s.to_dict() for s in self.seats],
        }


class VisitSeat(db.Model):
    """
    One person-slot inside a visit with its own expiry.

    Created lazily (see seat_ledger_service.materialize). A checked-out seat
    keeps its row: end_time is pulled back to the checkout instant and
    ended_at records when that happened.
    """
    __tablename__ = "visit_seats"
    __table_args__ = (
        db.UniqueConstraint("visit_id", "seat_no", name="uq_visit_seats_visit_seat"),
        db.CheckConstraint("seat_no >= 1", name="ck_visit_seats_seat_no_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    visit_id = db.Column(db.String(32), db.ForeignKey("visits.id", ondelete="CASCADE"), nullable=False, index=True)
    seat_no = db.Column(db.Integer, nullable=False)

    end_time = db.Column(db.DateTime, nullable=True)
    ended_at = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, server_default=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    visit = db.relationship("Visit", back_populates="seats")
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "seat_no": self.seat_no,
            "end_time": to_utc_z(self.end_time),
            "ended_at": to_utc_z(self.ended_at),
        }
