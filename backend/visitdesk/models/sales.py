from __future__ import annotations

from ..extensions import db
from visitdesk.time_utils import to_utc_z


class Payment(db.Model):
    """
    Money collected at the counter.

    Append-only audit trail: rows are never updated or deleted, and they
    outlive the visit they reference. Exactly one row is written per
    check-in, per extension and per standalone sale.

    KINDS:
    - CHECKIN: first payment that activates a visit
    - EXTENSION: paid time added to one or more seats
    - SALE: standalone counter sale (visit_id is NULL)
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.CheckConstraint("amount_cents >= 0", name="ck_payments_amount_non_negative"),
        db.Index("ix_payments_visit_paid", "visit_id", "paid_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # No FK cascade: payments must survive an abandoned draft's removal
    visit_id = db.Column(db.String(32), nullable=True, index=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)

    kind = db.Column(db.String(16), nullable=False, index=True)
    method = db.Column(db.String(16), nullable=False, index=True)
    amount_cents = db.Column(db.Integer, nullable=False)

    # Client-supplied key so a retried request replays instead of charging twice
    idempotency_key = db.Column(db.String(64), nullable=True, unique=True)

    # Free-form breakdown, e.g. "seats=1,2;hours=1;unit_cents=500"
    note = db.Column(db.String(255), nullable=True)

    paid_at = db.Column(db.DateTime, nullable=False, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "visit_id": self.visit_id,
            "sale_id": self.sale_id,
            "kind": self.kind,
            "method": self.method,
            "amount_cents": self.amount_cents,
            "note": self.note,
            "paid_at": to_utc_z(self.paid_at),
        }


class Sale(db.Model):
    """Standalone counter sale (drinks, snacks, donations) not tied to seat time."""
    __tablename__ = "sales"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    status = db.Column(db.String(16), nullable=False, default="PAID")
    method = db.Column(db.String(16), nullable=False)

    items_total_cents = db.Column(db.Integer, nullable=False, default=0)
    donation_cents = db.Column(db.Integer, nullable=False, default=0)
    amount_cents = db.Column(db.Integer, nullable=False)

    paid_at = db.Column(db.DateTime, nullable=False, index=True)

    lines = db.relationship("SaleLine", back_populates="sale", lazy=True, order_by="SaleLine.id")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "status": self.status,
            "method": self.method,
            "items_total_cents": self.items_total_cents,
            "donation_cents": self.donation_cents,
            "amount_cents": self.amount_cents,
            "paid_at": to_utc_z(self.paid_at),
            "lines": [line.to_dict() for line in self.lines],
        }


class SaleLine(db.Model):
    __tablename__ = "sale_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    # Price snapshot at time of sale
    unit_price_cents = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)

    sale = db.relationship("Sale", back_populates="lines")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
        }
