# Overview: Append-only payment records for check-ins, extensions and sales.

"""
Payment Recording

Payments are never updated or deleted. Callers own the transaction:
record_payment only adds and flushes, so the payment commits or rolls back
together with the seat/visit changes it pays for.
"""

from __future__ import annotations

from datetime import datetime

from ..errors import InvalidInputError
from ..extensions import db
from ..models import Payment


METHOD_CASH = "CASH"
METHOD_PAYNOW = "PAYNOW"

VALID_METHODS = [METHOD_CASH, METHOD_PAYNOW]

KIND_CHECKIN = "CHECKIN"
KIND_EXTENSION = "EXTENSION"
KIND_SALE = "SALE"


def validate_method(method) -> str:
    if method not in VALID_METHODS:
        raise InvalidInputError(f"Invalid payment method: {method}. Must be one of {VALID_METHODS}")
    return method


def validate_idempotency_key(key) -> str | None:
    if key is None:
        return None
    if not isinstance(key, str) or not key.strip() or len(key) > 64:
        raise InvalidInputError("idempotency_key must be a non-empty string of at most 64 characters")
    return key.strip()


def record_payment(
    *,
    kind: str,
    method: str,
    amount_cents: int,
    paid_at: datetime,
    visit_id: str | None = None,
    sale_id: int | None = None,
    idempotency_key: str | None = None,
    note: str | None = None,
) -> Payment:
    if amount_cents < 0:
        raise InvalidInputError("Payment amount cannot be negative")

    payment = Payment(
        visit_id=visit_id,
        sale_id=sale_id,
        kind=kind,
        method=validate_method(method),
        amount_cents=amount_cents,
        idempotency_key=idempotency_key,
        note=note,
        paid_at=paid_at,
    )
    db.session.add(payment)
    db.session.flush()
    return payment


def find_by_idempotency_key(key: str | None) -> Payment | None:
    if not key:
        return None
    return db.session.query(Payment).filter_by(idempotency_key=key).first()


def get_visit_payments(visit_id: str) -> list[Payment]:
    return (
        db.session.query(Payment)
        .filter_by(visit_id=visit_id)
        .order_by(Payment.paid_at, Payment.id)
        .all()
    )
