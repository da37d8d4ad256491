# Overview: Standalone counter sales (items and donations not tied to seat time).

"""
Standalone Sales

Prices always come from the catalog at the moment of sale; the client only
says which products and how many. The Sale, its lines and its Payment
(visit_id NULL) commit together.
"""

from __future__ import annotations

import logging

from ..errors import InvalidInputError
from ..extensions import db
from ..models import Product, Sale, SaleLine
from ..validation import MAX_PRICE_CENTS, parse_int
from visitdesk.time_utils import utcnow
from . import payment_service
from .concurrency import run_with_retry

logger = logging.getLogger(__name__)

MAX_LINE_QTY = 999


def _clean_items(items) -> list[tuple[int, int]]:
    """Merge duplicate products and drop zero quantities."""
    if items is None:
        return []
    if not isinstance(items, list):
        raise InvalidInputError("items must be a list")

    merged: dict[int, int] = {}
    for raw in items:
        if not isinstance(raw, dict):
            raise InvalidInputError("Each item must be an object with product_id and qty")
        product_id = parse_int(raw.get("product_id"), "product_id")
        qty = parse_int(raw.get("qty", 0), "qty")
        if qty < 0 or qty > MAX_LINE_QTY:
            raise InvalidInputError(f"qty must be between 0 and {MAX_LINE_QTY}")
        if qty == 0:
            continue
        merged[product_id] = merged.get(product_id, 0) + qty
    return list(merged.items())


def create_sale(items, method: str, donation_cents=0) -> Sale:
    """
    Record a paid counter sale.

    Raises:
        InvalidInputError: bad method, unknown or inactive product,
            nothing selected, or a zero total
    """
    payment_service.validate_method(method)
    lines = _clean_items(items)
    donation_cents = parse_int(donation_cents or 0, "donation_cents")
    if donation_cents < 0 or donation_cents > MAX_PRICE_CENTS:
        raise InvalidInputError("donation_cents must be between 0 and the maximum price")
    if not lines and donation_cents == 0:
        raise InvalidInputError("Select items or enter a donation amount")

    def _op():
        product_ids = [pid for pid, _ in lines]
        products = {}
        if product_ids:
            products = {
                p.id: p
                for p in db.session.query(Product).filter(Product.id.in_(product_ids)).all()
            }
        for pid in product_ids:
            product = products.get(pid)
            if product is None:
                raise InvalidInputError(f"Invalid product: {pid}")
            if not product.is_active:
                raise InvalidInputError(f"Inactive product: {product.name}")

        now = utcnow()
        items_total = sum(products[pid].price_cents * qty for pid, qty in lines)
        total = items_total + donation_cents
        if total <= 0:
            raise InvalidInputError("Total must be > 0")

        sale = Sale(
            status="PAID",
            method=method,
            items_total_cents=items_total,
            donation_cents=donation_cents,
            amount_cents=total,
            paid_at=now,
        )
        db.session.add(sale)
        db.session.flush()

        for pid, qty in lines:
            unit = products[pid].price_cents
            db.session.add(SaleLine(
                sale_id=sale.id,
                product_id=pid,
                quantity=qty,
                unit_price_cents=unit,
                line_total_cents=unit * qty,
            ))

        payment_service.record_payment(
            sale_id=sale.id,
            kind=payment_service.KIND_SALE,
            method=method,
            amount_cents=total,
            paid_at=now,
        )

        db.session.commit()
        return sale

    sale = run_with_retry(_op, attempts=1)
    logger.info("Sale %s recorded: %d cents %s", sale.id, sale.amount_cents, method)
    return sale
