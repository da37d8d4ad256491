# Overview: Read-through price lookups against the active product catalog.

"""
Pricing is read fresh inside every money-affecting transaction; nothing
here caches. Callers that need to substitute the catalog (tests, imports)
pass their own ``price_lookup`` callable with the same signature as
get_active_price.
"""

from __future__ import annotations

from typing import Callable

from ..errors import PricingUnavailableError
from ..extensions import db
from ..models import Product

FIRST_HOUR = "First hour"
SUBSEQUENT_HOUR = "Subsequent hour"
EXTENSION_HOUR = "Extension hour"
DRINK = "Drink"

PRICED_PRODUCTS = (FIRST_HOUR, SUBSEQUENT_HOUR, EXTENSION_HOUR, DRINK)

PriceLookup = Callable[[str], int]


def get_active_price(name: str) -> int:
    """
    Price in cents of the single active product named exactly ``name``.

    Raises:
        PricingUnavailableError: zero or several active matches
    """
    rows = (
        db.session.query(Product)
        .filter(Product.name == name, Product.is_active.is_(True))
        .limit(2)
        .all()
    )
    if not rows:
        raise PricingUnavailableError(f'No active "{name}" product is configured')
    if len(rows) > 1:
        raise PricingUnavailableError(f'More than one active "{name}" product is configured')
    return rows[0].price_cents


def checkin_total_cents(hours: int, pax: int, price_lookup: PriceLookup | None = None) -> int:
    """(first-hour rate + (hours - 1) * subsequent-hour rate) * pax"""
    lookup = price_lookup or get_active_price
    first = lookup(FIRST_HOUR)
    subsequent = lookup(SUBSEQUENT_HOUR)
    return (first + (hours - 1) * subsequent) * pax


def extension_total_cents(seat_count: int, add_hours: int, price_lookup: PriceLookup | None = None) -> tuple[int, int]:
    """Returns (total, unit price) for ``seat_count`` seats extended by ``add_hours``."""
    lookup = price_lookup or get_active_price
    unit = lookup(EXTENSION_HOUR)
    return seat_count * add_hours * unit, unit
