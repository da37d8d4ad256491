# backend/visitdesk/services/products_service.py
"""
Products Service

Catalog maintenance for the back office. Time pricing reads these rows by
name (see pricing_service), so renaming or deactivating "First hour" etc.
immediately changes what new check-ins and extensions cost.
"""
from __future__ import annotations

import logging

from ..errors import ConflictError, InvalidInputError, NotFoundError
from ..extensions import db
from ..models import Product, SaleLine
from ..validation import ModelValidationPolicy, enforce_rules_product, parse_int, validate_payload

logger = logging.getLogger(__name__)

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "price_cents", "is_active", "image_url"},
    required_on_create={"name", "price_cents"},
)

PRODUCT_MUTABLE_FIELDS = PRODUCT_POLICY.writable_fields


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def list_products(*, active_only: bool = False) -> list[Product]:
    query = db.session.query(Product)
    if active_only:
        query = query.filter(Product.is_active.is_(True))
    return query.order_by(Product.name.asc(), Product.id.asc()).all()


def create_product(payload: dict) -> Product:
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
    enforce_rules_product(patch)

    product = Product(is_active=True)
    apply_product_patch(product, patch)
    db.session.add(product)
    db.session.commit()
    logger.info("Product %s created: %s @ %d cents", product.id, product.name, product.price_cents)
    return product


def update_products(updates) -> list[Product]:
    """
    Apply a batch of ``{"id": ..., <fields>}`` patches in one transaction.

    Either every patch applies or none does.
    """
    if not isinstance(updates, list):
        raise InvalidInputError("updates must be a list")

    changed = []
    try:
        for raw in updates:
            if not isinstance(raw, dict) or "id" not in raw:
                raise InvalidInputError("Each update needs an id")
            product_id = parse_int(raw["id"], "id")
            fields = {k: v for k, v in raw.items() if k != "id"}
            patch = validate_payload(model=Product, payload=fields, policy=PRODUCT_POLICY, partial=True)
            enforce_rules_product(patch)

            product = db.session.get(Product, product_id)
            if product is None:
                raise NotFoundError(f"Product {product_id} not found")
            apply_product_patch(product, patch)
            changed.append(product)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info("Updated %d product(s)", len(changed))
    return changed


def delete_product(product_id: int) -> None:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError(f"Product {product_id} not found")

    in_use = db.session.query(SaleLine.id).filter_by(product_id=product_id).first()
    if in_use is not None:
        raise ConflictError("Product has sales history; deactivate it instead")

    db.session.delete(product)
    db.session.commit()
    logger.info("Product %s deleted", product_id)
