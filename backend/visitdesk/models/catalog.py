from __future__ import annotations

from ..extensions import db
from visitdesk.time_utils import to_utc_z


class Product(db.Model):
    """
    Price catalog entry.

    Time pricing is looked up by exact name ("First hour", "Subsequent hour",
    "Extension hour", "Drink"); only active rows count. Names are not unique
    in the schema, so the lookup itself rejects duplicates.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_name_active", "name", "is_active"),
        db.CheckConstraint("price_cents >= 0", name="ck_products_price_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)

    # Authoritative storage in cents (frontend may only format for display)
    price_cents = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    image_url = db.Column(db.String(512), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "price_cents": self.price_cents,
            "is_active": self.is_active,
            "image_url": self.image_url,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
