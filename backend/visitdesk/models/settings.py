from __future__ import annotations

from ..extensions import db


class AppSetting(db.Model):
    """
    Single-venue key/value settings.

    Known keys: ``admin_password_hash`` (bcrypt), ``paynow_uen``.
    """
    __tablename__ = "app_settings"

    key = db.Column(db.String(128), primary_key=True)
    value = db.Column(db.Text, nullable=True)
    updated_at = db.Column(db.DateTime, nullable=False, server_default=db.func.now(), onupdate=db.func.now())
