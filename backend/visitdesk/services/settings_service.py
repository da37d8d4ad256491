# Overview: Venue-wide key/value settings.

from __future__ import annotations

from ..extensions import db
from ..models import AppSetting

KEY_ADMIN_PASSWORD_HASH = "admin_password_hash"
KEY_PAYNOW_UEN = "paynow_uen"


def get_setting(key: str) -> str | None:
    row = db.session.get(AppSetting, key)
    return row.value if row else None


def set_setting(key: str, value: str | None) -> None:
    """Upsert a setting. Caller commits."""
    row = db.session.get(AppSetting, key)
    if row is None:
        row = AppSetting(key=key)
        db.session.add(row)
    row.value = value
