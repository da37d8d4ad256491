# backend/visitdesk/config.py
from __future__ import annotations
import os


class Config:
    # Signs the cookie session that carries the admin flag
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///visitdesk.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Grace period added on top of the paid hours at check-in
    DEFAULT_BUFFER_MINUTES = int(os.environ.get("DEFAULT_BUFFER_MINUTES", "10"))

    # Used when seats are split for a visit that never had an end time
    MATERIALIZE_FALLBACK_MINUTES = int(os.environ.get("MATERIALIZE_FALLBACK_MINUTES", "60"))

    PAYNOW_UEN = os.environ.get("PAYNOW_UEN", "")
    PAYNOW_MERCHANT_NAME = os.environ.get("PAYNOW_MERCHANT_NAME", "MERCHANT")
    PAYNOW_MERCHANT_CITY = os.environ.get("PAYNOW_MERCHANT_CITY", "Singapore")

    # bcrypt work factor for the back-office password
    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
