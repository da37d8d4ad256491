# Overview: Admin password storage and verification.

"""
Single shared admin password for the counter's back office.

WHY: Only product/price maintenance and password changes are gated; the
check-in flow itself is open to whoever is at the counter. The hash is a
bcrypt string kept in app_settings.
"""

import bcrypt
from flask import current_app

from ..errors import InvalidInputError, VisitDeskError
from ..extensions import db
from . import settings_service

MIN_PASSWORD_LENGTH = 8


class AuthenticationError(VisitDeskError):
    status_code = 401


class PasswordValidationError(InvalidInputError):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password) -> None:
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise PasswordValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    if password.strip() != password:
        raise PasswordValidationError("Password must not start or end with whitespace")


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt.

    Cost factor comes from BCRYPT_ROUNDS (default 12); tests lower it.
    """
    validate_password_strength(password)
    rounds = int(current_app.config.get("BCRYPT_ROUNDS", 12))
    hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds))
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed hash in storage
        return False


def is_admin_password_set() -> bool:
    return bool(settings_service.get_setting(settings_service.KEY_ADMIN_PASSWORD_HASH))


def check_admin_password(password) -> bool:
    if not isinstance(password, str) or not password:
        return False
    stored = settings_service.get_setting(settings_service.KEY_ADMIN_PASSWORD_HASH)
    if not stored:
        return False
    return verify_password(password, stored)


def set_admin_password(new_password: str) -> None:
    settings_service.set_setting(settings_service.KEY_ADMIN_PASSWORD_HASH, hash_password(new_password))
    db.session.commit()


def change_admin_password(current_password, new_password) -> None:
    if is_admin_password_set() and not check_admin_password(current_password):
        raise AuthenticationError("Current password is incorrect")
    set_admin_password(new_password)
