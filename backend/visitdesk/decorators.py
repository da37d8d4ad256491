# Overview: Request decorators for API routes.

from functools import wraps
from flask import jsonify, session

ADMIN_SESSION_KEY = "is_admin"


def is_admin() -> bool:
    return session.get(ADMIN_SESSION_KEY) is True


def require_admin(f):
    """
    Require the back-office flag in the signed session cookie.

    Returns 401 when the caller has not logged in with the admin password.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not is_admin():
            return jsonify({"error": "Unauthorized"}), 401
        return f(*args, **kwargs)

    return decorated_function
