# Overview: Shared error-to-response translation for blueprints.

from flask import current_app, jsonify

from ..errors import VisitDeskError


def error_response(exc: VisitDeskError):
    body = {"error": str(exc)}
    if exc.details:
        body["details"] = exc.details
    return jsonify(body), exc.status_code


def internal_error(message: str):
    current_app.logger.exception(message)
    return jsonify({"error": "Internal server error"}), 500
