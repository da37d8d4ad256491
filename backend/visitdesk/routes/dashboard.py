# Overview: Read-only occupancy and payment QR endpoints for the counter screen.

from flask import Blueprint, jsonify, request

from ..errors import VisitDeskError
from ..services import occupancy_service, paynow_service
from ..validation import parse_int
from .errors import error_response, internal_error

dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api")


@dashboard_bp.get("/dashboard")
def dashboard_route():
    """
    Live occupancy.

    Recomputed on every request: per-visit people remaining, countdowns,
    seat timers and the venue-wide head count.
    """
    try:
        return jsonify(occupancy_service.dashboard()), 200
    except Exception:
        return internal_error("Failed to build dashboard")


@dashboard_bp.get("/paynow/qr")
def paynow_qr_route():
    """
    PayNow QR payload for an amount.

    Query params:
    - amount_cents: int (required)
    - ref: str (optional) bill/reference number shown in the banking app
    """
    try:
        amount_cents = parse_int(request.args.get("amount_cents"), "amount_cents")
        payload = paynow_service.encode_for_venue(amount_cents, request.args.get("ref") or None)
        return jsonify({"amount_cents": amount_cents, "payload": payload}), 200
    except VisitDeskError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to build PayNow payload")
