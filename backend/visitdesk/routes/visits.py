# Overview: Flask API routes for visit operations; parses input and returns JSON responses.

# backend/visitdesk/routes/visits.py
"""
Visit API Routes

Check-in, activation, extension, drinks and checkout for walk-in parties.

DESIGN:
- Routes only parse JSON and translate errors; all rules live in services
- Every mutating route returns the refreshed visit card so the counter UI
  can redraw without a second request
- Money routes accept an optional idempotency_key; resending the same key
  replays the original payment instead of charging twice
"""

from flask import Blueprint, jsonify, request

from ..errors import InvalidInputError, VisitDeskError
from ..services import (
    drink_service,
    extension_service,
    occupancy_service,
    payment_service,
    seat_ledger_service,
    visit_service,
)
from .errors import error_response, internal_error


visits_bp = Blueprint("visits", __name__, url_prefix="/api/visits")


def _card(visit_id: str) -> dict:
    visit = visit_service.get_visit(visit_id)
    card = occupancy_service.visit_card(visit)
    card["seats"] = [s.to_dict() for s in visit.seats]
    return card


# =============================================================================
# CHECK-IN
# =============================================================================

@visits_bp.post("")
def create_visit_route():
    """
    Create a DRAFT visit.

    Request body:
    {
        "name": "Bob",
        "pax": 3
    }

    Returns:
        201: Visit created (DRAFT)
        400: Invalid input
    """
    try:
        data = request.get_json(silent=True) or {}
        visit = visit_service.create_visit(data.get("name"), data.get("pax"))
        return jsonify({"visit": visit.to_dict()}), 201
    except VisitDeskError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to create visit")


@visits_bp.get("")
def list_visits_route():
    """ACTIVE visits with live counters plus the venue head count."""
    try:
        return jsonify(occupancy_service.dashboard()), 200
    except Exception:
        return internal_error("Failed to list visits")


@visits_bp.get("/<visit_id>")
def get_visit_route(visit_id: str):
    try:
        return jsonify({"visit": _card(visit_id)}), 200
    except VisitDeskError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to load visit")


@visits_bp.get("/<visit_id>/payments")
def list_visit_payments_route(visit_id: str):
    try:
        visit_service.get_visit(visit_id)
        payments = payment_service.get_visit_payments(visit_id)
        return jsonify({
            "visit_id": visit_id,
            "payments": [p.to_dict() for p in payments],
            "total_cents": sum(p.amount_cents for p in payments),
        }), 200
    except VisitDeskError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to load visit payments")


@visits_bp.post("/<visit_id>/start")
def start_visit_route(visit_id: str):
    """
    Collect the check-in payment and start the clock.

    Request body:
    {
        "hours": 2,
        "buffer_minutes": 10,       (optional, defaults to DEFAULT_BUFFER_MINUTES)
        "method": "CASH" | "PAYNOW",
        "idempotency_key": "..."    (optional)
    }

    Returns:
        200: Visit is ACTIVE; payment recorded
        400: Invalid input
        404: Visit not found
        409: Visit is not DRAFT
        422: Time pricing not configured
    """
    try:
        data = request.get_json(silent=True) or {}
        payment = visit_service.start_visit(
            visit_id,
            data.get("hours"),
            data.get("buffer_minutes"),
            data.get("method"),
            idempotency_key=data.get("idempotency_key"),
        )
        return jsonify({"visit": _card(visit_id), "payment": payment.to_dict()}), 200
    except VisitDeskError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to start visit")


@visits_bp.delete("/<visit_id>")
def abandon_draft_route(visit_id: str):
    """Discard an unpaid DRAFT visit."""
    try:
        visit_service.abandon_draft(visit_id)
        return jsonify({"ok": True}), 200
    except VisitDeskError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to abandon visit")


# =============================================================================
# EXTENSIONS
# =============================================================================

@visits_bp.post("/<visit_id>/extend")
def extend_route(visit_id: str):
    """
    Add paid time.

    Request body (exactly one of seat_nos / people / all):
    {
        "seat_nos": [1, 2],         extend these seats
        "people": 2,                extend the first N guests still inside
        "all": true,                extend everyone still inside
        "add_hours": 1,
        "method": "CASH" | "PAYNOW",
        "idempotency_key": "..."    (optional)
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        add_hours = data.get("add_hours")
        method = data.get("method")
        key = data.get("idempotency_key")

        if data.get("all") is not None and not isinstance(data["all"], bool):
            raise InvalidInputError("all must be true or false")
        targets = [k for k in ("seat_nos", "people") if data.get(k) is not None]
        if data.get("all") is True:
            targets.append("all")
        if len(targets) != 1:
            raise InvalidInputError("Provide exactly one of seat_nos, people or all")

        if targets[0] == "seat_nos":
            payment = extension_service.extend_seats_and_collect_payment(
                visit_id, data["seat_nos"], add_hours, method, idempotency_key=key
            )
        elif targets[0] == "people":
            payment = extension_service.extend_people(
                visit_id, data["people"], add_hours, method, idempotency_key=key
            )
        else:
            payment = extension_service.extend_visit(visit_id, add_hours, method, idempotency_key=key)

        return jsonify({"visit": _card(visit_id), "payment": payment.to_dict()}), 200
    except VisitDeskError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to extend visit")


# =============================================================================
# DRINKS
# =============================================================================

@visits_bp.post("/<visit_id>/drinks")
def collect_drink_route(visit_id: str):
    """
    Hand out drinks; the count can never exceed pax.

    Request body: {"qty": 1}
    """
    try:
        data = request.get_json(silent=True) or {}
        count = drink_service.collect_drink(visit_id, data.get("qty", 1))
        return jsonify({"visit_id": visit_id, "drinks_collected": count}), 200
    except VisitDeskError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to collect drink")


# =============================================================================
# CHECKOUT
# =============================================================================

@visits_bp.post("/<visit_id>/seats/materialize")
def materialize_route(visit_id: str):
    """Enable per-seat checkout/extension. Safe to call repeatedly."""
    try:
        seat_ledger_service.materialize(visit_id)
        return jsonify({"visit": _card(visit_id)}), 200
    except VisitDeskError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to split seats")


@visits_bp.post("/<visit_id>/seats/<int:seat_no>/end")
def end_seat_route(visit_id: str, seat_no: int):
    try:
        visit_service.end_seat(visit_id, seat_no)
        return jsonify({"visit": _card(visit_id)}), 200
    except VisitDeskError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to check out seat")


@visits_bp.post("/<visit_id>/checkout")
def checkout_people_route(visit_id: str):
    """
    Check out N guests (lowest seat numbers first).

    Request body: {"people": 2}
    """
    try:
        data = request.get_json(silent=True) or {}
        visit_service.end_people(visit_id, data.get("people"))
        return jsonify({"visit": _card(visit_id)}), 200
    except VisitDeskError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to check out guests")


@visits_bp.post("/<visit_id>/end")
def end_visit_route(visit_id: str):
    try:
        visit = visit_service.end_visit(visit_id)
        return jsonify({"visit": visit.to_dict()}), 200
    except VisitDeskError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to end visit")
