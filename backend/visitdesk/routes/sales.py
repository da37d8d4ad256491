# Overview: Flask API routes for standalone counter sales.

from flask import Blueprint, jsonify, request

from ..errors import VisitDeskError
from ..services import sales_service
from .errors import error_response, internal_error

sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
def create_sale_route():
    """
    Record a paid counter sale.

    Request body:
    {
        "items": [{"product_id": 4, "qty": 2}],
        "donation_cents": 500,      (optional)
        "method": "CASH" | "PAYNOW"
    }

    Prices are read from the catalog; client-side prices are ignored.
    """
    try:
        data = request.get_json(silent=True) or {}
        sale = sales_service.create_sale(
            data.get("items") or [],
            data.get("method"),
            data.get("donation_cents") or 0,
        )
        return jsonify({"ok": True, "sale": sale.to_dict(), "total_cents": sale.amount_cents}), 201
    except VisitDeskError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to record sale")
