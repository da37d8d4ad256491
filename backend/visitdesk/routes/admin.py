# Overview: Back-office routes: admin session, password and product catalog.

# backend/visitdesk/routes/admin.py
"""
Admin API Routes

SECURITY:
- /login sets a boolean flag in the signed session cookie
- Every other route here requires that flag (@require_admin)
"""

from flask import Blueprint, jsonify, request, session, current_app

from ..decorators import ADMIN_SESSION_KEY, is_admin, require_admin
from ..errors import VisitDeskError
from ..extensions import db
from ..services import auth_service, products_service, settings_service
from ..validation import ValidationError
from .errors import error_response, internal_error

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


# =============================================================================
# SESSION
# =============================================================================

@admin_bp.post("/login")
def login_route():
    """
    Request body: {"password": "..."}

    Returns:
        200: Logged in
        400: Missing password
        401: Wrong password or no password configured
    """
    data = request.get_json(silent=True) or {}
    password = data.get("password")
    if not password:
        return jsonify({"error": "Missing password"}), 400

    try:
        if not auth_service.is_admin_password_set():
            return jsonify({"error": "Admin password not set"}), 401
        if not auth_service.check_admin_password(password):
            current_app.logger.warning("Failed admin login from %s", request.remote_addr)
            return jsonify({"error": "Invalid password"}), 401
    except Exception:
        return internal_error("Failed to verify admin password")

    session[ADMIN_SESSION_KEY] = True
    session.permanent = True
    return jsonify({"success": True}), 200


@admin_bp.post("/logout")
def logout_route():
    session.pop(ADMIN_SESSION_KEY, None)
    return jsonify({"success": True}), 200


@admin_bp.get("/me")
def me_route():
    return jsonify({"admin": is_admin()}), 200


@admin_bp.post("/password")
@require_admin
def change_password_route():
    """
    Request body: {"current_password": "...", "new_password": "..."}
    """
    data = request.get_json(silent=True) or {}
    try:
        auth_service.change_admin_password(data.get("current_password"), data.get("new_password"))
        return jsonify({"success": True}), 200
    except VisitDeskError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to change admin password")


# =============================================================================
# SETTINGS
# =============================================================================

@admin_bp.get("/settings")
@require_admin
def get_settings_route():
    return jsonify({
        "paynow_uen": settings_service.get_setting(settings_service.KEY_PAYNOW_UEN)
        or current_app.config.get("PAYNOW_UEN"),
    }), 200


@admin_bp.put("/settings")
@require_admin
def update_settings_route():
    """Request body: {"paynow_uen": "201234567K"}"""
    data = request.get_json(silent=True) or {}
    try:
        if "paynow_uen" in data:
            uen = data["paynow_uen"]
            if uen is not None and (not isinstance(uen, str) or len(uen.strip()) > 32):
                raise ValidationError("paynow_uen must be a string of at most 32 characters")
            settings_service.set_setting(settings_service.KEY_PAYNOW_UEN, uen.strip() if uen else None)
            db.session.commit()
        return get_settings_route()
    except VisitDeskError as e:
        db.session.rollback()
        return error_response(e)
    except Exception:
        db.session.rollback()
        return internal_error("Failed to update settings")


# =============================================================================
# PRODUCTS
# =============================================================================

@admin_bp.get("/products")
@require_admin
def list_products_route():
    try:
        products = products_service.list_products()
        return jsonify({"products": [p.to_dict() for p in products]}), 200
    except Exception:
        return internal_error("Failed to list products")


@admin_bp.post("/products")
@require_admin
def create_product_route():
    """
    Request body: {"name": "Drink", "price_cents": 300, "is_active": true, "image_url": null}
    """
    try:
        product = products_service.create_product(request.get_json(silent=True) or {})
        return jsonify({"product": product.to_dict()}), 201
    except VisitDeskError as e:
        db.session.rollback()
        return error_response(e)
    except Exception:
        db.session.rollback()
        return internal_error("Failed to create product")


@admin_bp.put("/products")
@require_admin
def update_products_route():
    """
    Bulk update.

    Request body: {"updates": [{"id": 1, "price_cents": 1600}, {"id": 2, "is_active": false}]}
    """
    try:
        data = request.get_json(silent=True) or {}
        products = products_service.update_products(data.get("updates"))
        return jsonify({"success": True, "products": [p.to_dict() for p in products]}), 200
    except VisitDeskError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to update products")


@admin_bp.delete("/products/<int:product_id>")
@require_admin
def delete_product_route(product_id: int):
    try:
        products_service.delete_product(product_id)
        return jsonify({"success": True}), 200
    except VisitDeskError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to delete product")
