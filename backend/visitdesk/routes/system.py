# backend/visitdesk/routes/system.py
"""System health endpoint."""

import time
from flask import Blueprint, current_app

from ..extensions import db
from ..models import Product, Visit
from ..models.visits import VISIT_STATUS_ACTIVE
from ..services import pricing_service
from ..errors import PricingUnavailableError
from visitdesk.time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    start_time = time.time()
    try:
        active_visits = db.session.query(Visit).filter_by(status=VISIT_STATUS_ACTIVE).count()
        product_count = db.session.query(Product).count()
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {"active_visits": active_visits, "products": product_count},
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {"status": "unhealthy", "latency_ms": round(elapsed_ms, 2), "error": "Database error"}


def check_pricing_health() -> dict:
    """Every priced product must resolve to exactly one active row."""
    missing = []
    for name in pricing_service.PRICED_PRODUCTS:
        try:
            pricing_service.get_active_price(name)
        except PricingUnavailableError as e:
            missing.append(str(e))
    return {"status": "healthy" if not missing else "degraded", "problems": missing}


@system_bp.get("/health")
def health():
    database = check_database_health()
    pricing = check_pricing_health() if database["status"] == "healthy" else {"status": "unknown"}
    overall = "healthy"
    if database["status"] != "healthy":
        overall = "unhealthy"
    elif pricing["status"] != "healthy":
        overall = "degraded"
    return {
        "status": overall,
        "checked_at": to_utc_z(utcnow()),
        "checks": {"database": database, "pricing": pricing},
    }, 200 if overall != "unhealthy" else 503
