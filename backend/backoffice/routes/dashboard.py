# Overview: Flask API routes for dashboard reporting; read-only aggregations.

from flask import Blueprint, jsonify, current_app

from ..services import reporting_service
from ..decorators import require_auth

dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


@dashboard_bp.get("/stats")
@require_auth
def dashboard_stats_route():
    try:
        return jsonify(reporting_service.get_dashboard_stats())
    except Exception:
        current_app.logger.exception("Failed to build dashboard stats")
        return jsonify({"error": "Internal server error"}), 500


@dashboard_bp.get("/inventory")
@require_auth
def dashboard_inventory_route():
    return jsonify(reporting_service.get_inventory_stats())


@dashboard_bp.get("/customers")
@require_auth
def dashboard_customers_route():
    return jsonify(reporting_service.get_customer_insights())
