# Overview: Flask API routes for debt reads; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify

from ..services import debt_service
from ..validation import ServiceError
from ..decorators import require_auth

debts_bp = Blueprint("debts", __name__, url_prefix="/api/debts")


@debts_bp.get("/customer-debts")
@require_auth
def customer_debts_route():
    return jsonify(debt_service.customer_debt_summaries())


@debts_bp.get("/customer-debt/<int:customer_id>")
@require_auth
def customer_debt_route(customer_id: int):
    try:
        return jsonify(debt_service.customer_debt_detail(customer_id))
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@debts_bp.post("/order-debts")
@require_auth
def order_debts_route():
    """Body: order_ids (list of ints). Unknown ids are omitted from the result."""
    payload = request.get_json(silent=True) or {}
    try:
        rows = debt_service.order_debts(payload.get("order_ids"))
        return jsonify({"items": rows, "count": len(rows)})
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
