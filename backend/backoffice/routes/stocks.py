# Overview: Flask API routes for stock operations; parses input and returns JSON responses.

"""
Stock routes.

Levels and history are read from the stock_movements log; update-stats
records one movement and adjusts the product counters in the same
transaction.
"""
from flask import Blueprint, request, jsonify, current_app
from sqlalchemy.orm.exc import StaleDataError

from ..services import inventory_service
from ..validation import ServiceError, ValidationError, parse_datetime_field
from backoffice.time_utils import start_of_day, end_of_day
from ..decorators import require_auth

stocks_bp = Blueprint("stocks", __name__, url_prefix="/api/stocks")


@stocks_bp.get("")
@require_auth
def stock_levels_route():
    """
    Query params:
    - from: ISO date/datetime, inclusive (start of day)
    - to: ISO date/datetime, inclusive (end of day)
    """
    try:
        date_from = parse_datetime_field(request.args.get("from"), "from")
        date_to = parse_datetime_field(request.args.get("to"), "to")
    except ValidationError as e:
        return jsonify(e.to_dict()), 400

    rows = inventory_service.get_stock_levels(
        date_from=start_of_day(date_from) if date_from else None,
        date_to=end_of_day(date_to) if date_to else None,
    )
    return jsonify({"items": rows, "count": len(rows)})


@stocks_bp.post("/update-stats")
@require_auth
def update_stats_route():
    """Body: product_code, type ('import' | 'export'), quantity, optional note, date."""
    payload = request.get_json(silent=True) or {}

    try:
        product_code = str(payload.get("product_code") or "").strip()
        if not product_code:
            raise ValidationError("product_code is required")

        product = inventory_service.record_stock_movement(
            product_code=product_code,
            direction=payload.get("type"),
            quantity=payload.get("quantity"),
            note=payload.get("note"),
            occurred_at=parse_datetime_field(payload.get("date"), "date"),
        )
        return jsonify({
            "product_code": product.code,
            "new_stock": product.new_stock,
            "product": product.to_dict(),
        }), 201
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except StaleDataError:
        return jsonify({"error": "Product was modified concurrently, retry the request"}), 409
    except Exception:
        current_app.logger.exception("Failed to update stock")
        return jsonify({"error": "Internal server error"}), 500


@stocks_bp.get("/history/<string:product_code>")
@require_auth
def stock_history_route(product_code: str):
    movements = inventory_service.get_movement_history(product_code)
    return jsonify({"items": [m.to_dict() for m in movements], "count": len(movements)})


@stocks_bp.get("/report")
@require_auth
def stock_report_route():
    return jsonify(inventory_service.get_stock_report())
