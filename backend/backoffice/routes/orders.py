# Overview: Flask API routes for orders operations; parses input and returns JSON responses.

"""
Order routes.

Create, update and delete each run as a single transaction in
order_service; a failure at any step leaves orders, lines, stock and debt
untouched.
"""
from flask import Blueprint, request, jsonify, current_app
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from ..services import order_service
from ..validation import ServiceError
from ..decorators import require_auth

orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.get("")
@require_auth
def list_orders_route():
    customer_id = request.args.get("customer_id", type=int)
    orders = order_service.list_orders(customer_id=customer_id)
    return jsonify({"items": [o.to_dict() for o in orders], "count": len(orders)})


@orders_bp.get("/<int:order_id>")
@require_auth
def get_order_route(order_id: int):
    try:
        return jsonify(order_service.get_order_detail(order_id))
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@orders_bp.post("")
@require_auth
def create_order_route():
    """
    Create an order.

    Body: order_code, customer_id, items[{product_code, quantity, price}],
    optional status ('paid' | 'debt'), total, date.
    """
    payload = request.get_json(silent=True) or {}

    try:
        order = order_service.create_order(payload)
        return jsonify(order_service.get_order_detail(order.id)), 201
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except (StaleDataError, IntegrityError):
        current_app.logger.warning("Order create conflicted with a concurrent write", exc_info=True)
        return jsonify({"error": "Conflicting concurrent update, retry the request"}), 409
    except Exception:
        current_app.logger.exception("Failed to create order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.put("/<int:order_id>")
@require_auth
def update_order_route(order_id: int):
    """Replace the order's lines with the given full item set; status and total optional."""
    payload = request.get_json(silent=True) or {}

    try:
        order = order_service.update_order(order_id, payload)
        return jsonify(order_service.get_order_detail(order.id))
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except (StaleDataError, IntegrityError):
        current_app.logger.warning("Order %s update conflicted with a concurrent write", order_id, exc_info=True)
        return jsonify({"error": "Conflicting concurrent update, retry the request"}), 409
    except Exception:
        current_app.logger.exception("Failed to update order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.delete("/<int:order_id>")
@require_auth
def delete_order_route(order_id: int):
    try:
        order_service.delete_order(order_id)
        return jsonify({"ok": True})
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except (StaleDataError, IntegrityError):
        current_app.logger.warning("Order %s delete conflicted with a concurrent write", order_id, exc_info=True)
        return jsonify({"error": "Conflicting concurrent update, retry the request"}), 409
    except Exception:
        current_app.logger.exception("Failed to delete order")
        return jsonify({"error": "Internal server error"}), 500
