# Overview: Flask API routes for products operations; parses input and returns JSON responses.

"""
Product management routes.

Stock counters are read-only here; opening stock on create is booked as an
import movement, later changes go through /api/stocks/update-stats or orders.
"""
from flask import Blueprint, request, jsonify, current_app
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from ..services import inventory_service
from ..models import Product
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    ServiceError,
)
from ..decorators import require_auth

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"code", "name", "cost_price", "sale_price", "new_stock"},
    required_on_create={"code", "name"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
def list_products_route():
    products = inventory_service.list_products()
    return jsonify({"items": [p.to_dict() for p in products], "count": len(products)})


@products_bp.get("/<int:product_id>")
@require_auth
def get_product_route(product_id: int):
    try:
        return jsonify(inventory_service.get_product(product_id).to_dict())
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code


@products_bp.post("")
@require_auth
def create_product_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
        product = inventory_service.create_product(patch)
        return jsonify(product.to_dict()), 201
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except IntegrityError:
        return jsonify({"error": "Product code already exists"}), 409
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.put("/<int:product_id>")
@require_auth
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch)
        product = inventory_service.update_product(product_id, patch)
        return jsonify(product.to_dict())
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except StaleDataError:
        return jsonify({"error": "Product was modified concurrently, retry the request"}), 409
    except Exception:
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.delete("/<int:product_id>")
@require_auth
def delete_product_route(product_id: int):
    try:
        inventory_service.delete_product(product_id)
        return jsonify({"ok": True})
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete product")
        return jsonify({"error": "Internal server error"}), 500
