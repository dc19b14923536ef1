# Overview: Flask API routes for payments operations; parses input and returns JSON responses.

"""
Payment routes.

- POST /api/payments records a customer-level cash movement
- POST /api/payments/pay-order-debt settles one order's remaining debt
- POST /api/payments/pay-multiple-orders settles several orders of one customer
"""
from flask import Blueprint, request, jsonify, current_app
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from ..services import debt_service
from ..models.payments import PAYMENT_TYPE_PAYMENT
from ..validation import ServiceError, ValidationError, coerce_int, parse_datetime_field
from ..decorators import require_auth

payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


@payments_bp.get("")
@require_auth
def list_payments_route():
    payments = debt_service.list_payments()
    return jsonify({"items": [p.to_dict() for p in payments], "count": len(payments)})


@payments_bp.get("/customer/<int:customer_id>")
@require_auth
def list_customer_payments_route(customer_id: int):
    payments = debt_service.list_payments(customer_id=customer_id)
    return jsonify({"items": [p.to_dict() for p in payments], "count": len(payments)})


@payments_bp.post("")
@require_auth
def record_payment_route():
    """Body: customer_id, amount, optional type, note, date."""
    payload = request.get_json(silent=True) or {}

    try:
        if payload.get("customer_id") in (None, ""):
            raise ValidationError("customer_id is required")
        payment = debt_service.record_payment(
            customer_id=coerce_int(payload.get("customer_id"), "customer_id"),
            amount=payload.get("amount"),
            payment_type=payload.get("type") or PAYMENT_TYPE_PAYMENT,
            note=payload.get("note"),
            occurred_at=parse_datetime_field(payload.get("date"), "date"),
        )
        return jsonify(payment.to_dict()), 201
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record payment")
        return jsonify({"error": "Internal server error"}), 500


@payments_bp.post("/pay-order-debt")
@require_auth
def pay_order_debt_route():
    """
    Body: order_id, amount, optional note, date.

    amount must equal the order's remaining debt.
    """
    payload = request.get_json(silent=True) or {}

    try:
        if payload.get("order_id") in (None, ""):
            raise ValidationError("order_id is required")
        payment = debt_service.settle_order_debt(
            coerce_int(payload.get("order_id"), "order_id"),
            payload.get("amount"),
            note=payload.get("note"),
            occurred_at=parse_datetime_field(payload.get("date"), "date"),
        )
        return jsonify({
            "payment": payment.to_dict(),
            "order": payment.order.to_dict(),
            "message": "Debt settled",
        }), 201
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except (StaleDataError, IntegrityError):
        current_app.logger.warning("Settlement conflicted with a concurrent write", exc_info=True)
        return jsonify({"error": "Conflicting concurrent update, retry the request"}), 409
    except Exception:
        current_app.logger.exception("Failed to settle order debt")
        return jsonify({"error": "Internal server error"}), 500


@payments_bp.post("/pay-multiple-orders")
@require_auth
def pay_multiple_orders_route():
    """
    Body: customer_id, payments[{order_id, amount, note?, date?}],
    optional total_amount, note, date.

    Entries that cannot be settled are skipped and listed in skipped_orders.
    """
    payload = request.get_json(silent=True) or {}

    try:
        if payload.get("customer_id") in (None, ""):
            raise ValidationError("customer_id is required")
        total_amount = payload.get("total_amount")
        if total_amount is not None:
            total_amount = coerce_int(total_amount, "total_amount")

        result = debt_service.settle_order_debts(
            coerce_int(payload.get("customer_id"), "customer_id"),
            payload.get("payments"),
            total_amount=total_amount,
            note=payload.get("note"),
            occurred_at=parse_datetime_field(payload.get("date"), "date"),
        )
        return jsonify({
            "total_paid": result.total_paid,
            "payments": [p.to_dict() for p in result.payments],
            "summary_payment": result.summary_payment.to_dict() if result.summary_payment else None,
            "updated_orders": result.updated_orders,
            "skipped_orders": result.skipped_orders,
        }), 201
    except ServiceError as e:
        return jsonify(e.to_dict()), e.status_code
    except (StaleDataError, IntegrityError):
        current_app.logger.warning("Batch settlement conflicted with a concurrent write", exc_info=True)
        return jsonify({"error": "Conflicting concurrent update, retry the request"}), 409
    except Exception:
        current_app.logger.exception("Failed to settle multiple orders")
        return jsonify({"error": "Internal server error"}), 500
