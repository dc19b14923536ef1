# Overview: Service-layer operations for orders; coordinates lines, stock and debt in one transaction.

"""
Order Transaction Coordinator

Every mutation (create / update / delete) runs as one unit of work:
order row, order lines, product stock counters, stock movements and debt
events are committed together or not at all. Errors propagate unchanged to
the caller after the rollback; nothing is retried.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Customer, Order, OrderLine, Payment, DebtBalance, PaidBalance
from ..models.orders import ORDER_STATUS_PAID, ORDER_STATUS_DEBT, ORDER_STATUSES
from ..validation import (
    ValidationError,
    NotFoundError,
    ConflictError,
    coerce_int,
    require_non_negative_int,
    parse_datetime_field,
)
from backoffice.time_utils import coerce_datetime
from .concurrency import lock_for_update, unit_of_work
from .order_line_service import parse_line_items, create_lines, reconcile_lines, reverse_line
from . import debt_service


def _parse_status(value, default: str) -> str:
    status = value if value not in (None, "") else default
    if status not in ORDER_STATUSES:
        raise ValidationError(f"Invalid status: {status}. Must be one of {list(ORDER_STATUSES)}")
    return status


def _parse_total(value, items) -> int:
    """Declared total; defaults to the sum of line amounts."""
    if value is None:
        return sum(item.quantity * item.price for item in items)
    return require_non_negative_int(value, "total")


def _lock_order(order_id: int) -> Order:
    order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
    if order is None:
        raise NotFoundError("Order not found")
    return order


def create_order(payload: dict) -> Order:
    """
    Create an order with its lines, export the stock and, for debt orders,
    open the customer's new_debt event.
    """
    payload = payload or {}
    order_code = str(payload.get("order_code") or "").strip()
    customer_id = payload.get("customer_id")
    raw_items = payload.get("items")

    if not order_code or not customer_id or not raw_items:
        raise ValidationError("order_code, customer_id and items are required")

    customer_id = coerce_int(customer_id, "customer_id")
    items = parse_line_items(raw_items)
    status = _parse_status(payload.get("status"), ORDER_STATUS_PAID)
    total = _parse_total(payload.get("total"), items)
    order_date = parse_datetime_field(payload.get("date"), "date")

    with unit_of_work():
        customer = db.session.get(Customer, customer_id)
        if customer is None:
            raise NotFoundError("Customer not found")

        if db.session.query(Order.id).filter_by(order_code=order_code).first() is not None:
            raise ConflictError(f"Order code {order_code} already exists")

        order = Order(
            order_code=order_code,
            customer_id=customer.id,
            date=coerce_datetime(order_date),
        )
        if status == ORDER_STATUS_DEBT:
            order.apply_balance(DebtBalance(total=total, total_paid=0))
        else:
            order.apply_balance(PaidBalance(total=total))
        db.session.add(order)
        db.session.flush()

        create_lines(order, items)

        if status == ORDER_STATUS_DEBT:
            debt_service.open_debt(order)

    current_app.logger.info("Created order %s (%s, total=%s)", order_code, status, total)
    return order


def update_order(order_id: int, payload: dict) -> Order:
    """
    Replace the lines of an order with the requested set and move the order
    to the requested status and total.
    """
    payload = payload or {}
    if not payload.get("items"):
        raise ValidationError("items are required")

    items = parse_line_items(payload.get("items"))
    order_date = parse_datetime_field(payload.get("date"), "date")

    with unit_of_work():
        order = _lock_order(order_id)

        status = _parse_status(payload.get("status"), order.status)
        total = _parse_total(payload.get("total"), items)

        reconcile_lines(order, items)
        debt_service.reconcile_debt(order, status, total)

        if order_date is not None:
            order.date = order_date

    current_app.logger.info("Updated order %s (%s, total=%s)", order.order_code, order.status, order.total)
    return order


def delete_order(order_id: int) -> None:
    """
    Delete an order and reverse everything its creation did: stock is
    returned with compensating import movements and its new_debt event is
    removed.
    """
    with unit_of_work():
        order = _lock_order(order_id)
        order_code = order.order_code

        lines = db.session.query(OrderLine).filter_by(order_id=order.id).all()
        for line in lines:
            reverse_line(order, line, f"Return from deleted order {order_code}")

        debt_service.remove_debt_events(order)
        debt_service.detach_collections(order)
        db.session.flush()

        db.session.delete(order)

    current_app.logger.info("Deleted order %s (%d line(s) returned to stock)", order_code, len(lines))


# =============================================================================
# READS
# =============================================================================

def list_orders(customer_id: int | None = None) -> list[Order]:
    q = db.session.query(Order)
    if customer_id is not None:
        q = q.filter_by(customer_id=customer_id)
    return q.order_by(Order.date.desc(), Order.id.desc()).all()


def get_order(order_id: int) -> Order:
    order = db.session.get(Order, order_id)
    if order is None:
        raise NotFoundError("Order not found")
    return order


def get_order_detail(order_id: int) -> dict:
    """Order with its lines and the payment events linked to it."""
    order = get_order(order_id)
    lines = db.session.query(OrderLine).filter_by(order_id=order.id).order_by(OrderLine.id.asc()).all()
    payments = (
        db.session.query(Payment)
        .filter_by(order_id=order.id)
        .order_by(Payment.date.asc(), Payment.id.asc())
        .all()
    )

    detail = order.to_dict()
    detail["details"] = [line.to_dict() for line in lines]
    detail["payments"] = [p.to_dict() for p in payments]
    return detail

