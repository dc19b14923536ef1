# Overview: Service-layer operations for customer debt; payment events, settlement and debt reads.

"""
Debt Ledger

DESIGN PRINCIPLES:
- Every debt order owns exactly one new_debt event for its current total.
- Debt events reference their order through Payment.order_id; the note is
  display text only and is never used for matching.
- Collections (payment / debt_collected) linked to an order reduce what is
  owed on it; the order balance is recomputed from them.
- A settlement must match the remaining debt exactly; there is no partial
  settlement of a single order.

All mutating helpers here run inside the caller's unit of work unless they
open their own (settle_order_debt, settle_order_debts, record_payment).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Customer, Order, Payment, DebtBalance, PaidBalance
from ..models.orders import ORDER_STATUS_DEBT, ORDER_STATUSES
from ..models.payments import (
    PAYMENT_TYPE_PAYMENT,
    PAYMENT_TYPE_NEW_DEBT,
    PAYMENT_TYPE_DEBT_COLLECTED,
    PAYMENT_TYPES,
    COLLECTION_TYPES,
)
from ..validation import (
    ValidationError,
    NotFoundError,
    ConflictError,
    coerce_int,
    require_positive_int,
    parse_datetime_field,
)
from backoffice.time_utils import coerce_datetime, to_utc_z
from .concurrency import lock_for_update, unit_of_work


def debt_note(order: Order) -> str:
    return f"Debt from order {order.order_code}"


def settlement_note(order: Order) -> str:
    return f"Debt payment for order {order.order_code}"


# =============================================================================
# ORDER BALANCE RECONCILIATION
# =============================================================================

def _debt_events(order: Order) -> list[Payment]:
    return (
        db.session.query(Payment)
        .filter_by(order_id=order.id, customer_id=order.customer_id, type=PAYMENT_TYPE_NEW_DEBT)
        .order_by(Payment.id.asc())
        .all()
    )


def collected_for_order(order: Order) -> int:
    """Sum of payment and debt_collected events linked to the order."""
    total = (
        db.session.query(func.coalesce(func.sum(Payment.amount), 0))
        .filter(
            Payment.order_id == order.id,
            Payment.type.in_(COLLECTION_TYPES),
        )
        .scalar()
    )
    return int(total or 0)


def open_debt(order: Order, *, occurred_at: datetime | None = None) -> Payment:
    """Record the new_debt event for a debt order and reset its balance to fully owed."""
    event = Payment(
        date=coerce_datetime(occurred_at or order.date),
        customer_id=order.customer_id,
        order_id=order.id,
        amount=order.total,
        type=PAYMENT_TYPE_NEW_DEBT,
        note=debt_note(order),
    )
    db.session.add(event)
    order.apply_balance(DebtBalance(total=order.total, total_paid=0))
    db.session.flush()
    return event


def remove_debt_events(order: Order) -> int:
    """Delete the order's new_debt events; returns how many were removed."""
    events = _debt_events(order)
    for event in events:
        db.session.delete(event)
    return len(events)


def detach_collections(order: Order) -> int:
    """Keep collected cash as customer-level records when the order goes away."""
    collections = (
        db.session.query(Payment)
        .filter(Payment.order_id == order.id, Payment.type.in_(COLLECTION_TYPES))
        .all()
    )
    for payment in collections:
        payment.order_id = None
    return len(collections)


def reconcile_debt(order: Order, new_status: str, new_total: int) -> Order:
    """
    Move an order to new_status / new_total and keep its debt events in step.

    - paid -> debt: open a new_debt event, nothing collected yet
    - debt -> debt: resize the new_debt event (recreate if missing) and
      recompute collected, clamped to [0, new_total]
    - any -> paid: drop the new_debt event, fully paid
    """
    if new_status not in ORDER_STATUSES:
        raise ValidationError(f"Invalid status: {new_status}")

    previous_status = order.status

    if new_status == ORDER_STATUS_DEBT:
        order.total = new_total
        if previous_status != ORDER_STATUS_DEBT:
            open_debt(order)
            return order

        events = _debt_events(order)
        if events:
            events[0].amount = new_total
            for duplicate in events[1:]:
                db.session.delete(duplicate)
        else:
            current_app.logger.warning("Order %s had no new_debt event; recreating it", order.order_code)
            db.session.add(Payment(
                date=coerce_datetime(order.date),
                customer_id=order.customer_id,
                order_id=order.id,
                amount=new_total,
                type=PAYMENT_TYPE_NEW_DEBT,
                note=debt_note(order),
            ))

        collected = min(max(collected_for_order(order), 0), new_total)
        order.apply_balance(DebtBalance(total=new_total, total_paid=collected))
        return order

    remove_debt_events(order)
    order.apply_balance(PaidBalance(total=new_total))
    return order


# =============================================================================
# SETTLEMENT
# =============================================================================

@dataclass
class SettlementResult:
    payments: list[Payment] = field(default_factory=list)
    updated_orders: list[dict] = field(default_factory=list)
    skipped_orders: list[dict] = field(default_factory=list)
    summary_payment: Payment | None = None

    @property
    def total_paid(self) -> int:
        return sum(p.amount for p in self.payments)


def _settlement_problem(order: Order | None, amount: int) -> str | None:
    if order is None:
        return "Order not found"
    if order.status != ORDER_STATUS_DEBT or order.remaining_debt <= 0:
        return "Order has no outstanding debt"
    if amount != order.remaining_debt:
        return "Payment amount does not match remaining debt"
    return None


def _apply_settlement(
    order: Order,
    amount: int,
    *,
    note: str | None,
    occurred_at: datetime | None,
) -> Payment:
    payment = Payment(
        date=coerce_datetime(occurred_at),
        customer_id=order.customer_id,
        order_id=order.id,
        amount=amount,
        type=PAYMENT_TYPE_DEBT_COLLECTED,
        note=note or settlement_note(order),
    )
    db.session.add(payment)
    order.apply_balance(DebtBalance(total=order.total, total_paid=order.total_is_paid + amount))
    return payment


def settle_order_debt(
    order_id: int,
    amount,
    *,
    note: str | None = None,
    occurred_at: datetime | None = None,
) -> Payment:
    """Collect the full remaining debt of one order."""
    amount = require_positive_int(amount, "amount")

    with unit_of_work():
        order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
        if order is None:
            raise NotFoundError("Order not found")

        problem = _settlement_problem(order, amount)
        if problem is not None:
            raise ConflictError(problem, details={
                "order_id": order.id,
                "amount": amount,
                "remaining_debt": order.remaining_debt,
            })

        payment = _apply_settlement(order, amount, note=note, occurred_at=occurred_at)
        db.session.flush()

    current_app.logger.info("Settled order %s for %s", order.order_code, amount)
    return payment


def settle_order_debts(
    customer_id: int,
    items,
    *,
    total_amount=None,
    note: str | None = None,
    occurred_at: datetime | None = None,
) -> SettlementResult:
    """
    Settle several orders of one customer at once.

    Invalid entries are skipped and reported; valid ones commit together with
    a customer-level payment summarising the processed amount. When nothing
    is valid the whole batch is rejected.
    """
    if not isinstance(items, list) or not items:
        raise ValidationError("payments must be a non-empty list")

    result = SettlementResult()

    with unit_of_work():
        customer = db.session.get(Customer, customer_id)
        if customer is None:
            raise NotFoundError("Customer not found")

        for entry in items:
            entry = entry if isinstance(entry, dict) else {}
            order_id = entry.get("order_id")
            try:
                if order_id is not None:
                    order_id = coerce_int(order_id, "order_id")
                amount = require_positive_int(entry.get("amount"), "amount")
                entry_date = parse_datetime_field(entry.get("date"), "date")
            except ValidationError as exc:
                result.skipped_orders.append({"order_id": order_id, "reason": str(exc)})
                continue

            order = None
            if order_id is not None:
                order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
            if order is not None and order.customer_id != customer.id:
                order = None

            problem = _settlement_problem(order, amount)
            if problem is not None:
                current_app.logger.warning("Skipping settlement for order %s: %s", order_id, problem)
                result.skipped_orders.append({"order_id": order_id, "reason": problem})
                continue

            payment = _apply_settlement(
                order,
                amount,
                note=entry.get("note"),
                occurred_at=entry_date or occurred_at,
            )
            result.payments.append(payment)
            result.updated_orders.append({
                "order_id": order.id,
                "order_code": order.order_code,
                "amount_paid": amount,
                "new_remaining_debt": order.remaining_debt,
                "status": order.status,
            })

        if not result.payments:
            raise ConflictError(
                "No debt orders could be settled",
                details={"skipped_orders": result.skipped_orders},
            )

        result.summary_payment = Payment(
            date=coerce_datetime(occurred_at),
            customer_id=customer.id,
            amount=result.total_paid,
            type=PAYMENT_TYPE_PAYMENT,
            note=note or f"Combined payment for {len(result.payments)} order(s)",
        )
        db.session.add(result.summary_payment)
        db.session.flush()

    if total_amount is not None and total_amount != result.total_paid:
        current_app.logger.warning(
            "Declared total %s differs from settled amount %s for customer %s",
            total_amount, result.total_paid, customer_id,
        )
    current_app.logger.info(
        "Settled %d order(s) for customer %s, skipped %d",
        len(result.payments), customer_id, len(result.skipped_orders),
    )
    return result


# =============================================================================
# PAYMENT RECORDING AND READS
# =============================================================================

def record_payment(
    *,
    customer_id: int,
    amount,
    payment_type: str = PAYMENT_TYPE_PAYMENT,
    note: str | None = None,
    occurred_at: datetime | None = None,
) -> Payment:
    """
    Record a customer-level cash movement.

    Order-linked events are created by the order and settlement paths only.
    """
    if payment_type not in PAYMENT_TYPES:
        raise ValidationError(f"Invalid payment type: {payment_type}. Must be one of {list(PAYMENT_TYPES)}")
    amount = require_positive_int(amount, "amount")

    with unit_of_work():
        if db.session.get(Customer, customer_id) is None:
            raise NotFoundError("Customer not found")

        payment = Payment(
            date=coerce_datetime(occurred_at),
            customer_id=customer_id,
            amount=amount,
            type=payment_type,
            note=note,
        )
        db.session.add(payment)
        db.session.flush()

    return payment


def list_payments(customer_id: int | None = None) -> list[Payment]:
    q = db.session.query(Payment)
    if customer_id is not None:
        q = q.filter_by(customer_id=customer_id)
    return q.order_by(Payment.date.desc(), Payment.id.desc()).all()


def _order_debt_row(order: Order) -> dict:
    return {
        "order_id": order.id,
        "order_code": order.order_code,
        "order_date": to_utc_z(order.date),
        "customer_name": order.customer.name if order.customer else None,
        "total_amount": order.total,
        "total_paid": order.total_is_paid,
        "remaining_debt": max(order.remaining_debt, 0),
        "is_paid": order.is_paid,
        "status": order.status,
    }


def customer_debt_summaries() -> dict:
    """Outstanding debt per customer, largest first."""
    summaries = []
    for customer in db.session.query(Customer).order_by(Customer.id.asc()).all():
        debt_orders = db.session.query(Order).filter_by(customer_id=customer.id, status=ORDER_STATUS_DEBT).all()
        collected = (
            db.session.query(func.coalesce(func.sum(Payment.amount), 0))
            .filter_by(customer_id=customer.id, type=PAYMENT_TYPE_DEBT_COLLECTED)
            .scalar()
        )
        collected = int(collected or 0)
        if not debt_orders and not collected:
            continue

        total_order_value = sum(o.total for o in debt_orders)
        remaining = sum(max(o.remaining_debt, 0) for o in debt_orders)
        summaries.append({
            "customer_id": customer.id,
            "customer_name": customer.name,
            "customer_phone": customer.phone,
            "total_orders": len(debt_orders),
            "total_order_value": total_order_value,
            "total_payments": collected,
            "remaining_debt": remaining,
            "has_debt": remaining > 0,
        })

    summaries.sort(key=lambda s: s["remaining_debt"], reverse=True)
    return {
        "items": summaries,
        "total_customers_with_debt": sum(1 for s in summaries if s["has_debt"]),
        "total_debt_amount": sum(s["remaining_debt"] for s in summaries),
    }


def customer_debt_detail(customer_id: int) -> dict:
    customer = db.session.get(Customer, customer_id)
    if customer is None:
        raise NotFoundError("Customer not found")

    unpaid = (
        db.session.query(Order)
        .filter(Order.customer_id == customer_id, Order.status == ORDER_STATUS_DEBT, Order.remaining_debt > 0)
        .order_by(Order.date.desc(), Order.id.desc())
        .all()
    )
    orders = [_order_debt_row(o) for o in unpaid]
    debt_events = (
        db.session.query(Payment)
        .filter_by(customer_id=customer_id, type=PAYMENT_TYPE_NEW_DEBT)
        .order_by(Payment.date.desc(), Payment.id.desc())
        .all()
    )

    return {
        "customer": customer.to_dict(),
        "summary": {
            "total_orders": len(orders),
            "total_order_value": sum(o["total_amount"] for o in orders),
            "total_paid": sum(o["total_paid"] for o in orders),
            "total_remaining_debt": sum(o["remaining_debt"] for o in orders),
        },
        "orders": orders,
        "payments": [p.to_dict() for p in debt_events],
    }


def order_debts(order_ids) -> list[dict]:
    """Balance rows for the given orders; unknown ids are left out."""
    if not isinstance(order_ids, list):
        raise ValidationError("order_ids must be a list")

    rows = []
    for order_id in order_ids:
        order = db.session.get(Order, coerce_int(order_id, "order_ids"))
        if order is None:
            continue
        rows.append(_order_debt_row(order))
    return rows
