# Overview: Service-layer operations for order lines; computes line figures and drives stock moves.

"""
Order line processing.

Lines are matched to request items by product code, so an order holds at
most one line per product. Every quantity change on a line is mirrored by a
stock movement through inventory_service.apply_delta(), inside the caller's
unit of work.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..extensions import db
from ..models import Order, OrderLine
from ..models.inventory import MOVEMENT_IMPORT, MOVEMENT_EXPORT
from ..validation import ValidationError, require_positive_int, require_non_negative_int
from .inventory_service import apply_delta, get_product_by_code


@dataclass(frozen=True)
class LineItem:
    """Requested line: product code, quantity and unit price."""
    product_code: str
    quantity: int
    price: int


def parse_line_items(raw) -> list[LineItem]:
    """Validate the request item list; duplicate product codes are rejected."""
    if not isinstance(raw, list) or not raw:
        raise ValidationError("items must be a non-empty list")

    items: list[LineItem] = []
    seen: set[str] = set()
    for index, entry in enumerate(raw):
        if not isinstance(entry, dict):
            raise ValidationError(f"items[{index}] must be an object")

        code = str(entry.get("product_code") or "").strip()
        if not code:
            raise ValidationError(f"items[{index}].product_code is required")
        if code in seen:
            raise ValidationError(
                f"Duplicate product_code {code} in items",
                details={"product_code": code},
            )
        seen.add(code)

        items.append(LineItem(
            product_code=code,
            quantity=require_positive_int(entry.get("quantity"), f"items[{index}].quantity"),
            price=require_non_negative_int(entry.get("price"), f"items[{index}].price"),
        ))
    return items


def compute_line_figures(quantity: int, price: int, cost_price: int | None) -> tuple[int, int]:
    amount = quantity * price
    profit = amount - quantity * (cost_price or 0)
    return amount, profit


def _export_note(order: Order) -> str:
    return f"Export for order {order.order_code}"


def _new_line(order: Order, item: LineItem) -> OrderLine:
    product = get_product_by_code(item.product_code)
    amount, profit = compute_line_figures(item.quantity, item.price, product.cost_price)

    apply_delta(item.product_code, MOVEMENT_EXPORT, item.quantity, _export_note(order))

    line = OrderLine(
        order_id=order.id,
        product_code=item.product_code,
        quantity=item.quantity,
        price=item.price,
        amount=amount,
        profit=profit,
    )
    db.session.add(line)
    return line


def create_lines(order: Order, items: list[LineItem]) -> list[OrderLine]:
    """Initial creation: every item is a new line exported from stock."""
    lines = [_new_line(order, item) for item in items]
    db.session.flush()
    return lines


def reverse_line(order: Order, line: OrderLine, note: str) -> None:
    """Return a line's quantity to stock and delete the line."""
    apply_delta(line.product_code, MOVEMENT_IMPORT, line.quantity, note)
    db.session.delete(line)


def reconcile_lines(order: Order, items: list[LineItem]) -> list[OrderLine]:
    """
    Bring the persisted lines of an order in line with the requested items.

    - lines whose product is no longer requested are returned to stock and deleted
    - matching lines move stock by the signed quantity difference
    - unmatched items become new lines
    """
    existing = {
        line.product_code: line
        for line in db.session.query(OrderLine).filter_by(order_id=order.id).all()
    }
    requested = {item.product_code for item in items}

    for code, line in existing.items():
        if code not in requested:
            reverse_line(order, line, f"Return from order {order.order_code} (line removed)")

    lines: list[OrderLine] = []
    for item in items:
        line = existing.get(item.product_code)
        if line is None:
            lines.append(_new_line(order, item))
            continue

        product = get_product_by_code(item.product_code)
        amount, profit = compute_line_figures(item.quantity, item.price, product.cost_price)

        diff = item.quantity - line.quantity
        if diff != 0:
            apply_delta(
                item.product_code,
                MOVEMENT_EXPORT if diff > 0 else MOVEMENT_IMPORT,
                abs(diff),
                f"Adjust order {order.order_code}: {line.quantity} -> {item.quantity}",
            )

        line.quantity = item.quantity
        line.price = item.price
        line.amount = amount
        line.profit = profit
        lines.append(line)

    db.session.flush()
    return lines
