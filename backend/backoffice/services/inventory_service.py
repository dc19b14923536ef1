# Overview: Service-layer operations for inventory; encapsulates business logic and database work.

# backend/backoffice/services/inventory_service.py

from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy import case, func

from ..extensions import db
from ..models import Product, StockMovement, OrderLine
from ..models.inventory import MOVEMENT_IMPORT, MOVEMENT_EXPORT, MOVEMENT_TYPES
from ..validation import ValidationError, NotFoundError, ConflictError, require_positive_int
from backoffice.time_utils import coerce_datetime
from .concurrency import lock_for_update, unit_of_work
"""
Inventory Ledger Invariants (authoritative)

Stock counters:
- Product.new_stock is the current level; it may go negative (oversold signal).
- Product.old_stock is the level immediately before the latest adjustment.
- imported / exported are cumulative and only ever grow.

Movement log:
- Every counter change appends exactly one StockMovement with the same
  direction, quantity and note, in the same DB transaction.
- Movements are never edited or deleted; reversals are new rows.
- The log is the source of truth; reconcile_product_counters() rebuilds the
  counters from it.

Transactions:
- apply_delta() never commits. Callers wrap it in unit_of_work() together
  with the order mutation that triggered it.
"""

OPENING_STOCK_NOTE = "Opening stock"
PRODUCT_MUTABLE_FIELDS = {"name", "cost_price", "sale_price"}


def get_product_by_code(code: str, *, lock: bool = False) -> Product:
    query = db.session.query(Product).filter_by(code=code)
    if lock:
        query = lock_for_update(query)
    product = query.first()
    if product is None:
        raise NotFoundError(f"Product {code} not found", details={"product_code": code})
    return product


def apply_delta(
    product_code: str,
    direction: str,
    quantity: int,
    note: str | None = None,
    *,
    occurred_at: datetime | None = None,
) -> StockMovement:
    """
    Move stock for one product and record the movement.

    import: new_stock += quantity, imported += quantity
    export: new_stock -= quantity, exported += quantity
    old_stock always snapshots new_stock first.
    """
    if direction not in MOVEMENT_TYPES:
        raise ValidationError(f"Invalid movement type: {direction}")
    if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
        raise ValidationError("quantity must be a positive integer")

    product = get_product_by_code(product_code, lock=True)

    product.old_stock = product.new_stock
    if direction == MOVEMENT_IMPORT:
        product.new_stock += quantity
        product.imported += quantity
    else:
        product.new_stock -= quantity
        product.exported += quantity

    movement = StockMovement(
        date=coerce_datetime(occurred_at),
        product_code=product_code,
        type=direction,
        quantity=quantity,
        note=note,
    )
    db.session.add(movement)
    db.session.flush()
    return movement


def record_stock_movement(
    *,
    product_code: str,
    direction: str,
    quantity: int,
    note: str | None = None,
    occurred_at: datetime | None = None,
) -> Product:
    """Standalone stock update (goods received, manual write-off) in its own transaction."""
    quantity = require_positive_int(quantity, "quantity")
    with unit_of_work():
        apply_delta(product_code, direction, quantity, note or "", occurred_at=occurred_at)
        product = get_product_by_code(product_code)

    current_app.logger.info(
        "Stock %s of %s x%s recorded, new_stock=%s", direction, product_code, quantity, product.new_stock
    )
    return product


# =============================================================================
# PRODUCT MAINTENANCE
# =============================================================================

def list_products() -> list[Product]:
    return db.session.query(Product).order_by(Product.code.asc()).all()


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product not found")
    return product


def create_product(patch: dict) -> Product:
    """
    Create a product. A positive opening stock is booked as an import
    movement so that the log accounts for every unit.
    """
    code = patch["code"]
    opening_stock = patch.get("new_stock") or 0

    with unit_of_work():
        if db.session.query(Product).filter_by(code=code).first() is not None:
            raise ConflictError(f"Product code {code} already exists")

        product = Product(
            code=code,
            name=patch["name"],
            cost_price=patch.get("cost_price") or 0,
            sale_price=patch.get("sale_price") or 0,
        )
        db.session.add(product)
        db.session.flush()

        if opening_stock > 0:
            apply_delta(code, MOVEMENT_IMPORT, opening_stock, OPENING_STOCK_NOTE)

    return product


def update_product(product_id: int, patch: dict) -> Product:
    """Update descriptive fields and prices. Stock only moves through apply_delta."""
    with unit_of_work():
        product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
        if product is None:
            raise NotFoundError("Product not found")

        if "code" in patch and patch["code"] != product.code:
            raise ValidationError("Product code cannot be changed")
        if "new_stock" in patch and patch["new_stock"] != product.new_stock:
            raise ValidationError("Stock levels change through stock movements only")

        for k, v in patch.items():
            if k in PRODUCT_MUTABLE_FIELDS:
                setattr(product, k, v)

    return product


def delete_product(product_id: int) -> None:
    with unit_of_work():
        product = db.session.get(Product, product_id)
        if product is None:
            raise NotFoundError("Product not found")

        in_use = db.session.query(OrderLine.id).filter_by(product_code=product.code).first()
        if in_use is not None:
            raise ConflictError(f"Product {product.code} is referenced by orders")

        db.session.delete(product)


# =============================================================================
# STOCK READS (outside transactions)
# =============================================================================

def _movement_totals():
    total_import = func.coalesce(
        func.sum(case((StockMovement.type == MOVEMENT_IMPORT, StockMovement.quantity), else_=0)), 0
    )
    total_export = func.coalesce(
        func.sum(case((StockMovement.type == MOVEMENT_EXPORT, StockMovement.quantity), else_=0)), 0
    )
    return total_import.label("total_import"), total_export.label("total_export")


def get_stock_levels(date_from: datetime | None = None, date_to: datetime | None = None) -> list[dict]:
    """
    Import/export totals per product code, aggregated from the movement log.

    Date bounds are inclusive.
    """
    total_import, total_export = _movement_totals()

    q = db.session.query(
        StockMovement.product_code,
        Product.name,
        total_import,
        total_export,
    ).outerjoin(Product, Product.code == StockMovement.product_code)

    if date_from is not None:
        q = q.filter(StockMovement.date >= date_from)
    if date_to is not None:
        q = q.filter(StockMovement.date <= date_to)

    rows = q.group_by(StockMovement.product_code, Product.name).order_by(StockMovement.product_code).all()

    return [
        {
            "product_code": row.product_code,
            "product_name": row.name,
            "total_import": int(row.total_import),
            "total_export": int(row.total_export),
            "stock": int(row.total_import) - int(row.total_export),
        }
        for row in rows
    ]


def get_movement_history(product_code: str) -> list[StockMovement]:
    return (
        db.session.query(StockMovement)
        .filter_by(product_code=product_code)
        .order_by(StockMovement.date.desc(), StockMovement.id.desc())
        .all()
    )


def get_stock_report(low_stock_threshold: int | None = None) -> dict:
    """Stock valuation per product with low/out/in stock buckets."""
    if low_stock_threshold is None:
        low_stock_threshold = current_app.config.get("LOW_STOCK_THRESHOLD", 10)

    items = []
    total_cost_value = 0
    total_sale_value = 0
    for product in list_products():
        cost_value = product.new_stock * (product.cost_price or 0)
        sale_value = product.new_stock * (product.sale_price or 0)
        total_cost_value += cost_value
        total_sale_value += sale_value
        items.append({
            "code": product.code,
            "name": product.name,
            "old_stock": product.old_stock,
            "imported": product.imported,
            "exported": product.exported,
            "new_stock": product.new_stock,
            "cost_price": product.cost_price,
            "sale_price": product.sale_price,
            "cost_value": cost_value,
            "sale_value": sale_value,
            "potential_profit": sale_value - cost_value,
        })

    low_stock = [p for p in items if 0 < p["new_stock"] < low_stock_threshold]
    out_of_stock = [p for p in items if p["new_stock"] <= 0]
    in_stock = [p for p in items if p["new_stock"] >= low_stock_threshold]

    return {
        "items": items,
        "summary": {
            "total_products": len(items),
            "total_cost_value": total_cost_value,
            "total_sale_value": total_sale_value,
            "total_potential_profit": total_sale_value - total_cost_value,
            "low_stock_count": len(low_stock),
            "out_of_stock_count": len(out_of_stock),
            "in_stock_count": len(in_stock),
        },
        "low_stock": low_stock,
        "out_of_stock": out_of_stock,
    }


# =============================================================================
# SELF-HEALING
# =============================================================================

def reconcile_product_counters(code: str | None = None, *, dry_run: bool = False) -> list[dict]:
    """
    Rebuild imported/exported/new_stock from the movement log.

    Returns one entry per product whose cached counters disagree with the log.
    With dry_run=True nothing is written.
    """
    total_import, total_export = _movement_totals()
    totals_query = db.session.query(StockMovement.product_code, total_import, total_export)
    if code is not None:
        totals_query = totals_query.filter(StockMovement.product_code == code)
    totals = {row.product_code: row for row in totals_query.group_by(StockMovement.product_code).all()}

    query = db.session.query(Product)
    if code is not None:
        query = query.filter_by(code=code)
    products = query.order_by(Product.code.asc()).all()
    if code is not None and not products:
        raise NotFoundError(f"Product {code} not found")

    drift = []
    with unit_of_work():
        for product in products:
            row = totals.get(product.code)
            imported = int(row.total_import) if row else 0
            exported = int(row.total_export) if row else 0
            expected_stock = imported - exported

            if (product.imported, product.exported, product.new_stock) == (imported, exported, expected_stock):
                continue

            drift.append({
                "code": product.code,
                "cached": {"imported": product.imported, "exported": product.exported, "new_stock": product.new_stock},
                "ledger": {"imported": imported, "exported": exported, "new_stock": expected_stock},
            })
            if not dry_run:
                product.old_stock = product.new_stock
                product.imported = imported
                product.exported = exported
                product.new_stock = expected_stock

    if drift and not dry_run:
        current_app.logger.warning("Rebuilt stock counters for %d product(s) from the movement log", len(drift))
    return drift
