# Overview: Read-only dashboard aggregations over orders, stock and customers.

"""
Dashboard reporting.

All queries here run outside any unit of work and may observe a mix of pre-
and post-commit state while writes are in flight; that staleness is accepted
for reporting.
"""

from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Customer, Order, OrderLine, Product, StockMovement
from ..models.orders import ORDER_STATUS_PAID, ORDER_STATUS_DEBT
from ..models.inventory import MOVEMENT_EXPORT
from backoffice.time_utils import utcnow, days_ago, start_of_day, end_of_day, to_utc_z

REPORT_WINDOW_DAYS = 30
SALES_TREND_DAYS = 7
TOP_N = 5


def get_order_stats() -> dict:
    recent = db.session.query(Order).order_by(Order.date.desc(), Order.id.desc()).limit(TOP_N).all()
    return {
        "total_orders": db.session.query(Order).count(),
        "paid_orders_count": db.session.query(Order).filter_by(status=ORDER_STATUS_PAID).count(),
        "debt_orders_count": db.session.query(Order).filter_by(status=ORDER_STATUS_DEBT).count(),
        "recent_orders": [o.to_dict() for o in recent],
    }


def get_revenue_stats(start: datetime, end: datetime) -> dict:
    revenue = (
        db.session.query(func.coalesce(func.sum(Order.total), 0))
        .filter(Order.date >= start, Order.date <= end)
        .scalar()
    )
    outstanding = (
        db.session.query(func.coalesce(func.sum(Order.remaining_debt), 0))
        .filter(Order.status == ORDER_STATUS_DEBT, Order.remaining_debt > 0)
        .scalar()
    )
    return {"total_revenue": int(revenue or 0), "total_debt": int(outstanding or 0)}


def get_profit_stats(start: datetime, end: datetime) -> dict:
    profit = (
        db.session.query(func.coalesce(func.sum(OrderLine.profit), 0))
        .join(Order, Order.id == OrderLine.order_id)
        .filter(Order.date >= start, Order.date <= end)
        .scalar()
    )
    return {"total_profit": int(profit or 0)}


def get_top_products(limit: int = TOP_N) -> list[dict]:
    total_quantity = func.sum(StockMovement.quantity).label("total_quantity")
    rows = (
        db.session.query(StockMovement.product_code, Product.name, total_quantity)
        .join(Product, Product.code == StockMovement.product_code)
        .filter(StockMovement.type == MOVEMENT_EXPORT)
        .group_by(StockMovement.product_code, Product.name)
        .order_by(total_quantity.desc())
        .limit(limit)
        .all()
    )
    return [
        {"product_code": r.product_code, "name": r.name, "total_quantity": int(r.total_quantity)}
        for r in rows
    ]


def get_sales_over_time(days: int = SALES_TREND_DAYS, *, now: datetime | None = None) -> list[dict]:
    """Revenue and order count per day for the last `days` days, oldest first."""
    now = now or utcnow()
    series = []
    for offset in range(days - 1, -1, -1):
        day = days_ago(offset, now=now)
        start, end = start_of_day(day), end_of_day(day)
        revenue, count = (
            db.session.query(func.coalesce(func.sum(Order.total), 0), func.count(Order.id))
            .filter(Order.date >= start, Order.date <= end)
            .one()
        )
        series.append({
            "date": start.date().isoformat(),
            "revenue": int(revenue or 0),
            "order_count": int(count or 0),
        })
    return series


def get_inventory_stats() -> dict:
    threshold = current_app.config.get("LOW_STOCK_THRESHOLD", 10)
    summary = [
        {
            "product_code": p.code,
            "product_name": p.name,
            "old_stock": p.old_stock,
            "imported": p.imported,
            "exported": p.exported,
            "current_stock": p.new_stock,
            "stock_value": p.new_stock * (p.cost_price or 0),
            "potential_sale_value": p.new_stock * (p.sale_price or 0),
        }
        for p in db.session.query(Product).order_by(Product.code.asc()).all()
    ]
    return {
        "inventory_summary": summary,
        "low_stock_products": [p for p in summary if p["current_stock"] < threshold],
        "total_products_in_stock": sum(1 for p in summary if p["current_stock"] > 0),
        "total_out_of_stock": sum(1 for p in summary if p["current_stock"] <= 0),
        "total_stock_value": sum(p["stock_value"] for p in summary),
        "total_potential_sale_value": sum(p["potential_sale_value"] for p in summary),
    }


def get_customer_insights(*, now: datetime | None = None) -> dict:
    total_spent = func.sum(Order.total).label("total_spent")
    order_count = func.count(Order.id).label("order_count")
    top = (
        db.session.query(Customer.id, Customer.name, total_spent, order_count)
        .join(Order, Order.customer_id == Customer.id)
        .group_by(Customer.id, Customer.name)
        .order_by(total_spent.desc())
        .limit(TOP_N)
        .all()
    )

    total_debt = func.sum(Order.remaining_debt).label("total_debt")
    with_debt = (
        db.session.query(Customer.id, Customer.name, Customer.phone, total_debt)
        .join(Order, Order.customer_id == Customer.id)
        .filter(Order.status == ORDER_STATUS_DEBT, Order.remaining_debt > 0)
        .group_by(Customer.id, Customer.name, Customer.phone)
        .order_by(total_debt.desc())
        .limit(10)
        .all()
    )

    since = days_ago(REPORT_WINDOW_DAYS, now=now)
    return {
        "top_customers": [
            {
                "id": r.id,
                "name": r.name,
                "total_spent": int(r.total_spent or 0),
                "order_count": int(r.order_count),
                "average_order_value": int(r.total_spent or 0) // int(r.order_count),
            }
            for r in top
        ],
        "customers_with_debt": [
            {"id": r.id, "name": r.name, "phone": r.phone, "total_debt": int(r.total_debt or 0)}
            for r in with_debt
        ],
        "new_customers": db.session.query(Customer).filter(Customer.created_at >= since).count(),
        "total_customers": db.session.query(Customer).count(),
    }


def get_dashboard_stats(*, now: datetime | None = None) -> dict:
    now = now or utcnow()
    start = days_ago(REPORT_WINDOW_DAYS, now=now)

    stats = {}
    stats.update(get_order_stats())
    stats.update(get_revenue_stats(start, now))
    stats.update(get_inventory_stats())
    stats.update(get_profit_stats(start, now))
    stats["top_products"] = get_top_products()
    stats["sales_over_time"] = get_sales_over_time(now=now)
    stats["period"] = {"from": to_utc_z(start), "to": to_utc_z(now)}
    return stats
