# Overview: Service-layer operations for customers; encapsulates business logic and database work.

from __future__ import annotations

from ..extensions import db
from ..models import Customer, Order, Payment
from ..validation import NotFoundError, ConflictError
from .concurrency import unit_of_work

CUSTOMER_MUTABLE_FIELDS = {"name", "phone", "note"}


def list_customers(
    search: str | None = None,
    page: int | None = None,
    page_size: int | None = None,
) -> dict:
    """
    Customer listing with optional name/phone search and pagination.

    Args:
        search: case-insensitive substring matched against name and phone
        page: page number (1-indexed). If None, returns all items.
        page_size: items per page (default 10, max 100)
    """
    query = db.session.query(Customer)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(db.or_(Customer.name.ilike(pattern), Customer.phone.ilike(pattern)))
    query = query.order_by(Customer.name.asc(), Customer.id.asc())

    if page is None:
        customers = query.all()
        return {"items": [c.to_dict() for c in customers], "count": len(customers)}

    page = max(page, 1)
    page_size = min(max(page_size or 10, 1), 100)
    total_count = query.count()
    customers = query.offset((page - 1) * page_size).limit(page_size).all()

    return {
        "items": [c.to_dict() for c in customers],
        "total_count": total_count,
        "page": page,
        "page_size": page_size,
        "total_pages": (total_count + page_size - 1) // page_size,
    }


def get_customer(customer_id: int) -> Customer:
    customer = db.session.get(Customer, customer_id)
    if customer is None:
        raise NotFoundError("Customer not found")
    return customer


def create_customer(patch: dict) -> Customer:
    with unit_of_work():
        customer = Customer(**{k: v for k, v in patch.items() if k in CUSTOMER_MUTABLE_FIELDS})
        db.session.add(customer)
        db.session.flush()
    return customer


def update_customer(customer_id: int, patch: dict) -> Customer:
    with unit_of_work():
        customer = get_customer(customer_id)
        for k, v in patch.items():
            if k in CUSTOMER_MUTABLE_FIELDS:
                setattr(customer, k, v)
    return customer


def delete_customer(customer_id: int) -> None:
    """Customers with orders or payments are kept; their history depends on them."""
    with unit_of_work():
        customer = get_customer(customer_id)
        has_orders = db.session.query(Order.id).filter_by(customer_id=customer.id).first() is not None
        has_payments = db.session.query(Payment.id).filter_by(customer_id=customer.id).first() is not None
        if has_orders or has_payments:
            raise ConflictError("Customer has orders or payments and cannot be deleted")
        db.session.delete(customer)
