from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from sqlalchemy.ext.hybrid import hybrid_property

from ..extensions import db
from backoffice.time_utils import to_utc_z

ORDER_STATUS_PAID = "paid"
ORDER_STATUS_DEBT = "debt"
ORDER_STATUSES = (ORDER_STATUS_PAID, ORDER_STATUS_DEBT)


@dataclass(frozen=True)
class PaidBalance:
    """Order settled at creation: everything paid, nothing owed."""
    total: int

    status = ORDER_STATUS_PAID

    @property
    def total_paid(self) -> int:
        return self.total

    @property
    def remaining(self) -> int:
        return 0


@dataclass(frozen=True)
class DebtBalance:
    """Order sold on credit; total_paid is what has been collected so far."""
    total: int
    total_paid: int = 0

    status = ORDER_STATUS_DEBT

    def __post_init__(self):
        if not 0 <= self.total_paid <= self.total:
            raise ValueError("total_paid must be within [0, total]")

    @property
    def remaining(self) -> int:
        return self.total - self.total_paid


OrderBalance = Union[PaidBalance, DebtBalance]


class Order(db.Model):
    """
    Customer order with a paid/debt balance.

    BALANCE INVARIANT:
    - status='debt' -> total_is_paid + remaining_debt == total
    - status='paid' -> total_is_paid == total and remaining_debt == 0

    The balance columns are only written through apply_balance().
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_customer_status", "customer_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable order code (e.g., "DH-0001")
    order_code = db.Column(db.String(64), nullable=False, unique=True, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)

    date = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    total = db.Column(db.Integer, nullable=False, default=0)
    total_is_paid = db.Column(db.Integer, nullable=False, default=0)
    remaining_debt = db.Column(db.Integer, nullable=False, default=0)
    status = db.Column(db.String(16), nullable=False, default=ORDER_STATUS_PAID, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    customer = db.relationship("Customer", backref=db.backref("orders", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    @hybrid_property
    def is_paid(self) -> bool:
        return self.remaining_debt <= 0

    @property
    def balance(self) -> OrderBalance:
        if self.status == ORDER_STATUS_DEBT:
            return DebtBalance(total=self.total, total_paid=self.total_is_paid)
        return PaidBalance(total=self.total)

    def apply_balance(self, balance: OrderBalance) -> None:
        self.status = balance.status
        self.total = balance.total
        self.total_is_paid = balance.total_paid
        self.remaining_debt = balance.remaining

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_code": self.order_code,
            "customer_id": self.customer_id,
            "customer_name": self.customer.name if self.customer else None,
            "date": to_utc_z(self.date),
            "total": self.total,
            "total_is_paid": self.total_is_paid,
            "remaining_debt": self.remaining_debt,
            "is_paid": self.is_paid,
            "status": self.status,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class OrderLine(db.Model):
    """
    One product/quantity/price entry of an order.

    amount and profit are captured when the line is written; later cost
    changes on the product do not rewrite them.
    """
    __tablename__ = "order_lines"
    __table_args__ = (
        db.UniqueConstraint("order_id", "product_code", name="uq_order_lines_order_product"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    product_code = db.Column(db.String(64), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    price = db.Column(db.Integer, nullable=False)
    amount = db.Column(db.Integer, nullable=False)
    profit = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    order = db.relationship("Order", backref=db.backref("lines", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "product_code": self.product_code,
            "quantity": self.quantity,
            "price": self.price,
            "amount": self.amount,
            "profit": self.profit,
        }
