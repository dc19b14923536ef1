from __future__ import annotations

from ..extensions import db
from backoffice.time_utils import to_utc_z

PAYMENT_TYPE_PAYMENT = "payment"
PAYMENT_TYPE_NEW_DEBT = "new_debt"
PAYMENT_TYPE_DEBT_COLLECTED = "debt_collected"
PAYMENT_TYPES = (PAYMENT_TYPE_PAYMENT, PAYMENT_TYPE_NEW_DEBT, PAYMENT_TYPE_DEBT_COLLECTED)

# Types that reduce what a customer owes on an order
COLLECTION_TYPES = (PAYMENT_TYPE_PAYMENT, PAYMENT_TYPE_DEBT_COLLECTED)


class Payment(db.Model):
    """
    Cash movement or debt event for a customer.

    TYPES:
    - new_debt: an order was sold on credit (one per debt order)
    - debt_collected: a settlement against a specific order
    - payment: cash received (batch summaries, manual entries)

    order_id links debt events to their order; note is free text for display.
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.Index("ix_payments_customer_type", "customer_id", "type"),
        db.Index("ix_payments_order_type", "order_id", "type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    date = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True, index=True)

    amount = db.Column(db.Integer, nullable=False, default=0)
    type = db.Column(db.String(32), nullable=False, index=True)
    note = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    customer = db.relationship("Customer", backref=db.backref("payments", lazy=True))
    order = db.relationship("Order", backref=db.backref("payments", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "date": to_utc_z(self.date),
            "customer_id": self.customer_id,
            "customer_name": self.customer.name if self.customer else None,
            "order_id": self.order_id,
            "amount": self.amount,
            "type": self.type,
            "note": self.note,
        }
