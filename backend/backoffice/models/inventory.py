from __future__ import annotations

from ..extensions import db
from backoffice.time_utils import to_utc_z

MOVEMENT_IMPORT = "import"
MOVEMENT_EXPORT = "export"
MOVEMENT_TYPES = (MOVEMENT_IMPORT, MOVEMENT_EXPORT)


class Product(db.Model):
    """
    Product master data with running stock counters.

    STOCK COUNTERS:
    - new_stock is the authoritative current level (may go negative when oversold)
    - old_stock is the level immediately before the most recent adjustment
    - imported / exported are cumulative totals

    The counters are a cache of the stock_movements log and are always written
    in the same transaction as the movement that changes them.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    code = db.Column(db.String(64), nullable=False, unique=True, index=True)
    name = db.Column(db.String(255), nullable=False)

    cost_price = db.Column(db.Integer, nullable=False, default=0)
    sale_price = db.Column(db.Integer, nullable=False, default=0)

    old_stock = db.Column(db.Integer, nullable=False, default=0)
    new_stock = db.Column(db.Integer, nullable=False, default=0)
    imported = db.Column(db.Integer, nullable=False, default=0)
    exported = db.Column(db.Integer, nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} code={self.code!r} new_stock={self.new_stock}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "cost_price": self.cost_price,
            "sale_price": self.sale_price,
            "old_stock": self.old_stock,
            "new_stock": self.new_stock,
            "imported": self.imported,
            "exported": self.exported,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class StockMovement(db.Model):
    """
    Append-only stock audit record.

    Rows are never updated or deleted; reversals are recorded as new rows
    in the opposite direction.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_stock_movements_code_date", "product_code", "date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    date = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    product_code = db.Column(db.String(64), nullable=False, index=True)
    type = db.Column(db.String(16), nullable=False, index=True)  # import, export
    quantity = db.Column(db.Integer, nullable=False)
    note = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    @property
    def signed_quantity(self) -> int:
        return self.quantity if self.type == MOVEMENT_IMPORT else -self.quantity

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "date": to_utc_z(self.date),
            "product_code": self.product_code,
            "type": self.type,
            "quantity": self.quantity,
            "note": self.note,
        }
