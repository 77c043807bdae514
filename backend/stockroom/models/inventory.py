from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from stockroom.time_utils import to_utc_z


class Product(db.Model):
    """
    Product master data with its current stock level.

    NAME UNIQUENESS:
    Names are unique case-insensitively. The check happens at write time in
    ledger_service (existing products + pending entries) and the name
    index backs the lookup.
    """
    __tablename__ = "products"
    __table_args__ = (
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False, index=True)
    stock = db.Column(db.Integer, nullable=False, default=0)
    unit = db.Column(db.String(32), nullable=False)
    price = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0"))

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} stock={self.stock}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "stock": self.stock,
            "unit": self.unit,
            "price": str(self.price if self.price is not None else Decimal("0.00")),
        }


class SaleRecord(db.Model):
    """
    A completed stock decrement.

    product_id is deliberately not a cascading foreign key: deleting a
    product leaves its sales in place and they resolve to a placeholder name.
    """
    __tablename__ = "sales"
    __table_args__ = (
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_name = db.Column(db.String(255), nullable=False)
    product_id = db.Column(db.Integer, nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)
    timestamp = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        index=True,
    )

    def __repr__(self) -> str:
        return f"<SaleRecord id={self.id} product_id={self.product_id} quantity={self.quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_name": self.customer_name,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "timestamp": to_utc_z(self.timestamp),
        }


class RestockRecord(db.Model):
    """A completed stock increment."""
    __tablename__ = "restock"
    __table_args__ = (
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    supplier_name = db.Column(db.String(255), nullable=False)
    product_id = db.Column(db.Integer, nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)
    notes = db.Column(db.Text, nullable=True)
    timestamp = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        index=True,
    )

    def __repr__(self) -> str:
        return f"<RestockRecord id={self.id} product_id={self.product_id} quantity={self.quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "supplier_name": self.supplier_name,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "notes": self.notes,
            "timestamp": to_utc_z(self.timestamp),
        }
