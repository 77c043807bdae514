# Overview: Service-layer operations for stock; applies sales, restocks and reversals.

"""
Stock Ledger

Applies sale / restock / reversal / product operations for one session.
Checks run against the session mirror; writes go through the TabularStore
as a StockIntent so the stock change and the record write commit together.
The mirror is patched locally as soon as the write commits, ahead of the
change signal that will reconcile it from the store.

Stock Ledger Invariants (authoritative)

- A sale is refused unless mirror stock >= quantity.
- Restock reversal floors stock at 0; sale reversal restores the full
  quantity. The asymmetry is intended: intervening sales may already have
  consumed restocked units.
- Reversals are NOT idempotent at this layer. The record delete shares the
  transaction with the stock change, so reversing a record that is already
  gone from the store fails with RecordNotFound and changes nothing.
- Product deletion does not touch sales/restock history.

KNOWN GAP (read_then_write mode):
The stock value written is computed from this session's mirror. Two
sessions selling the same product from the same stale snapshot can both
succeed and the last write wins, which can oversell. Use
STOCK_UPDATE_MODE="conditional" for the server-side guarded update.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from decimal import Decimal, InvalidOperation
from typing import Iterable

from ..validation import (
    DuplicateName,
    InsufficientStock,
    ProductNotFound,
    RecordNotFound,
    ValidationError,
    enforce_rules_product,
    require_quantity,
    require_text,
)
from .change_feed import Table
from .mirror import LedgerMirror, ProductRow, RestockRow, SaleRow
from .tabular_store import StockIntent, TabularStore


logger = logging.getLogger(__name__)

DEFAULT_LOW_STOCK_THRESHOLD = 50


@dataclass(frozen=True)
class PendingProductEntry:
    name: str
    stock: int
    unit: str
    price: Decimal = Decimal("0.00")

    def to_dict(self) -> dict:
        return {"name": self.name, "stock": self.stock, "unit": self.unit, "price": str(self.price)}


def build_product_entry(name, stock, unit, price=None) -> PendingProductEntry:
    """Normalize and validate product fields before any write."""
    name = require_text(name, "name")
    unit = require_text(unit, "unit")
    if isinstance(stock, bool) or not isinstance(stock, int):
        raise ValidationError("stock must be an integer", details={"field": "stock"})
    try:
        price = Decimal("0") if price is None else Decimal(str(price))
    except InvalidOperation:
        raise ValidationError("price must be a number", details={"field": "price"})
    price = price.quantize(Decimal("0.01"))
    enforce_rules_product({"stock": stock, "price": price})
    return PendingProductEntry(name=name, stock=stock, unit=unit, price=price)


class StockLedger:
    def __init__(
        self,
        mirror: LedgerMirror,
        store: TabularStore,
        *,
        low_stock_threshold: int = DEFAULT_LOW_STOCK_THRESHOLD,
    ):
        self.mirror = mirror
        self.store = store
        self.low_stock_threshold = low_stock_threshold

    def require_product(self, product_id: int) -> ProductRow:
        product = self.mirror.get_product(product_id)
        if product is None:
            raise ProductNotFound("Selected product not found.", details={"product_id": product_id})
        return product

    # -- sales ------------------------------------------------------------

    def apply_sale(self, product_id: int, quantity: int, customer_name: str) -> SaleRow:
        customer_name = require_text(customer_name, "customer_name")
        quantity = require_quantity(quantity)
        product = self.require_product(product_id)

        if product.stock < quantity:
            raise InsufficientStock(
                f"Insufficient stock! Available: {product.stock}",
                details={"product_id": product_id, "available": product.stock, "requested": quantity},
            )

        result = self.store.apply_intent(StockIntent(
            record_table=Table.SALES,
            product_id=product_id,
            new_stock=product.stock - quantity,
            delta=-quantity,
            insert_values={
                "customer_name": customer_name,
                "product_id": product_id,
                "quantity": quantity,
            },
        ))

        self.mirror.put_product(replace(product, stock=result.stock))
        self.mirror.upsert_sale(result.record)
        logger.info("Sale %s: %s x%d, stock %d -> %d",
                    result.record.id, product.name, quantity, product.stock, result.stock)
        return result.record

    def reverse_sale(self, sale: SaleRow) -> int | None:
        """Restore the sale's quantity to stock, then remove the record."""
        product = self.mirror.get_product(sale.product_id)

        result = self.store.apply_intent(StockIntent(
            record_table=Table.SALES,
            product_id=product.id if product else None,
            new_stock=(product.stock + sale.quantity) if product else None,
            delta=sale.quantity,
            delete_id=sale.id,
        ))

        if product is not None:
            self.mirror.put_product(replace(product, stock=result.stock))
        self.mirror.drop_sale(sale.id)
        logger.info("Reversed sale %s (+%d to product %s)", sale.id, sale.quantity, sale.product_id)
        return result.stock

    def reverse_sale_by_id(self, sale_id: int) -> int | None:
        sale = self.mirror.find_sale(sale_id)
        if sale is None:
            raise RecordNotFound("Sale not found", details={"id": sale_id})
        return self.reverse_sale(sale)

    # -- restocks ---------------------------------------------------------

    def apply_restock(
        self,
        product_id: int,
        quantity: int,
        supplier_name: str,
        notes: str | None = None,
    ) -> RestockRow:
        supplier_name = require_text(supplier_name, "supplier_name")
        quantity = require_quantity(quantity)
        product = self.require_product(product_id)
        notes = (notes or "").strip() or None

        result = self.store.apply_intent(StockIntent(
            record_table=Table.RESTOCK,
            product_id=product_id,
            new_stock=product.stock + quantity,
            delta=quantity,
            insert_values={
                "supplier_name": supplier_name,
                "product_id": product_id,
                "quantity": quantity,
                "notes": notes,
            },
        ))

        self.mirror.put_product(replace(product, stock=result.stock))
        self.mirror.upsert_restock(result.record)
        logger.info("Restock %s: %s +%d, stock %d -> %d",
                    result.record.id, product.name, quantity, product.stock, result.stock)
        return result.record

    def reverse_restock(self, restock: RestockRow) -> int | None:
        """Take the restocked quantity back out of stock (floored at 0), then remove the record."""
        product = self.mirror.get_product(restock.product_id)

        result = self.store.apply_intent(StockIntent(
            record_table=Table.RESTOCK,
            product_id=product.id if product else None,
            new_stock=max(0, product.stock - restock.quantity) if product else None,
            delta=-restock.quantity,
            floor_at_zero=True,
            delete_id=restock.id,
        ))

        if product is not None:
            self.mirror.put_product(replace(product, stock=result.stock))
        self.mirror.drop_restock(restock.id)
        logger.info("Reversed restock %s (-%d from product %s)", restock.id, restock.quantity, restock.product_id)
        return result.stock

    def reverse_restock_by_id(self, restock_id: int) -> int | None:
        restock = self.mirror.find_restock(restock_id)
        if restock is None:
            raise RecordNotFound("Restock record not found", details={"id": restock_id})
        return self.reverse_restock(restock)

    # -- products ---------------------------------------------------------

    def check_name_available(self, name: str, pending: Iterable[PendingProductEntry] = ()) -> None:
        folded = name.casefold()
        if self.mirror.name_taken(name) or any(e.name.casefold() == folded for e in pending):
            raise DuplicateName(f'Product "{name}" already exists', details={"name": name})

    def create_product(self, name, stock, unit, price=None) -> ProductRow:
        entry = build_product_entry(name, stock, unit, price)
        return self.create_products([entry])[0]

    def create_products(self, entries: list[PendingProductEntry]) -> list[ProductRow]:
        """Create all entries with one batched insert."""
        if not entries:
            raise ValidationError("No products to create")

        seen: list[PendingProductEntry] = []
        for entry in entries:
            self.check_name_available(entry.name, seen)
            seen.append(entry)

        created = self.store.insert(Table.PRODUCTS, [
            {"name": e.name, "stock": e.stock, "unit": e.unit, "price": e.price}
            for e in entries
        ])
        for row in created:
            self.mirror.put_product(row)
        logger.info("Created %d product(s): %s", len(created), ", ".join(p.name for p in created))
        return created

    def delete_product(self, product_id: int) -> ProductRow:
        product = self.require_product(product_id)
        if not self.store.delete_by_id(Table.PRODUCTS, product_id):
            # Deleted by another session since our last refresh
            self.mirror.drop_product(product_id)
            raise ProductNotFound("Product not found", details={"product_id": product_id})
        self.mirror.drop_product(product_id)
        logger.info("Deleted product %s (%s)", product.id, product.name)
        return product

    # -- derived views ----------------------------------------------------

    def low_stock(self) -> list[ProductRow]:
        return self.mirror.low_stock(self.low_stock_threshold)

    def totals(self) -> dict:
        return self.mirror.totals(self.low_stock_threshold)

    def dashboard(self) -> dict:
        return {
            "totals": self.totals(),
            "low_stock_threshold": self.low_stock_threshold,
            "low_stock": [p.to_dict() for p in self.low_stock()],
        }
