# Overview: Per-session cached copy of the products, sales and restock tables.

"""
Ledger Mirror

The mirror is an eventually-consistent copy of the three tables owned by
one session workspace. Two writers touch it:
- the reconciler, which replaces a whole table after a change signal
- the ledger, which patches single rows right after its own write commits

Rows are immutable snapshots; local edits swap rows, never mutate them.
Derived views (low stock, totals) are computed on read.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable

from stockroom.time_utils import to_utc_naive, to_utc_z
from .change_feed import Table


UNKNOWN_PRODUCT_NAME = "Unknown product"


@dataclass(frozen=True)
class ProductRow:
    id: int
    name: str
    stock: int
    unit: str
    price: Decimal = Decimal("0.00")

    @classmethod
    def from_model(cls, p) -> "ProductRow":
        return cls(
            id=p.id,
            name=p.name,
            stock=p.stock,
            unit=p.unit,
            price=Decimal(p.price if p.price is not None else 0).quantize(Decimal("0.01")),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "stock": self.stock,
            "unit": self.unit,
            "price": str(self.price),
        }


@dataclass(frozen=True)
class SaleRow:
    id: int
    customer_name: str
    product_id: int
    quantity: int
    timestamp: datetime | None = None

    @property
    def party_name(self) -> str:
        return self.customer_name

    @classmethod
    def from_model(cls, s) -> "SaleRow":
        return cls(
            id=s.id,
            customer_name=s.customer_name,
            product_id=s.product_id,
            quantity=s.quantity,
            timestamp=to_utc_naive(s.timestamp),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_name": self.customer_name,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "timestamp": to_utc_z(self.timestamp),
        }


@dataclass(frozen=True)
class RestockRow:
    id: int
    supplier_name: str
    product_id: int
    quantity: int
    notes: str | None = None
    timestamp: datetime | None = None

    @property
    def party_name(self) -> str:
        return self.supplier_name

    @classmethod
    def from_model(cls, r) -> "RestockRow":
        return cls(
            id=r.id,
            supplier_name=r.supplier_name,
            product_id=r.product_id,
            quantity=r.quantity,
            notes=r.notes,
            timestamp=to_utc_naive(r.timestamp),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "supplier_name": self.supplier_name,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "notes": self.notes,
            "timestamp": to_utc_z(self.timestamp),
        }


def sort_products(rows: Iterable[ProductRow]) -> list[ProductRow]:
    return sorted(rows, key=lambda p: (p.name.lower(), p.id))


def sort_newest_first(rows: Iterable) -> list:
    return sorted(rows, key=lambda r: (r.timestamp or datetime.min, r.id), reverse=True)


class LedgerMirror:
    def __init__(self):
        self.lock = threading.RLock()
        self._products: dict[int, ProductRow] = {}
        self._sales: list[SaleRow] = []
        self._restocks: list[RestockRow] = []
        self.generations: dict[Table, int] = {t: 0 for t in Table}

    # -- wholesale replacement (reconciliation) ---------------------------

    def replace(self, table: Table, rows: Iterable) -> None:
        table = Table(table)
        with self.lock:
            if table is Table.PRODUCTS:
                self._products = {p.id: p for p in sort_products(rows)}
            elif table is Table.SALES:
                self._sales = sort_newest_first(rows)
            else:
                self._restocks = sort_newest_first(rows)
            self.generations[table] += 1

    def clear(self) -> None:
        with self.lock:
            self._products = {}
            self._sales = []
            self._restocks = []
            self.generations = {t: 0 for t in Table}

    # -- reads ------------------------------------------------------------

    @property
    def products(self) -> list[ProductRow]:
        with self.lock:
            return list(self._products.values())

    @property
    def sales(self) -> list[SaleRow]:
        with self.lock:
            return list(self._sales)

    @property
    def restocks(self) -> list[RestockRow]:
        with self.lock:
            return list(self._restocks)

    def get_product(self, product_id: int) -> ProductRow | None:
        with self.lock:
            return self._products.get(product_id)

    def find_sale(self, sale_id: int) -> SaleRow | None:
        with self.lock:
            return next((s for s in self._sales if s.id == sale_id), None)

    def find_restock(self, restock_id: int) -> RestockRow | None:
        with self.lock:
            return next((r for r in self._restocks if r.id == restock_id), None)

    def product_name(self, product_id: int) -> str:
        product = self.get_product(product_id)
        return product.name if product else UNKNOWN_PRODUCT_NAME

    def name_taken(self, name: str) -> bool:
        folded = name.strip().casefold()
        with self.lock:
            return any(p.name.casefold() == folded for p in self._products.values())

    # -- local patches (the initiating session, after its write commits) --

    def put_product(self, row: ProductRow) -> None:
        with self.lock:
            products = dict(self._products)
            products[row.id] = row
            self._products = {p.id: p for p in sort_products(products.values())}

    def drop_product(self, product_id: int) -> None:
        with self.lock:
            self._products = {pid: p for pid, p in self._products.items() if pid != product_id}

    def upsert_sale(self, row: SaleRow) -> None:
        with self.lock:
            self._sales = sort_newest_first([s for s in self._sales if s.id != row.id] + [row])

    def drop_sale(self, sale_id: int) -> None:
        with self.lock:
            self._sales = [s for s in self._sales if s.id != sale_id]

    def upsert_restock(self, row: RestockRow) -> None:
        with self.lock:
            self._restocks = sort_newest_first([r for r in self._restocks if r.id != row.id] + [row])

    def drop_restock(self, restock_id: int) -> None:
        with self.lock:
            self._restocks = [r for r in self._restocks if r.id != restock_id]

    # -- derived views ----------------------------------------------------

    def low_stock(self, threshold: int) -> list[ProductRow]:
        return [p for p in self.products if p.stock < threshold]

    def sellable(self) -> list[ProductRow]:
        return [p for p in self.products if p.stock > 0]

    def totals(self, threshold: int) -> dict:
        with self.lock:
            return {
                "products": len(self._products),
                "sales": len(self._sales),
                "restocks": len(self._restocks),
                "low_stock": sum(1 for p in self._products.values() if p.stock < threshold),
            }
