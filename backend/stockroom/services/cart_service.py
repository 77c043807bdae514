# Overview: Session-local staging for multi-line sales and batched product creation.

"""
Sale Cart and Pending Products

Both are ephemeral, owned by one session workspace and never persisted.

SaleCart:
- add_line merges repeat products into one line (quantities summed) and
  checks the merged total against mirror stock.
- commit applies lines one at a time through StockLedger.apply_sale. The
  first failure stops the commit; lines already applied stay applied (no
  rollback), are reported back and are dropped from the cart. The failed
  line and the lines after it stay staged; the cart is cleared outright only
  after every line succeeded.

PendingProducts:
- queue rejects names already in the mirror or already queued
  (case-insensitive); commit creates everything with one batched insert.
"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass

from ..validation import (
    InsufficientStock,
    InventoryError,
    RecordNotFound,
    ValidationError,
    require_quantity,
    require_text,
)
from .ledger_service import PendingProductEntry, StockLedger, build_product_entry
from .mirror import SaleRow


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SaleCartLine:
    product_id: int
    product_name: str
    quantity: int

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
        }


class CartCommitError(InventoryError):
    """A cart commit stopped part-way. Already-applied lines are not rolled back."""
    status_code = 409

    def __init__(self, failed_line: SaleCartLine, error: InventoryError, succeeded: list[SaleRow]):
        self.failed_line = failed_line
        self.error = error
        self.succeeded = succeeded
        super().__init__(
            f"Sale stopped at {failed_line.product_name}: {error.message}",
            details={
                "failed_line": failed_line.to_dict(),
                "failure": error.to_dict(),
                "succeeded": [s.to_dict() for s in succeeded],
            },
        )


class SaleCart:
    def __init__(self, ledger: StockLedger):
        self.ledger = ledger
        self._lock = threading.RLock()
        self._lines: OrderedDict[int, SaleCartLine] = OrderedDict()

    @property
    def lines(self) -> list[SaleCartLine]:
        with self._lock:
            return list(self._lines.values())

    def is_empty(self) -> bool:
        with self._lock:
            return not self._lines

    def add_line(self, product_id: int, quantity: int) -> SaleCartLine:
        quantity = require_quantity(quantity)
        product = self.ledger.require_product(product_id)

        with self._lock:
            existing = self._lines.get(product_id)
            requested = quantity + (existing.quantity if existing else 0)
            if product.stock < requested:
                raise InsufficientStock(
                    f"Insufficient stock! Available: {product.stock}",
                    details={
                        "product_id": product_id,
                        "available": product.stock,
                        "requested": requested,
                        "in_cart": existing.quantity if existing else 0,
                    },
                )
            line = SaleCartLine(product_id=product_id, product_name=product.name, quantity=requested)
            self._lines[product_id] = line
            return line

    def remove_line(self, product_id: int) -> SaleCartLine:
        with self._lock:
            line = self._lines.pop(product_id, None)
        if line is None:
            raise RecordNotFound("Cart line not found", details={"product_id": product_id})
        return line

    def reset(self) -> None:
        with self._lock:
            self._lines.clear()

    def commit(self, customer_name: str) -> list[SaleRow]:
        customer_name = require_text(customer_name, "customer_name")

        with self._lock:
            if not self._lines:
                raise ValidationError("Add at least one product to the sale", details={"field": "lines"})

            succeeded: list[SaleRow] = []
            for line in list(self._lines.values()):
                try:
                    sale = self.ledger.apply_sale(line.product_id, line.quantity, customer_name)
                except InventoryError as exc:
                    # applied lines leave the cart so a retry cannot sell them twice
                    for sale in succeeded:
                        self._lines.pop(sale.product_id, None)
                    logger.warning("Cart commit for %s stopped at product %s after %d line(s): %s",
                                   customer_name, line.product_id, len(succeeded), exc.message)
                    raise CartCommitError(line, exc, succeeded) from exc
                succeeded.append(sale)

            self._lines.clear()
            return succeeded


class PendingProducts:
    def __init__(self, ledger: StockLedger):
        self.ledger = ledger
        self._lock = threading.RLock()
        self._entries: list[PendingProductEntry] = []

    @property
    def entries(self) -> list[PendingProductEntry]:
        with self._lock:
            return list(self._entries)

    def queue(self, name, stock, unit, price=None) -> PendingProductEntry:
        entry = build_product_entry(name, stock, unit, price)
        with self._lock:
            self.ledger.check_name_available(entry.name, self._entries)
            self._entries.append(entry)
        return entry

    def discard(self, name: str) -> PendingProductEntry:
        folded = name.strip().casefold()
        with self._lock:
            for i, entry in enumerate(self._entries):
                if entry.name.casefold() == folded:
                    return self._entries.pop(i)
        raise RecordNotFound("Pending product not found", details={"name": name})

    def reset(self) -> None:
        with self._lock:
            self._entries.clear()

    def commit(self):
        with self._lock:
            created = self.ledger.create_products(list(self._entries))
            self._entries.clear()
            return created
