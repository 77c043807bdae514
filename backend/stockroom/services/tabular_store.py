# Overview: Gateway to the products/sales/restock tables; publishes change signals on commit.

"""
Tabular Store

The only code that talks to the database for inventory data. Offers the
four primitives the dashboard needs per table (select-all-ordered,
insert-one-or-many, update-by-id, delete-by-id) plus apply_intent(), which
lands a stock change and its sale/restock record write in one transaction.

INVARIANTS:
- Every write runs inside transaction(); nested calls join the outer one.
- Change signals are published only after a successful commit, once per
  (table, event) pair touched by the transaction.
- SQLAlchemy errors roll back and surface as RemoteFailure carrying the
  driver's message. Nothing is retried.

STOCK UPDATE MODES:
- read_then_write: the caller computed the new stock from its mirror and
  the store writes it as an absolute value. Concurrent sessions reading the
  same stale value can both succeed (last writer wins). Kept for parity.
- conditional: the store applies a relative delta guarded server-side, so a
  decrement below zero is refused and a floored decrement clamps at 0.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator

from sqlalchemy import case, func, text
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Product, SaleRecord, RestockRecord
from ..validation import InsufficientStock, ProductNotFound, RecordNotFound, RemoteFailure
from .change_feed import ChangeEvent, ChangeFeed, Table, TableChange
from .mirror import ProductRow, SaleRow, RestockRow


logger = logging.getLogger(__name__)

STOCK_UPDATE_MODES = {"read_then_write", "conditional"}

MODELS = {
    Table.PRODUCTS: Product,
    Table.SALES: SaleRecord,
    Table.RESTOCK: RestockRecord,
}

ROW_TYPES = {
    Table.PRODUCTS: ProductRow,
    Table.SALES: SaleRow,
    Table.RESTOCK: RestockRow,
}


@dataclass(frozen=True)
class StockIntent:
    """
    A stock change staged together with the record write it belongs to.

    new_stock is used in read_then_write mode, delta in conditional mode.
    product_id=None skips the stock change (product already gone).
    """
    record_table: Table
    product_id: int | None
    new_stock: int | None = None
    delta: int = 0
    floor_at_zero: bool = False
    insert_values: dict | None = None
    delete_id: int | None = None


@dataclass(frozen=True)
class IntentResult:
    stock: int | None
    record: SaleRow | RestockRow | None


def _remote_message(exc: SQLAlchemyError) -> str:
    return str(getattr(exc, "orig", None) or exc)


class TabularStore:
    def __init__(self, feed: ChangeFeed, *, stock_update_mode: str = "read_then_write"):
        if stock_update_mode not in STOCK_UPDATE_MODES:
            raise ValueError(f"Unknown stock update mode: {stock_update_mode}")
        self.feed = feed
        self.stock_update_mode = stock_update_mode
        self._local = threading.local()

    @property
    def session(self):
        return db.session

    @contextmanager
    def transaction(self) -> Iterator[None]:
        if getattr(self._local, "changes", None) is not None:
            # Join the outer transaction
            yield
            return

        changes: list[TableChange] = []
        self._local.changes = changes
        try:
            yield
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.warning("Store write failed: %s", _remote_message(exc))
            raise RemoteFailure(_remote_message(exc)) from exc
        except Exception:
            self.session.rollback()
            raise
        finally:
            self._local.changes = None

        for change in dict.fromkeys(changes):
            self.feed.publish(change)

    def _touch(self, table: Table, event: ChangeEvent) -> None:
        self._local.changes.append(TableChange(table=table, event=event))

    # -- reads ------------------------------------------------------------

    def select_all(self, table: Table) -> list:
        """Whole table as row snapshots: products by name, records newest first."""
        table = Table(table)
        model = MODELS[table]
        query = self.session.query(model).populate_existing()
        if table is Table.PRODUCTS:
            query = query.order_by(func.lower(Product.name).asc(), Product.id.asc())
        else:
            query = query.order_by(model.timestamp.desc(), model.id.desc())

        try:
            rows = [ROW_TYPES[table].from_model(obj) for obj in query.all()]
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.warning("Failed to load %s: %s", table.value, _remote_message(exc))
            raise RemoteFailure(f"Failed to load {table.value}: {_remote_message(exc)}") from exc
        return rows

    def ping(self) -> None:
        try:
            self.session.execute(text("SELECT 1"))
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise RemoteFailure(_remote_message(exc)) from exc

    # -- writes -----------------------------------------------------------

    def insert(self, table: Table, rows: list[dict]) -> list:
        """Insert one or many rows; returns their snapshots in input order."""
        table = Table(table)
        model = MODELS[table]
        with self.transaction():
            objs = [model(**values) for values in rows]
            self.session.add_all(objs)
            self.session.flush()
            # server defaults (timestamp) load on attribute access
            created = [ROW_TYPES[table].from_model(obj) for obj in objs]
            if created:
                self._touch(table, ChangeEvent.INSERT)
        return created

    def update_by_id(self, table: Table, row_id: int, values: dict) -> bool:
        table = Table(table)
        model = MODELS[table]
        with self.transaction():
            count = (
                self.session.query(model)
                .filter(model.id == row_id)
                .update(values, synchronize_session=False)
            )
            if count:
                self._touch(table, ChangeEvent.UPDATE)
        return bool(count)

    def delete_by_id(self, table: Table, row_id: int) -> bool:
        table = Table(table)
        model = MODELS[table]
        with self.transaction():
            count = (
                self.session.query(model)
                .filter(model.id == row_id)
                .delete(synchronize_session=False)
            )
            if count:
                self._touch(table, ChangeEvent.DELETE)
        return bool(count)

    def apply_intent(self, intent: StockIntent) -> IntentResult:
        """Apply the stock change and the record write atomically."""
        with self.transaction():
            stock = None
            if intent.product_id is not None:
                stock = self._apply_stock(intent)

            record = None
            if intent.insert_values is not None:
                record = self.insert(intent.record_table, [intent.insert_values])[0]

            if intent.delete_id is not None:
                if not self.delete_by_id(intent.record_table, intent.delete_id):
                    raise RecordNotFound(
                        f"{intent.record_table.value} record not found",
                        details={"id": intent.delete_id},
                    )
        return IntentResult(stock=stock, record=record)

    def _current_stock(self, product_id: int) -> int | None:
        return self.session.query(Product.stock).filter(Product.id == product_id).scalar()

    def _apply_stock(self, intent: StockIntent) -> int:
        product_id = intent.product_id

        if self.stock_update_mode == "read_then_write":
            if not self.update_by_id(Table.PRODUCTS, product_id, {"stock": intent.new_stock}):
                raise ProductNotFound("Product not found", details={"product_id": product_id})
            return intent.new_stock

        query = self.session.query(Product).filter(Product.id == product_id)
        new_value = Product.stock + intent.delta
        if intent.floor_at_zero:
            new_value = case((Product.stock + intent.delta < 0, 0), else_=Product.stock + intent.delta)
        elif intent.delta < 0:
            query = query.filter(Product.stock >= -intent.delta)

        count = query.update({Product.stock: new_value}, synchronize_session=False)
        if not count:
            current = self._current_stock(product_id)
            if current is None:
                raise ProductNotFound("Product not found", details={"product_id": product_id})
            raise InsufficientStock(
                f"Insufficient stock! Available: {current}",
                details={"product_id": product_id, "available": current, "requested": -intent.delta},
            )
        self._touch(Table.PRODUCTS, ChangeEvent.UPDATE)
        return self._current_stock(product_id)
