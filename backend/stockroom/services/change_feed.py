# Overview: In-process publish/subscribe channel for table change signals.

"""
Change Feed

Every committed write against products, sales or restock publishes a
TableChange. Subscribers get an undifferentiated "this table changed"
signal; the event kind is informational only and every kind triggers the
same re-fetch on the receiving side.

DELIVERY MODES:
- immediate: publish() calls every subscriber of the table before returning
- deferred: publish() queues the change; drain() delivers everything queued.
  The app drains at request teardown, so signals reach other sessions once
  the writing request has finished.

Subscriptions are explicit handles. A workspace owns its handles and
releases them on logout, so a session never holds two handlers per table.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Callable


logger = logging.getLogger(__name__)


class Table(str, Enum):
    PRODUCTS = "products"
    SALES = "sales"
    RESTOCK = "restock"


class ChangeEvent(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


@dataclass(frozen=True)
class TableChange:
    table: Table
    event: ChangeEvent


Handler = Callable[[TableChange], None]

DELIVERY_MODES = {"immediate", "deferred"}


class Subscription:
    """Handle for one handler on one table. unsubscribe() is safe to repeat."""

    def __init__(self, feed: "ChangeFeed", table: Table, handler: Handler):
        self.feed = feed
        self.table = table
        self.handler = handler
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self.feed.unsubscribe(self)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.unsubscribe()

    def __repr__(self) -> str:
        return f"<Subscription table={self.table.value} active={self.active}>"


class ChangeFeed:
    def __init__(self, delivery: str = "immediate"):
        if delivery not in DELIVERY_MODES:
            raise ValueError(f"Unknown change feed delivery mode: {delivery}")
        self.delivery = delivery
        self._lock = threading.Lock()
        self._subscriptions: dict[Table, list[Subscription]] = {t: [] for t in Table}
        self._queue: deque[TableChange] = deque()

    def subscribe(self, table: Table, handler: Handler) -> Subscription:
        sub = Subscription(self, Table(table), handler)
        with self._lock:
            self._subscriptions[sub.table].append(sub)
        logger.debug("Subscribed %r", sub)
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        with self._lock:
            subs = self._subscriptions[sub.table]
            if sub in subs:
                subs.remove(sub)
            sub.active = False
        logger.debug("Unsubscribed %r", sub)

    def subscriber_count(self, table: Table | None = None) -> int:
        with self._lock:
            if table is not None:
                return len(self._subscriptions[Table(table)])
            return sum(len(subs) for subs in self._subscriptions.values())

    def publish(self, change: TableChange) -> None:
        if self.delivery == "deferred":
            with self._lock:
                self._queue.append(change)
            return
        self._deliver(change)

    def pending(self) -> list[TableChange]:
        with self._lock:
            return list(self._queue)

    def drain(self) -> int:
        """Deliver every queued change in publish order. Returns the count delivered."""
        delivered = 0
        while True:
            with self._lock:
                if not self._queue:
                    return delivered
                change = self._queue.popleft()
            self._deliver(change)
            delivered += 1

    def _deliver(self, change: TableChange) -> None:
        with self._lock:
            subs = list(self._subscriptions[change.table])

        for sub in subs:
            if not sub.active:
                continue
            try:
                sub.handler(change)
            except Exception:
                # One broken subscriber must not starve the others
                logger.exception("Change handler failed for %s %s", change.table.value, change.event.value)
