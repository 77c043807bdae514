# Overview: Keeps a session mirror in step with the store by re-fetching changed tables.

"""
Change Reconciliation

Each change signal names a table and nothing else worth trusting. The
reconciler re-reads that whole table and swaps it into the mirror. Any
local patch for that table is overwritten by what the store now holds.

A failed re-fetch keeps the previous contents and is logged; the next
signal for the table tries again.
"""

from __future__ import annotations

import logging

from ..validation import RemoteFailure
from .change_feed import ChangeFeed, Subscription, Table, TableChange
from .mirror import LedgerMirror
from .tabular_store import TabularStore


logger = logging.getLogger(__name__)


class Reconciler:
    def __init__(self, mirror: LedgerMirror, store: TabularStore):
        self.mirror = mirror
        self.store = store

    def refresh(self, table: Table) -> bool:
        """Replace one mirror table with the store's current rows. Returns False on failure."""
        table = Table(table)
        try:
            rows = self.store.select_all(table)
        except RemoteFailure as exc:
            logger.error("Failed to load %s: %s", table.value, exc.message)
            return False
        self.mirror.replace(table, rows)
        logger.debug("Reloaded %s (%d rows)", table.value, len(rows))
        return True

    def refresh_all(self) -> dict[Table, bool]:
        return {table: self.refresh(table) for table in Table}

    def handle(self, change: TableChange) -> None:
        self.refresh(change.table)

    def subscribe(self, feed: ChangeFeed) -> list[Subscription]:
        """One subscription per table, all routed to handle()."""
        return [feed.subscribe(table, self.handle) for table in Table]
