# Overview: Per-session workspace lifecycle (mirror, ledger, cart, change subscriptions).

"""
Session Workspaces

A workspace is everything one signed-in session holds in memory: its
mirror of the three tables, the ledger bound to that mirror, its sale cart,
its pending-product queue and its change-feed subscriptions.

LIFECYCLE:
- open on login: subscribe once per table, then load every table
- close on logout: release the subscriptions, drop the mirror and the cart
- opening a workspace for a session that already has one closes the old
  one first, so a session never holds duplicate handlers
- nothing survives a process restart; a live token whose workspace is gone
  gets a fresh one rebuilt from the store on its next request

The change feed and the tabular store are app-wide and live in
app.extensions; workspaces are kept in a registry keyed by session id.
"""

from __future__ import annotations

import logging
import threading

from flask import current_app

from .cart_service import PendingProducts, SaleCart
from .change_feed import ChangeFeed, Subscription
from .ledger_service import StockLedger
from .mirror import LedgerMirror
from .reconciliation_service import Reconciler
from .tabular_store import TabularStore


logger = logging.getLogger(__name__)

EXTENSION_KEY = "stockroom"


class Workspace:
    def __init__(self, session_id: int, user_id: int, store: TabularStore, *, low_stock_threshold: int):
        self.session_id = session_id
        self.user_id = user_id
        self.store = store
        self.mirror = LedgerMirror()
        self.ledger = StockLedger(self.mirror, store, low_stock_threshold=low_stock_threshold)
        self.reconciler = Reconciler(self.mirror, store)
        self.cart = SaleCart(self.ledger)
        self.pending = PendingProducts(self.ledger)
        self.subscriptions: list[Subscription] = []

    @property
    def active(self) -> bool:
        return bool(self.subscriptions)

    def start(self) -> None:
        self.stop()
        self.subscriptions = self.reconciler.subscribe(self.store.feed)
        self.reconciler.refresh_all()
        logger.info("Workspace opened for session %s (user %s)", self.session_id, self.user_id)

    def stop(self) -> None:
        if not self.subscriptions:
            return
        for sub in self.subscriptions:
            sub.unsubscribe()
        self.subscriptions = []
        self.cart.reset()
        self.pending.reset()
        self.mirror.clear()
        logger.info("Workspace closed for session %s", self.session_id)


class WorkspaceRegistry:
    def __init__(self, store: TabularStore, *, low_stock_threshold: int):
        self.store = store
        self.low_stock_threshold = low_stock_threshold
        self._lock = threading.Lock()
        self._workspaces: dict[int, Workspace] = {}

    def open(self, session_id: int, user_id: int) -> Workspace:
        workspace = Workspace(session_id, user_id, self.store, low_stock_threshold=self.low_stock_threshold)
        with self._lock:
            previous = self._workspaces.pop(session_id, None)
            self._workspaces[session_id] = workspace
        if previous is not None:
            previous.stop()
        workspace.start()
        return workspace

    def get(self, session_id: int) -> Workspace | None:
        with self._lock:
            return self._workspaces.get(session_id)

    def get_or_open(self, session_id: int, user_id: int) -> Workspace:
        workspace = self.get(session_id)
        if workspace is not None:
            return workspace
        return self.open(session_id, user_id)

    def close(self, session_id: int) -> bool:
        with self._lock:
            workspace = self._workspaces.pop(session_id, None)
        if workspace is None:
            return False
        workspace.stop()
        return True

    def close_all(self) -> int:
        with self._lock:
            workspaces = list(self._workspaces.values())
            self._workspaces.clear()
        for workspace in workspaces:
            workspace.stop()
        return len(workspaces)

    def session_ids(self) -> list[int]:
        with self._lock:
            return list(self._workspaces)

    def retain(self, live_ids) -> int:
        """Close every workspace whose session is not in live_ids. Returns the count closed."""
        live_ids = set(live_ids)
        with self._lock:
            dead = [sid for sid in self._workspaces if sid not in live_ids]
        closed = sum(1 for sid in dead if self.close(sid))
        if closed:
            logger.info("Closed %d workspace(s) for ended sessions", closed)
        return closed

    def __len__(self) -> int:
        with self._lock:
            return len(self._workspaces)


def _state(app=None) -> dict:
    app = app or current_app._get_current_object()
    state = app.extensions.get(EXTENSION_KEY)
    if state is None:
        feed = ChangeFeed(delivery=app.config.get("CHANGE_FEED_DELIVERY", "immediate"))
        store = TabularStore(feed, stock_update_mode=app.config.get("STOCK_UPDATE_MODE", "read_then_write"))
        registry = WorkspaceRegistry(store, low_stock_threshold=app.config.get("LOW_STOCK_THRESHOLD", 50))
        state = {"feed": feed, "store": store, "registry": registry}
        app.extensions[EXTENSION_KEY] = state
    return state


def get_change_feed(app=None) -> ChangeFeed:
    return _state(app)["feed"]


def get_store(app=None) -> TabularStore:
    return _state(app)["store"]


def get_registry(app=None) -> WorkspaceRegistry:
    return _state(app)["registry"]


def reset_state(app=None) -> None:
    """Close every workspace and forget the feed/store (config changes, tests)."""
    app = app or current_app._get_current_object()
    state = app.extensions.pop(EXTENSION_KEY, None)
    if state is not None:
        state["registry"].close_all()


def drain_change_feed(exc=None) -> None:
    """
    Request teardown hook: deliver any deferred change signals queued by the
    request, so other sessions reconcile before the next request starts.
    """
    state = current_app.extensions.get(EXTENSION_KEY)
    if state is None:
        return
    delivered = state["feed"].drain()
    if delivered:
        logger.debug("Delivered %d deferred change signal(s)", delivered)
