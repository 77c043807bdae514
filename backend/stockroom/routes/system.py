# backend/stockroom/routes/system.py
"""
System health endpoint.
"""

import time
from flask import Blueprint, current_app
from ..validation import RemoteFailure
from ..services.workspace_service import get_change_feed, get_registry, get_store

system_bp = Blueprint("system", __name__)


def check_store_health() -> dict:
    """Round-trip to the tabular store."""
    start_time = time.time()
    try:
        get_store().ping()
    except RemoteFailure as e:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.error("Store health check failed: %s", e.message)
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": e.message,
        }

    elapsed_ms = (time.time() - start_time) * 1000
    return {"status": "healthy", "latency_ms": round(elapsed_ms, 2)}


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: store reachable
    - 503: store unreachable
    """
    store = check_store_health()
    payload = {
        "status": store["status"],
        "checks": {
            "store": store,
            "change_feed": {
                "delivery": get_change_feed().delivery,
                "subscriptions": get_change_feed().subscriber_count(),
            },
            "workspaces": len(get_registry()),
        },
    }
    return payload, 200 if store["status"] == "healthy" else 503
