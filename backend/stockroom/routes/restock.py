# Overview: Flask API routes for restock operations; parses input and returns JSON responses.

# backend/stockroom/routes/restock.py
"""Restock API routes: add stock, history and reversal."""

from flask import Blueprint, request, jsonify, g, current_app

from ..models import RestockRecord
from ..validation import InventoryError, ModelValidationPolicy, validate_payload
from ..services.history_service import display_rows, filter_history, parse_date_bound
from ..decorators import require_auth


RESTOCK_POLICY = ModelValidationPolicy(
    writable_fields={"supplier_name", "product_id", "quantity", "notes"},
    required_on_create={"supplier_name", "product_id", "quantity"},
)

restock_bp = Blueprint("restock", __name__, url_prefix="/api/restock")


@restock_bp.get("")
@require_auth
def list_restock_route():
    """
    Restock history, newest first.

    Query params:
    - q: matches supplier name or product name (case-insensitive)
    - from / to: YYYY-MM-DD, inclusive whole days
    """
    mirror = g.workspace.mirror
    try:
        restocks = filter_history(
            mirror.restocks,
            mirror.product_name,
            text=request.args.get("q"),
            date_from=parse_date_bound(request.args.get("from"), "from"),
            date_to=parse_date_bound(request.args.get("to"), "to"),
            tz_name=current_app.config.get("DISPLAY_TIMEZONE", "UTC"),
        )
    except InventoryError as e:
        return jsonify(e.to_dict()), e.status_code

    return {"items": display_rows(restocks, mirror.product_name), "count": len(restocks)}


@restock_bp.post("")
@require_auth
def add_stock_route():
    try:
        payload = request.get_json(silent=True) or {}
        data = validate_payload(model=RestockRecord, payload=payload, policy=RESTOCK_POLICY, partial=False)
        restock = g.workspace.ledger.apply_restock(
            data["product_id"], data["quantity"], data["supplier_name"], data.get("notes")
        )
    except InventoryError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to add stock")
        return jsonify({"error": "Internal server error"}), 500

    return {"restock": restock.to_dict(), "message": "Stock added!"}, 201


@restock_bp.delete("/<int:restock_id>")
@require_auth
def delete_restock_route(restock_id: int):
    """Delete a restock record and take its quantity back out of stock (never below 0)."""
    try:
        stock = g.workspace.ledger.reverse_restock_by_id(restock_id)
    except InventoryError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete restock record")
        return jsonify({"error": "Internal server error"}), 500

    return {"ok": True, "stock": stock, "message": "Restock deleted."}, 200
