# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/stockroom/routes/products.py
"""
Product routes.

Reads come from the session mirror. Writes go through the session ledger,
which checks name uniqueness (case-insensitive) against the mirror and the
pending queue before touching the store.
"""
from flask import Blueprint, request, jsonify, g, current_app

from ..models import Product
from ..validation import (
    InventoryError,
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
)
from ..decorators import require_auth

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "stock", "unit", "price"},
    required_on_create={"name", "stock", "unit"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _product_patch() -> dict:
    payload = request.get_json(silent=True) or {}
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
    enforce_rules_product(patch)
    return patch


@products_bp.get("")
@require_auth
def list_products():
    """
    List products sorted by name.

    Query params:
    - in_stock: 1 to return only products with stock > 0 (sale picker)
    """
    mirror = g.workspace.mirror
    in_stock = request.args.get("in_stock", "").lower() in {"1", "true", "yes"}
    products = mirror.sellable() if in_stock else mirror.products
    return {
        "items": [p.to_dict() for p in products],
        "count": len(products),
    }


@products_bp.post("")
@require_auth
def create_product_route():
    """Create a single product."""
    try:
        patch = _product_patch()
        created = g.workspace.ledger.create_product(
            patch["name"], patch["stock"], patch["unit"], patch.get("price")
        )
    except InventoryError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to add product")
        return jsonify({"error": "Internal server error"}), 500

    return created.to_dict(), 201


@products_bp.delete("/<int:product_id>")
@require_auth
def delete_product_route(product_id: int):
    """Delete a product. Its sales and restock history are kept."""
    try:
        deleted = g.workspace.ledger.delete_product(product_id)
    except InventoryError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete product")
        return jsonify({"error": "Internal server error"}), 500

    return {"ok": True, "message": f'Product "{deleted.name}" deleted!'}, 200


@products_bp.get("/pending")
@require_auth
def list_pending_route():
    entries = g.workspace.pending.entries
    return {"items": [e.to_dict() for e in entries], "count": len(entries)}


@products_bp.post("/pending")
@require_auth
def queue_pending_route():
    """Queue a product for the next batched creation."""
    try:
        patch = _product_patch()
        entry = g.workspace.pending.queue(
            patch["name"], patch["stock"], patch["unit"], patch.get("price")
        )
    except InventoryError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to queue product")
        return jsonify({"error": "Internal server error"}), 500

    return entry.to_dict(), 201


@products_bp.delete("/pending/<name>")
@require_auth
def discard_pending_route(name: str):
    try:
        entry = g.workspace.pending.discard(name)
    except InventoryError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to discard queued product")
        return jsonify({"error": "Internal server error"}), 500

    return {"ok": True, "removed": entry.to_dict()}, 200


@products_bp.delete("/pending")
@require_auth
def reset_pending_route():
    try:
        g.workspace.pending.reset()
    except Exception:
        current_app.logger.exception("Failed to clear queued products")
        return jsonify({"error": "Internal server error"}), 500

    return {"ok": True}, 200


@products_bp.post("/pending/commit")
@require_auth
def commit_pending_route():
    """Create every queued product in one batched insert."""
    try:
        created = g.workspace.pending.commit()
    except InventoryError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to add queued products")
        return jsonify({"error": "Internal server error"}), 500

    return {"items": [p.to_dict() for p in created], "count": len(created)}, 201
