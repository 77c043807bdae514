# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/stockroom/routes/sales.py
"""Sales API routes: single sales, the session cart, history and reversal."""

from flask import Blueprint, request, jsonify, g, current_app

from ..models import SaleRecord
from ..validation import InventoryError, ModelValidationPolicy, validate_payload
from ..services.history_service import display_rows, filter_history, parse_date_bound
from ..decorators import require_auth


SALE_POLICY = ModelValidationPolicy(
    writable_fields={"customer_name", "product_id", "quantity"},
    required_on_create={"customer_name", "product_id", "quantity"},
)

CART_LINE_POLICY = ModelValidationPolicy(
    writable_fields={"product_id", "quantity"},
    required_on_create={"product_id", "quantity"},
)

sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _cart_payload() -> dict:
    cart = g.workspace.cart
    return {"lines": [line.to_dict() for line in cart.lines]}


@sales_bp.get("")
@require_auth
def list_sales_route():
    """
    Sales history, newest first.

    Query params:
    - q: matches customer name or product name (case-insensitive)
    - from / to: YYYY-MM-DD, inclusive whole days
    """
    mirror = g.workspace.mirror
    try:
        sales = filter_history(
            mirror.sales,
            mirror.product_name,
            text=request.args.get("q"),
            date_from=parse_date_bound(request.args.get("from"), "from"),
            date_to=parse_date_bound(request.args.get("to"), "to"),
            tz_name=current_app.config.get("DISPLAY_TIMEZONE", "UTC"),
        )
    except InventoryError as e:
        return jsonify(e.to_dict()), e.status_code

    return {"items": display_rows(sales, mirror.product_name), "count": len(sales)}


@sales_bp.post("")
@require_auth
def record_sale_route():
    """Record a single-product sale."""
    try:
        payload = request.get_json(silent=True) or {}
        data = validate_payload(model=SaleRecord, payload=payload, policy=SALE_POLICY, partial=False)
        sale = g.workspace.ledger.apply_sale(data["product_id"], data["quantity"], data["customer_name"])
    except InventoryError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record sale")
        return jsonify({"error": "Internal server error"}), 500

    return {"sale": sale.to_dict(), "message": "Sale recorded!"}, 201


@sales_bp.delete("/<int:sale_id>")
@require_auth
def delete_sale_route(sale_id: int):
    """Delete a sale and restore its quantity to stock."""
    try:
        stock = g.workspace.ledger.reverse_sale_by_id(sale_id)
    except InventoryError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete sale")
        return jsonify({"error": "Internal server error"}), 500

    return {"ok": True, "stock": stock, "message": "Sale deleted and stock restored."}, 200


@sales_bp.get("/cart")
@require_auth
def get_cart_route():
    return _cart_payload(), 200


@sales_bp.post("/cart/lines")
@require_auth
def add_cart_line_route():
    """Stage a product; repeat products merge into one line."""
    try:
        payload = request.get_json(silent=True) or {}
        data = validate_payload(model=SaleRecord, payload=payload, policy=CART_LINE_POLICY, partial=False)
        line = g.workspace.cart.add_line(data["product_id"], data["quantity"])
    except InventoryError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to add cart line")
        return jsonify({"error": "Internal server error"}), 500

    return {"line": line.to_dict(), **_cart_payload()}, 201


@sales_bp.delete("/cart/lines/<int:product_id>")
@require_auth
def remove_cart_line_route(product_id: int):
    try:
        g.workspace.cart.remove_line(product_id)
    except InventoryError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to remove cart line")
        return jsonify({"error": "Internal server error"}), 500

    return _cart_payload(), 200


@sales_bp.delete("/cart")
@require_auth
def reset_cart_route():
    try:
        g.workspace.cart.reset()
    except Exception:
        current_app.logger.exception("Failed to reset sale cart")
        return jsonify({"error": "Internal server error"}), 500

    return _cart_payload(), 200


@sales_bp.post("/cart/commit")
@require_auth
def commit_cart_route():
    """
    Apply every cart line as a sale for one customer.

    A failure part-way returns 409 with the failed line and the lines that
    were already applied; those are not rolled back and are dropped from
    the cart, leaving the failed line and the ones after it staged.
    """
    try:
        payload = request.get_json(silent=True) or {}
        sales = g.workspace.cart.commit(payload.get("customer_name"))
    except InventoryError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to commit sale cart")
        return jsonify({"error": "Internal server error"}), 500

    return {"sales": [s.to_dict() for s in sales], **_cart_payload(), "message": "Sale recorded!"}, 201
