# Overview: Flask API route for the dashboard summary.

from flask import Blueprint, g

from ..decorators import require_auth


dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


@dashboard_bp.get("")
@require_auth
def dashboard_route():
    """Totals and the low-stock list, derived from the session mirror."""
    return g.workspace.ledger.dashboard(), 200
