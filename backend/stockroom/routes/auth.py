# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/stockroom/routes/auth.py
"""
Authentication API routes

Login opens the session's workspace (mirror + change subscriptions);
logout releases it. Each login also closes workspaces left behind by
sessions that expired or were revoked without a logout.

Self-registration is not offered: users are created with the CLI
(flask users create).
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import session_service
from ..services.workspace_service import get_registry
from ..decorators import bearer_token, require_auth


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Token must be included in Authorization header for protected routes.
    """
    try:
        data = request.get_json(silent=True) or {}
        email = (data.get("email") or "").strip()
        password = (data.get("password") or "").strip()

        if not email or not password:
            return jsonify({"error": "Please enter email and password."}), 400

        user = auth_service.authenticate(email, password)
        if not user:
            return jsonify({"error": "Login failed: Invalid login credentials"}), 401

        session, token = session_service.create_session(user_id=user.id)
        registry = get_registry()
        registry.retain(session_service.live_session_ids(registry.session_ids()))
        workspace = registry.open(session.id, user.id)

        return jsonify({
            "user": user.to_dict(),
            "token": token,
            "session": session.to_dict(),
            "dashboard": workspace.ledger.dashboard(),
            "message": "Login successful"
        }), 200

    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
def logout_route():
    """
    Revoke session token and close its workspace.

    Expects Authorization header: Bearer <token>
    """
    try:
        token = bearer_token()
        if not token:
            return jsonify({"error": "Authorization header required"}), 401

        session = session_service.revoke_session(token, reason="User logout")
        if not session:
            return jsonify({"error": "Invalid or expired token"}), 401

        get_registry().close(session.id)
        return jsonify({"message": "Logout successful"}), 200

    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/session")
@require_auth
def session_route():
    """Current user and session."""
    return jsonify({
        "user": g.current_user.to_dict(),
        "session": g.session_context.session.to_dict(),
    }), 200
