# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services import session_service
from .services.workspace_service import get_registry


def bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1]


def require_auth(f):
    """
    Require a live session and attach its workspace.

    Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.session_context: The full SessionContext object
    - g.workspace: The session's Workspace (rebuilt from the store if the
      process restarted since login)

    A rejected token whose session still holds a workspace (expired, or
    revoked because the user was deactivated) has that workspace closed.

    Returns 401 if:
    - No Authorization header
    - Invalid, revoked or expired token
    - User account deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = bearer_token()
        if not token:
            return jsonify({"error": "Authentication required"}), 401

        context = session_service.validate_session(token)
        if not context:
            # an expired or revoked session must not keep its workspace subscribed
            stale = session_service.find_session(token)
            if stale is not None:
                get_registry().close(stale.id)
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = context.user
        g.session_context = context
        g.workspace = get_registry().get_or_open(context.session.id, context.user.id)

        return f(*args, **kwargs)

    return decorated_function
