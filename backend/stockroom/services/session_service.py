# Overview: Service-layer operations for session tokens.

"""
Session Token Management Service

Tokens are cryptographically secure, hashed in database, and time-limited.
A valid session is the gate for a workspace: login opens one, logout
closes it (see workspace_service.py).
"""

import secrets
import hashlib
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import SessionToken, User
from stockroom.time_utils import utcnow


@dataclass
class SessionContext:
    user: User
    session: SessionToken


def generate_token() -> str:
    """64-character hex string (32 bytes of entropy). Sent to the client, never stored."""
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """SHA-256 is enough for high-entropy tokens."""
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def create_session(user_id: int) -> tuple[SessionToken, str]:
    """
    Create new session token for user.

    Returns (session_record, plaintext_token).
    Raises ValueError if the user does not exist or is inactive.
    """
    user = db.session.query(User).filter_by(id=user_id).first()
    if not user or not user.is_active:
        raise ValueError("User not found")

    plaintext_token = generate_token()
    now = utcnow()
    ttl = timedelta(hours=current_app.config.get("SESSION_TTL_HOURS", 24))

    session = SessionToken(
        user_id=user_id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        last_used_at=now,
        expires_at=now + ttl,
        is_revoked=False,
    )

    db.session.add(session)
    db.session.commit()

    return session, plaintext_token


def validate_session(token: str) -> SessionContext | None:
    """
    Returns SessionContext for a live token, None if the token is unknown,
    revoked, expired, or its user was deactivated.
    """
    now = utcnow()

    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False
    ).first()

    if not session:
        return None

    if session.expires_at < now:
        return None

    user = session.user
    if not user or not user.is_active:
        session.is_revoked = True
        session.revoked_at = now
        session.revoked_reason = "User account deactivated"
        db.session.commit()
        return None

    session.last_used_at = now
    db.session.commit()

    return SessionContext(user=user, session=session)


def revoke_session(token: str, reason: str = "User logout") -> SessionToken | None:
    """Revoke a live session. Returns the revoked record, or None if not found."""
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False
    ).first()

    if not session:
        return None

    session.is_revoked = True
    session.revoked_at = utcnow()
    session.revoked_reason = reason

    db.session.commit()
    return session


def find_session(token: str) -> SessionToken | None:
    """Session record for a token in any state (live, revoked or expired)."""
    return db.session.query(SessionToken).filter_by(token_hash=hash_token(token)).first()


def live_session_ids(session_ids) -> set[int]:
    """The subset of session_ids that are neither revoked, expired nor owned by an inactive user."""
    session_ids = list(session_ids)
    if not session_ids:
        return set()
    rows = (
        db.session.query(SessionToken.id)
        .join(User, User.id == SessionToken.user_id)
        .filter(
            SessionToken.id.in_(session_ids),
            SessionToken.is_revoked.is_(False),
            SessionToken.expires_at >= utcnow(),
            User.is_active.is_(True),
        )
        .all()
    )
    return {row.id for row in rows}
