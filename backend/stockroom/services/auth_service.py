# Overview: Service-layer operations for auth; password hashing and user lookup.

"""
Authentication Service

Passwords are hashed with bcrypt. The dashboard only needs to know whether
a signed-in user is present; there are no roles.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12 by default)
- Minimum 8 characters, mixed case, digit and special char required
- Session tokens managed separately (see session_service.py)
"""

import re

import bcrypt

from ..extensions import db
from ..models import User


BCRYPT_ROUNDS = 12


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Raises PasswordValidationError if requirements not met.
    """
    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str, rounds: int = BCRYPT_ROUNDS) -> str:
    """Hash password using bcrypt. Password is validated for strength before hashing."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt check. Malformed hashes never match."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def create_user(email: str, password: str, rounds: int = BCRYPT_ROUNDS) -> User:
    """
    Create new user with bcrypt password hashing.

    Raises:
        ValueError: If the email is blank or already registered
        PasswordValidationError: If password doesn't meet requirements
    """
    email = normalize_email(email)
    if not email:
        raise ValueError("email is required")

    existing = db.session.query(User).filter(User.email == email).first()
    if existing:
        raise ValueError("A user with this email already exists")

    user = User(email=email, password_hash=hash_password(password, rounds=rounds))
    db.session.add(user)
    db.session.commit()
    return user


def authenticate(email: str, password: str) -> User | None:
    """Returns the active User for valid credentials, None otherwise."""
    user = db.session.query(User).filter(
        User.email == normalize_email(email),
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    if verify_password(password, user.password_hash):
        return user

    return None
