"""
User Service — registration, login, lookup.
"""

import logging
from datetime import datetime, timezone

from email_validator import EmailNotValidError, validate_email

from app.models import db
from app.models.auth import User
from app.utils.crypto import hash_password, verify_password

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8


class UserServiceError(Exception):
    """Custom exception for user service errors."""
    def __init__(self, message, status_code=400):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


def normalize_email(email: str) -> str:
    try:
        valid = validate_email(email or "", check_deliverability=False)
    except EmailNotValidError as e:
        raise UserServiceError(f"Invalid email: {e}")
    return valid.normalized.lower()


# ═══════════════════════════════════════════════════════════════
# Registration / lookup
# ═══════════════════════════════════════════════════════════════
def create_user(email: str, password: str, full_name: str | None = None) -> User:
    """Create a new account. Flushes; the caller commits."""
    email = normalize_email(email)

    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise UserServiceError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

    if get_user_by_email(email):
        raise UserServiceError(f"User with email {email} already exists", 409)

    user = User(
        email=email,
        password_hash=hash_password(password),
        full_name=(full_name or "").strip() or None,
        status="active",
    )
    db.session.add(user)
    db.session.flush()
    logger.info("User registered id=%s", user.id)
    return user


def get_user_by_email(email: str) -> User | None:
    return User.query.filter_by(email=email).first()


def get_user_by_id(user_id: int) -> User | None:
    """Find a user by ID."""
    return db.session.get(User, user_id)


# ═══════════════════════════════════════════════════════════════
# Authentication
# ═══════════════════════════════════════════════════════════════
def authenticate_user(email: str, password: str) -> User:
    """Authenticate a user with email + password. Returns User on success."""
    try:
        email = normalize_email(email)
    except UserServiceError:
        raise UserServiceError("Invalid email or password", 401)

    user = get_user_by_email(email)
    if not user:
        raise UserServiceError("Invalid email or password", 401)

    if user.status != "active":
        raise UserServiceError(f"Account is {user.status}", 403)

    if not verify_password(password or "", user.password_hash):
        raise UserServiceError("Invalid email or password", 401)

    user.last_login_at = datetime.now(timezone.utc)
    db.session.flush()
    return user
