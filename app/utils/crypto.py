"""
Password hashing.

New hashes are bcrypt ($2b$). Werkzeug hashes (scrypt/pbkdf2) are still
accepted on verification so accounts imported from older tooling keep
working.

BCRYPT_ROUNDS (env, default 12) sets the work factor; the test suite
lowers it to keep fixtures fast.
"""

import os

import bcrypt
from werkzeug.security import check_password_hash


def _rounds() -> int:
    try:
        return max(int(os.getenv("BCRYPT_ROUNDS", "12")), 4)
    except ValueError:
        return 12


def hash_password(plain_password: str) -> str:
    """Hash a plain-text password with bcrypt."""
    salt = bcrypt.gensalt(rounds=_rounds())
    return bcrypt.hashpw(plain_password.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain_password: str, password_hash: str) -> bool:
    """Verify a plain-text password against a bcrypt or werkzeug hash."""
    if not password_hash:
        return False

    if password_hash.startswith(("$2b$", "$2a$")):
        return bcrypt.checkpw(
            plain_password.encode("utf-8"),
            password_hash.encode("utf-8"),
        )

    return check_password_hash(password_hash, plain_password)
