"""
Credential primitives for Mechanic Chat

Password hashing (passlib pbkdf2_sha256) and opaque auth-session tokens.
No other module touches raw crypto directly.
"""

import secrets

from passlib.hash import pbkdf2_sha256 as _pbkdf2


# 48 random bytes -> 64 url-safe characters, well inside the 128-char column
TOKEN_BYTES = 48


def hash_password(plain: str) -> str:
    """Hash a plaintext password. The salt is embedded in the returned string."""
    return _pbkdf2.hash(plain)


def verify_password(plain: str, stored_hash: str) -> bool:
    """
    Constant-time verification against a hash produced by :func:`hash_password`.

    A malformed stored hash verifies as False rather than raising.
    """
    try:
        return _pbkdf2.verify(plain, stored_hash)
    except ValueError:
        return False


def new_session_token() -> str:
    """Fresh unguessable auth-session token."""
    return secrets.token_urlsafe(TOKEN_BYTES)
