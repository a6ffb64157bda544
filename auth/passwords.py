"""
auth/passwords.py -- One-way password hashing (bcrypt).

Stateless helpers: callers pass the plaintext and the stored hash explicitly.
The user record carries no behaviour of its own.

Using bcrypt directly rather than passlib[bcrypt]: passlib's wrap-bug detection
trips over bcrypt 4.x, and direct usage has no compatibility shim.

bcrypt only reads 72 bytes, and bcrypt 5 refuses longer input outright. The
limit is in UTF-8 bytes, not characters: 60 accented letters already exceed
it. Every path that hashes a new password calls check_password_length() first.
"""

from __future__ import annotations

import bcrypt

from core.errors import BadRequestError

DEFAULT_ROUNDS = 12

MAX_PASSWORD_BYTES = 72


def check_password_length(plain: str) -> None:
    """Raise BadRequestError if plain cannot be hashed by bcrypt."""
    if len(plain.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise BadRequestError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")


def hash_password(plain: str, rounds: int = DEFAULT_ROUNDS) -> str:
    """Return a bcrypt hash of the given plaintext password.

    Raises BadRequestError for passwords over MAX_PASSWORD_BYTES.
    """
    check_password_length(plain)
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    A malformed stored hash, or a plaintext bcrypt refuses, is a mismatch.
    """
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


# Timing equalization: verify against this when the identifier matched no
# account, so an unknown username costs the same bcrypt work as a wrong
# password and response time does not reveal which accounts exist.
DUMMY_HASH: str = hash_password("videotube_timing_dummy")
