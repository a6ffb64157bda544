"""
auth/models.py -- Domain dataclasses for user accounts.

Pattern: Data class (pure data container, zero logic). Password checks and
token generation live in auth/passwords.py and auth/tokens.py; the store and
the session manager do the work.

Layer rule: no imports from api/, catalog/, or media/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class User:
    """A full user record as stored in the credential store.

    password_hash and refresh_token are sensitive: this type never leaves the
    service layer. Anything returned to a client is a PublicUser.

    refresh_token mirrors the single live refresh token for the account. It is
    None before the first login and after logout.
    """

    username: str
    email: str
    fullname: str
    password_hash: str
    avatar: str
    id: int | None = None
    cover_image: str | None = None
    refresh_token: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


@dataclass
class PublicUser:
    """The sanitized user record: no password hash, no refresh token."""

    id: int
    username: str
    email: str
    fullname: str
    avatar: str
    cover_image: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
