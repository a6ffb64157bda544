"""
auth/sessions.py -- Session manager: login, logout, refresh rotation, and
per-request authentication.

This is the single authority on what a valid session is. It composes the
stateless helpers (auth/passwords.py, auth/tokens.py) with the credential
store; everything it needs is passed to the constructor.

Session policy:
  One live refresh token per account. Its exact string is stored on the user
  row. A presented refresh token must pass signature/expiry checks AND equal
  the stored value. Every successful refresh replaces the stored value
  (rotation-on-use), so a rotated-out token is dead immediately -- no grace
  window. A second device logging in replaces the first device's token.

Failure policy:
  Every failure is raised as a typed core.errors.ApiError. Store exceptions
  during token persistence become InternalError; tokens are never returned
  unless the refresh token was persisted first.

Layer rule: no imports from api/, catalog/, or media/.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from jose import JWTError
from sqlalchemy.exc import SQLAlchemyError

from auth.models import PublicUser, User
from auth.passwords import DEFAULT_ROUNDS, DUMMY_HASH, check_password_length, hash_password, verify_password
from auth.store import UserStore
from auth.tokens import TokenCodec
from core.errors import BadRequestError, InternalError, InvalidTokenError, UnauthorizedError

logger = logging.getLogger("videotube.auth")


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class LoginResult:
    tokens: TokenPair
    user: PublicUser


def _subject_id(payload: dict) -> int:
    """Return the integer user id carried in the "sub" claim.

    A payload without a usable subject is treated exactly like a bad
    signature: InvalidTokenError.
    """
    sub = payload.get("sub")
    try:
        return int(sub)
    except (TypeError, ValueError):
        logger.info("Token rejected: missing or malformed subject")
        raise InvalidTokenError() from None


def _to_public(user: User) -> PublicUser:
    return PublicUser(
        id=user.id,
        username=user.username,
        email=user.email,
        fullname=user.fullname,
        avatar=user.avatar,
        cover_image=user.cover_image,
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


class SessionManager:
    """Orchestrates credential checks, token issuance and rotation.

    Usage:
        sessions = SessionManager(store, access_codec, refresh_codec)
        result = sessions.login("alice", "correct")
        pair = sessions.refresh(result.tokens.refresh_token)
        user = sessions.authenticate(pair.access_token)
        sessions.logout(user.id)
    """

    def __init__(
        self,
        store: UserStore,
        access_codec: TokenCodec,
        refresh_codec: TokenCodec,
        bcrypt_rounds: int = DEFAULT_ROUNDS,
    ) -> None:
        self.store = store
        self.access_codec = access_codec
        self.refresh_codec = refresh_codec
        self.bcrypt_rounds = bcrypt_rounds

    # ------------------------------------------------------------------
    # Login / logout
    # ------------------------------------------------------------------

    def login(self, identifier: str, password: str) -> LoginResult:
        """Verify credentials and open a new session.

        Unknown identifier and wrong password produce the same error, and
        both run one bcrypt comparison, so neither the message nor the timing
        reveals whether the account exists.
        """
        if not identifier or not identifier.strip():
            raise BadRequestError("Username or email is required")
        if not password:
            raise BadRequestError("Password is required")

        user = self.store.find_by_login(identifier)
        if user is None:
            verify_password(password, DUMMY_HASH)
            logger.info("Login failed: unknown identifier")
            raise UnauthorizedError("Invalid credentials")
        if not verify_password(password, user.password_hash):
            logger.info("Login failed: bad password for user_id=%s", user.id)
            raise UnauthorizedError("Invalid credentials")

        tokens = self._mint_pair(user)
        try:
            stored = self.store.set_refresh_token(user.id, tokens.refresh_token)
        except SQLAlchemyError:
            logger.exception("Could not persist refresh token for user_id=%s", user.id)
            raise InternalError("Error generating tokens") from None
        if not stored:
            logger.error("Could not persist refresh token: user_id=%s vanished during login", user.id)
            raise InternalError("Error generating tokens")

        logger.info("Login succeeded for user_id=%s", user.id)
        return LoginResult(tokens=tokens, user=_to_public(user))

    def logout(self, user_id: int) -> None:
        """Revoke the user's refresh token. Calling it twice is harmless."""
        self.store.set_refresh_token(user_id, None)
        logger.info("Logout for user_id=%s", user_id)

    # ------------------------------------------------------------------
    # Refresh rotation
    # ------------------------------------------------------------------

    def refresh(self, presented: str | None) -> TokenPair:
        """Exchange a live refresh token for a new access/refresh pair."""
        if not presented:
            raise UnauthorizedError("Refresh token is missing")

        user_id = _subject_id(self.refresh_codec.verify(presented))
        user = self.store.get_by_id(user_id)
        if user is None or user.refresh_token != presented:
            logger.warning("Refresh rejected for user_id=%s: token revoked or rotated out", user_id)
            raise UnauthorizedError("Refresh token is invalid or expired")

        tokens = self._mint_pair(user)
        try:
            rotated = self.store.rotate_refresh_token(user.id, presented, tokens.refresh_token)
        except SQLAlchemyError:
            logger.exception("Could not persist rotated refresh token for user_id=%s", user.id)
            raise InternalError("Error generating tokens") from None
        if not rotated:
            # A concurrent refresh (or logout) changed the stored value
            # between our read and our write.
            logger.warning("Refresh rejected for user_id=%s: lost rotation race", user.id)
            raise UnauthorizedError("Refresh token is invalid or expired")

        logger.info("Refresh token rotated for user_id=%s", user.id)
        return tokens

    # ------------------------------------------------------------------
    # Request authentication
    # ------------------------------------------------------------------

    def authenticate(self, access_token: str) -> PublicUser:
        """Resolve an access token to the sanitized user it belongs to.

        Read-only: performs no mutation. A valid token for a deleted account
        is rejected.
        """
        user_id = _subject_id(self.access_codec.verify(access_token))
        user = self.store.get_public_by_id(user_id)
        if user is None:
            logger.info("Access token rejected: user_id=%s not found", user_id)
            raise UnauthorizedError("User not found")
        return user

    # ------------------------------------------------------------------
    # Password change
    # ------------------------------------------------------------------

    def change_password(self, user_id: int, old_password: str, new_password: str) -> None:
        if not old_password or not new_password:
            raise BadRequestError("Both old and new passwords are required")
        check_password_length(new_password)
        user = self.store.get_by_id(user_id)
        if user is None:
            raise UnauthorizedError("User not found")
        if not verify_password(old_password, user.password_hash):
            raise UnauthorizedError("Old password is incorrect")
        self.store.set_password_hash(user_id, hash_password(new_password, rounds=self.bcrypt_rounds))
        logger.info("Password changed for user_id=%s", user_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _mint_pair(self, user: User) -> TokenPair:
        """Sign a fresh access/refresh pair for user. Signing failure -> InternalError."""
        try:
            access = self.access_codec.issue({"sub": str(user.id), "username": user.username, "email": user.email})
            refresh = self.refresh_codec.issue({"sub": str(user.id)})
        except JWTError:
            logger.exception("Token signing failed for user_id=%s", user.id)
            raise InternalError("Error generating tokens") from None
        return TokenPair(access_token=access, refresh_token=refresh)
