"""
auth/tokens.py -- Signed, expiring JWTs for access and refresh tokens.

Security design decisions:
  JWT: python-jose with HS256. encode_token() adds exp, iat and a random jti
       to the caller's payload. The jti guarantees two tokens minted for the
       same user in the same second are still different strings, which refresh
       rotation depends on.

  Verification raises InvalidTokenError on any failure -- bad signature,
       malformed structure, expiry. The caller sees one error kind; the cause
       is logged here for observability.

  Secrets: passed in explicitly. TokenCodec binds one secret and one TTL, and
       the application builds two codecs (access, refresh) with distinct
       secrets, so neither secret can forge the other kind of token.

Layer rule: no imports from api/, catalog/, or media/. Import from core/ is
allowed.
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta, timezone

from jose import ExpiredSignatureError, JWTError, jwt
from jose.exceptions import JWTClaimsError

from core.errors import InvalidTokenError

logger = logging.getLogger("videotube.auth")

ALGORITHM = "HS256"

# Claims encode_token() adds on top of the caller's payload. decode_token()
# strips them again so decode(encode(p)) == p.
_ISSUED_CLAIMS = ("exp", "iat", "jti")


def encode_token(payload: dict, secret: str, ttl_seconds: int, now: datetime | None = None) -> str:
    """Sign payload into a compact JWT that expires ttl_seconds after now.

    Args:
        payload:     Claims to carry. Must be JSON-serialisable; "sub" must be a string.
        secret:      HS256 signing secret.
        ttl_seconds: Lifetime in seconds. Must be positive.
        now:         Issue time. Defaults to the current UTC time; tests pass a
                     fixed value to produce already-expired tokens.
    """
    if ttl_seconds <= 0:
        raise ValueError("ttl_seconds must be positive")
    issued = now or datetime.now(timezone.utc)
    claims = dict(payload)
    claims["iat"] = issued
    claims["exp"] = issued + timedelta(seconds=ttl_seconds)
    claims["jti"] = secrets.token_hex(16)
    return jwt.encode(claims, secret, algorithm=ALGORITHM)


def decode_token(token: str, secret: str) -> dict:
    """Verify token and return the payload it was issued with.

    Raises InvalidTokenError for every failure. The specific cause is logged
    but never surfaced to the client.
    """
    try:
        claims = jwt.decode(token, secret, algorithms=[ALGORITHM])
    except ExpiredSignatureError:
        logger.info("Token rejected: expired")
        raise InvalidTokenError() from None
    except JWTClaimsError as exc:
        logger.info("Token rejected: invalid claims (%s)", exc)
        raise InvalidTokenError() from None
    except JWTError as exc:
        # Covers bad signatures and malformed tokens alike.
        logger.info("Token rejected: %s", exc)
        raise InvalidTokenError() from None
    for claim in _ISSUED_CLAIMS:
        claims.pop(claim, None)
    return claims


class TokenCodec:
    """A signing secret and TTL bound together.

    Usage:
        access = TokenCodec(settings.access_token_secret, settings.access_token_expiry)
        token = access.issue({"sub": "42", "username": "alice", "email": "a@x.io"})
        payload = access.verify(token)
    """

    def __init__(self, secret: str, ttl_seconds: int) -> None:
        if not secret:
            raise ValueError("TokenCodec requires a non-empty secret")
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self._secret = secret
        self.ttl_seconds = ttl_seconds

    def issue(self, payload: dict, now: datetime | None = None) -> str:
        return encode_token(payload, self._secret, self.ttl_seconds, now=now)

    def verify(self, token: str) -> dict:
        return decode_token(token, self._secret)
