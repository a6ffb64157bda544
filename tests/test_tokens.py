"""Unit tests for auth/tokens.py -- JWT encode/decode and TokenCodec.

Covers:
- decode_token() returns exactly the payload passed to encode_token()
- Expired, tampered, malformed and wrong-secret tokens raise InvalidTokenError
- Two tokens minted for the same payload in the same instant differ (jti)
- Non-positive TTLs are rejected
"""

from datetime import datetime, timedelta, timezone

import pytest

from auth.tokens import TokenCodec, decode_token, encode_token
from core.errors import InvalidTokenError, UnauthorizedError

SECRET = "s" * 40
OTHER_SECRET = "o" * 40


def test_decode_returns_original_payload():
    payload = {"sub": "7", "username": "alice", "email": "alice@example.com"}
    token = encode_token(payload, SECRET, 60)
    assert decode_token(token, SECRET) == payload


def test_encode_does_not_mutate_payload():
    payload = {"sub": "7"}
    encode_token(payload, SECRET, 60)
    assert payload == {"sub": "7"}


def test_same_payload_same_instant_gives_different_tokens():
    now = datetime.now(timezone.utc)
    first = encode_token({"sub": "7"}, SECRET, 60, now=now)
    second = encode_token({"sub": "7"}, SECRET, 60, now=now)
    assert first != second


def test_expired_token_rejected():
    issued = datetime.now(timezone.utc) - timedelta(hours=2)
    token = encode_token({"sub": "7"}, SECRET, 60, now=issued)
    with pytest.raises(InvalidTokenError):
        decode_token(token, SECRET)


def test_wrong_secret_rejected():
    token = encode_token({"sub": "7"}, SECRET, 60)
    with pytest.raises(InvalidTokenError):
        decode_token(token, OTHER_SECRET)


def test_tampered_signature_rejected():
    token = encode_token({"sub": "7"}, SECRET, 60)
    head, body, sig = token.split(".")
    flipped = ("A" if sig[0] != "A" else "B") + sig[1:]
    with pytest.raises(InvalidTokenError):
        decode_token(f"{head}.{body}.{flipped}", SECRET)


@pytest.mark.parametrize("garbage", ["", "not-a-jwt", "a.b.c", "Bearer x.y.z"])
def test_malformed_token_rejected(garbage):
    with pytest.raises(InvalidTokenError):
        decode_token(garbage, SECRET)


def test_invalid_token_is_an_unauthorized_error():
    """Callers that catch UnauthorizedError also catch token failures."""
    with pytest.raises(UnauthorizedError) as exc_info:
        decode_token("junk", SECRET)
    assert exc_info.value.status_code == 401


@pytest.mark.parametrize("ttl", [0, -5])
def test_non_positive_ttl_rejected(ttl):
    with pytest.raises(ValueError):
        encode_token({"sub": "7"}, SECRET, ttl)


class TestTokenCodec:
    def test_issue_and_verify(self):
        codec = TokenCodec(SECRET, 900)
        token = codec.issue({"sub": "1", "username": "alice"})
        assert codec.verify(token) == {"sub": "1", "username": "alice"}

    def test_codecs_with_different_secrets_do_not_accept_each_other(self):
        access = TokenCodec(SECRET, 900)
        refresh = TokenCodec(OTHER_SECRET, 86400)
        with pytest.raises(InvalidTokenError):
            access.verify(refresh.issue({"sub": "1"}))
        with pytest.raises(InvalidTokenError):
            refresh.verify(access.issue({"sub": "1"}))

    def test_issue_with_past_time_is_expired(self):
        codec = TokenCodec(SECRET, 60)
        token = codec.issue({"sub": "1"}, now=datetime.now(timezone.utc) - timedelta(minutes=5))
        with pytest.raises(InvalidTokenError):
            codec.verify(token)

    def test_empty_secret_rejected(self):
        with pytest.raises(ValueError):
            TokenCodec("", 900)

    def test_zero_ttl_rejected(self):
        with pytest.raises(ValueError):
            TokenCodec(SECRET, 0)
