"""Unit tests for auth/passwords.py -- bcrypt hash and verify."""

import pytest

from auth.passwords import (
    DUMMY_HASH,
    MAX_PASSWORD_BYTES,
    check_password_length,
    hash_password,
    verify_password,
)
from core.errors import BadRequestError


def test_hash_verifies_against_original():
    hashed = hash_password("correct horse", rounds=4)
    assert verify_password("correct horse", hashed)


def test_wrong_password_does_not_verify():
    hashed = hash_password("correct horse", rounds=4)
    assert not verify_password("battery staple", hashed)


def test_hash_is_salted():
    assert hash_password("same", rounds=4) != hash_password("same", rounds=4)


def test_hash_never_contains_plaintext():
    hashed = hash_password("hunter2hunter2", rounds=4)
    assert "hunter2hunter2" not in hashed
    assert hashed.startswith("$2")


def test_malformed_hash_is_a_mismatch():
    assert verify_password("anything", "not-a-bcrypt-hash") is False


def test_dummy_hash_matches_nothing_users_type():
    assert verify_password("correct", DUMMY_HASH) is False


def test_password_at_byte_limit_hashes():
    hashed = hash_password("p" * MAX_PASSWORD_BYTES, rounds=4)
    assert verify_password("p" * MAX_PASSWORD_BYTES, hashed)


@pytest.mark.parametrize("plain", ["p" * 100, "é" * 60])
def test_password_over_byte_limit_is_bad_request(plain):
    """60 accented letters fit a 72-character limit but are 120 UTF-8 bytes."""
    with pytest.raises(BadRequestError):
        check_password_length(plain)
    with pytest.raises(BadRequestError):
        hash_password(plain, rounds=4)


def test_overlong_password_never_verifies():
    hashed = hash_password("correct", rounds=4)
    assert verify_password("é" * 60, hashed) is False
