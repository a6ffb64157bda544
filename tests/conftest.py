"""
tests/conftest.py -- Shared test fixtures for VideoTube.

This module provides:
  - make_user(): inserts a user with a known password into a store
  - _make_test_stores(): isolated named shared-memory SQLite stores
  - _patch_lifespan(): wires test stores and a mocked media uploader into
    app.state, bypassing real startup
  - api_client: module-scoped TestClient with user "alice" / password "correct"
  - store / sessions: unit-test fixtures on a private in-memory DB

Design: Named shared-memory SQLite URIs (not plain :memory:) are required for
the TestClient fixtures because route handlers run in a thread pool. Plain
:memory: DBs are per-connection and would present a blank schema to each
worker thread.

DEBUG must be set before any api/ or core/ import so get_settings()
auto-generates the token secrets instead of raising ValueError.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from unittest.mock import MagicMock

# CRITICAL: Set DEBUG before any api/core import.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app, build_session_manager
from auth.models import User
from auth.passwords import hash_password
from auth.sessions import SessionManager
from auth.store import UserStore
from auth.tokens import TokenCodec
from catalog.store import CatalogStore
from core.config import get_settings

# Rate limits would trip across the many logins the suite performs from one IP.
limiter.enabled = False

ACCESS_SECRET = "a" * 40
REFRESH_SECRET = "r" * 40

# Low bcrypt cost keeps the suite fast; production uses Settings.bcrypt_rounds.
TEST_ROUNDS = 4


def make_user(store: UserStore, username: str = "alice", password: str = "correct", **overrides) -> int:
    """Insert a user with a known plaintext password and return its id."""
    fields = {
        "username": username,
        "email": f"{username}@example.com",
        "fullname": username.title(),
        "password_hash": hash_password(password, rounds=TEST_ROUNDS),
        "avatar": f"https://media.example.com/{username}.png",
    }
    fields.update(overrides)
    return store.create_user(User(**fields))


# ---------------------------------------------------------------------------
# Unit-test fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> Generator[UserStore, None, None]:
    s = UserStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture
def sessions(store: UserStore) -> SessionManager:
    return SessionManager(
        store,
        access_codec=TokenCodec(ACCESS_SECRET, 900),
        refresh_codec=TokenCodec(REFRESH_SECRET, 86400),
        bcrypt_rounds=TEST_ROUNDS,
    )


# ---------------------------------------------------------------------------
# Integration fixtures
# ---------------------------------------------------------------------------


def _make_test_stores(db_suffix: str) -> tuple[UserStore, CatalogStore]:
    """Create an isolated named shared-memory database for one test module."""
    url = f"sqlite:///file:test_videotube_{db_suffix}?mode=memory&cache=shared&uri=true"
    user_store = UserStore(db_url=url)
    return user_store, CatalogStore(user_store.engine)


def _patch_lifespan(user_store: UserStore, catalog: CatalogStore, media) -> object:
    """Return an async context manager that replaces the real lifespan."""

    @asynccontextmanager
    async def test_lifespan(app):
        settings = get_settings()
        app.state.settings = settings
        app.state.user_store = user_store
        app.state.catalog = catalog
        app.state.sessions = build_session_manager(user_store, settings)
        app.state.media = media
        yield

    return test_lifespan


def _fake_media() -> MagicMock:
    media = MagicMock()
    media.configured = True
    media.upload.side_effect = lambda content, filename: f"https://media.example.com/uploads/{filename}"
    return media


@pytest.fixture(scope="module")
def api_client(request) -> Generator[tuple[TestClient, UserStore, CatalogStore, MagicMock], None, None]:
    """Yield (client, user_store, catalog, media) for API integration tests.

    User "alice" with password "correct" exists before the client starts.
    Each test module gets its own database (named after the module).
    """
    user_store, catalog = _make_test_stores(request.module.__name__.rsplit(".", 1)[-1])
    make_user(user_store, "alice", "correct")
    media = _fake_media()

    app.router.lifespan_context = _patch_lifespan(user_store, catalog, media)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, user_store, catalog, media

    user_store.close()


@pytest.fixture
def client(api_client) -> TestClient:
    """The shared TestClient with an empty cookie jar.

    The client keeps cookies between requests; tests that care about which
    token is presented start from a clean jar.
    """
    test_client = api_client[0]
    test_client.cookies.clear()
    return test_client


def login(client: TestClient, identifier: str = "alice", password: str = "correct") -> dict:
    """POST /login and return the envelope's data."""
    resp = client.post("/api/v1/users/login", json={"identifier": identifier, "password": password})
    assert resp.status_code == 200, f"Login failed: {resp.status_code} {resp.text}"
    return resp.json()["data"]


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}
