"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

The access token is read from two places, in priority order:
  1. "accessToken" cookie -- set by the login and refresh routes.
  2. Authorization: Bearer <token> header -- API and mobile clients.

get_current_user() is the request gate. It hands the sanitized user to the
route as a parameter; the request object itself is never mutated:

    @router.get("/me")
    def me(current_user: PublicUser = Depends(get_current_user)): ...

These are plain (sync) functions: FastAPI runs them on its thread pool, so the
store lookup never blocks the event loop.

Layer rule: may import fastapi (part of the dependency injection system); no
imports from api/, catalog/, or media/.
"""

from __future__ import annotations

from fastapi import Request

from auth.cookies import ACCESS_COOKIE
from auth.models import PublicUser
from auth.sessions import SessionManager
from core.errors import UnauthorizedError


def extract_access_token(request: Request) -> str | None:
    """Return the access token from the cookie, falling back to the Bearer header."""
    token = request.cookies.get(ACCESS_COOKIE)
    if token:
        return token
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:].strip() or None
    return None


def get_session_manager(request: Request) -> SessionManager:
    return request.app.state.sessions


def get_current_user(request: Request) -> PublicUser:
    """Require a valid access token. Raises UnauthorizedError (401) otherwise."""
    token = extract_access_token(request)
    if not token:
        raise UnauthorizedError("Access token is missing")
    return get_session_manager(request).authenticate(token)
