"""
auth/cookies.py -- Token cookie helpers.

Both tokens travel as cookies for browsers and in the JSON body for clients
that keep their own token storage (mobile apps, scripts).

  httponly=True:   JS cannot read the cookie (XSS mitigation).
  samesite="lax":  not sent on cross-site POST -- CSRF mitigation.
  secure:          only sent over HTTPS; on in production.
  max_age:         matches the token TTL so cookie and token expire together.
"""

from __future__ import annotations

ACCESS_COOKIE = "accessToken"
REFRESH_COOKIE = "refreshToken"


def set_auth_cookies(
    response,
    access_token: str,
    refresh_token: str,
    *,
    secure: bool,
    access_max_age: int,
    refresh_max_age: int,
) -> None:
    """Write both token cookies onto a FastAPI/Starlette response."""
    response.set_cookie(
        ACCESS_COOKIE,
        value=access_token,
        httponly=True,
        samesite="lax",
        secure=secure,
        max_age=access_max_age,
    )
    response.set_cookie(
        REFRESH_COOKIE,
        value=refresh_token,
        httponly=True,
        samesite="lax",
        secure=secure,
        max_age=refresh_max_age,
    )


def clear_auth_cookies(response, *, secure: bool) -> None:
    """Expire both token cookies. Attributes must match the ones they were set with."""
    for name in (ACCESS_COOKIE, REFRESH_COOKIE):
        response.delete_cookie(name, httponly=True, samesite="lax", secure=secure)
