"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for VideoTube happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. access_token_secret -> ACCESS_TOKEN_SECRET).

  Explicit injection: only the composition roots (api/main.py lifespan and the
      main.py CLI) call get_settings(). Token codecs and the session manager
      receive their secrets and TTLs as constructor arguments.

Security notes:
  Token secrets shorter than 32 chars are rejected outright. HS256 signing
  relies on key entropy -- a short key weakens every token.

  Access and refresh tokens must be signed with different secrets, so a leaked
  access secret cannot be used to forge refresh tokens and vice versa.

  In production mode (DEBUG not set or false), a missing secret is a hard
  startup failure.

Layer rule: core/ is the kernel. This module may not import from api/, auth/,
catalog/, or media/.
"""

import logging
import re
import secrets
from functools import lru_cache

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("videotube.config")

_DURATION_RE = re.compile(r"^\s*(\d+)\s*([smhd]?)\s*$")
_DURATION_UNITS = {"": 1, "s": 1, "m": 60, "h": 3600, "d": 86400}


def parse_duration(value) -> int:
    """Convert a TTL setting to seconds.

    Accepts a bare integer (seconds) or a string such as "900", "15m", "1h",
    "10d" -- the same shorthand the frontend team uses in their .env files.
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid duration: {value!r}")
    if isinstance(value, int):
        return value
    match = _DURATION_RE.match(str(value).lower())
    if match is None:
        raise ValueError(f"Invalid duration: {value!r}. Use seconds or a 30s/15m/1h/10d string.")
    amount, unit = match.groups()
    return int(amount) * _DURATION_UNITS[unit]


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    Every field has a default so Settings() can be instantiated in test
    environments without a real .env file. The model_validator enforces the
    secret policy at startup.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    environment: str = "development"  # "development" | "production"
    database_url: str = "sqlite:///videotube.db"

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev secret or raises, so callers never see "".
    access_token_secret: str = ""
    access_token_expiry: int = 15 * 60
    refresh_token_secret: str = ""
    refresh_token_expiry: int = 10 * 24 * 3600

    bcrypt_rounds: int = 12

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    cors_origins: list[str] = ["http://localhost:3000"]
    allowed_hosts: list[str] = ["*"]
    login_rate_limit: str = "10/minute"
    refresh_rate_limit: str = "30/minute"
    max_upload_bytes: int = 10 * 1024 * 1024

    # ------------------------------------------------------------------
    # Media host (Cloudinary). Empty cloud name disables uploads.
    # ------------------------------------------------------------------

    cloudinary_cloud_name: str = ""
    cloudinary_api_key: str = ""
    cloudinary_api_secret: str = ""

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @field_validator("access_token_expiry", "refresh_token_expiry", mode="before")
    @classmethod
    def _parse_expiry(cls, value):
        return parse_duration(value)

    @field_validator("access_token_expiry", "refresh_token_expiry")
    @classmethod
    def _positive_expiry(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("Token expiry must be a positive number of seconds.")
        return value

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def secure_cookies(self) -> bool:
        """Cookies carry the Secure flag only in production (HTTPS)."""
        return self.is_production

    @model_validator(mode="after")
    def validate_token_secrets(self) -> "Settings":
        """Enforce the signing-secret policy.

        Dev mode (DEBUG=true): auto-generate missing secrets with a warning.
            Sessions will not survive a restart -- acceptable for local dev.

        Production mode: refuse to start if either secret is missing.

        Both modes: reject secrets shorter than 32 characters and reject
            identical access/refresh secrets.
        """
        for name in ("access_token_secret", "refresh_token_secret"):
            if getattr(self, name):
                continue
            env_name = name.upper()
            if self.debug:
                setattr(self, name, secrets.token_hex(32))
                logger.warning("Using auto-generated %s. Sessions will not persist across restarts.", env_name)
            else:
                raise ValueError(
                    f"{env_name} is required in production mode. "
                    "Set it in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.access_token_secret) < 32 or len(self.refresh_token_secret) < 32:
            raise ValueError("Token secrets must be at least 32 characters.")
        if self.access_token_secret == self.refresh_token_secret:
            raise ValueError("ACCESS_TOKEN_SECRET and REFRESH_TOKEN_SECRET must be different.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
