"""
API request and response models for the VideoTube REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclasses in auth/models.py and
catalog/models.py, which own the internal domain representation. Route
handlers map between the two.

Wire format: JSON keys are camelCase (statusCode, accessToken, coverImage)
via the shared alias generator; Python attributes stay snake_case. Request
models accept either spelling.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from auth.models import PublicUser
from catalog.models import ChannelProfile, WatchHistoryEntry

# bcrypt only reads 72 bytes; anything longer is rejected up front.
_PASSWORD_MAX = 72


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class _FrozenCamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


# ---------------------------------------------------------------------------
# Envelopes
# ---------------------------------------------------------------------------


class ApiResponse(_CamelModel):
    """Success envelope: {statusCode, data, message, success}.

    data is expected to be JSON-ready (dicts/lists, already dumped by alias).
    """

    status_code: int = 200
    data: Any = None
    message: str = "Success"
    success: bool = True

    @model_validator(mode="after")
    def _success_from_status(self) -> "ApiResponse":
        self.success = self.status_code < 400
        return self

    def to_json(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class ErrorResponse(_FrozenCamelModel):
    """Error envelope returned on every 4xx/5xx: {statusCode, success, message, errors, data}."""

    status_code: int
    success: bool = False
    message: str
    errors: list = Field(default_factory=list)
    data: None = None

    def to_json(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class LoginRequest(_CamelModel):
    """Request body for POST /login.

    Exactly one of identifier, username or email must be supplied; identifier
    may hold either a username or an email address.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)

    identifier: Optional[str] = Field(default=None, max_length=255)
    username: Optional[str] = Field(default=None, max_length=255)
    email: Optional[str] = Field(default=None, max_length=255)
    password: str = Field(default="", max_length=_PASSWORD_MAX)

    def login_identifier(self) -> Optional[str]:
        """Return the single supplied identifier, or None if zero or several were given."""
        supplied = [v for v in (self.identifier, self.username, self.email) if v]
        return supplied[0] if len(supplied) == 1 else None


class RefreshRequest(_CamelModel):
    refresh_token: Optional[str] = None


class ChangePasswordRequest(_CamelModel):
    old_password: str = Field(default="", max_length=_PASSWORD_MAX)
    new_password: str = Field(default="", max_length=_PASSWORD_MAX)


class UpdateDetailsRequest(_CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)

    username: Optional[str] = Field(default=None, max_length=255)
    email: Optional[str] = Field(default=None, max_length=255)
    fullname: Optional[str] = Field(default=None, max_length=255)


# ---------------------------------------------------------------------------
# Response payloads
# ---------------------------------------------------------------------------


class UserResponse(_FrozenCamelModel):
    """The sanitized user as returned to clients. No password, no refresh token."""

    id: int
    username: str
    email: str
    fullname: str
    avatar: str
    cover_image: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_user(cls, user: PublicUser) -> "UserResponse":
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            fullname=user.fullname,
            avatar=user.avatar,
            cover_image=user.cover_image,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class TokenPairResponse(_FrozenCamelModel):
    access_token: str
    refresh_token: str


class LoginResponse(TokenPairResponse):
    user: UserResponse


class ChannelProfileResponse(_FrozenCamelModel):
    id: int
    username: str
    fullname: str
    avatar: str
    cover_image: Optional[str]
    subscriber_count: int
    subscribed_channel_count: int
    is_subscribed: bool
    created_at: str = ""

    @classmethod
    def from_profile(cls, profile: ChannelProfile) -> "ChannelProfileResponse":
        return cls(
            id=profile.id,
            username=profile.username,
            fullname=profile.fullname,
            avatar=profile.avatar,
            cover_image=profile.cover_image,
            subscriber_count=profile.subscriber_count,
            subscribed_channel_count=profile.subscribed_channel_count,
            is_subscribed=profile.is_subscribed,
            created_at=profile.created_at,
        )


class UploaderResponse(_FrozenCamelModel):
    username: str
    fullname: str
    avatar: str


class WatchHistoryItem(_FrozenCamelModel):
    id: int
    title: str
    description: str
    video_file: str
    thumbnail: str
    duration: float
    views: int
    watched_at: str
    uploader: UploaderResponse

    @classmethod
    def from_entry(cls, entry: WatchHistoryEntry) -> "WatchHistoryItem":
        return cls(
            id=entry.video_id,
            title=entry.title,
            description=entry.description,
            video_file=entry.video_file,
            thumbnail=entry.thumbnail,
            duration=entry.duration,
            views=entry.views,
            watched_at=entry.watched_at,
            uploader=UploaderResponse(
                username=entry.uploader.username,
                fullname=entry.uploader.fullname,
                avatar=entry.uploader.avatar,
            ),
        )
