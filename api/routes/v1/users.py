"""
api/routes/v1/users.py -- Account, session and profile REST endpoints.

Routes (mounted under /api/v1/users):
  POST /register            -- multipart sign-up with avatar (+ optional cover image)
  POST /login               -- username/email + password; sets both token cookies
  POST /logout              -- revokes the refresh token; clears cookies (requires auth)
  POST /refresh-token       -- rotates the refresh token; sets new cookies
  GET  /me                  -- current user (requires auth)
  POST /change-password     -- requires auth
  POST /update-details      -- username / email / fullname (requires auth)
  POST /update-avatar       -- multipart avatar (requires auth)
  POST /update-cover-image  -- multipart coverImage (requires auth)
  GET  /c/{username}        -- channel profile with subscriber counts (requires auth)
  GET  /history             -- watch history with uploader info (requires auth)

Every response uses the ApiResponse envelope. Failures are raised as
core.errors.ApiError subclasses and rendered by the handlers in api/main.py.

Handlers are plain (sync) functions: they call bcrypt, SQLAlchemy and the media
host, all blocking, so FastAPI runs them on its thread pool.

Security:
  POST /login and POST /refresh-token are rate-limited per IP.
  Cache-Control: no-store on every response that carries tokens.
  Unknown identifier and wrong password return the same 401.
"""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from api.limiter import LOGIN_LIMIT, REFRESH_LIMIT, limiter
from api.models import (
    ApiResponse,
    ChangePasswordRequest,
    ChannelProfileResponse,
    LoginRequest,
    LoginResponse,
    RefreshRequest,
    TokenPairResponse,
    UpdateDetailsRequest,
    UserResponse,
    WatchHistoryItem,
)
from auth.cookies import REFRESH_COOKIE, clear_auth_cookies, set_auth_cookies
from auth.dependencies import get_current_user, get_session_manager
from auth.models import PublicUser, User
from auth.passwords import check_password_length, hash_password
from auth.sessions import TokenPair
from auth.store import UserStore
from catalog.store import CatalogStore
from core.config import Settings
from core.errors import BadRequestError, ConflictError, InternalError, NotFoundError
from media.uploader import MediaUploader, MediaUploadError

# Auth policy:
# - POST /register, /login, /refresh-token:  public
# - everything else:                          requires auth (get_current_user)
router = APIRouter()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _settings(request: Request) -> Settings:
    return request.app.state.settings


def _user_store(request: Request) -> UserStore:
    return request.app.state.user_store


def _respond(data, message: str, status_code: int = 200) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ApiResponse(status_code=status_code, data=data, message=message).to_json(),
    )


def _user_json(user: PublicUser) -> dict:
    return UserResponse.from_user(user).model_dump(by_alias=True)


def _with_tokens(resp: JSONResponse, request: Request, tokens: TokenPair) -> JSONResponse:
    settings = _settings(request)
    set_auth_cookies(
        resp,
        tokens.access_token,
        tokens.refresh_token,
        secure=settings.secure_cookies,
        access_max_age=settings.access_token_expiry,
        refresh_max_age=settings.refresh_token_expiry,
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


def _format_size(num_bytes: int) -> str:
    """Human-readable size for upload limit messages: 10 MB, 512 KB, 300 bytes."""
    for unit, factor in (("MB", 1024 * 1024), ("KB", 1024)):
        if num_bytes >= factor:
            return f"{round(num_bytes / factor, 1):g} {unit}"
    return f"{num_bytes} bytes"


def _read_upload(request: Request, upload: Optional[UploadFile], label: str) -> Optional[bytes]:
    """Return the uploaded bytes, or None if no file was sent.

    Files over MAX_UPLOAD_BYTES are rejected with 400.
    """
    if upload is None or not upload.filename:
        return None
    limit = _settings(request).max_upload_bytes
    content = upload.file.read(limit + 1)
    if len(content) > limit:
        raise BadRequestError(f"{label} must be {_format_size(limit)} or smaller")
    if not content:
        return None
    return content


def _upload(request: Request, content: bytes, filename: str, label: str) -> str:
    media: MediaUploader = request.app.state.media
    try:
        return media.upload(content, filename)
    except MediaUploadError:
        raise InternalError(f"Failed to upload {label}") from None


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


@router.post("/register", status_code=201)
def register(
    request: Request,
    username: str = Form(default=""),
    email: str = Form(default=""),
    password: str = Form(default=""),
    fullname: str = Form(default=""),
    avatar: Optional[UploadFile] = File(default=None),
    cover_image: Optional[UploadFile] = File(default=None, alias="coverImage"),
) -> JSONResponse:
    """Create an account. The avatar is required; the cover image is optional."""
    if any(not field or not field.strip() for field in (fullname, username, email, password)):
        raise BadRequestError("All fields are required")
    if "@" not in email:
        raise BadRequestError("A valid email address is required")
    check_password_length(password)

    store = _user_store(request)
    if store.exists(username=username, email=email):
        raise ConflictError("User with this email or username already exists")

    avatar_bytes = _read_upload(request, avatar, "Avatar image")
    if avatar_bytes is None:
        raise BadRequestError("Avatar image is required")
    cover_bytes = _read_upload(request, cover_image, "Cover image")

    avatar_url = _upload(request, avatar_bytes, avatar.filename, "avatar image")
    cover_url = None
    if cover_bytes is not None:
        cover_url = _upload(request, cover_bytes, cover_image.filename, "cover image")

    new_user = User(
        username=username,
        email=email,
        fullname=fullname,
        password_hash=hash_password(password, rounds=_settings(request).bcrypt_rounds),
        avatar=avatar_url,
        cover_image=cover_url,
    )
    try:
        user_id = store.create_user(new_user)
    except IntegrityError:
        # Lost a race with a concurrent registration for the same name/email.
        raise ConflictError("User with this email or username already exists") from None

    created = store.get_public_by_id(user_id)
    if created is None:
        raise InternalError("Something went wrong while creating the user")
    return _respond(_user_json(created), "User registered successfully", status_code=201)


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


@router.post("/login")
@limiter.limit(LOGIN_LIMIT)  # under @router: the router must register the limiter's wrapper
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with a username or email plus password; set both token cookies."""
    identifier = body.login_identifier()
    if identifier is None:
        raise BadRequestError("Provide exactly one of username or email")
    result = get_session_manager(request).login(identifier, body.password)
    payload = LoginResponse(
        access_token=result.tokens.access_token,
        refresh_token=result.tokens.refresh_token,
        user=UserResponse.from_user(result.user),
    )
    resp = _respond(payload.model_dump(by_alias=True), "Login successful")
    return _with_tokens(resp, request, result.tokens)


@router.post("/logout")
def logout(request: Request, current_user: PublicUser = Depends(get_current_user)) -> JSONResponse:
    """Revoke the refresh token and clear both cookies."""
    get_session_manager(request).logout(current_user.id)
    resp = _respond(None, "Logout successful")
    clear_auth_cookies(resp, secure=_settings(request).secure_cookies)
    return resp


@router.post("/refresh-token")
@limiter.limit(REFRESH_LIMIT)
def refresh_token(request: Request, body: Optional[RefreshRequest] = None) -> JSONResponse:
    """Rotate the refresh token. Reads the cookie first, then the JSON body."""
    presented = request.cookies.get(REFRESH_COOKIE) or (body.refresh_token if body else None)
    tokens = get_session_manager(request).refresh(presented)
    payload = TokenPairResponse(access_token=tokens.access_token, refresh_token=tokens.refresh_token)
    resp = _respond(payload.model_dump(by_alias=True), "Access token refreshed successfully")
    return _with_tokens(resp, request, tokens)


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------


@router.get("/me")
def me(current_user: PublicUser = Depends(get_current_user)) -> JSONResponse:
    return _respond(_user_json(current_user), "Current user fetched successfully")


@router.post("/change-password")
def change_password(
    request: Request,
    body: ChangePasswordRequest,
    current_user: PublicUser = Depends(get_current_user),
) -> JSONResponse:
    get_session_manager(request).change_password(current_user.id, body.old_password, body.new_password)
    return _respond(None, "Password changed successfully")


@router.post("/update-details")
def update_details(
    request: Request,
    body: UpdateDetailsRequest,
    current_user: PublicUser = Depends(get_current_user),
) -> JSONResponse:
    """Update any of username, email, fullname. At least one is required."""
    updates = {k: v for k, v in body.model_dump().items() if v}
    if not updates:
        raise BadRequestError("At least one field (username, email, fullname) is required to update")
    if "email" in updates and "@" not in updates["email"]:
        raise BadRequestError("A valid email address is required")

    store = _user_store(request)
    if store.exists(username=updates.get("username"), email=updates.get("email"), exclude_id=current_user.id):
        raise ConflictError("User with this email or username already exists")
    try:
        updated = store.update_profile(current_user.id, **updates)
    except IntegrityError:
        raise ConflictError("User with this email or username already exists") from None
    if updated is None:
        raise NotFoundError("User not found")
    return _respond(_user_json(updated), "User details updated successfully")


@router.post("/update-avatar")
def update_avatar(
    request: Request,
    avatar: Optional[UploadFile] = File(default=None),
    current_user: PublicUser = Depends(get_current_user),
) -> JSONResponse:
    content = _read_upload(request, avatar, "Avatar image")
    if content is None:
        raise BadRequestError("Avatar image is required")
    url = _upload(request, content, avatar.filename, "avatar image")
    updated = _user_store(request).update_profile(current_user.id, avatar=url)
    if updated is None:
        raise NotFoundError("User not found")
    return _respond(_user_json(updated), "User avatar updated successfully")


@router.post("/update-cover-image")
def update_cover_image(
    request: Request,
    cover_image: Optional[UploadFile] = File(default=None, alias="coverImage"),
    current_user: PublicUser = Depends(get_current_user),
) -> JSONResponse:
    content = _read_upload(request, cover_image, "Cover image")
    if content is None:
        raise BadRequestError("Cover image is required")
    url = _upload(request, content, cover_image.filename, "cover image")
    updated = _user_store(request).update_profile(current_user.id, cover_image=url)
    if updated is None:
        raise NotFoundError("User not found")
    return _respond(_user_json(updated), "User cover image updated successfully")


# ---------------------------------------------------------------------------
# Channel and history
# ---------------------------------------------------------------------------


@router.get("/c/{username}")
def channel_profile(
    request: Request,
    username: str,
    current_user: PublicUser = Depends(get_current_user),
) -> JSONResponse:
    """Public channel view of username, with subscriber counts relative to the caller."""
    if not username.strip():
        raise BadRequestError("Username is required")
    catalog: CatalogStore = request.app.state.catalog
    profile = catalog.get_channel_profile(username, viewer_id=current_user.id)
    if profile is None:
        raise NotFoundError("Channel not found")
    data = ChannelProfileResponse.from_profile(profile).model_dump(by_alias=True)
    return _respond(data, "User channel profile fetched successfully")


@router.get("/history")
def watch_history(request: Request, current_user: PublicUser = Depends(get_current_user)) -> JSONResponse:
    catalog: CatalogStore = request.app.state.catalog
    entries = catalog.get_watch_history(current_user.id)
    data = [WatchHistoryItem.from_entry(e).model_dump(by_alias=True) for e in entries]
    return _respond(data, "Watch history fetched successfully")
