"""
auth/store.py -- SQLAlchemy Core persistence layer for user accounts.

Pattern: Repository + Data Mapper. UserStore is the repository;
_row_to_user / _row_to_public_user are the mappers. Route and service code
never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  The gate path reads users through get_public_by_id(), which selects only the
  public columns -- password_hash and refresh_token never leave this module
  on that path.

Concurrency:
  rotate_refresh_token() is a conditional UPDATE (compare-and-swap on the
  stored refresh token). When two requests rotate the same token at once,
  the database applies exactly one of them; the other sees rowcount == 0.

Normalization:
  username and email are trimmed and lowercased on every write and lookup,
  so uniqueness is case-insensitive in practice.

Layer rule: no imports from api/, catalog/, or media/.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, or_, select
from sqlalchemy.engine import Engine

from auth.models import PublicUser, User

_DEFAULT_DB_URL = "sqlite:///videotube.db"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

users = Table(
    "users",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(255), nullable=False, unique=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("fullname", String(255), nullable=False),
    Column("password_hash", Text, nullable=False),
    Column("avatar", Text, nullable=False),
    Column("cover_image", Text),
    Column("refresh_token", Text),  # NULL = no live session
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_PUBLIC_COLUMNS = (
    users.c.id,
    users.c.username,
    users.c.email,
    users.c.fullname,
    users.c.avatar,
    users.c.cover_image,
    users.c.created_at,
    users.c.updated_at,
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def normalize_identifier(value: str) -> str:
    """Canonical form for usernames and emails: trimmed, lowercase."""
    return value.strip().lower()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User records.

    Usage:
        store = UserStore("sqlite:///videotube.db")
        uid = store.create_user(User(username="alice", email="a@x.io", ...))
        user = store.find_by_login("alice")
        store.close()
    """

    # Columns update_profile() may touch. Validated before any SQL is built.
    _PROFILE_FIELDS: set = {"username", "email", "fullname", "avatar", "cover_image"}

    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> int:
        """Insert a new user and return its assigned database ID.

        Raises sqlalchemy.exc.IntegrityError if the username or email is
        already taken. The registration route checks first, but two concurrent
        registrations can both pass that check -- the UNIQUE constraint is the
        real guard.
        """
        now = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                users.insert().values(
                    username=normalize_identifier(user.username),
                    email=normalize_identifier(user.email),
                    fullname=user.fullname.strip(),
                    password_hash=user.password_hash,
                    avatar=user.avatar,
                    cover_image=user.cover_image,
                    refresh_token=None,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_by_id(self, user_id: int) -> User | None:
        """Full record by primary key, including sensitive columns."""
        with self.engine.connect() as conn:
            row = conn.execute(users.select().where(users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_public_by_id(self, user_id: int) -> PublicUser | None:
        """Sanitized record by primary key. Never reads the hash or refresh token."""
        with self.engine.connect() as conn:
            row = conn.execute(select(*_PUBLIC_COLUMNS).where(users.c.id == user_id)).fetchone()
        return _row_to_public_user(row) if row is not None else None

    def get_by_username(self, username: str) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(
                users.select().where(users.c.username == normalize_identifier(username))
            ).fetchone()
        return _row_to_user(row) if row is not None else None

    def find_by_login(self, identifier: str) -> User | None:
        """Look up a user whose username OR email equals identifier."""
        key = normalize_identifier(identifier)
        with self.engine.connect() as conn:
            row = conn.execute(
                users.select().where(or_(users.c.username == key, users.c.email == key))
            ).fetchone()
        return _row_to_user(row) if row is not None else None

    def exists(self, username: str | None = None, email: str | None = None, exclude_id: int | None = None) -> bool:
        """Return True if another account already uses username or email.

        exclude_id skips the caller's own record, for profile updates.
        """
        conditions = []
        if username:
            conditions.append(users.c.username == normalize_identifier(username))
        if email:
            conditions.append(users.c.email == normalize_identifier(email))
        if not conditions:
            return False
        query = select(users.c.id).where(or_(*conditions))
        if exclude_id is not None:
            query = query.where(users.c.id != exclude_id)
        with self.engine.connect() as conn:
            row = conn.execute(query.limit(1)).fetchone()
        return row is not None

    # ------------------------------------------------------------------
    # Updates
    # ------------------------------------------------------------------

    def update_profile(self, user_id: int, **fields) -> PublicUser | None:
        """Update public profile columns and return the fresh sanitized record.

        Accepted fields: username, email, fullname, avatar, cover_image.
        Unknown keys raise ValueError rather than being silently ignored.
        Returns None if user_id was not found. Raises IntegrityError on a
        username/email collision.
        """
        unknown = set(fields) - self._PROFILE_FIELDS
        if unknown:
            raise ValueError(f"Unknown profile fields: {unknown!r}")
        values = dict(fields)
        for key in ("username", "email"):
            if key in values:
                values[key] = normalize_identifier(values[key])
        if "fullname" in values:
            values["fullname"] = values["fullname"].strip()
        values["updated_at"] = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(users.update().where(users.c.id == user_id).values(**values))
            conn.commit()
        if result.rowcount == 0:
            return None
        return self.get_public_by_id(user_id)

    def set_password_hash(self, user_id: int, password_hash: str) -> bool:
        """Replace the stored hash. Returns False if user_id was not found."""
        with self.engine.connect() as conn:
            result = conn.execute(
                users.update()
                .where(users.c.id == user_id)
                .values(password_hash=password_hash, updated_at=_now_iso())
            )
            conn.commit()
        return result.rowcount > 0

    def set_refresh_token(self, user_id: int, token: str | None) -> bool:
        """Unconditionally store (or clear, with None) the live refresh token.

        Used at login and logout. Returns False if user_id was not found.
        """
        with self.engine.connect() as conn:
            result = conn.execute(users.update().where(users.c.id == user_id).values(refresh_token=token))
            conn.commit()
        return result.rowcount > 0

    def rotate_refresh_token(self, user_id: int, expected: str, new: str) -> bool:
        """Replace the refresh token only if the stored value still equals expected.

        Returns True when this call won the rotation. False means the token was
        already rotated out (replay, or a concurrent refresh got there first),
        the session was logged out, or the user no longer exists.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                users.update()
                .where((users.c.id == user_id) & (users.c.refresh_token == expected))
                .values(refresh_token=new)
            )
            conn.commit()
        return result.rowcount == 1

    def delete_user(self, user_id: int) -> bool:
        """Permanently delete a user record. Returns True if deleted."""
        with self.engine.connect() as conn:
            result = conn.execute(users.delete().where(users.c.id == user_id))
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        username=row.username,
        email=row.email,
        fullname=row.fullname,
        password_hash=row.password_hash,
        avatar=row.avatar,
        cover_image=row.cover_image,
        refresh_token=row.refresh_token,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_public_user(row) -> PublicUser:
    return PublicUser(
        id=row.id,
        username=row.username,
        email=row.email,
        fullname=row.fullname,
        avatar=row.avatar,
        cover_image=row.cover_image,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
