"""
catalog/store.py -- SQLAlchemy Core persistence for videos, subscriptions
and watch history, plus the two read-side queries built on them:

  get_channel_profile()  -- a user's public channel view with subscriber counts
  get_watch_history()    -- watched videos with the uploader nested in each

CatalogStore shares the engine of auth.store.UserStore because both queries
join against the users table. Pass user_store.engine to the constructor.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    catalog = CatalogStore(user_store.engine)
    video_id = catalog.create_video(Video(owner_id=1, ...))
    catalog.subscribe(subscriber_id=2, channel_id=1)
    catalog.record_watch(user_id=2, video_id=video_id)
    profile = catalog.get_channel_profile("alice", viewer_id=2)
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Column,
    Float,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    func,
    select,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.store import normalize_identifier, users
from catalog.models import ChannelProfile, Uploader, Video, WatchHistoryEntry

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_videos = Table(
    "videos",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("owner_id", Integer, nullable=False),
    Column("video_file", Text, nullable=False),
    Column("thumbnail", Text, nullable=False),
    Column("title", String(255), nullable=False),
    Column("description", Text, nullable=False),
    Column("duration", Float, nullable=False),
    Column("views", Integer, nullable=False, server_default="0"),
    Column("is_public", Integer, nullable=False, server_default="1"),  # boolean stored as 0/1
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_subscriptions = Table(
    "subscriptions",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("subscriber_id", Integer, nullable=False),
    Column("channel_id", Integer, nullable=False),
    Column("created_at", String(32), nullable=False),
    UniqueConstraint("subscriber_id", "channel_id", name="uq_subscriber_channel"),
)

_watch_history = Table(
    "watch_history",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, nullable=False),
    Column("video_id", Integer, nullable=False),
    Column("watched_at", String(32), nullable=False),
)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class CatalogStore:
    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_video(self, video: Video) -> int:
        """Insert a video and return its assigned database ID."""
        now = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _videos.insert().values(
                    owner_id=video.owner_id,
                    video_file=video.video_file,
                    thumbnail=video.thumbnail,
                    title=video.title,
                    description=video.description,
                    duration=video.duration,
                    views=video.views,
                    is_public=1 if video.is_public else 0,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def subscribe(self, subscriber_id: int, channel_id: int) -> bool:
        """Subscribe subscriber_id to channel_id.

        Returns False if the subscription already existed (idempotent).
        """
        try:
            with self.engine.connect() as conn:
                conn.execute(
                    _subscriptions.insert().values(
                        subscriber_id=subscriber_id,
                        channel_id=channel_id,
                        created_at=_now_iso(),
                    )
                )
                conn.commit()
        except IntegrityError:
            return False
        return True

    def unsubscribe(self, subscriber_id: int, channel_id: int) -> bool:
        """Remove a subscription. Returns True if one was removed."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _subscriptions.delete().where(
                    (_subscriptions.c.subscriber_id == subscriber_id) & (_subscriptions.c.channel_id == channel_id)
                )
            )
            conn.commit()
        return result.rowcount > 0

    def record_watch(self, user_id: int, video_id: int) -> None:
        """Append video_id to user_id's watch history."""
        with self.engine.connect() as conn:
            conn.execute(_watch_history.insert().values(user_id=user_id, video_id=video_id, watched_at=_now_iso()))
            conn.commit()

    # ------------------------------------------------------------------
    # Read-side queries
    # ------------------------------------------------------------------

    def get_channel_profile(self, username: str, viewer_id: Optional[int] = None) -> Optional[ChannelProfile]:
        """Return the channel view of username, or None if no such user.

        subscriber_count         -- users subscribed to this channel
        subscribed_channel_count -- channels this user subscribes to
        is_subscribed            -- whether viewer_id subscribes to this channel
        """
        with self.engine.connect() as conn:
            row = conn.execute(
                select(
                    users.c.id,
                    users.c.username,
                    users.c.fullname,
                    users.c.avatar,
                    users.c.cover_image,
                    users.c.created_at,
                ).where(users.c.username == normalize_identifier(username))
            ).fetchone()
            if row is None:
                return None

            subscriber_count = conn.execute(
                select(func.count()).select_from(_subscriptions).where(_subscriptions.c.channel_id == row.id)
            ).scalar()
            subscribed_count = conn.execute(
                select(func.count()).select_from(_subscriptions).where(_subscriptions.c.subscriber_id == row.id)
            ).scalar()

            is_subscribed = False
            if viewer_id is not None:
                is_subscribed = (
                    conn.execute(
                        select(_subscriptions.c.id).where(
                            (_subscriptions.c.channel_id == row.id) & (_subscriptions.c.subscriber_id == viewer_id)
                        )
                    ).fetchone()
                    is not None
                )

        return ChannelProfile(
            id=row.id,
            username=row.username,
            fullname=row.fullname,
            avatar=row.avatar,
            cover_image=row.cover_image,
            subscriber_count=subscriber_count or 0,
            subscribed_channel_count=subscribed_count or 0,
            is_subscribed=is_subscribed,
            created_at=row.created_at,
        )

    def get_watch_history(self, user_id: int) -> list[WatchHistoryEntry]:
        """Return user_id's watched videos, most recent first.

        Videos whose uploader no longer exists are dropped (inner join), the
        same way a nested lookup with an unwind drops them.
        """
        query = (
            select(
                _videos.c.id.label("video_id"),
                _videos.c.title,
                _videos.c.description,
                _videos.c.video_file,
                _videos.c.thumbnail,
                _videos.c.duration,
                _videos.c.views,
                _watch_history.c.watched_at,
                users.c.username,
                users.c.fullname,
                users.c.avatar,
            )
            .select_from(
                _watch_history.join(_videos, _watch_history.c.video_id == _videos.c.id).join(
                    users, _videos.c.owner_id == users.c.id
                )
            )
            .where(_watch_history.c.user_id == user_id)
            .order_by(_watch_history.c.watched_at.desc(), _watch_history.c.id.desc())
        )
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_history_entry(r) for r in rows]


# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------


def _row_to_history_entry(row) -> WatchHistoryEntry:
    return WatchHistoryEntry(
        video_id=row.video_id,
        title=row.title,
        description=row.description,
        video_file=row.video_file,
        thumbnail=row.thumbnail,
        duration=row.duration,
        views=row.views,
        watched_at=row.watched_at,
        uploader=Uploader(username=row.username, fullname=row.fullname, avatar=row.avatar),
    )
