"""
catalog/models.py -- Domain dataclasses for videos, channels and viewing.

Pure data containers. Queries live in catalog/store.py.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class Video:
    """An uploaded video. id is None before the record is written."""

    owner_id: int
    video_file: str  # media host URL
    thumbnail: str  # media host URL
    title: str
    description: str
    duration: float  # seconds
    views: int = 0
    is_public: bool = True
    id: Optional[int] = None
    created_at: str = ""
    updated_at: str = ""


@dataclass
class ChannelProfile:
    """Public view of a user as a channel.

    Carries no email, password hash, or refresh token. is_subscribed is
    relative to the viewer the profile was fetched for.
    """

    id: int
    username: str
    fullname: str
    avatar: str
    cover_image: Optional[str]
    subscriber_count: int
    subscribed_channel_count: int
    is_subscribed: bool
    created_at: str = ""


@dataclass
class Uploader:
    username: str
    fullname: str
    avatar: str


@dataclass
class WatchHistoryEntry:
    """One watched video with its uploader nested."""

    video_id: int
    title: str
    description: str
    video_file: str
    thumbnail: str
    duration: float
    views: int
    watched_at: str
    uploader: Uploader
