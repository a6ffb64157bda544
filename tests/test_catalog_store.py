"""Unit tests for catalog/store.py -- CatalogStore.

Covers:
- subscribe() / unsubscribe() return values and their effect on channel counts
- get_channel_profile() for unknown channels and anonymous viewers
- get_watch_history() ordering and uploader nesting
"""

import pytest

from catalog.models import Video
from catalog.store import CatalogStore
from conftest import make_user


@pytest.fixture
def catalog(store):
    return CatalogStore(store.engine)


def _video(owner_id: int, title: str) -> Video:
    return Video(
        owner_id=owner_id,
        video_file=f"https://media.example.com/{title}.mp4",
        thumbnail=f"https://media.example.com/{title}.png",
        title=title,
        description=f"About {title}",
        duration=12.5,
    )


class TestSubscriptions:
    def test_subscribe_is_idempotent(self, store, catalog):
        channel = make_user(store, "alice")
        viewer = make_user(store, "bob")
        assert catalog.subscribe(viewer, channel) is True
        assert catalog.subscribe(viewer, channel) is False
        assert catalog.get_channel_profile("alice").subscriber_count == 1

    def test_unsubscribe_removes_subscription(self, store, catalog):
        channel = make_user(store, "alice")
        viewer = make_user(store, "bob")
        catalog.subscribe(viewer, channel)

        assert catalog.unsubscribe(viewer, channel) is True
        profile = catalog.get_channel_profile("alice", viewer_id=viewer)
        assert profile.subscriber_count == 0
        assert profile.is_subscribed is False
        assert catalog.get_channel_profile("bob").subscribed_channel_count == 0

    def test_unsubscribe_without_subscription(self, store, catalog):
        channel = make_user(store, "alice")
        viewer = make_user(store, "bob")
        assert catalog.unsubscribe(viewer, channel) is False

    def test_unsubscribe_leaves_other_subscribers(self, store, catalog):
        channel = make_user(store, "alice")
        bob = make_user(store, "bob")
        carol = make_user(store, "carol")
        catalog.subscribe(bob, channel)
        catalog.subscribe(carol, channel)

        catalog.unsubscribe(bob, channel)
        profile = catalog.get_channel_profile("alice", viewer_id=carol)
        assert profile.subscriber_count == 1
        assert profile.is_subscribed is True

    def test_resubscribe_after_unsubscribe(self, store, catalog):
        channel = make_user(store, "alice")
        viewer = make_user(store, "bob")
        catalog.subscribe(viewer, channel)
        catalog.unsubscribe(viewer, channel)
        assert catalog.subscribe(viewer, channel) is True


class TestChannelProfile:
    def test_unknown_channel(self, catalog):
        assert catalog.get_channel_profile("nobody") is None

    def test_lookup_is_case_insensitive(self, store, catalog):
        make_user(store, "alice")
        assert catalog.get_channel_profile("ALICE").username == "alice"

    def test_anonymous_viewer_is_not_subscribed(self, store, catalog):
        channel = make_user(store, "alice")
        catalog.subscribe(make_user(store, "bob"), channel)
        assert catalog.get_channel_profile("alice").is_subscribed is False


class TestWatchHistory:
    def test_most_recent_first_with_uploader(self, store, catalog):
        owner = make_user(store, "alice")
        viewer = make_user(store, "bob")
        first = catalog.create_video(_video(owner, "intro"))
        second = catalog.create_video(_video(owner, "sequel"))
        catalog.record_watch(viewer, first)
        catalog.record_watch(viewer, second)

        history = catalog.get_watch_history(viewer)
        assert [e.video_id for e in history] == [second, first]
        assert history[0].uploader.username == "alice"
        assert history[0].title == "sequel"

    def test_empty_history(self, store, catalog):
        assert catalog.get_watch_history(make_user(store, "bob")) == []
