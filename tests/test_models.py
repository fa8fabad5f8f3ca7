import dataclasses
import uuid
from datetime import datetime, timezone

import pytest

from gatorfeed.models import (
    Bookmark,
    BookmarkView,
    DatabaseError,
    DuplicateError,
    Feed,
    FeedFollow,
    FeedFollowView,
    FeedWithUser,
    NotFoundError,
    Post,
    PostView,
    User,
)

NOW = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


def _post_view(**overrides):
    values = dict(
        id=uuid.uuid4(),
        created_at=NOW,
        updated_at=NOW,
        title="Title",
        url="https://example.com/p",
        description=None,
        published_at=None,
        feed_id=uuid.uuid4(),
        feed_name="Feed",
    )
    values.update(overrides)
    return PostView(**values)


def test_user_equality_by_value():
    uid = uuid.uuid4()
    assert User(uid, NOW, NOW, "ana") == User(uid, NOW, NOW, "ana")
    assert User(uid, NOW, NOW, "ana") != User(uid, NOW, NOW, "bob")


def test_records_are_immutable():
    user = User(uuid.uuid4(), NOW, NOW, "ana")
    with pytest.raises(dataclasses.FrozenInstanceError):
        user.name = "bob"
    assert user.name == "ana"


def test_feed_last_fetched_defaults_to_none():
    feed = Feed(uuid.uuid4(), NOW, NOW, "n", "https://example.com/rss", uuid.uuid4())
    assert feed.last_fetched_at is None


def test_replace_creates_new_record():
    feed = Feed(uuid.uuid4(), NOW, NOW, "n", "https://example.com/rss", uuid.uuid4())
    fetched = dataclasses.replace(feed, last_fetched_at=NOW)
    assert fetched.last_fetched_at == NOW
    assert feed.last_fetched_at is None
    assert fetched.id == feed.id


def test_bookmark_view_is_a_post_view():
    base = _post_view()
    view = BookmarkView(**dataclasses.asdict(base), bookmarked_at=NOW)
    assert isinstance(view, PostView)
    assert view.title == base.title
    assert view.bookmarked_at == NOW


def test_follow_view_fields():
    uid, fid = uuid.uuid4(), uuid.uuid4()
    view = FeedFollowView(uuid.uuid4(), NOW, NOW, uid, fid, "ana", "Blog")
    assert (view.user_id, view.feed_id, view.user_name, view.feed_name) == (
        uid,
        fid,
        "ana",
        "Blog",
    )


def test_plain_records_hold_values():
    pid, uid = uuid.uuid4(), uuid.uuid4()
    bookmark = Bookmark(uuid.uuid4(), NOW, NOW, uid, pid)
    follow = FeedFollow(uuid.uuid4(), NOW, NOW, uid, pid)
    post = Post(pid, NOW, NOW, "t", "https://example.com/t", "d", NOW, uid)
    listed = FeedWithUser("Blog", "https://example.com/rss", "ana")
    assert bookmark.post_id == pid and follow.feed_id == pid
    assert post.description == "d"
    assert listed.user_name == "ana"


def test_not_found_is_database_error_with_custom_message():
    err = NotFoundError("missing row")
    assert issubclass(NotFoundError, DatabaseError)
    assert str(err) == "missing row"


def test_not_found_default_message():
    assert str(NotFoundError()) == "no rows in result set"


def test_duplicate_error_keeps_constraint():
    err = DuplicateError("users_name_key")
    assert isinstance(err, DatabaseError)
    assert err.constraint == "users_name_key"
    assert '"users_name_key"' in str(err)