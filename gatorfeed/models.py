"""Records stored in the database and the errors its queries raise."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime


class DatabaseError(Exception):
    """A query failed."""


class NotFoundError(DatabaseError):
    """A query that should return one row returned none."""

    def __init__(self, message: str = "no rows in result set") -> None:
        super().__init__(message)


class DuplicateError(DatabaseError):
    """An insert broke a uniqueness constraint."""

    def __init__(self, constraint: str) -> None:
        super().__init__(
            f'duplicate key value violates unique constraint "{constraint}"'
        )
        self.constraint = constraint


@dataclass(frozen=True)
class User:
    id: uuid.UUID
    created_at: datetime
    updated_at: datetime
    name: str


@dataclass(frozen=True)
class Feed:
    id: uuid.UUID
    created_at: datetime
    updated_at: datetime
    name: str
    url: str
    user_id: uuid.UUID
    last_fetched_at: datetime | None = None


@dataclass(frozen=True)
class FeedFollow:
    id: uuid.UUID
    created_at: datetime
    updated_at: datetime
    user_id: uuid.UUID
    feed_id: uuid.UUID


@dataclass(frozen=True)
class FeedFollowView:
    """A follow together with the names of its user and feed."""

    id: uuid.UUID
    created_at: datetime
    updated_at: datetime
    user_id: uuid.UUID
    feed_id: uuid.UUID
    user_name: str
    feed_name: str


@dataclass(frozen=True)
class FeedWithUser:
    """A feed listed with the name of the user who added it."""

    feed_name: str
    feed_url: str
    user_name: str


@dataclass(frozen=True)
class Post:
    id: uuid.UUID
    created_at: datetime
    updated_at: datetime
    title: str
    url: str
    description: str | None
    published_at: datetime | None
    feed_id: uuid.UUID


@dataclass(frozen=True)
class PostView:
    """A post together with the name of its feed."""

    id: uuid.UUID
    created_at: datetime
    updated_at: datetime
    title: str
    url: str
    description: str | None
    published_at: datetime | None
    feed_id: uuid.UUID
    feed_name: str


@dataclass(frozen=True)
class Bookmark:
    id: uuid.UUID
    created_at: datetime
    updated_at: datetime
    user_id: uuid.UUID
    post_id: uuid.UUID


@dataclass(frozen=True)
class BookmarkView(PostView):
    """A bookmarked post; usable wherever a post view is."""

    bookmarked_at: datetime