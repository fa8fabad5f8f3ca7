"""SQLite storage for users, feeds, follows, posts and bookmarks."""

from __future__ import annotations

import sqlite3
import threading
import uuid
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .models import (
    Bookmark,
    BookmarkView,
    DatabaseError,
    DuplicateError,
    Feed,
    FeedFollowView,
    FeedWithUser,
    NotFoundError,
    Post,
    PostView,
    User,
)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    name TEXT NOT NULL UNIQUE
);
CREATE TABLE IF NOT EXISTS feeds (
    id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    name TEXT NOT NULL,
    url TEXT NOT NULL UNIQUE,
    user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    last_fetched_at TEXT
);
CREATE TABLE IF NOT EXISTS feed_follows (
    id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    feed_id TEXT NOT NULL REFERENCES feeds(id) ON DELETE CASCADE,
    UNIQUE (user_id, feed_id)
);
CREATE TABLE IF NOT EXISTS posts (
    id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    title TEXT NOT NULL,
    url TEXT NOT NULL UNIQUE,
    description TEXT,
    published_at TEXT,
    feed_id TEXT NOT NULL REFERENCES feeds(id) ON DELETE CASCADE
);
CREATE TABLE IF NOT EXISTS bookmarks (
    id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    post_id TEXT NOT NULL REFERENCES posts(id) ON DELETE CASCADE,
    UNIQUE (user_id, post_id)
);
"""

# Unique-constraint columns as SQLite reports them, mapped to constraint names.
_CONSTRAINTS = {
    "users.name": "users_name_key",
    "feeds.url": "feeds_url_key",
    "posts.url": "posts_url_key",
    "feed_follows.user_id, feed_follows.feed_id": "feed_follows_user_id_feed_id_key",
    "bookmarks.user_id, bookmarks.post_id": "bookmarks_user_id_post_id_key",
}

_PUBLISHED_DESC = "posts.published_at IS NULL, posts.published_at DESC,"

_SORT_ORDERS = {
    "title": "posts.title ASC,",
    "title_desc": "posts.title DESC,",
    "published": "posts.published_at IS NULL, posts.published_at ASC,",
    "published_desc": _PUBLISHED_DESC,
    "": _PUBLISHED_DESC,
    "feed": "feeds.name ASC,",
    "feed_desc": "feeds.name DESC,",
}

_POST_VIEW_COLUMNS = (
    "posts.id, posts.created_at, posts.updated_at, posts.title, posts.url, "
    "posts.description, posts.published_at, posts.feed_id, feeds.name AS feed_name"
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _encode_time(moment: datetime | None) -> str | None:
    if moment is None:
        return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _decode_time(text: str | None) -> datetime | None:
    return None if text is None else datetime.fromisoformat(text)


def _check_count(value: int, what: str) -> int:
    if value < 0:
        raise DatabaseError(f"{what} must not be negative")
    return value


def _user(row: sqlite3.Row) -> User:
    return User(
        id=uuid.UUID(row["id"]),
        created_at=_decode_time(row["created_at"]),
        updated_at=_decode_time(row["updated_at"]),
        name=row["name"],
    )


def _feed(row: sqlite3.Row) -> Feed:
    return Feed(
        id=uuid.UUID(row["id"]),
        created_at=_decode_time(row["created_at"]),
        updated_at=_decode_time(row["updated_at"]),
        name=row["name"],
        url=row["url"],
        user_id=uuid.UUID(row["user_id"]),
        last_fetched_at=_decode_time(row["last_fetched_at"]),
    )


def _follow_view(row: sqlite3.Row) -> FeedFollowView:
    return FeedFollowView(
        id=uuid.UUID(row["id"]),
        created_at=_decode_time(row["created_at"]),
        updated_at=_decode_time(row["updated_at"]),
        user_id=uuid.UUID(row["user_id"]),
        feed_id=uuid.UUID(row["feed_id"]),
        user_name=row["user_name"],
        feed_name=row["feed_name"],
    )


def _post_fields(row: sqlite3.Row) -> dict[str, Any]:
    return {
        "id": uuid.UUID(row["id"]),
        "created_at": _decode_time(row["created_at"]),
        "updated_at": _decode_time(row["updated_at"]),
        "title": row["title"],
        "url": row["url"],
        "description": row["description"],
        "published_at": _decode_time(row["published_at"]),
        "feed_id": uuid.UUID(row["feed_id"]),
    }


def _post(row: sqlite3.Row) -> Post:
    return Post(**_post_fields(row))


def _post_view(row: sqlite3.Row) -> PostView:
    return PostView(**_post_fields(row), feed_name=row["feed_name"])


def _bookmark_view(row: sqlite3.Row) -> BookmarkView:
    return BookmarkView(
        **_post_fields(row),
        feed_name=row["feed_name"],
        bookmarked_at=_decode_time(row["bookmarked_at"]),
    )


class Queries:
    """Typed queries over one SQLite connection, safe to share between threads."""

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._conn = connection
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        self._in_transaction = False

    def __enter__(self) -> Queries:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def create_schema(self) -> None:
        """Create the tables if they do not exist yet."""
        with self._lock:
            try:
                self._conn.executescript(_SCHEMA)
            except sqlite3.Error as exc:
                raise DatabaseError(str(exc)) from exc

    def close(self) -> None:
        """Close the underlying connection."""
        with self._lock:
            self._conn.close()

    @contextmanager
    def transaction(self) -> Iterator[Queries]:
        """Run the enclosed queries atomically; roll back if the block raises."""
        with self._lock:
            if self._in_transaction:
                raise DatabaseError("transaction already in progress")
            self._run("BEGIN")
            self._in_transaction = True
            try:
                yield self
            except BaseException:
                self._conn.execute("ROLLBACK")
                raise
            else:
                self._run("COMMIT")
            finally:
                self._in_transaction = False

    def _run(self, sql: str, params: Sequence[Any] = ()) -> list[sqlite3.Row]:
        with self._lock:
            try:
                return self._conn.execute(sql, params).fetchall()
            except sqlite3.IntegrityError as exc:
                message = str(exc)
                prefix = "UNIQUE constraint failed: "
                if message.startswith(prefix):
                    columns = message[len(prefix):]
                    raise DuplicateError(
                        _CONSTRAINTS.get(columns, columns)
                    ) from exc
                raise DatabaseError(message) from exc
            except sqlite3.Error as exc:
                raise DatabaseError(str(exc)) from exc

    def _one(self, sql: str, params: Sequence[Any] = ()) -> sqlite3.Row:
        rows = self._run(sql, params)
        if not rows:
            raise NotFoundError()
        return rows[0]

    # Users

    def get_user_by_name(self, name: str) -> User:
        return _user(
            self._one(
                "SELECT id, created_at, updated_at, name FROM users WHERE name = ?",
                (name,),
            )
        )

    def create_user(self, name: str) -> User:
        now = _encode_time(_now())
        return _user(
            self._one(
                "INSERT INTO users (id, created_at, updated_at, name) "
                "VALUES (?, ?, ?, ?) RETURNING id, created_at, updated_at, name",
                (str(uuid.uuid4()), now, now, name),
            )
        )

    def get_users(self) -> list[User]:
        rows = self._run(
            "SELECT id, created_at, updated_at, name FROM users ORDER BY name ASC"
        )
        return [_user(row) for row in rows]

    def delete_all_users(self) -> None:
        self._run("DELETE FROM users")

    # Feeds

    def create_feed(self, name: str, url: str, user_id: uuid.UUID) -> Feed:
        now = _encode_time(_now())
        return _feed(
            self._one(
                "INSERT INTO feeds (id, created_at, updated_at, name, url, user_id) "
                "VALUES (?, ?, ?, ?, ?, ?) "
                "RETURNING id, created_at, updated_at, name, url, user_id, last_fetched_at",
                (str(uuid.uuid4()), now, now, name, url, str(user_id)),
            )
        )

    def get_feed_by_url(self, url: str) -> Feed:
        return _feed(
            self._one(
                "SELECT id, created_at, updated_at, name, url, user_id, last_fetched_at "
                "FROM feeds WHERE url = ?",
                (url,),
            )
        )

    def get_feeds_with_users(self) -> list[FeedWithUser]:
        rows = self._run(
            "SELECT feeds.name AS feed_name, feeds.url AS feed_url, "
            "users.name AS user_name FROM feeds "
            "INNER JOIN users ON feeds.user_id = users.id "
            "ORDER BY feeds.name ASC"
        )
        return [
            FeedWithUser(
                feed_name=row["feed_name"],
                feed_url=row["feed_url"],
                user_name=row["user_name"],
            )
            for row in rows
        ]

    def get_next_feed_to_fetch(self) -> Feed:
        feeds = self.get_next_feeds_to_fetch(1)
        if not feeds:
            raise NotFoundError()
        return feeds[0]

    def get_next_feeds_to_fetch(self, limit: int) -> list[Feed]:
        rows = self._run(
            "SELECT id, created_at, updated_at, name, url, user_id, last_fetched_at "
            "FROM feeds ORDER BY last_fetched_at IS NOT NULL, last_fetched_at ASC "
            "LIMIT ?",
            (_check_count(limit, "LIMIT"),),
        )
        return [_feed(row) for row in rows]

    def mark_feed_fetched(self, feed_id: uuid.UUID) -> None:
        now = _encode_time(_now())
        self._run(
            "UPDATE feeds SET last_fetched_at = ?, updated_at = ? WHERE id = ?",
            (now, now, str(feed_id)),
        )

    # Follows

    def create_feed_follow(
        self, user_id: uuid.UUID, feed_id: uuid.UUID
    ) -> FeedFollowView:
        now = _encode_time(_now())
        follow_id = str(uuid.uuid4())
        with self._lock:
            self._run(
                "INSERT INTO feed_follows (id, created_at, updated_at, user_id, feed_id) "
                "VALUES (?, ?, ?, ?, ?)",
                (follow_id, now, now, str(user_id), str(feed_id)),
            )
            row = self._one(
                "SELECT ff.id, ff.created_at, ff.updated_at, ff.user_id, ff.feed_id, "
                "users.name AS user_name, feeds.name AS feed_name "
                "FROM feed_follows ff "
                "INNER JOIN users ON users.id = ff.user_id "
                "INNER JOIN feeds ON feeds.id = ff.feed_id "
                "WHERE ff.id = ?",
                (follow_id,),
            )
        return _follow_view(row)

    def delete_feed_follow(self, user_id: uuid.UUID, url: str) -> None:
        self._run(
            "DELETE FROM feed_follows WHERE user_id = ? "
            "AND feed_id IN (SELECT id FROM feeds WHERE url = ?)",
            (str(user_id), url),
        )

    def get_feed_follows_for_user(self, user_id: uuid.UUID) -> list[FeedFollowView]:
        rows = self._run(
            "SELECT ff.id, ff.created_at, ff.updated_at, ff.user_id, ff.feed_id, "
            "feeds.name AS feed_name, users.name AS user_name "
            "FROM feed_follows ff "
            "INNER JOIN users ON users.id = ff.user_id "
            "INNER JOIN feeds ON feeds.id = ff.feed_id "
            "WHERE ff.user_id = ? ORDER BY feeds.name ASC",
            (str(user_id),),
        )
        return [_follow_view(row) for row in rows]

    # Posts

    def create_post(
        self,
        title: str,
        url: str,
        description: str | None,
        published_at: datetime | None,
        feed_id: uuid.UUID,
    ) -> Post:
        now = _encode_time(_now())
        return _post(
            self._one(
                "INSERT INTO posts (id, created_at, updated_at, title, url, "
                "description, published_at, feed_id) VALUES (?, ?, ?, ?, ?, ?, ?, ?) "
                "RETURNING id, created_at, updated_at, title, url, description, "
                "published_at, feed_id",
                (
                    str(uuid.uuid4()),
                    now,
                    now,
                    title,
                    url,
                    description,
                    _encode_time(published_at),
                    str(feed_id),
                ),
            )
        )

    def get_posts_for_user(self, user_id: uuid.UUID, limit: int) -> list[PostView]:
        rows = self._run(
            f"SELECT {_POST_VIEW_COLUMNS} FROM posts "
            "INNER JOIN feeds ON posts.feed_id = feeds.id "
            "INNER JOIN feed_follows ON feeds.id = feed_follows.feed_id "
            "WHERE feed_follows.user_id = ? "
            f"ORDER BY {_PUBLISHED_DESC} posts.created_at DESC LIMIT ?",
            (str(user_id), _check_count(limit, "LIMIT")),
        )
        return [_post_view(row) for row in rows]

    def get_posts_for_user_with_pagination(
        self,
        user_id: uuid.UUID,
        feed_filter: str,
        sort_by: str,
        limit: int,
        offset: int,
    ) -> list[PostView]:
        """Followed posts, optionally filtered by feed name, sorted and paged.

        An unknown ``sort_by`` orders by creation time only.
        """
        order = _SORT_ORDERS.get(sort_by, "")
        rows = self._run(
            f"SELECT {_POST_VIEW_COLUMNS} FROM posts "
            "INNER JOIN feeds ON posts.feed_id = feeds.id "
            "INNER JOIN feed_follows ON feeds.id = feed_follows.feed_id "
            "WHERE feed_follows.user_id = ? "
            "AND (? = '' OR feeds.name LIKE '%' || ? || '%') "
            f"ORDER BY {order} posts.created_at DESC LIMIT ? OFFSET ?",
            (
                str(user_id),
                feed_filter,
                feed_filter,
                _check_count(limit, "LIMIT"),
                _check_count(offset, "OFFSET"),
            ),
        )
        return [_post_view(row) for row in rows]

    def search_posts_for_user(
        self, user_id: uuid.UUID, query: str, limit: int
    ) -> list[PostView]:
        """Posts whose title, description or feed name contains ``query``.

        Title matches come first, then feed-name matches, then description matches.
        """
        rows = self._run(
            f"SELECT {_POST_VIEW_COLUMNS} FROM posts "
            "INNER JOIN feeds ON posts.feed_id = feeds.id "
            "INNER JOIN feed_follows ON feeds.id = feed_follows.feed_id "
            "WHERE feed_follows.user_id = :user "
            "AND (posts.title LIKE '%' || :q || '%' "
            "OR posts.description LIKE '%' || :q || '%' "
            "OR feeds.name LIKE '%' || :q || '%') "
            "ORDER BY "
            "CASE WHEN posts.title LIKE '%' || :q || '%' THEN 0 ELSE 1 END, "
            "CASE WHEN feeds.name LIKE '%' || :q || '%' THEN 0 ELSE 1 END, "
            "CASE WHEN posts.description LIKE '%' || :q || '%' THEN 0 ELSE 1 END, "
            f"{_PUBLISHED_DESC} posts.created_at DESC LIMIT :limit",
            {
                "user": str(user_id),
                "q": query,
                "limit": _check_count(limit, "LIMIT"),
            },
        )
        return [_post_view(row) for row in rows]

    def get_post_by_url(self, url: str) -> Post:
        return _post(
            self._one(
                "SELECT id, created_at, updated_at, title, url, description, "
                "published_at, feed_id FROM posts WHERE url = ?",
                (url,),
            )
        )

    # Bookmarks

    def create_bookmark(self, user_id: uuid.UUID, post_id: uuid.UUID) -> Bookmark:
        now = _encode_time(_now())
        row = self._one(
            "INSERT INTO bookmarks (id, created_at, updated_at, user_id, post_id) "
            "VALUES (?, ?, ?, ?, ?) "
            "RETURNING id, created_at, updated_at, user_id, post_id",
            (str(uuid.uuid4()), now, now, str(user_id), str(post_id)),
        )
        return Bookmark(
            id=uuid.UUID(row["id"]),
            created_at=_decode_time(row["created_at"]),
            updated_at=_decode_time(row["updated_at"]),
            user_id=uuid.UUID(row["user_id"]),
            post_id=uuid.UUID(row["post_id"]),
        )

    def delete_bookmark(self, user_id: uuid.UUID, post_id: uuid.UUID) -> None:
        self._run(
            "DELETE FROM bookmarks WHERE user_id = ? AND post_id = ?",
            (str(user_id), str(post_id)),
        )

    def is_post_bookmarked(self, user_id: uuid.UUID, post_id: uuid.UUID) -> bool:
        row = self._one(
            "SELECT EXISTS(SELECT 1 FROM bookmarks WHERE user_id = ? AND post_id = ?) "
            "AS is_bookmarked",
            (str(user_id), str(post_id)),
        )
        return bool(row["is_bookmarked"])

    def get_bookmarks_for_user(
        self, user_id: uuid.UUID, limit: int
    ) -> list[BookmarkView]:
        rows = self._run(
            f"SELECT {_POST_VIEW_COLUMNS}, bookmarks.created_at AS bookmarked_at "
            "FROM bookmarks "
            "INNER JOIN posts ON bookmarks.post_id = posts.id "
            "INNER JOIN feeds ON posts.feed_id = feeds.id "
            "WHERE bookmarks.user_id = ? "
            "ORDER BY bookmarks.created_at DESC LIMIT ?",
            (str(user_id), _check_count(limit, "LIMIT")),
        )
        return [_bookmark_view(row) for row in rows]


def connect(path: str | Path) -> Queries:
    """Open the SQLite database at ``path`` and make sure its tables exist."""
    try:
        connection = sqlite3.connect(
            str(path), check_same_thread=False, isolation_level=None
        )
        connection.execute("PRAGMA foreign_keys = ON")
    except sqlite3.Error as exc:
        raise DatabaseError(str(exc)) from exc
    queries = Queries(connection)
    queries.create_schema()
    return queries