"""Command registry, shared state and the user, feed and follow commands."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from functools import wraps

from .config import Config
from .database import Queries
from .models import DatabaseError, DuplicateError, User


class CommandError(Exception):
    """A command could not do its work."""


@dataclass
class State:
    """What every command handler works with."""

    db: Queries
    cfg: Config


@dataclass
class Command:
    """A command name and its arguments as given on the command line."""

    name: str
    args: list[str] = field(default_factory=list)


Handler = Callable[[State, Command], None]
UserHandler = Callable[[State, Command, User], None]


class Commands:
    """Maps command names to their handlers."""

    def __init__(self) -> None:
        self.handlers: dict[str, Handler] = {}

    def register(self, name: str, handler: Handler) -> None:
        """Make ``handler`` answer to ``name``, replacing any earlier one."""
        self.handlers[name] = handler

    def run(self, state: State, cmd: Command) -> None:
        """Run the handler registered for ``cmd.name``."""
        handler = self.handlers.get(cmd.name)
        if handler is None:
            raise CommandError(f"unknown command: {cmd.name}")
        handler(state, cmd)


def logged_in(handler: UserHandler) -> Handler:
    """Wrap ``handler`` so it receives the user named in the configuration."""

    @wraps(handler)
    def wrapper(state: State, cmd: Command) -> None:
        try:
            user = state.db.get_user_by_name(state.cfg.current_user_name)
        except DatabaseError as exc:
            raise CommandError(f"couldn't get user: {exc}") from exc
        handler(state, cmd, user)

    return wrapper


def _rfc3339(moment: datetime) -> str:
    text = moment.strftime("%Y-%m-%dT%H:%M:%S")
    offset = moment.utcoffset()
    if offset is None or offset == timedelta(0):
        return text + "Z"
    sign = "-" if offset < timedelta(0) else "+"
    minutes = abs(int(offset.total_seconds())) // 60
    return f"{text}{sign}{minutes // 60:02d}:{minutes % 60:02d}"


def handler_login(state: State, cmd: Command) -> None:
    """Switch the current user to an existing one."""
    if not cmd.args:
        raise CommandError("username is required")
    username = cmd.args[0]
    try:
        state.db.get_user_by_name(username)
    except DatabaseError as exc:
        raise CommandError(f"user {username} doesn't exist") from exc
    try:
        state.cfg.set_user(username)
    except (OSError, ValueError) as exc:
        raise CommandError(f"couldn't set user: {exc}") from exc
    print(f"User has been set to: {username}")


def handler_register(state: State, cmd: Command) -> None:
    """Create a user and make it the current one."""
    if not cmd.args:
        raise CommandError("username is required")
    username = cmd.args[0]
    try:
        user = state.db.create_user(username)
    except DuplicateError as exc:
        if exc.constraint == "users_name_key":
            raise CommandError(f"user {username} already exists") from exc
        raise CommandError(f"couldn't create user: {exc}") from exc
    except DatabaseError as exc:
        raise CommandError(f"couldn't create user: {exc}") from exc
    try:
        state.cfg.set_user(username)
    except (OSError, ValueError) as exc:
        raise CommandError(f"couldn't set current user: {exc}") from exc
    print(f"User {username} was created successfully!")
    print(
        f"User data: ID={user.id}, Name={user.name}, "
        f"CreatedAt={_rfc3339(user.created_at)}"
    )


def handler_reset(state: State, cmd: Command) -> None:
    """Delete every user, and with them everything they own."""
    try:
        state.db.delete_all_users()
    except DatabaseError as exc:
        raise CommandError(f"couldn't reset database: {exc}") from exc
    print("Database has been reset!")


def handler_users(state: State, cmd: Command) -> None:
    """List all users, marking the current one."""
    try:
        users = state.db.get_users()
    except DatabaseError as exc:
        raise CommandError(f"couldn't get users: {exc}") from exc
    current = state.cfg.current_user_name
    for user in users:
        suffix = " (current)" if user.name == current else ""
        print(f"* {user.name}{suffix}")


def handler_add_feed(state: State, cmd: Command, user: User) -> None:
    """Add a feed and follow it as ``user``."""
    if len(cmd.args) < 2:
        raise CommandError("name and url are required")
    name, url = cmd.args[0], cmd.args[1]
    try:
        feed = state.db.create_feed(name, url, user.id)
    except DatabaseError as exc:
        raise CommandError(f"couldn't create feed: {exc}") from exc
    try:
        follow = state.db.create_feed_follow(user.id, feed.id)
    except DatabaseError as exc:
        raise CommandError(f"couldn't follow feed: {exc}") from exc
    print(f"Feed {feed.name} created successfully!")
    print(f"{follow.user_name} is now following {follow.feed_name}")


def handler_feeds(state: State, cmd: Command) -> None:
    """List every feed with the user who added it."""
    try:
        feeds = state.db.get_feeds_with_users()
    except DatabaseError as exc:
        raise CommandError(f"couldn't get feeds: {exc}") from exc
    for feed in feeds:
        print(f"* {feed.feed_name}")
        print(f"  URL: {feed.feed_url}")
        print(f"  Created by: {feed.user_name}")
        print()


def handler_follow(state: State, cmd: Command, user: User) -> None:
    """Follow the feed with the given URL."""
    if not cmd.args:
        raise CommandError("url is required")
    url = cmd.args[0]
    try:
        feed = state.db.get_feed_by_url(url)
    except DatabaseError as exc:
        raise CommandError(f"couldn't find feed: {exc}") from exc
    try:
        follow = state.db.create_feed_follow(user.id, feed.id)
    except DuplicateError as exc:
        if exc.constraint == "feed_follows_user_id_feed_id_key":
            raise CommandError("you are already following this feed") from exc
        raise CommandError(f"couldn't create feed follow: {exc}") from exc
    except DatabaseError as exc:
        raise CommandError(f"couldn't create feed follow: {exc}") from exc
    print(f"{follow.user_name} is now following {follow.feed_name}")


def handler_following(state: State, cmd: Command, user: User) -> None:
    """List the feeds ``user`` follows."""
    try:
        follows = state.db.get_feed_follows_for_user(user.id)
    except DatabaseError as exc:
        raise CommandError(f"couldn't get feed follows: {exc}") from exc
    print(f"Feeds followed by {user.name}:")
    for follow in follows:
        print(f"* {follow.feed_name}")


def handler_unfollow(state: State, cmd: Command, user: User) -> None:
    """Stop following the feed with the given URL."""
    if not cmd.args:
        raise CommandError("url is required")
    url = cmd.args[0]
    try:
        state.db.delete_feed_follow(user.id, url)
    except DatabaseError as exc:
        raise CommandError(f"couldn't unfollow feed: {exc}") from exc
    print(f"{user.name} unfollowed {url}")