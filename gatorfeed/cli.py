"""The gator command line entry point."""

from __future__ import annotations

import sys
from pathlib import Path

from .app import (
    Command,
    CommandError,
    Commands,
    State,
    handler_add_feed,
    handler_feeds,
    handler_follow,
    handler_following,
    handler_login,
    handler_register,
    handler_reset,
    handler_unfollow,
    handler_users,
    logged_in,
)
from .config import read
from .database import connect
from .models import DatabaseError
from .reading import (
    handler_bookmark,
    handler_bookmarks,
    handler_browse,
    handler_search,
    handler_unbookmark,
)
from .scraper import handler_agg
from .tui import handler_tui

_SQLITE_PREFIX = "sqlite:///"


def build_commands() -> Commands:
    """Return the registry of every command the program understands."""
    commands = Commands()
    commands.register("login", handler_login)
    commands.register("register", handler_register)
    commands.register("reset", handler_reset)
    commands.register("users", handler_users)
    commands.register("agg", handler_agg)
    commands.register("addfeed", logged_in(handler_add_feed))
    commands.register("feeds", handler_feeds)
    commands.register("follow", logged_in(handler_follow))
    commands.register("following", logged_in(handler_following))
    commands.register("unfollow", logged_in(handler_unfollow))
    commands.register("browse", logged_in(handler_browse))
    commands.register("search", logged_in(handler_search))
    commands.register("bookmark", logged_in(handler_bookmark))
    commands.register("unbookmark", logged_in(handler_unbookmark))
    commands.register("bookmarks", logged_in(handler_bookmarks))
    commands.register("tui", logged_in(handler_tui))
    return commands


def _database_path(db_url: str) -> Path:
    if not db_url:
        raise DatabaseError("db_url is not set")
    if db_url.startswith(_SQLITE_PREFIX):
        return Path(db_url[len(_SQLITE_PREFIX):])
    return Path(db_url)


def main(argv: list[str] | None = None) -> int:
    """Run one command given on the command line; return the exit status."""
    args = list(sys.argv[1:] if argv is None else argv)

    try:
        cfg = read()
    except (OSError, ValueError) as exc:
        print(f"Error reading config: {exc}")
        return 1

    try:
        db = connect(_database_path(cfg.db_url))
    except DatabaseError as exc:
        print(f"Error opening database: {exc}")
        return 1

    with db:
        if not args:
            print("Error: not enough arguments provided")
            return 1
        cmd = Command(name=args[0], args=args[1:])
        try:
            build_commands().run(State(db=db, cfg=cfg), cmd)
        except (CommandError, DatabaseError, OSError) as exc:
            print(f"Error: {exc}")
            return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())