"""A small interactive reader for the latest posts."""

from __future__ import annotations

import subprocess
import sys
from typing import TextIO

from .app import Command, CommandError, State
from .models import DatabaseError, PostView, User
from .reading import truncate

TUI_LIMIT = 10
TUI_DESCRIPTION_WIDTH = 100
CLEAR_SCREEN = "\033[2J\033[H"

_MONTHS = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)

_MENU = (
    "Commands:",
    "  1-10    Open post in browser",
    "  r       Refresh posts",
    "  s       Search posts",
    "  b       View bookmarks",
    "  q       Quit",
)


def browser_command(url: str, platform: str | None = None) -> list[str]:
    """Return the command line that opens ``url`` in the default browser."""
    platform = sys.platform if platform is None else platform
    if platform.startswith("win"):
        return ["cmd", "/c", "start", url]
    if platform == "darwin":
        return ["open", url]
    return ["xdg-open", url]


def open_url(url: str) -> None:
    """Start the browser on ``url`` without waiting for it."""
    subprocess.Popen(browser_command(url))


def _read_line(stream: TextIO) -> str:
    line = stream.readline()
    if not line.endswith("\n"):
        raise EOFError("EOF")
    return line


def _pause(stream: TextIO, prompt: str = "Press Enter to continue...") -> None:
    print(prompt, end="", flush=True)
    try:
        _read_line(stream)
    except EOFError:
        pass


def _show(posts: list[PostView]) -> None:
    print(CLEAR_SCREEN, end="")
    print("=== Gator TUI - Latest Posts ===")
    print()
    for number, post in enumerate(posts, start=1):
        print(f"{number}. {post.title}")
        if post.description:
            print(f"   {truncate(post.description, TUI_DESCRIPTION_WIDTH)}")
        line = f"   Feed: {post.feed_name}"
        if post.published_at is not None:
            moment = post.published_at
            line += f" | {_MONTHS[moment.month - 1]} {moment.day:02d}"
        print(line)
    print()
    for line in _MENU:
        print(line)
    print("\nEnter command: ", end="", flush=True)


def _open_post(post: PostView, stream: TextIO) -> None:
    print(f"\nOpening: {post.title}")
    print(f"URL: {post.url}")
    try:
        open_url(post.url)
    except OSError as exc:
        print(f"Error opening URL: {exc}")
        print(f"Please open this URL manually: {post.url}")
    else:
        print("Opened in browser!")
    _pause(stream)


def _post_number(text: str, count: int) -> int | None:
    sign = text[:1] in ("+", "-")
    digits = text[1:] if sign else text
    if not digits.isascii() or not digits.isdigit():
        return None
    number = int(text)
    return number if 1 <= number <= count else None


def handler_tui(state: State, cmd: Command, user: User) -> None:
    """Show the latest posts and act on one-letter commands read from stdin."""
    try:
        posts = state.db.get_posts_for_user(user.id, TUI_LIMIT)
    except DatabaseError as exc:
        raise CommandError(f"couldn't get posts: {exc}") from exc
    if not posts:
        print("No posts found.")
        return

    stream = sys.stdin
    while True:
        _show(posts)
        try:
            choice = _read_line(stream).strip()
        except EOFError as exc:
            raise CommandError(f"error reading input: {exc}") from exc

        if choice == "q":
            print("Goodbye!")
            return

        if choice == "r":
            try:
                posts = state.db.get_posts_for_user(user.id, TUI_LIMIT)
            except DatabaseError as exc:
                posts = []
                print(f"Error refreshing posts: {exc}")
                _pause(stream)
        elif choice == "s":
            print("Enter search query: ", end="", flush=True)
            try:
                query = _read_line(stream).strip()
            except EOFError as exc:
                print(f"Error reading query: {exc}")
                continue
            if not query:
                continue
            try:
                posts = state.db.search_posts_for_user(user.id, query, TUI_LIMIT)
            except DatabaseError as exc:
                print(f"Error searching posts: {exc}")
                _pause(stream)
        elif choice == "b":
            try:
                posts = list(state.db.get_bookmarks_for_user(user.id, TUI_LIMIT))
            except DatabaseError as exc:
                print(f"Error getting bookmarks: {exc}")
                _pause(stream)
        else:
            number = _post_number(choice, len(posts))
            if number is not None:
                _open_post(posts[number - 1], stream)
            else:
                print("Invalid command. Press Enter to continue...")
                try:
                    _read_line(stream)
                except EOFError:
                    pass