"""Commands for reading posts: browsing, searching and bookmarks."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from .app import Command, CommandError, State
from .models import BookmarkView, DatabaseError, PostView, User

DESCRIPTION_WIDTH = 150
DEFAULT_BROWSE_LIMIT = 10
SEARCH_LIMIT = 20
DEFAULT_BOOKMARKS_LIMIT = 20

VALID_SORTS = (
    "published_desc",
    "published",
    "title",
    "title_desc",
    "feed",
    "feed_desc",
)

BROWSE_HELP = (
    "Usage: gator browse [options]",
    "Options:",
    "  --limit=N        Number of posts to show (default: 10)",
    "  --offset=N       Number of posts to skip (default: 0)",
    "  --sort=OPTION    Sort by: published_desc, published, title, title_desc, "
    "feed, feed_desc (default: published_desc)",
    "  --feed=NAME      Filter by feed name (partial match)",
    "  --help           Show this help",
)

_WEEKDAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
_MONTHS = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)
_INTEGER = re.compile(r"[+-]?[0-9]+")
_INT64_MIN = -(1 << 63)
_INT64_MAX = (1 << 63) - 1


def _atoi(text: str) -> int | None:
    """Parse a decimal integer the strict way; None if it is not one."""
    if not _INTEGER.fullmatch(text):
        return None
    value = int(text)
    if not _INT64_MIN <= value <= _INT64_MAX:
        return None
    return value


def _to_int32(value: int) -> int:
    return ((value + (1 << 31)) % (1 << 32)) - (1 << 31)


@dataclass
class BrowseOptions:
    """What the browse command was asked to show."""

    limit: int = DEFAULT_BROWSE_LIMIT
    offset: int = 0
    sort_by: str = "published_desc"
    feed_filter: str = ""
    show_help: bool = False


def truncate(text: str, width: int) -> str:
    """Shorten ``text`` to ``width`` characters, ending it with "..." if cut."""
    if len(text) > width:
        return text[: width - 3] + "..."
    return text


def _zone_name(moment: datetime) -> str:
    offset = moment.utcoffset()
    if offset is None:
        return "UTC"
    name = moment.tzname()
    if name and not (name.startswith("UTC") and len(name) > 3):
        return name
    sign = "-" if offset < timedelta(0) else "+"
    minutes = abs(int(offset.total_seconds())) // 60
    return f"{sign}{minutes // 60:02d}{minutes % 60:02d}"


def format_timestamp(moment: datetime) -> str:
    """Format ``moment`` like "Mon, 02 Jan 2006 15:04:05 UTC"."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return (
        f"{_WEEKDAYS[moment.weekday()]}, {moment.day:02d} "
        f"{_MONTHS[moment.month - 1]} {moment.year:04d} "
        f"{moment:%H:%M:%S} {_zone_name(moment)}"
    )


def parse_browse_args(args: list[str]) -> BrowseOptions:
    """Read the browse options; unusable numbers keep their defaults."""
    options = BrowseOptions()
    for position, arg in enumerate(args):
        if arg.startswith("--limit="):
            value = _atoi(arg[len("--limit="):])
            if value is not None and value > 0:
                options.limit = _to_int32(value)
        elif arg.startswith("--offset="):
            value = _atoi(arg[len("--offset="):])
            if value is not None and value >= 0:
                options.offset = _to_int32(value)
        elif arg.startswith("--sort="):
            options.sort_by = arg[len("--sort="):]
        elif arg.startswith("--feed="):
            options.feed_filter = arg[len("--feed="):]
        elif arg == "--help":
            options.show_help = True
            break
        elif position == 0:
            # A bare first argument is the limit.
            value = _atoi(arg)
            if value is not None and value > 0:
                options.limit = _to_int32(value)
    return options


def _print_post(number: int, post: PostView) -> None:
    print(f"{number}. {post.title}")
    if post.description:
        print(f"   {truncate(post.description, DESCRIPTION_WIDTH)}")
    print(f"   Link: {post.url}")
    print(f"   Feed: {post.feed_name}")
    if post.published_at is not None:
        print(f"   Published: {format_timestamp(post.published_at)}")
    if isinstance(post, BookmarkView):
        print(f"   Bookmarked: {format_timestamp(post.bookmarked_at)}")
    print()


def handler_browse(state: State, cmd: Command, user: User) -> None:
    """Show the posts of the feeds ``user`` follows, a page at a time."""
    options = parse_browse_args(cmd.args)
    if options.show_help:
        for line in BROWSE_HELP:
            print(line)
        return
    if options.sort_by not in VALID_SORTS:
        raise CommandError(
            f"invalid sort option: {options.sort_by}. "
            f"Valid options: {', '.join(VALID_SORTS)}"
        )
    try:
        posts = state.db.get_posts_for_user_with_pagination(
            user.id,
            options.feed_filter,
            options.sort_by,
            options.limit,
            options.offset,
        )
    except DatabaseError as exc:
        raise CommandError(f"couldn't get posts: {exc}") from exc

    if not posts:
        print("No posts found.")
        return

    header = (
        f"Showing {len(posts)} posts (offset {options.offset}, "
        f"sorted by {options.sort_by}"
    )
    if options.feed_filter:
        header += f", filtered by feed: {options.feed_filter}"
    print(header + ")")
    print()

    for number, post in enumerate(posts, start=options.offset + 1):
        _print_post(number, post)

    if len(posts) == options.limit:
        print(
            "To see more posts, use: gator browse "
            f"--offset={_to_int32(options.offset + options.limit)}"
        )


def handler_search(state: State, cmd: Command, user: User) -> None:
    """Find followed posts whose title, description or feed matches the query."""
    if not cmd.args:
        raise CommandError("search query is required")
    query = " ".join(cmd.args)
    try:
        posts = state.db.search_posts_for_user(user.id, query, SEARCH_LIMIT)
    except DatabaseError as exc:
        raise CommandError(f"couldn't search posts: {exc}") from exc

    if not posts:
        print(f"No posts found for query: {query}")
        return

    print(f'Found {len(posts)} posts matching "{query}":')
    print()
    for number, post in enumerate(posts, start=1):
        _print_post(number, post)


def handler_bookmark(state: State, cmd: Command, user: User) -> None:
    """Bookmark the post with the given URL."""
    if not cmd.args:
        raise CommandError("post URL is required")
    post_url = cmd.args[0]
    try:
        post = state.db.get_post_by_url(post_url)
    except DatabaseError as exc:
        raise CommandError(f"couldn't find post: {exc}") from exc
    try:
        bookmarked = state.db.is_post_bookmarked(user.id, post.id)
    except DatabaseError as exc:
        raise CommandError(f"couldn't check bookmark status: {exc}") from exc
    if bookmarked:
        print("Post is already bookmarked")
        return
    try:
        state.db.create_bookmark(user.id, post.id)
    except DatabaseError as exc:
        raise CommandError(f"couldn't create bookmark: {exc}") from exc
    print(f"Bookmarked: {post.title}")


def handler_unbookmark(state: State, cmd: Command, user: User) -> None:
    """Remove the bookmark on the post with the given URL."""
    if not cmd.args:
        raise CommandError("post URL is required")
    post_url = cmd.args[0]
    try:
        post = state.db.get_post_by_url(post_url)
    except DatabaseError as exc:
        raise CommandError(f"couldn't find post: {exc}") from exc
    try:
        state.db.delete_bookmark(user.id, post.id)
    except DatabaseError as exc:
        raise CommandError(f"couldn't remove bookmark: {exc}") from exc
    print(f"Removed bookmark: {post.title}")


def handler_bookmarks(state: State, cmd: Command, user: User) -> None:
    """List the posts ``user`` bookmarked, newest bookmark first."""
    limit = DEFAULT_BOOKMARKS_LIMIT
    if cmd.args:
        value = _atoi(cmd.args[0])
        if value is not None and value > 0:
            limit = _to_int32(value)
    try:
        bookmarks = state.db.get_bookmarks_for_user(user.id, limit)
    except DatabaseError as exc:
        raise CommandError(f"couldn't get bookmarks: {exc}") from exc

    if not bookmarks:
        print("No bookmarks found.")
        return

    print(f"Your {len(bookmarks)} bookmark(s):")
    print()
    for number, bookmark in enumerate(bookmarks, start=1):
        _print_post(number, bookmark)