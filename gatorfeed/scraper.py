"""Periodic collection of posts from the feeds in the database."""

from __future__ import annotations

import re
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

from .app import Command, CommandError, State
from .models import DatabaseError, DuplicateError, Feed
from .rss import RSSFeed, fetch_feed

DEFAULT_CONCURRENCY = 5

Fetcher = Callable[[str], RSSFeed]

_NANOS = {
    "ns": 1,
    "us": 1_000,
    "\u00b5s": 1_000,
    "\u03bcs": 1_000,
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60 * 1_000_000_000,
    "h": 3600 * 1_000_000_000,
}
_LIMIT = 1 << 63
_COMPONENT = re.compile(r"([0-9]*)(?:\.([0-9]*))?([^0-9.]*)")
_INTEGER = re.compile(r"[+-]?[0-9]+")


def _duration_nanos(text: str) -> int:
    invalid = ValueError(f'time: invalid duration "{text}"')
    rest = text
    negative = False
    if rest[:1] in ("-", "+"):
        negative = rest[0] == "-"
        rest = rest[1:]
    if rest == "0":
        return 0
    if not rest:
        raise invalid
    total = 0
    pos = 0
    while pos < len(rest):
        match = _COMPONENT.match(rest, pos)
        whole, fraction, unit = match.groups()
        if not whole and not fraction:
            raise invalid
        if not unit:
            raise ValueError(f'time: missing unit in duration "{text}"')
        scale = _NANOS.get(unit)
        if scale is None:
            raise ValueError(f'time: unknown unit "{unit}" in duration "{text}"')
        value = int(whole or "0") * scale
        if fraction:
            value += int(fraction) * scale // 10 ** len(fraction)
        total += value
        if total > _LIMIT:
            raise invalid
        pos = match.end()
    if negative:
        return -total
    if total >= _LIMIT:
        raise invalid
    return total


def parse_duration(text: str) -> timedelta:
    """Parse a duration such as ``"1m30s"``, ``"500ms"`` or ``"1.5h"``."""
    nanos = _duration_nanos(text)
    micros = abs(nanos) // 1000
    return timedelta(microseconds=-micros if nanos < 0 else micros)


def _fraction(value: int, precision: int) -> tuple[int, str]:
    digits = str(value % 10**precision).rjust(precision, "0").rstrip("0")
    return value // 10**precision, ("." + digits if digits else "")


def _format_duration(delta: timedelta) -> str:
    nanos = ((delta.days * 86400 + delta.seconds) * 1_000_000 + delta.microseconds) * 1000
    sign = "-" if nanos < 0 else ""
    nanos = abs(nanos)
    if nanos == 0:
        return "0s"
    if nanos < 1_000_000_000:
        if nanos < 1_000:
            return f"{sign}{nanos}ns"
        precision, unit = (3, "\u00b5s") if nanos < 1_000_000 else (6, "ms")
        whole, frac = _fraction(nanos, precision)
        return f"{sign}{whole}{frac}{unit}"
    seconds, frac = _fraction(nanos, 9)
    text = f"{seconds % 60}{frac}s"
    minutes = seconds // 60
    if minutes:
        text = f"{minutes % 60}m{text}"
        hours = minutes // 60
        if hours:
            text = f"{hours}h{text}"
    return sign + text


def _atoi(text: str) -> int | None:
    return int(text) if _INTEGER.fullmatch(text) else None


def scrape_feed(state: State, feed: Feed, fetch: Fetcher = fetch_feed) -> int:
    """Fetch one feed and store its new posts; return how many were stored."""
    try:
        state.db.mark_feed_fetched(feed.id)
    except DatabaseError as exc:
        print(f"Error marking feed {feed.name} as fetched: {exc}")
        return 0
    try:
        rss_feed = fetch(feed.url)
    except Exception as exc:  # any failure of one feed must not stop the others
        print(f"Error fetching feed {feed.name}: {exc}")
        return 0

    items = rss_feed.channel.items
    print(f"Found {len(items)} posts in {feed.name}")
    stored = 0
    for item in items:
        try:
            state.db.create_post(
                item.title,
                item.link,
                item.description or None,
                item.parse_pub_date(),
                feed.id,
            )
        except DuplicateError as exc:
            if exc.constraint != "posts_url_key":
                print(f"Error creating post {item.title}: {exc}")
        except DatabaseError as exc:
            print(f"Error creating post {item.title}: {exc}")
        else:
            stored += 1
    return stored


def scrape_feeds(
    state: State, concurrency: int, fetch: Fetcher = fetch_feed
) -> list[Feed]:
    """Scrape up to ``concurrency`` of the least recently fetched feeds at once."""
    try:
        feeds = state.db.get_next_feeds_to_fetch(concurrency)
    except DatabaseError as exc:
        print(f"Error getting feeds: {exc}")
        return []
    if not feeds:
        print("No feeds to fetch")
        return []
    print(f"Fetching {len(feeds)} feeds concurrently")
    with ThreadPoolExecutor(max_workers=len(feeds)) as pool:
        list(pool.map(lambda feed: scrape_feed(state, feed, fetch), feeds))
    return feeds


def handler_agg(state: State, cmd: Command) -> None:
    """Scrape feeds forever, once per interval given as the first argument."""
    if not cmd.args:
        raise CommandError("time_between_reqs is required")
    try:
        interval = parse_duration(cmd.args[0])
    except ValueError as exc:
        raise CommandError(f"invalid duration: {exc}") from exc

    concurrency = DEFAULT_CONCURRENCY
    if len(cmd.args) > 1:
        value = _atoi(cmd.args[1])
        if value is None or value <= 0:
            raise CommandError(f"invalid concurrency value: {cmd.args[1]}")
        concurrency = value

    if interval <= timedelta(0):
        raise CommandError("non-positive interval for ticker")

    print(
        f"Collecting feeds every {_format_duration(interval)} "
        f"with concurrency {concurrency}"
    )
    period = interval.total_seconds()
    next_tick = time.monotonic()
    while True:
        scrape_feeds(state, concurrency)
        next_tick += period
        now = time.monotonic()
        if next_tick < now:
            next_tick = now
        time.sleep(next_tick - now)