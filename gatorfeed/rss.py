"""Fetching and parsing RSS feeds."""

from __future__ import annotations

import html
import re
import urllib.error
import urllib.parse
import urllib.request
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

USER_AGENT = "gator"

_MONTHS = {
    name: number
    for number, name in enumerate(
        ("jan", "feb", "mar", "apr", "may", "jun",
         "jul", "aug", "sep", "oct", "nov", "dec"),
        start=1,
    )
}
_WEEKDAYS = {"mon", "tue", "wed", "thu", "fri", "sat", "sun"}

_TIME = r"(?P<hour>\d{1,2}):(?P<minute>\d{2}):(?P<second>\d{2})(?P<frac>[.,]\d+)?"
_RFC822_PREFIX = r"(?P<weekday>[A-Za-z]{3}), (?P<day>{day}) (?P<month>[A-Za-z]{3}) (?P<year>\d{4}) "
_ISO_DATE = r"(?P<year>\d{4})-(?P<month>\d{2})-(?P<day>\d{2})"

# Accepted layouts, tried in order.
_PUB_DATE_PATTERNS = (
    re.compile(_RFC822_PREFIX.replace("{day}", r"\d{1,2}") + _TIME + r" (?P<zone>[+-]\d{4})"),
    re.compile(_RFC822_PREFIX.replace("{day}", r"\d{2}") + _TIME + r" (?P<abbrev>[A-Z]{3,5})"),
    re.compile(_ISO_DATE + "T" + _TIME + r"(?P<zone>Z|[+-]\d{2}:\d{2})"),
    re.compile(_ISO_DATE + " " + _TIME),
)


def _zone(match: re.Match[str]) -> timezone:
    zone = match.groupdict().get("zone")
    if not zone or zone == "Z":
        return timezone.utc
    digits = zone[1:].replace(":", "")
    offset = timedelta(hours=int(digits[:2]), minutes=int(digits[2:]))
    return timezone(-offset if zone[0] == "-" else offset)


def _build_datetime(match: re.Match[str]) -> datetime:
    groups = match.groupdict()
    weekday = groups.get("weekday")
    if weekday is not None and weekday.lower() not in _WEEKDAYS:
        raise ValueError(f"bad weekday {weekday!r}")
    month_text = groups["month"]
    month = int(month_text) if month_text.isdigit() else _MONTHS.get(month_text.lower())
    if month is None:
        raise ValueError(f"bad month {month_text!r}")
    frac = groups.get("frac")
    microsecond = int(frac[1:7].ljust(6, "0")) if frac else 0
    return datetime(
        int(groups["year"]),
        month,
        int(groups["day"]),
        int(groups["hour"]),
        int(groups["minute"]),
        int(groups["second"]),
        microsecond,
        tzinfo=_zone(match),
    )


@dataclass
class RSSItem:
    title: str = ""
    link: str = ""
    description: str = ""
    pub_date: str = ""

    def parse_pub_date(self) -> datetime | None:
        """Return the publication date, or None when absent or unreadable."""
        if not self.pub_date:
            return None
        for pattern in _PUB_DATE_PATTERNS:
            match = pattern.fullmatch(self.pub_date)
            if match is None:
                continue
            try:
                return _build_datetime(match)
            except ValueError:
                continue
        return None


@dataclass
class RSSChannel:
    title: str = ""
    link: str = ""
    description: str = ""
    items: list[RSSItem] = field(default_factory=list)


@dataclass
class RSSFeed:
    channel: RSSChannel = field(default_factory=RSSChannel)


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _direct_text(element: ET.Element) -> str:
    """Character data of ``element`` itself, skipping nested elements."""
    parts = [element.text or ""]
    parts.extend(child.tail or "" for child in element)
    return "".join(parts)


def _parse_item(element: ET.Element) -> RSSItem:
    item = RSSItem()
    for child in element:
        name = _local_name(child.tag)
        if name == "title":
            item.title = _direct_text(child)
        elif name == "link":
            item.link = _direct_text(child)
        elif name == "description":
            item.description = _direct_text(child)
        elif name == "pubDate":
            item.pub_date = _direct_text(child)
    return item


def _fill_channel(channel: RSSChannel, element: ET.Element) -> None:
    for child in element:
        name = _local_name(child.tag)
        if name == "title":
            channel.title = _direct_text(child)
        elif name == "link":
            channel.link = _direct_text(child)
        elif name == "description":
            channel.description = _direct_text(child)
        elif name == "item":
            channel.items.append(_parse_item(child))


def parse_feed(data: bytes | str) -> RSSFeed:
    """Parse an RSS document and unescape HTML entities in titles and descriptions."""
    try:
        root = ET.fromstring(data)
    except ET.ParseError as exc:
        raise ValueError(f"invalid feed XML: {exc}") from exc

    channel = RSSChannel()
    for element in root:
        if _local_name(element.tag) == "channel":
            _fill_channel(channel, element)

    channel.title = html.unescape(channel.title)
    channel.description = html.unescape(channel.description)
    for item in channel.items:
        item.title = html.unescape(item.title)
        item.description = html.unescape(item.description)
    return RSSFeed(channel=channel)


def fetch_feed(feed_url: str, timeout: float | None = None) -> RSSFeed:
    """Download and parse the feed at ``feed_url``, whatever the HTTP status."""
    scheme = urllib.parse.urlsplit(feed_url).scheme.lower()
    if scheme not in ("http", "https"):
        raise ValueError(f"unsupported protocol scheme {scheme!r}")
    request = urllib.request.Request(feed_url, headers={"User-Agent": USER_AGENT})
    try:
        with urllib.request.urlopen(request, timeout=timeout) as response:
            body = response.read()
    except urllib.error.HTTPError as err:
        try:
            body = err.read()
        finally:
            err.close()
    return parse_feed(body)