import threading
from datetime import datetime, timedelta, timezone
from http.server import BaseHTTPRequestHandler, HTTPServer

import pytest

from gatorfeed.rss import USER_AGENT, RSSItem, fetch_feed, parse_feed

SAMPLE = b"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0" xmlns:atom="urn:example:atom">
<channel>
<title>Tom &amp;amp; Jerry</title>
<link>https://example.com/</link>
<description>News &amp;lt;daily&amp;gt;</description>
<item>
<title>First &amp;quot;post&amp;quot;</title>
<link>https://example.com/a?x=1&amp;amp;y=2</link>
<description>Hello <b>bold</b> world</description>
<pubDate>Tue, 02 Jan 2024 15:04:05 +0000</pubDate>
</item>
<item>
<title><![CDATA[Second]]></title>
<link>https://example.com/b</link>
</item>
</channel>
</rss>
"""


def test_parse_feed_channel_fields():
    feed = parse_feed(SAMPLE)
    assert feed.channel.title == "Tom & Jerry"
    assert feed.channel.link == "https://example.com/"
    assert feed.channel.description == "News <daily>"


def test_parse_feed_items_in_order():
    items = parse_feed(SAMPLE).channel.items
    assert [item.title for item in items] == ['First "post"', "Second"]
    assert items[1].link == "https://example.com/b"
    assert items[1].description == ""
    assert items[1].pub_date == ""


def test_link_is_not_unescaped():
    item = parse_feed(SAMPLE).channel.items[0]
    assert item.link == "https://example.com/a?x=1&amp;y=2"


def test_nested_element_text_is_skipped():
    item = parse_feed(SAMPLE).channel.items[0]
    assert item.description == "Hello  world"


def test_parse_feed_accepts_str():
    assert parse_feed(SAMPLE.decode()).channel.title == parse_feed(SAMPLE).channel.title


def test_parse_feed_without_channel_is_empty():
    feed = parse_feed(b"<rss/>")
    assert feed.channel.title == ""
    assert feed.channel.items == []


def test_items_from_several_channels_accumulate():
    doc = b"<rss><channel><item><title>a</title></item></channel><channel><item><title>b</title></item></channel></rss>"
    assert [i.title for i in parse_feed(doc).channel.items] == ["a", "b"]


@pytest.mark.parametrize("doc", [b"", b"<rss><channel>", b"not xml"])
def test_malformed_xml_raises(doc):
    with pytest.raises(ValueError):
        parse_feed(doc)


@pytest.mark.parametrize(
    "text, expected",
    [
        ("Tue, 02 Jan 2024 15:04:05 -0700", datetime(2024, 1, 2, 15, 4, 5, tzinfo=timezone(timedelta(hours=-7)))),
        ("Tue, 2 Jan 2024 15:04:05 +0200", datetime(2024, 1, 2, 15, 4, 5, tzinfo=timezone(timedelta(hours=2)))),
        ("Tue, 02 Jan 2024 15:04:05 GMT", datetime(2024, 1, 2, 15, 4, 5, tzinfo=timezone.utc)),
        ("2024-01-02T15:04:05Z", datetime(2024, 1, 2, 15, 4, 5, tzinfo=timezone.utc)),
        ("2024-01-02T15:04:05+05:30", datetime(2024, 1, 2, 15, 4, 5, tzinfo=timezone(timedelta(hours=5, minutes=30)))),
        ("2024-01-02 15:04:05", datetime(2024, 1, 2, 15, 4, 5, tzinfo=timezone.utc)),
        ("2024-01-02T15:04:05.250Z", datetime(2024, 1, 2, 15, 4, 5, 250000, tzinfo=timezone.utc)),
    ],
)
def test_parse_pub_date_formats(text, expected):
    result = RSSItem(pub_date=text).parse_pub_date()
    assert result == expected
    assert result.utcoffset() == expected.utcoffset()


@pytest.mark.parametrize(
    "text",
    [
        "",
        "not a date",
        "Tue, 2 Jan 2024 15:04:05 GMT",
        "2024-13-02T15:04:05Z",
        "Sat, 31 Feb 2024 10:00:00 +0000",
        "Xyz, 02 Jan 2024 15:04:05 +0000",
        " 2024-01-02 15:04:05",
    ],
)
def test_unreadable_pub_date_is_none(text):
    assert RSSItem(pub_date=text).parse_pub_date() is None


class _FeedHandler(BaseHTTPRequestHandler):
    seen_agents: list = []

    def do_GET(self):
        type(self).seen_agents.append(self.headers.get("User-Agent"))
        self.send_response(404 if self.path == "/missing" else 200)
        self.send_header("Content-Type", "application/rss+xml")
        self.end_headers()
        self.wfile.write(SAMPLE)

    def log_message(self, format, *args):
        pass


@pytest.fixture
def server():
    _FeedHandler.seen_agents = []
    httpd = HTTPServer(("127.0.0.1", 0), _FeedHandler)
    thread = threading.Thread(target=httpd.serve_forever, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{httpd.server_address[1]}"
    httpd.shutdown()
    httpd.server_close()


def test_fetch_feed_sends_user_agent(server):
    feed = fetch_feed(server + "/feed", timeout=5)
    assert feed.channel.title == "Tom & Jerry"
    assert _FeedHandler.seen_agents == [USER_AGENT]


def test_fetch_feed_parses_error_status_body(server):
    feed = fetch_feed(server + "/missing", timeout=5)
    assert len(feed.channel.items) == 2


def test_fetch_feed_rejects_other_schemes():
    with pytest.raises(ValueError):
        fetch_feed("ftp://example.com/feed.xml")