import threading
from datetime import timedelta
from unittest import mock

import pytest

from gatorfeed.app import Command, CommandError, State
from gatorfeed.config import Config
from gatorfeed.database import connect
from gatorfeed.models import NotFoundError
from gatorfeed.rss import RSSChannel, RSSFeed, RSSItem
from gatorfeed.scraper import handler_agg, parse_duration, scrape_feed, scrape_feeds

FEED_URL = "https://blog.example.com/rss"
PUB_DATE = "Mon, 02 Jan 2006 15:04:05 -0700"


class _Stop(Exception):
    pass


@pytest.fixture
def state(tmp_path):
    db = connect(tmp_path / "gator.db")
    cfg = Config(db_url="sqlite", path=tmp_path / "config.json")
    yield State(db=db, cfg=cfg)
    db.close()


def _items():
    return [
        RSSItem(title="One", link="https://blog.example.com/1", pub_date=PUB_DATE),
        RSSItem(
            title="Two",
            link="https://blog.example.com/2",
            description="Second post",
            pub_date="not a date",
        ),
    ]


def _fetcher(items):
    def fetch(url):
        return RSSFeed(channel=RSSChannel(title="Blog", items=list(items)))

    return fetch


def _feed(state, url=FEED_URL, name="Blog"):
    try:
        user = state.db.get_user_by_name("alice")
    except NotFoundError:
        user = state.db.create_user("alice")
    return state.db.create_feed(name, url, user.id)


def test_parse_duration_minute():
    assert parse_duration("1m") == timedelta(minutes=1)


def test_parse_duration_invariants():
    assert parse_duration("1h30m") == parse_duration("90m")
    assert parse_duration("1.5s") == parse_duration("1500ms")
    assert parse_duration("-2s") == -parse_duration("2s")
    assert parse_duration("+2s") == parse_duration("2s")
    assert parse_duration("0") == timedelta(0)
    assert parse_duration("1000us") == parse_duration("1ms")


@pytest.mark.parametrize("text", ["", "abc", "5", "3x", ".s", "-", "1s2"])
def test_parse_duration_rejects(text):
    with pytest.raises(ValueError, match="^time: "):
        parse_duration(text)


def test_parse_duration_unknown_unit_message():
    with pytest.raises(ValueError, match='unknown unit "x"'):
        parse_duration("3x")


def test_scrape_feed_stores_posts(state, capsys):
    feed = _feed(state)
    stored = scrape_feed(state, feed, _fetcher(_items()))
    assert stored == 2
    first = state.db.get_post_by_url("https://blog.example.com/1")
    assert first.description is None
    assert first.published_at == _items()[0].parse_pub_date()
    second = state.db.get_post_by_url("https://blog.example.com/2")
    assert second.description == "Second post"
    assert second.published_at is None
    assert state.db.get_feed_by_url(FEED_URL).last_fetched_at is not None
    assert "Found 2 posts in Blog" in capsys.readouterr().out


def test_scrape_feed_ignores_duplicates(state, capsys):
    feed = _feed(state)
    scrape_feed(state, feed, _fetcher(_items()))
    capsys.readouterr()
    assert scrape_feed(state, feed, _fetcher(_items())) == 0
    assert "Error creating post" not in capsys.readouterr().out


def test_scrape_feed_fetch_error(state, capsys):
    feed = _feed(state)

    def failing(url):
        raise OSError("connection refused")

    assert scrape_feed(state, feed, failing) == 0
    assert "Error fetching feed Blog: connection refused" in capsys.readouterr().out
    assert state.db.get_feed_by_url(FEED_URL).last_fetched_at is not None


def test_scrape_feeds_without_feeds(state, capsys):
    assert scrape_feeds(state, 3, _fetcher([])) == []
    assert "No feeds to fetch" in capsys.readouterr().out


def test_scrape_feeds_limits_and_rotates(state):
    urls = [f"https://feed{n}.example.com/rss" for n in range(3)]
    for n, url in enumerate(urls):
        _feed(state, url, name=f"Feed {n}")
    fetched = []
    lock = threading.Lock()

    def fetch(url):
        with lock:
            fetched.append(url)
        return RSSFeed()

    first = scrape_feeds(state, 2, fetch)
    assert len(first) == 2
    assert sorted(fetched) == sorted(feed.url for feed in first)
    second = scrape_feeds(state, 1, fetch)
    assert [feed.url for feed in second] == list(set(urls) - {f.url for f in first})


def test_agg_requires_interval(state):
    with pytest.raises(CommandError, match="time_between_reqs is required"):
        handler_agg(state, Command("agg"))


def test_agg_invalid_duration(state):
    with pytest.raises(CommandError, match="^invalid duration: "):
        handler_agg(state, Command("agg", ["soon"]))


@pytest.mark.parametrize("value", ["0", "-1", "abc"])
def test_agg_invalid_concurrency(state, value):
    with pytest.raises(CommandError, match=f"invalid concurrency value: {value}"):
        handler_agg(state, Command("agg", ["1s", value]))


def test_agg_non_positive_interval(state):
    with pytest.raises(CommandError, match="non-positive interval"):
        handler_agg(state, Command("agg", ["0"]))


def test_agg_loops_until_interrupted(state, capsys):
    with mock.patch("gatorfeed.scraper.time.sleep", side_effect=_Stop) as sleep:
        with pytest.raises(_Stop):
            handler_agg(state, Command("agg", ["90s"]))
    out = capsys.readouterr().out
    assert "Collecting feeds every 1m30s with concurrency 5" in out
    assert "No feeds to fetch" in out
    (waited,), _ = sleep.call_args
    assert 0 <= waited <= 90


def test_agg_reports_subsecond_interval(state, capsys):
    with mock.patch("gatorfeed.scraper.time.sleep", side_effect=_Stop):
        with pytest.raises(_Stop):
            handler_agg(state, Command("agg", ["500ms", "3"]))
    assert "every 500ms with concurrency 3" in capsys.readouterr().out