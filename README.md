# gatorfeed

`gatorfeed` is a command-line RSS aggregator. Users register, add and follow
feeds, and a long-running collector fetches those feeds and stores their posts
in a local SQLite database. Users can then browse, search and bookmark posts, or
open them from a small interactive terminal reader.

It needs nothing beyond the Python standard library.

## Installation

```
pip install .
```

This installs the `gator` command.

## Configuration

`gator` reads a JSON file named `.gatorconfig.json` in your home directory. The
file must exist before the first command is run:

```json
{
  "db_url": "/path/to/gator.db",
  "current_user_name": ""
}
```

`db_url` is the path of the SQLite database file, given either as a plain path
or as `sqlite:///path/to/gator.db`. It must not be empty. The file and its
tables are created on first use. `current_user_name` is written for you by
`register` and `login`.

## Commands

```
gator register alice           # create a user and make it current
gator login alice              # switch to an existing user
gator users                    # list users, marking the current one
gator reset                    # delete every user and everything that belongs to them

gator addfeed "Example" https://example.com/rss.xml   # add a feed and follow it
gator feeds                    # list all feeds and who added them
gator follow https://example.com/rss.xml
gator following                # feeds the current user follows
gator unfollow https://example.com/rss.xml

gator agg 1m                   # fetch feeds every minute, 5 at a time
gator agg 30s 10               # fetch every 30 seconds, 10 at a time

gator browse                   # latest 10 posts from followed feeds
gator browse 25                # a bare first argument is the number of posts
gator browse --limit=20 --offset=20 --sort=title --feed=example
gator browse --help
gator search python release    # search titles, descriptions and feed names

gator bookmark https://example.com/posts/1
gator unbookmark https://example.com/posts/1
gator bookmarks                # up to 20 bookmarks, newest first
gator bookmarks 5

gator tui                      # interactive reader
```

Commands that act for a user (`addfeed`, `follow`, `following`, `unfollow`,
`browse`, `search`, `bookmark`, `unbookmark`, `bookmarks`, `tui`) use the
current user from the configuration file. On any error `gator` prints
`Error: ...` and exits with status 1.

### Browsing and searching

`browse --sort=` accepts `published_desc` (the default), `published`, `title`,
`title_desc`, `feed` and `feed_desc`; any other value is an error. `--feed=`
keeps only posts whose feed name contains the given text, ignoring ASCII case.
Limits and offsets that are not valid numbers are ignored and the defaults are
used. When a full page is shown, `browse` prints the `--offset=` to use for the
next page. Descriptions longer than 150 characters are shortened.

`search` joins its arguments into one query and shows up to 20 matching posts:
title matches first, then feed-name matches, then description matches.

### The collector

`gator agg` takes the time between rounds as a duration such as `500ms`, `10s`,
`1m` or `1h30m`, and an optional positive number of feeds to fetch at once (5 by
default). Each round picks the feeds fetched least recently (never-fetched feeds
first), fetches them concurrently and stores their posts; posts whose link is
already stored are skipped. Errors with one feed are printed and do not stop the
others. It runs until interrupted.

### The terminal reader

`gator tui` shows your ten latest posts. Type a post's number to open it in your
web browser (`xdg-open`, `open` or `start`, depending on the platform), `r` to
refresh, `s` to search, `b` to show your bookmarks and `q` to quit.

## Using it as a library

The pieces behind the command are importable:

- `gatorfeed.rss.parse_feed` parses an RSS document and `gatorfeed.rss.fetch_feed`
  downloads and parses one; `RSSItem.parse_pub_date` reads the common date
  layouts.
- `gatorfeed.database.connect(path)` opens the SQLite store and returns a
  `Queries` object with methods such as `create_user`, `create_feed`,
  `create_feed_follow`, `create_post`, `get_posts_for_user_with_pagination`,
  `search_posts_for_user` and `get_bookmarks_for_user`. Failures raise
  `gatorfeed.models.DatabaseError`, `NotFoundError` or `DuplicateError`.
- `gatorfeed.config.read` and `gatorfeed.config.write` load and save the
  configuration file.
- `gatorfeed.cli.main(argv)` runs one command from a list of arguments and
  returns the exit status.

## What it does not do

Storage is a single local SQLite file only; `gator` does not connect to a
database server. Users have no passwords: anyone with access to the
configuration file can `login` as any registered user.

## Running the tests

```
pip install ".[test]"
pytest
```