"""Shared test fixtures for Feed Relay tests."""

import os
import tempfile
from datetime import datetime, timedelta, timezone

import pytest

from feedrelay.config import FeedSource, Settings
from feedrelay.database import Database
from feedrelay.feed_parser import FeedFetchError, ParsedFeed
from feedrelay.models import RemoteItem
from feedrelay.notifier import NotifyError


SAMPLE_RSS_XML = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>Test Feed</title>
    <link>https://example.com</link>
    <description>A test RSS feed</description>
    <item>
      <title>Second Article</title>
      <link>https://example.com/article-2</link>
      <guid>article-2</guid>
      <pubDate>Fri, 13 Feb 2026 10:00:00 GMT</pubDate>
    </item>
    <item>
      <title>First Article</title>
      <link>https://example.com/article-1</link>
      <guid>article-1</guid>
      <pubDate>Fri, 13 Feb 2026 09:00:00 GMT</pubDate>
    </item>
  </channel>
</rss>"""

SAMPLE_ATOM_XML = """<?xml version="1.0" encoding="UTF-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>Test Atom Feed</title>
  <link href="https://example.com"/>
  <subtitle>A test Atom feed</subtitle>
  <entry>
    <title>Atom Entry 1</title>
    <link href="https://example.com/entry-1"/>
    <id>urn:uuid:entry-1</id>
    <updated>2026-02-13T08:00:00Z</updated>
  </entry>
  <entry>
    <title>Atom Entry 2</title>
    <link href="https://example.com/entry-2"/>
    <id>urn:uuid:entry-2</id>
    <updated>2026-02-13T10:00:00Z</updated>
  </entry>
</feed>"""

SAMPLE_UNDATED_RSS_XML = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>Undated Feed</title>
    <link>https://example.com</link>
    <item>
      <title>Newest</title>
      <link>https://example.com/newest</link>
    </item>
    <item>
      <title>Dated</title>
      <link>https://example.com/dated</link>
      <pubDate>Fri, 13 Feb 2026 09:00:00 GMT</pubDate>
    </item>
  </channel>
</rss>"""

SAMPLE_NOT_A_FEED_XML = """<?xml version="1.0" encoding="UTF-8"?>
<html>
  <body>This is not a feed</body>
</html>"""

BASE_TIME = datetime(2026, 2, 13, 12, 0, tzinfo=timezone.utc)


def make_item(name: str, hours_ago: float | None = None) -> RemoteItem:
    """Build a RemoteItem whose link is derived from ``name``."""
    published = None if hours_ago is None else BASE_TIME - timedelta(hours=hours_ago)
    return RemoteItem(
        title=f"Post {name}",
        link=f"https://blog.example.com/{name}",
        published_at=published,
    )


class FakeFetcher:
    """In-memory feed fetcher keyed by URL.

    A URL mapped to an exception instance raises it on every call. Unknown
    URLs raise FeedFetchError.
    """

    def __init__(self, feeds: dict | None = None):
        self.feeds = feeds or {}
        self.calls: list[str] = []

    def _lookup(self, url: str) -> list[RemoteItem]:
        self.calls.append(url)
        outcome = self.feeds.get(url, FeedFetchError(f"unknown feed {url}"))
        if isinstance(outcome, BaseException):
            raise outcome
        return list(outcome)

    async def fetch(self, url: str, label: str | None = None) -> list[RemoteItem]:
        return self._lookup(url)

    async def fetch_once(self, url: str) -> ParsedFeed:
        return ParsedFeed(
            title=f"Feed at {url}", site_link=None, items=self._lookup(url), warnings=[]
        )


class FakeNotifier:
    """Records sent messages; items whose link is in ``failing_links`` raise NotifyError."""

    def __init__(self, failing_links: set[str] | None = None):
        self.sent: list[tuple[str, str]] = []
        self.failing_links = failing_links or set()

    async def send(self, destination_id: str, content: str) -> None:
        if any(content.endswith(link) for link in self.failing_links):
            raise NotifyError("boom")
        self.sent.append((destination_id, content))

    def links_for(self, destination_id: str) -> list[str]:
        return [
            content.splitlines()[-1]
            for dest, content in self.sent
            if dest == destination_id
        ]


@pytest.fixture
def tmp_db_path():
    """Provide a temporary SQLite database path."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        path = f.name
    yield path
    for suffix in ("", "-wal", "-shm"):
        try:
            os.unlink(path + suffix)
        except OSError:
            pass


@pytest.fixture
def db(tmp_db_path):
    """A connected database on a temporary file."""
    database = Database(tmp_db_path)
    database.connect()
    yield database
    database.close()


@pytest.fixture
def settings(tmp_db_path):
    """Settings with every pacing delay disabled and a one-feed catalog."""
    return Settings(
        db_path=tmp_db_path,
        bot_token="test-token",
        catalog=(FeedSource("Example Blog", "https://blog.example.com/feed"),),
        retry_backoff=0,
        send_pause=0,
        fetch_pause=0,
        seed_pause=0,
    )


@pytest.fixture
def sample_rss_xml():
    return SAMPLE_RSS_XML


@pytest.fixture
def sample_atom_xml():
    return SAMPLE_ATOM_XML


@pytest.fixture
def sample_undated_rss_xml():
    return SAMPLE_UNDATED_RSS_XML


@pytest.fixture
def sample_not_a_feed_xml():
    return SAMPLE_NOT_A_FEED_XML
