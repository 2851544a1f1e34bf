"""Tests for models.py: document conversion."""

from datetime import datetime, timezone

from conftest import BASE_TIME
from feedrelay.models import Destination, FeedSubscription, RemoteItem


def test_destination_document_round_trip():
    destination = Destination(
        id="chan-1",
        feeds=[FeedSubscription(
            blog_name="Example",
            feed_url="https://example.com/feed",
            last_delivered_at=BASE_TIME,
            last_delivered_id="https://example.com/post-1",
            total_delivered=4,
        )],
    )

    restored = Destination.from_document(destination.to_document(), version=3)

    assert restored.feeds == destination.feeds
    assert restored.created_at == destination.created_at
    assert restored.version == 3


def test_legacy_layout_is_read():
    doc = {
        "_id": "chan-1",
        "feeds": [{
            "blogName": "Example",
            "rssUrl": "https://example.com/feed",
            "lastSentTime": "2026-02-13T12:00:00",
            "lastPostLink": "https://example.com/post-1",
            "totalPostsSent": 7,
        }],
    }

    destination = Destination.from_document(doc)
    feed = destination.feeds[0]

    assert destination.id == "chan-1"
    assert feed.feed_url == "https://example.com/feed"
    assert feed.last_delivered_at == datetime(2026, 2, 13, 12, 0, tzinfo=timezone.utc)
    assert feed.last_delivered_id == "https://example.com/post-1"
    assert feed.total_delivered == 7


def test_legacy_title_cursor_is_dropped():
    feed = FeedSubscription.from_document({
        "blogName": "Example",
        "rssUrl": "https://example.com/feed",
        "lastSentTime": "2026-02-13T12:00:00+00:00",
        "lastPostTitle": "Some Post",
    })

    assert feed.last_delivered_id == ""
    assert feed.last_delivered_at == BASE_TIME


def test_item_identifier_fallback():
    assert RemoteItem(title="t", link="https://x", guid="g").identifier == "https://x"
    assert RemoteItem(title="t", guid="g").identifier == "g"
    assert RemoteItem(title="t").identifier == "t"
