"""Tests for bootstrap.py: seeding configured destinations."""

import pytest

from conftest import FakeFetcher, FakeNotifier, make_item
from feedrelay.bootstrap import ensure_destinations
from feedrelay.config import FeedSource
from feedrelay.feed_parser import FeedFetchError
from feedrelay.forwarder import process_destination

CATALOG = (
    FeedSource("Alpha", "https://alpha.example.com/feed"),
    FeedSource("Beta", "https://beta.example.com/feed"),
)


@pytest.mark.asyncio
async def test_seeds_cursor_from_newest_item(db):
    newest = make_item("alpha-3", 1)
    fetcher = FakeFetcher({
        CATALOG[0].url: [newest, make_item("alpha-2", 2)],
        CATALOG[1].url: [make_item("beta-1", 4)],
    })

    created = await ensure_destinations(db, fetcher, ["chan-1"], CATALOG, seed_pause=0)

    assert created == ["chan-1"]
    destination = db.get_destination("chan-1")
    assert [f.blog_name for f in destination.feeds] == ["Alpha", "Beta"]
    alpha = destination.feeds[0]
    assert alpha.last_delivered_id == newest.link
    assert alpha.last_delivered_at == newest.published_at
    assert alpha.total_delivered == 0


@pytest.mark.asyncio
async def test_is_idempotent(db):
    fetcher = FakeFetcher({source.url: [make_item("x", 1)] for source in CATALOG})

    await ensure_destinations(db, fetcher, ["chan-1"], CATALOG, seed_pause=0)
    calls_after_first = len(fetcher.calls)
    created = await ensure_destinations(db, fetcher, ["chan-1"], CATALOG, seed_pause=0)

    assert created == []
    assert len(fetcher.calls) == calls_after_first


@pytest.mark.asyncio
async def test_fetch_failure_seeds_empty_cursor(db):
    fetcher = FakeFetcher({
        CATALOG[0].url: FeedFetchError("tls handshake failed"),
        CATALOG[1].url: [make_item("beta-1", 1)],
    })

    await ensure_destinations(db, fetcher, ["chan-1"], CATALOG, seed_pause=0)

    alpha = db.get_destination("chan-1").feeds[0]
    assert alpha.last_delivered_id == ""
    assert alpha.last_delivered_at is not None


@pytest.mark.asyncio
async def test_unexpected_seed_error_seeds_empty_cursor(db):
    fetcher = FakeFetcher({
        CATALOG[0].url: ValueError("unexpected"),
        CATALOG[1].url: [make_item("beta-1", 1)],
    })

    created = await ensure_destinations(db, fetcher, ["chan-1"], CATALOG, seed_pause=0)

    assert created == ["chan-1"]
    alpha, beta = db.get_destination("chan-1").feeds
    assert alpha.last_delivered_id == ""
    assert alpha.last_delivered_at is not None
    assert beta.last_delivered_id == "https://blog.example.com/beta-1"


@pytest.mark.asyncio
async def test_blank_ids_are_ignored(db):
    created = await ensure_destinations(db, FakeFetcher(), [" ", ""], CATALOG, seed_pause=0)

    assert created == []
    assert db.get_all_destinations() == []


@pytest.mark.asyncio
async def test_seeded_destination_does_not_replay_history(db, settings):
    history = [make_item(f"post-{n}", n) for n in range(1, 11)]
    source = FeedSource("Alpha", "https://alpha.example.com/feed")
    fetcher = FakeFetcher({source.url: history})

    await ensure_destinations(db, fetcher, ["chan-1"], [source], seed_pause=0)
    notifier = FakeNotifier()
    result = await process_destination(db.get_destination("chan-1"), fetcher, notifier, settings)

    assert result.new_items == 0
    assert notifier.sent == []

    fresh = make_item("post-new", 0)
    fetcher.feeds[source.url] = [fresh] + history
    result = await process_destination(db.get_destination("chan-1"), fetcher, notifier, settings)

    assert result.new_items == 1
    assert notifier.links_for("chan-1") == [fresh.link]
