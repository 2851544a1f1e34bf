"""First-run seeding of configured destinations."""

import asyncio
import logging
from typing import Iterable

from feedrelay.config import FeedSource
from feedrelay.database import Database, StoreError
from feedrelay.feed_parser import FeedFetchError, ParsedFeed
from feedrelay.models import Destination, FeedSubscription, utcnow

logger = logging.getLogger(__name__)


async def ensure_destinations(
    db: Database,
    fetcher,
    destination_ids: Iterable[str],
    catalog: Iterable[FeedSource],
    seed_pause: float = 0.1,
) -> list[str]:
    """Create any configured destination that is not stored yet.

    New destinations get one subscription per catalog feed, with the cursor
    set to the feed's current newest item so existing history is never
    replayed. Safe to call on every run.

    Args:
        db: Connected destination store.
        fetcher: Object with ``async fetch_once(url) -> ParsedFeed``.
        destination_ids: Ids that should exist. Blank ids are ignored.
        catalog: Feeds to seed new destinations with.
        seed_pause: Delay after each seed fetch.

    Returns:
        Ids of the destinations created by this call.
    """
    catalog = list(catalog)
    created = []

    for destination_id in destination_ids:
        destination_id = destination_id.strip()
        if not destination_id:
            continue

        try:
            if db.has_destination(destination_id):
                continue
        except StoreError as e:
            logger.error("Error checking destination %s: %s", destination_id, e)
            continue

        feeds = await asyncio.gather(
            *(seed_subscription(fetcher, source, seed_pause) for source in catalog)
        )
        now = utcnow()
        destination = Destination(
            id=destination_id, feeds=list(feeds), created_at=now, updated_at=now
        )

        try:
            inserted = db.insert_destination(destination)
        except StoreError as e:
            logger.error("Failed to create destination %s: %s", destination_id, e)
            continue

        if inserted:
            created.append(destination_id)
            logger.info(
                "Initialized destination %s with %d default feeds",
                destination_id, len(feeds),
            )

    return created


async def seed_subscription(
    fetcher, source: FeedSource, seed_pause: float = 0.0
) -> FeedSubscription:
    """Build a subscription positioned at the feed's current newest item.

    Any error while fetching is tolerated: the cursor id stays empty and the cursor
    time is the current time.
    """
    parsed = None
    try:
        parsed = await fetcher.fetch_once(source.url)
    except FeedFetchError as e:
        logger.warning("Failed to fetch feed '%s' during initialization: %s", source.name, e)
    except Exception as e:
        logger.warning("Feed '%s' unexpected error during initialization: %s", source.name, e)

    if seed_pause:
        await asyncio.sleep(seed_pause)
    return position_at_newest(source, parsed)


def position_at_newest(source: FeedSource, parsed: ParsedFeed | None) -> FeedSubscription:
    """Create a subscription whose cursor points at the newest item of ``parsed``."""
    now = utcnow()
    subscription = FeedSubscription(
        blog_name=source.name,
        feed_url=source.url,
        added_at=now,
        last_delivered_at=now,
    )
    if parsed is not None and parsed.items:
        newest = parsed.items[0]
        subscription.last_delivered_id = newest.identifier
        subscription.last_delivered_at = newest.published_at or now
    return subscription
