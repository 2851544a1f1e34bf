"""Subscription management: add, remove and list a destination's feeds."""

import logging

from feedrelay.bootstrap import position_at_newest
from feedrelay.config import FeedSource
from feedrelay.database import Database
from feedrelay.feed_parser import FeedFetchError
from feedrelay.models import Destination, FeedSubscription

logger = logging.getLogger(__name__)


class SubscriptionError(Exception):
    """Raised when a subscription change cannot be applied."""


class DuplicateFeedError(SubscriptionError):
    """Raised when the destination already has a feed with this URL."""


class FeedNotFoundError(SubscriptionError):
    """Raised when no subscription matches an identifier."""


async def add_feed(db: Database, fetcher, destination_id: str, url: str) -> FeedSubscription:
    """Subscribe a destination to a feed by URL.

    The feed must be reachable and carry a title, which becomes its blog name.
    The new subscription starts at the feed's current newest item, so only
    posts published afterwards are delivered. The destination is created if
    it does not exist yet.

    Args:
        db: Connected destination store.
        fetcher: Object with ``async fetch_once(url) -> ParsedFeed``.
        destination_id: The destination to subscribe.
        url: The RSS or Atom feed URL.

    Returns:
        The stored subscription.

    Raises:
        DuplicateFeedError: If the destination already tracks this URL.
        SubscriptionError: If the URL is not a usable feed.
        StoreError: If the store write fails (including a write conflict).
    """
    url = url.strip()
    if not url:
        raise SubscriptionError("Feed URL is required")

    # Check for existing subscription first
    destination = db.get_destination(destination_id)
    if destination and destination.has_feed_url(url):
        raise DuplicateFeedError(f"Already subscribed to this feed: {url}")

    try:
        parsed = await fetcher.fetch_once(url)
    except FeedFetchError as e:
        raise SubscriptionError(f"Invalid RSS feed: {e}") from e
    if not parsed.title.strip():
        raise SubscriptionError("Invalid RSS feed: feed has no title")

    subscription = position_at_newest(FeedSource(parsed.title.strip(), url), parsed)

    if destination is None:
        destination = Destination(id=destination_id, feeds=[subscription])
        if not db.insert_destination(destination):
            # Created concurrently; retry against the stored copy.
            return await add_feed(db, fetcher, destination_id, url)
    else:
        destination.feeds.append(subscription)
        destination.touch()
        db.replace_destination(destination)

    logger.info("Destination %s subscribed to '%s'", destination_id, subscription.blog_name)
    return subscription


def remove_feed(db: Database, destination_id: str, identifier: str) -> FeedSubscription:
    """Unsubscribe a destination from one feed.

    ``identifier`` is resolved as a 1-based position, then as a blog name
    (ignoring case and spaces), then as an exact feed URL.

    Returns:
        The removed subscription.

    Raises:
        FeedNotFoundError: If the destination or a matching feed does not exist.
    """
    destination = db.get_destination(destination_id)
    if destination is None or not destination.feeds:
        raise FeedNotFoundError(f"No feeds registered for destination {destination_id}")

    index = find_feed_index(destination.feeds, identifier)
    if index is None:
        raise FeedNotFoundError(f"No feed found matching '{identifier}'")

    removed = destination.feeds.pop(index)
    destination.touch()
    db.replace_destination(destination)

    logger.info("Destination %s unsubscribed from '%s'", destination_id, removed.blog_name)
    return removed


def list_feeds(db: Database, destination_id: str) -> list[FeedSubscription]:
    """Return a destination's subscriptions in stored order."""
    destination = db.get_destination(destination_id)
    return list(destination.feeds) if destination else []


def find_feed_index(feeds: list[FeedSubscription], identifier: str) -> int | None:
    """Resolve an identifier to a position in ``feeds``."""
    identifier = identifier.strip()
    if not identifier:
        return None

    if identifier.isdigit():
        position = int(identifier)
        if 1 <= position <= len(feeds):
            return position - 1

    normalized = _normalize_name(identifier)
    for i, feed in enumerate(feeds):
        if _normalize_name(feed.blog_name) == normalized:
            return i

    for i, feed in enumerate(feeds):
        if feed.feed_url == identifier:
            return i

    return None


def _normalize_name(name: str) -> str:
    return "".join(name.split()).lower()

