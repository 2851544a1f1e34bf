"""Dedup and forwarding of new feed items for one destination."""

import asyncio
import logging
from dataclasses import dataclass

from feedrelay.config import Settings
from feedrelay.feed_parser import FeedFetchError
from feedrelay.models import Destination, FeedSubscription, RemoteItem, utcnow
from feedrelay.notifier import NotifyError, render_message

logger = logging.getLogger(__name__)


@dataclass
class ForwardResult:
    """Outcome of processing one destination."""

    destination: Destination
    new_items: int
    needs_update: bool


async def process_destination(
    destination: Destination,
    fetcher,
    notifier,
    settings: Settings,
) -> ForwardResult:
    """Forward every undelivered item of a destination's feeds.

    Subscriptions are handled one after another in stored order. A feed that
    cannot be fetched is skipped for this run; a message that cannot be sent
    is skipped without retry. Cursor fields on ``destination`` are updated in
    place.

    Args:
        destination: The destination to process. Mutated in place.
        fetcher: Object with ``async fetch(url, label) -> list[RemoteItem]``.
        notifier: Object with ``async send(destination_id, content)``.
        settings: Supplies the pacing delays.

    Returns:
        ForwardResult with the count of items sent and whether the
        destination must be written back.
    """
    total_new = 0

    for subscription in destination.feeds:
        try:
            items = await fetcher.fetch(subscription.feed_url, label=subscription.blog_name)
        except FeedFetchError as e:
            logger.warning(
                "Skipping feed '%s' for destination %s: %s",
                subscription.blog_name, destination.id, e,
            )
            continue
        except Exception as e:
            logger.warning(
                "Feed '%s' for destination %s unexpected error: %s",
                subscription.blog_name, destination.id, e,
            )
            continue

        if settings.fetch_pause:
            await asyncio.sleep(settings.fetch_pause)

        fresh = select_new_items(subscription, items)
        if not fresh:
            continue

        sent = await _forward_items(destination.id, subscription, fresh, notifier, settings)
        if sent:
            logger.info(
                "Feed '%s': %d new items for destination %s",
                subscription.blog_name, sent, destination.id,
            )
        total_new += sent

    if total_new:
        destination.touch()

    return ForwardResult(
        destination=destination,
        new_items=total_new,
        needs_update=total_new > 0,
    )


def select_new_items(
    subscription: FeedSubscription, items: list[RemoteItem]
) -> list[RemoteItem]:
    """Return the items not yet delivered for a subscription, newest first.

    The walk stops at the item matching the stored cursor id. Before that
    point, items dated strictly before the stored cursor time are skipped
    (feeds sometimes return entries out of order). Undated items are kept.
    """
    fresh = []
    for item in items:
        if subscription.last_delivered_id and item.identifier == subscription.last_delivered_id:
            break
        if (
            item.published_at is not None
            and subscription.last_delivered_at is not None
            and item.published_at < subscription.last_delivered_at
        ):
            continue
        fresh.append(item)
    return fresh


async def _forward_items(
    destination_id: str,
    subscription: FeedSubscription,
    fresh: list[RemoteItem],
    notifier,
    settings: Settings,
) -> int:
    """Send items oldest first and advance the cursor to the newest one sent."""
    sent = 0
    newest_sent: RemoteItem | None = None

    for item in reversed(fresh):
        try:
            await notifier.send(destination_id, render_message(subscription.blog_name, item))
        except NotifyError as e:
            logger.warning(
                "Failed to send item '%s' from '%s' to destination %s: %s",
                item.title, subscription.blog_name, destination_id, e,
            )
        else:
            sent += 1
            newest_sent = item

        if settings.send_pause:
            await asyncio.sleep(settings.send_pause)

    if newest_sent is not None:
        subscription.last_delivered_id = newest_sent.identifier
        subscription.last_delivered_at = newest_sent.published_at or utcnow()
        subscription.total_delivered += sent

    return sent
