"""Run driver: one polling pass over every destination."""

import asyncio
import logging
from dataclasses import dataclass, field

from feedrelay.bootstrap import ensure_destinations
from feedrelay.config import Settings
from feedrelay.database import Database, StoreError, WriteConflictError
from feedrelay.dispatcher import run_bounded
from feedrelay.feed_parser import FeedFetcher
from feedrelay.forwarder import ForwardResult, process_destination
from feedrelay.models import Destination
from feedrelay.notifier import DiscordNotifier

logger = logging.getLogger(__name__)


@dataclass
class RunReport:
    """Summary of one run."""

    total_delivered: int = 0
    destinations: int = 0
    failed: list[str] = field(default_factory=list)

    @property
    def message(self) -> str:
        if self.total_delivered == 0:
            return "No new feed items found across all destinations"
        return f"Delivered {self.total_delivered} new feed items across all destinations"


async def run_once(db: Database, fetcher, notifier, settings: Settings) -> RunReport:
    """Run one full pass: seed, load, fan out, write back, aggregate.

    Args:
        db: Connected destination store.
        fetcher: Feed fetcher (see ``FeedFetcher``).
        notifier: Message sender (see ``DiscordNotifier``).
        settings: Run settings.

    Returns:
        RunReport with the number of items delivered.

    Raises:
        StoreError: If the destinations cannot be enumerated.
    """
    await ensure_destinations(
        db,
        fetcher,
        settings.default_destination_ids,
        settings.catalog,
        seed_pause=settings.seed_pause,
    )

    destinations = db.get_all_destinations()

    async def handle(destination: Destination) -> ForwardResult:
        result = await process_destination(destination, fetcher, notifier, settings)
        if result.needs_update:
            _write_back(db, result.destination)
        return result

    results = await run_bounded(destinations, handle, limit=settings.max_concurrency)

    report = RunReport(destinations=len(destinations))
    for destination, result in zip(destinations, results):
        if isinstance(result, BaseException):
            logger.error(
                "Error processing destination %s: %r", destination.id, result,
                exc_info=result,
            )
            report.failed.append(destination.id)
            continue

        report.total_delivered += result.new_items
        logger.info(
            "Processed %d new items for destination %s", result.new_items, destination.id
        )

    return report


def _write_back(db: Database, destination: Destination) -> None:
    """Persist a processed destination; failures are logged, not raised."""
    try:
        db.replace_destination(destination)
    except WriteConflictError as e:
        logger.warning(
            "Destination %s was modified concurrently, cursor update dropped: %s",
            destination.id, e,
        )
    except StoreError as e:
        logger.error("Failed to update destination %s: %s", destination.id, e)


async def run_with_settings(settings: Settings) -> RunReport:
    """Open the store and HTTP clients, run once, and release everything.

    Raises:
        StoreConnectionError: If the store cannot be opened.
        asyncio.TimeoutError: If ``settings.run_timeout`` elapses first.
    """
    db = Database(settings.db_path)
    db.connect()

    fetcher = FeedFetcher.from_settings(settings)
    notifier = DiscordNotifier.from_settings(settings)
    try:
        run = run_once(db, fetcher, notifier, settings)
        if settings.run_timeout:
            return await asyncio.wait_for(run, timeout=settings.run_timeout)
        return await run
    finally:
        await fetcher.aclose()
        await notifier.aclose()
        db.close()


async def start_polling(settings: Settings, interval: int | None = None) -> None:
    """Run the relay indefinitely, once per interval."""
    interval = interval or settings.poll_interval
    logger.info("Poller started (interval: %ds)", interval)

    while True:
        try:
            report = await run_with_settings(settings)
            if report.total_delivered > 0:
                logger.info("Poll cycle complete: %s", report.message)
        except Exception as e:
            logger.error("Poll cycle failed: %s", e)

        await asyncio.sleep(interval)
