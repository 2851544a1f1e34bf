"""Entry point for Feed Relay: python -m feedrelay"""

import argparse
import asyncio
import logging
import sys

from feedrelay.config import ConfigError, Settings
from feedrelay.database import Database, StoreError
from feedrelay.feed_parser import FeedFetcher
from feedrelay.handler import handle_event
from feedrelay.poller import start_polling
from feedrelay.subscriptions import SubscriptionError, add_feed, list_feeds, remove_feed

logger = logging.getLogger("feedrelay")


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
    )
    # Quiet noisy loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="feedrelay",
        description="Forward new RSS/Atom posts to Discord channels.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("run", help="Run one delivery pass (default)")

    poll = sub.add_parser("poll", help="Run delivery passes forever")
    poll.add_argument("--interval", type=int, help="Seconds between passes")

    add = sub.add_parser("add", help="Subscribe a channel to a feed")
    add.add_argument("channel")
    add.add_argument("url")

    remove = sub.add_parser("remove", help="Unsubscribe a channel from a feed")
    remove.add_argument("channel")
    remove.add_argument("feed", help="Position, blog name, or URL")

    listing = sub.add_parser("list", help="List a channel's feeds")
    listing.add_argument("channel")

    return parser


async def _add(settings: Settings, channel: str, url: str) -> str:
    db = Database(settings.db_path)
    db.connect()
    fetcher = FeedFetcher.from_settings(settings)
    try:
        feed = await add_feed(db, fetcher, channel, url)
    finally:
        await fetcher.aclose()
        db.close()
    return f"Added feed: {feed.blog_name}\n{feed.feed_url}"


def _remove(settings: Settings, channel: str, identifier: str) -> str:
    db = Database(settings.db_path)
    db.connect()
    try:
        feed = remove_feed(db, channel, identifier)
    finally:
        db.close()
    return f"Removed feed: {feed.blog_name}"


def _list(settings: Settings, channel: str) -> str:
    db = Database(settings.db_path)
    db.connect()
    try:
        feeds = list_feeds(db, channel)
    finally:
        db.close()

    if not feeds:
        return "No feeds registered for this channel"
    return "\n\n".join(
        f"{i}. {feed.blog_name}\n{feed.feed_url}\nPosts delivered: {feed.total_delivered}"
        for i, feed in enumerate(feeds, start=1)
    )


def main(argv: list[str] | None = None) -> int:
    """Parse arguments and dispatch to the requested command."""
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)

    try:
        settings = Settings.from_env()
    except ConfigError as e:
        logger.error("Invalid configuration: %s", e)
        return 2

    command = args.command or "run"
    try:
        if command == "run":
            print(handle_event({}, settings=settings)["body"])
        elif command == "poll":
            asyncio.run(start_polling(settings, args.interval))
        elif command == "add":
            print(asyncio.run(_add(settings, args.channel, args.url)))
        elif command == "remove":
            print(_remove(settings, args.channel, args.feed))
        elif command == "list":
            print(_list(settings, args.channel))
    except SubscriptionError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except StoreError as e:
        logger.error("Store error: %s", e)
        return 1
    except asyncio.TimeoutError:
        logger.error("Run did not finish within %ss", settings.run_timeout)
        return 1
    except KeyboardInterrupt:
        print("\nGoodbye!")

    return 0


if __name__ == "__main__":
    sys.exit(main())
