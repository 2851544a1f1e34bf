"""RSS/Atom feed fetching and parsing using httpx and feedparser."""

import asyncio
import calendar
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from time import struct_time
from urllib.parse import urlparse

import feedparser
import httpx

from feedrelay.config import DEFAULT_USER_AGENT
from feedrelay.models import RemoteItem

logger = logging.getLogger(__name__)

MAX_ITEMS = 50
MAX_ATTEMPTS = 3


@dataclass
class ParsedFeed:
    """Result of parsing an RSS/Atom feed."""

    title: str
    site_link: str | None
    items: list[RemoteItem]
    warnings: list[str]


class FeedFetchError(Exception):
    """Raised when a feed cannot be fetched or parsed."""


class FeedFetcher:
    """Fetches feeds over HTTP with bounded retries.

    The underlying client skips TLS verification: upstream blogs often serve
    incomplete certificate chains, and feed content is only displayed.
    """

    def __init__(
        self,
        timeout: float = 30.0,
        retry_backoff: float = 2.0,
        user_agent: str = DEFAULT_USER_AGENT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.retry_backoff = retry_backoff
        self._client = httpx.AsyncClient(
            timeout=timeout,
            verify=False,
            follow_redirects=True,
            headers={"User-Agent": user_agent},
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings) -> "FeedFetcher":
        return cls(
            timeout=settings.request_timeout,
            retry_backoff=settings.retry_backoff,
            user_agent=settings.user_agent,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def fetch(self, url: str, label: str | None = None) -> list[RemoteItem]:
        """Fetch a feed's items, retrying up to three times.

        Attempt ``k`` that fails (for ``k`` < 3) is followed by a sleep of
        ``k * retry_backoff`` seconds.

        Args:
            url: The feed URL.
            label: Name used in log messages. Defaults to the URL.

        Returns:
            Items in newest-first order.

        Raises:
            FeedFetchError: If every attempt failed.
        """
        label = label or url
        last_error: FeedFetchError | None = None

        for attempt in range(1, MAX_ATTEMPTS + 1):
            try:
                parsed = await self.fetch_once(url)
                return parsed.items
            except FeedFetchError as e:
                last_error = e
                if attempt < MAX_ATTEMPTS:
                    wait = attempt * self.retry_backoff
                    logger.warning(
                        "Failed to fetch feed '%s' (attempt %d/%d): %s. Retrying in %.1fs",
                        label, attempt, MAX_ATTEMPTS, e, wait,
                    )
                    await asyncio.sleep(wait)

        logger.warning(
            "Failed to fetch feed '%s' after %d attempts: %s",
            label, MAX_ATTEMPTS, last_error,
        )
        raise FeedFetchError(
            f"{label}: gave up after {MAX_ATTEMPTS} attempts: {last_error}"
        ) from last_error

    async def fetch_once(self, url: str) -> ParsedFeed:
        """Fetch and parse a feed with a single request.

        Raises:
            FeedFetchError: If the URL is invalid, unreachable, or not a valid feed.
        """
        _validate_url(url)

        try:
            response = await self._client.get(url)
        except httpx.InvalidURL as e:
            raise FeedFetchError(f"Invalid URL format: {e}") from e
        except httpx.HTTPError as e:
            raise FeedFetchError(f"Could not reach URL: {e}") from e

        if response.status_code in (401, 403):
            raise FeedFetchError(
                "Feed requires authentication. Ensure the URL is publicly accessible."
            )
        if response.status_code >= 400:
            raise FeedFetchError(f"Could not reach URL: HTTP {response.status_code}")

        return parse_feed(response.content)


def parse_feed(content: bytes | str) -> ParsedFeed:
    """Parse an RSS or Atom document.

    Raises:
        FeedFetchError: If the document is neither an RSS nor an Atom feed.
    """
    parsed = feedparser.parse(content)

    if not parsed.feed.get("title") and not parsed.entries:
        raise FeedFetchError("URL does not point to a valid RSS or Atom feed")

    warnings: list[str] = []
    if parsed.bozo:
        warnings.append(f"Feed has formatting issues: {parsed.bozo_exception}")

    items = _extract_items(parsed.entries, warnings)

    return ParsedFeed(
        title=parsed.feed.get("title", ""),
        site_link=parsed.feed.get("link"),
        items=items[:MAX_ITEMS],
        warnings=warnings,
    )


def _validate_url(url: str) -> None:
    """Validate that the URL has a valid format."""
    try:
        result = urlparse(url)
    except ValueError:
        raise FeedFetchError("Invalid URL format")
    if not result.scheme or not result.netloc:
        raise FeedFetchError("Invalid URL format")
    if result.scheme not in ("http", "https"):
        raise FeedFetchError("Invalid URL format: only http and https are supported")


def _extract_items(entries: list, warnings: list[str]) -> list[RemoteItem]:
    """Extract items from feedparser entries, keeping document order."""
    items = []
    for entry in entries:
        link = entry.get("link")
        guid = entry.get("id") or entry.get("guid")
        title = entry.get("title", "")
        if not (link or guid or title):
            warnings.append("Skipping entry with no identifier")
            continue

        items.append(RemoteItem(
            title=title or "Untitled",
            link=link,
            published_at=_parse_date(entry),
            guid=guid,
        ))

    # Feeds that list oldest first are normalised, but only when every
    # item is dated; otherwise the document order is the best signal.
    if items and all(item.published_at for item in items):
        items.sort(key=lambda x: x.published_at, reverse=True)
    return items


def _parse_date(entry: dict) -> datetime | None:
    """Parse publication date from a feedparser entry (feedparser yields UTC)."""
    for field in ("published_parsed", "updated_parsed"):
        time_struct = entry.get(field)
        if isinstance(time_struct, struct_time):
            try:
                return datetime.fromtimestamp(calendar.timegm(time_struct), tz=timezone.utc)
            except (ValueError, OverflowError):
                continue
    return None
