"""Data models for Feed Relay."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


@dataclass
class FeedSubscription:
    """One feed tracked for one destination, with its delivery cursor."""

    blog_name: str
    feed_url: str
    added_at: datetime = field(default_factory=utcnow)
    last_delivered_at: datetime | None = None
    last_delivered_id: str = ""
    total_delivered: int = 0

    def to_document(self) -> dict:
        return {
            "blogName": self.blog_name,
            "feedUrl": self.feed_url,
            "addedAt": _dt_to_str(self.added_at),
            "lastDeliveredAt": _dt_to_str(self.last_delivered_at),
            "lastDeliveredId": self.last_delivered_id,
            "totalDelivered": self.total_delivered,
        }

    @classmethod
    def from_document(cls, doc: dict) -> "FeedSubscription":
        """Build a subscription from its stored document.

        Documents written by the older title-cursor layout (``rssUrl``,
        ``lastSentTime``, ``lastPostLink``, ``lastPostTitle``, ``totalPostsSent``)
        are accepted. A title cursor is deprecated and dropped; only the
        timestamp half of that cursor survives.
        """
        feed_url = doc.get("feedUrl") or doc.get("rssUrl", "")
        last_id = doc.get("lastDeliveredId")
        if last_id is None:
            last_id = doc.get("lastPostLink", "")
            if not last_id and doc.get("lastPostTitle"):
                logger.warning(
                    "Feed %s has a deprecated title cursor; keeping only its timestamp",
                    feed_url,
                )

        return cls(
            blog_name=doc.get("blogName", ""),
            feed_url=feed_url,
            added_at=_str_to_dt(doc.get("addedAt")) or utcnow(),
            last_delivered_at=_str_to_dt(
                doc.get("lastDeliveredAt", doc.get("lastSentTime"))
            ),
            last_delivered_id=last_id or "",
            total_delivered=int(doc.get("totalDelivered", doc.get("totalPostsSent", 0))),
        )


@dataclass
class Destination:
    """A delivery target (a chat channel) and its subscriptions."""

    id: str
    feeds: list[FeedSubscription] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    version: int = 0

    def touch(self) -> None:
        self.updated_at = utcnow()

    def has_feed_url(self, url: str) -> bool:
        return any(feed.feed_url == url for feed in self.feeds)

    def to_document(self) -> dict:
        return {
            "id": self.id,
            "feeds": [feed.to_document() for feed in self.feeds],
            "createdAt": _dt_to_str(self.created_at),
            "updatedAt": _dt_to_str(self.updated_at),
        }

    @classmethod
    def from_document(cls, doc: dict, version: int = 0) -> "Destination":
        return cls(
            id=doc.get("id") or doc["_id"],
            feeds=[FeedSubscription.from_document(f) for f in doc.get("feeds") or []],
            created_at=_str_to_dt(doc.get("createdAt")) or utcnow(),
            updated_at=_str_to_dt(doc.get("updatedAt")) or utcnow(),
            version=version,
        )


@dataclass
class RemoteItem:
    """A single entry from a fetched feed. Never persisted."""

    title: str
    link: str | None = None
    published_at: datetime | None = None
    guid: str | None = None

    @property
    def identifier(self) -> str:
        """Cursor key for this item: its link, else its guid, else its title."""
        return self.link or self.guid or self.title


# --- Helper functions ---


def _dt_to_str(dt: datetime | None) -> str | None:
    """Convert datetime to ISO string for storage."""
    return dt.isoformat() if dt else None


def _str_to_dt(s: str | None) -> datetime | None:
    """Convert stored ISO string back to an aware datetime."""
    if not s:
        return None
    dt = datetime.fromisoformat(s)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt
