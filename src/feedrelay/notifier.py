"""Discord message delivery for Feed Relay."""

import logging

import httpx

from feedrelay.config import DEFAULT_API_BASE
from feedrelay.models import RemoteItem

logger = logging.getLogger(__name__)


class NotifyError(Exception):
    """Raised when a message could not be delivered."""


def render_message(blog_name: str, item: RemoteItem) -> str:
    """Render the three-line message body for a forwarded item."""
    return f"{blog_name}\n{item.title}\n{item.link or ''}"


class DiscordNotifier:
    """Posts messages to Discord channels through the bot REST API.

    Create once per run and reuse for every send; close with ``aclose``.
    """

    def __init__(
        self,
        bot_token: str,
        api_base: str = DEFAULT_API_BASE,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._bot_token = bot_token
        self.api_base = api_base.rstrip("/")
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    @classmethod
    def from_settings(cls, settings) -> "DiscordNotifier":
        return cls(
            bot_token=settings.bot_token,
            api_base=settings.api_base,
            timeout=settings.request_timeout,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def send(self, destination_id: str, content: str) -> None:
        """Send one message to a channel.

        Args:
            destination_id: The Discord channel id.
            content: Message body.

        Raises:
            NotifyError: If the token is missing, the request fails, or Discord
                answers with a non-2xx status.
        """
        if not self._bot_token:
            raise NotifyError("DISCORD_BOT_TOKEN is not set")

        url = f"{self.api_base}/channels/{destination_id}/messages"
        try:
            response = await self._client.post(
                url,
                json={"content": content},
                headers={"Authorization": f"Bot {self._bot_token}"},
            )
        except httpx.HTTPError as e:
            raise NotifyError(f"Failed to send message to {destination_id}: {e}") from e

        if not response.is_success:
            raise NotifyError(
                f"Discord API returned HTTP {response.status_code} for channel {destination_id}"
            )
        logger.debug("Sent message to channel %s", destination_id)
