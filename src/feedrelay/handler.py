"""Scheduler entry point for Feed Relay."""

import asyncio
import logging

from feedrelay.config import Settings
from feedrelay.database import StoreError
from feedrelay.poller import run_with_settings

logger = logging.getLogger(__name__)


def handle_event(event: dict | None = None, context=None, settings: Settings | None = None) -> dict:
    """Handle one scheduled trigger.

    The event payload is not used; any trigger runs the same pass.

    Returns:
        ``{"statusCode": 200, "body": <summary>}``.

    Raises:
        StoreError: If the store cannot be opened or enumerated. The
            invocation as a whole fails in that case.
    """
    settings = settings or Settings.from_env()

    try:
        report = asyncio.run(run_with_settings(settings))
    except StoreError as e:
        logger.error("Run failed: %s", e)
        raise

    logger.info(report.message)
    return {"statusCode": 200, "body": report.message}
