"""Fan one notification out to every configured channel."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

import httpx

from omnitrade.notifications import discord, telegram

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotificationResult:
    channel: str
    success: bool
    error: str | None = None


def enabled_channels() -> list[str]:
    channels = []
    if telegram.is_configured():
        channels.append("telegram")
    if discord.is_configured():
        channels.append("discord")
    return channels


def _describe(exc: httpx.HTTPError) -> str:
    if isinstance(exc, httpx.HTTPStatusError):
        return f"HTTP {exc.response.status_code}"
    if isinstance(exc, httpx.TimeoutException):
        return "timed out"
    return str(exc) or type(exc).__name__


def _send_telegram(title: str, message: str) -> None:
    try:
        telegram.post_message(telegram.format_notification(title, message))
    except httpx.HTTPError as e:
        if not telegram.markdown_rejected(e):
            raise
        logger.warning("Telegram rejected the Markdown, resending as plain text")
        telegram.post_message(f"{title}\n{message}", markdown=False)


def _deliver(
    channel: str, send: Callable[[str, str], None], title: str, message: str
) -> NotificationResult:
    try:
        send(title, message)
    except httpx.HTTPError as e:
        return NotificationResult(channel, False, _describe(e))
    return NotificationResult(channel, True)


def send_notification(title: str, message: str) -> list[NotificationResult]:
    """Deliver to each configured channel. Never raises; failures are results.

    An unconfigured channel is absent from the list, so an empty list means
    nothing is set up.
    """
    results: list[NotificationResult] = []
    if telegram.is_configured():
        results.append(_deliver("telegram", _send_telegram, title, message))
    if discord.is_configured():
        results.append(_deliver("discord", discord.post_embed, title, message))

    for r in results:
        if r.success:
            logger.info("Notification sent via %s", r.channel)
        else:
            logger.warning("Notification failed via %s: %s", r.channel, r.error)
    if not results:
        logger.info("No notification channels configured")
    return results
