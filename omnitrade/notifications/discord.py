"""Discord webhook channel."""

from __future__ import annotations

import httpx

from omnitrade.config import settings

EMBED_COLOR = 0x00B386
MAX_TITLE = 256
MAX_DESCRIPTION = 4096


def is_configured() -> bool:
    return bool(settings.discord_webhook_url)


def post_embed(title: str, message: str) -> None:
    """Post one embed to the webhook. Raises httpx.HTTPError on failure."""
    payload = {
        "embeds": [
            {
                "title": title[:MAX_TITLE],
                "description": message[:MAX_DESCRIPTION],
                "color": EMBED_COLOR,
            }
        ]
    }
    resp = httpx.post(
        settings.discord_webhook_url, json=payload, timeout=settings.http_timeout_sec
    )
    resp.raise_for_status()
