"""Telegram bot API channel."""

from __future__ import annotations

import httpx

from omnitrade.config import settings

TELEGRAM_API = "https://api.telegram.org/bot{token}/sendMessage"

# Markdown V1 characters that break parsing when they appear in data
_MD_V1_SPECIAL = str.maketrans(
    {"_": "\\_", "*": "\\*", "`": "\\`", "[": "\\[", "]": "\\]"}
)


def is_configured() -> bool:
    return bool(settings.telegram_bot_token and settings.telegram_chat_id)


def escape_md(text: str) -> str:
    return str(text).translate(_MD_V1_SPECIAL)


def format_notification(title: str, message: str) -> str:
    return f"*{escape_md(title)}*\n{escape_md(message)}"


def post_message(text: str, markdown: bool = True) -> None:
    """Post one message to the configured chat. Raises httpx.HTTPError on failure."""
    payload = {"chat_id": settings.telegram_chat_id, "text": text}
    if markdown:
        payload["parse_mode"] = "Markdown"
    resp = httpx.post(
        TELEGRAM_API.format(token=settings.telegram_bot_token),
        json=payload,
        timeout=settings.http_timeout_sec,
    )
    resp.raise_for_status()


def markdown_rejected(exc: httpx.HTTPError) -> bool:
    """Telegram answers 400 when it cannot parse the Markdown entities."""
    return isinstance(exc, httpx.HTTPStatusError) and exc.response.status_code == 400
