"""Payload helpers shared by every tool function.

A tool returns {"ok": True, "data": {...}} or
{"ok": False, "error": {"code", "message", "data"}}. Expected failures are
TradingError subclasses; anything else is a bug and propagates.
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from omnitrade.errors import TradingError

logger = logging.getLogger(__name__)


def ok(data: dict[str, Any] | None = None) -> dict[str, Any]:
    return {"ok": True, "data": data or {}}


def err(code: str, message: str, data: dict[str, Any] | None = None) -> dict[str, Any]:
    return {"ok": False, "error": {"code": code, "message": message, "data": data or {}}}


def tool(fn: Callable[..., dict[str, Any]]) -> Callable[..., dict[str, Any]]:
    """Turn a raised TradingError into an error payload."""

    @functools.wraps(fn)
    def wrapper(*args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except TradingError as e:
            logger.warning("%s failed [%s]: %s", fn.__name__, e.code, e.message)
            return err(e.code, e.message, e.data)

    return wrapper


def usd(value: float) -> float:
    return round(value, 2)


def qty(value: float) -> float:
    return round(value, 8)


def pct(value: float, places: int = 2) -> float:
    return round(value, places)


def iso(ts_ms: int | None) -> str | None:
    if ts_ms is None:
        return None
    return datetime.fromtimestamp(ts_ms / 1000, tz=timezone.utc).isoformat()
