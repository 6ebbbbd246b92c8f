"""Document path resolver for the per-user data directory."""

from __future__ import annotations

from pathlib import Path

from omnitrade.config import settings

DOCUMENT_FILES = {
    "wallet": "paper-wallet.json",
    "alerts": "alerts.json",
    "conditional_orders": "conditional-orders.json",
    "dca": "dca.json",
    "history": "history.json",
    "pid": "daemon.pid",
    "heartbeat": "heartbeat",
}


def data_dir() -> Path:
    return Path(settings.data_dir).expanduser()


def document_path(name: str, explicit_path: Path | str | None = None) -> Path:
    """Resolve a document path with optional explicit override.

    Priority:
    1) explicit_path
    2) <settings.data_dir>/<DOCUMENT_FILES[name]>
    """
    if explicit_path:
        return Path(explicit_path).expanduser()
    try:
        filename = DOCUMENT_FILES[name]
    except KeyError:
        raise ValueError(f"Unknown document: {name}") from None
    return data_dir() / filename
