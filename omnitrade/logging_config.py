"""Structured logging configuration.

JSON formatter + TimedRotatingFileHandler under <data_dir>/logs.
The daemon tags every record of a tick with a tick_id through a
LoggerAdapter; one-shot commands get a single tick_id per run.
"""

from __future__ import annotations

import json
import logging
import logging.handlers
import uuid
from pathlib import Path

from omnitrade.config import settings

LOG_FILENAME = "omnitrade.log"


class JSONFormatter(logging.Formatter):
    """JSON structured log formatter with tick_id support."""

    def format(self, record: logging.LogRecord) -> str:
        return json.dumps(
            {
                "ts": self.formatTime(record),
                "level": record.levelname,
                "logger": record.name,
                "msg": record.getMessage(),
                "tick_id": getattr(record, "tick_id", ""),
            },
            ensure_ascii=False,
        )


def new_tick_id() -> str:
    return uuid.uuid4().hex[:12]


def setup_logging(
    structured: bool = False,
    log_dir: Path | str | None = None,
    level: int = logging.INFO,
) -> str:
    """Configure root logger. Returns the tick_id for this run.

    Args:
        structured: If True, use JSON format for the log file.
            settings.structured_logging forces it on as well.
        log_dir: Override log directory. Defaults to <data_dir>/logs.
    """
    tick_id = new_tick_id()
    log_path = Path(log_dir) if log_dir else Path(settings.data_dir) / "logs"
    log_path.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    console = logging.StreamHandler()
    console.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
    )
    root.addHandler(console)

    file_handler = logging.handlers.TimedRotatingFileHandler(
        log_path / LOG_FILENAME,
        when="midnight",
        backupCount=30,
        encoding="utf-8",
    )
    if structured or settings.structured_logging:
        file_handler.setFormatter(JSONFormatter())
    else:
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
    root.addHandler(file_handler)

    # ccxt / httpx are chatty at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("ccxt").setLevel(logging.WARNING)

    return tick_id


class TickLoggerAdapter(logging.LoggerAdapter):
    """Attach tick_id to every record logged during one daemon tick."""

    def process(self, msg, kwargs):
        extra = kwargs.setdefault("extra", {})
        extra.setdefault("tick_id", self.extra.get("tick_id", ""))
        return msg, kwargs
