"""Portfolio value snapshots across every configured exchange."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from omnitrade.config import settings
from omnitrade.connectors.exchange import ExchangeManager
from omnitrade.errors import InvalidRequestError, NotFoundError, TradingError
from omnitrade.store.documents import load_document, locked, save_document
from omnitrade.store.models import AssetValue, ExchangeSnapshot, PortfolioSnapshot, now_ms
from omnitrade.store.paths import document_path
from omnitrade.strategy.rebalance import usd_price

logger = logging.getLogger(__name__)

DAY_MS = 24 * 60 * 60 * 1000
PERIOD_MS = {
    "1d": DAY_MS,
    "1w": 7 * DAY_MS,
    "1m": 30 * DAY_MS,
    "3m": 90 * DAY_MS,
    "1y": 365 * DAY_MS,
}
PERIODS = (*PERIOD_MS, "all")
RECENT_LIMIT = 10


@dataclass
class HistorySummary:
    period: str
    start_value: float
    end_value: float
    profit_loss: float
    profit_loss_percent: float
    highest_value: float
    lowest_value: float
    count: int
    first_timestamp: int
    last_timestamp: int
    recent: list[PortfolioSnapshot] = field(default_factory=list)

    @property
    def trend(self) -> str:
        return "UP" if self.profit_loss >= 0 else "DOWN"


def load_snapshots(path: Path | str | None = None) -> list[PortfolioSnapshot]:
    data = load_document(document_path("history", path), lambda: {"snapshots": []})
    return [PortfolioSnapshot.from_dict(s) for s in data.get("snapshots", [])]


def capture_snapshot(manager: ExchangeManager) -> PortfolioSnapshot:
    """Value every balance on every exchange. Exchanges that fail are skipped."""
    snapshot = PortfolioSnapshot(timestamp=now_ms())
    for name, adapter in manager.items():
        try:
            balances = adapter.fetch_balance()
        except TradingError as e:
            logger.warning("Snapshot: balance fetch failed on %s: %s", name, e)
            continue

        ex = ExchangeSnapshot()
        for asset, amount in balances.items():
            usd_value = amount * usd_price(adapter, asset)
            if usd_value > 0:
                ex.assets[asset] = AssetValue(amount, usd_value)
                ex.total_value_usd += usd_value
        if ex.total_value_usd > 0:
            snapshot.exchanges[name] = ex
            snapshot.total_value_usd += ex.total_value_usd
    return snapshot


def record_snapshot(
    manager: ExchangeManager, path: Path | str | None = None
) -> tuple[PortfolioSnapshot, int]:
    """Append a fresh snapshot, keeping only the most recent history_max_snapshots.

    Returns the snapshot and the number of snapshots now stored.
    """
    snapshot = capture_snapshot(manager)
    p = document_path("history", path)
    with locked(p):
        snapshots = load_snapshots(p)
        snapshots.append(snapshot)
        snapshots = snapshots[-settings.history_max_snapshots :]
        save_document(p, {"snapshots": [s.to_dict() for s in snapshots]})
    logger.info("Portfolio snapshot: $%.2f (%d stored)", snapshot.total_value_usd, len(snapshots))
    return snapshot, len(snapshots)


def summarize_history(
    period: str = "1w", path: Path | str | None = None, now: int | None = None
) -> HistorySummary:
    if period not in PERIODS:
        raise InvalidRequestError(f"Unknown period: {period}. Use one of {', '.join(PERIODS)}")

    snapshots = load_snapshots(path)
    if period != "all":
        cutoff = (now if now is not None else now_ms()) - PERIOD_MS[period]
        snapshots = [s for s in snapshots if s.timestamp >= cutoff]
    if not snapshots:
        raise NotFoundError("Portfolio snapshots for period", period)

    first, last = snapshots[0], snapshots[-1]
    start, end = first.total_value_usd, last.total_value_usd
    pnl = end - start
    values = [s.total_value_usd for s in snapshots]
    return HistorySummary(
        period=period,
        start_value=start,
        end_value=end,
        profit_loss=pnl,
        profit_loss_percent=pnl / start * 100 if start > 0 else 0.0,
        highest_value=max(values),
        lowest_value=min(values),
        count=len(snapshots),
        first_timestamp=first.timestamp,
        last_timestamp=last.timestamp,
        recent=snapshots[-RECENT_LIMIT:],
    )


def clear_history(path: Path | str | None = None) -> None:
    p = document_path("history", path)
    with locked(p):
        save_document(p, {"snapshots": []})
    logger.info("Portfolio history cleared")
