"""Portfolio history tools."""

from __future__ import annotations

from pathlib import Path

from omnitrade.analysis import portfolio_history
from omnitrade.connectors.exchange import ExchangeManager
from omnitrade.errors import NotFoundError
from omnitrade.tools.responses import iso, ok, pct, qty, tool, usd


@tool
def record_portfolio_snapshot(manager: ExchangeManager, path: Path | str | None = None) -> dict:
    snapshot, stored = portfolio_history.record_snapshot(manager, path)
    return ok(
        {
            "timestamp": iso(snapshot.timestamp),
            "totalValueUSD": usd(snapshot.total_value_usd),
            "exchanges": {
                name: {
                    "totalValueUSD": usd(ex.total_value_usd),
                    "assets": {
                        asset: {"amount": qty(v.amount), "usdValue": usd(v.usd_value)}
                        for asset, v in ex.assets.items()
                    },
                }
                for name, ex in snapshot.exchanges.items()
            },
            "snapshotsStored": stored,
        }
    )


@tool
def get_portfolio_history(period: str = "1w", path: Path | str | None = None) -> dict:
    try:
        summary = portfolio_history.summarize_history(period, path)
    except NotFoundError:
        if portfolio_history.load_snapshots(path):
            raise
        return ok(
            {
                "period": period,
                "count": 0,
                "message": "No portfolio history yet. Record a snapshot to start tracking.",
            }
        )
    return ok(
        {
            "period": summary.period,
            "count": summary.count,
            "startValue": usd(summary.start_value),
            "endValue": usd(summary.end_value),
            "profitLoss": usd(summary.profit_loss),
            "profitLossPercent": pct(summary.profit_loss_percent),
            "trend": summary.trend,
            "highestValue": usd(summary.highest_value),
            "lowestValue": usd(summary.lowest_value),
            "from": iso(summary.first_timestamp),
            "to": iso(summary.last_timestamp),
            "recent": [
                {"time": iso(s.timestamp), "totalValueUSD": usd(s.total_value_usd)}
                for s in summary.recent
            ],
        }
    )


@tool
def clear_portfolio_history(confirm: bool = False, path: Path | str | None = None) -> dict:
    if not confirm:
        return ok({"cleared": False, "message": "Pass confirm=true to erase all snapshots."})
    portfolio_history.clear_history(path)
    return ok({"cleared": True, "message": "Portfolio history cleared"})
