"""Price alert tools."""

from __future__ import annotations

from pathlib import Path

from omnitrade.connectors.exchange import ExchangeManager
from omnitrade.scheduler import alerts
from omnitrade.store.models import Alert
from omnitrade.tools.responses import iso, ok, tool


def _alert_dict(a: Alert) -> dict:
    return {
        "id": a.id,
        "symbol": a.symbol,
        "condition": str(a.condition),
        "targetPrice": a.target_price,
        "exchange": a.exchange or "all exchanges",
        "created": iso(a.created_at),
        "triggered": a.triggered,
        "triggeredAt": iso(a.triggered_at),
        "triggeredPrice": a.triggered_price,
    }


@tool
def set_price_alert(
    manager: ExchangeManager,
    symbol: str,
    condition: str,
    target_price: float,
    exchange: str | None = None,
    path: Path | str | None = None,
) -> dict:
    alert = alerts.create_alert(manager, symbol, condition, target_price, exchange, path)
    where = f" on {alert.exchange}" if alert.exchange else " on any exchange"
    return ok(
        {
            "message": (
                f"Alert set: notify when {alert.symbol}{where} goes "
                f"{alert.condition} ${target_price:.2f}"
            ),
            "alert": _alert_dict(alert),
        }
    )


@tool
def list_alerts(path: Path | str | None = None) -> dict:
    listing = alerts.list_alerts(path)
    return ok(
        {
            "active": [_alert_dict(a) for a in listing.active],
            "recentTriggered": [_alert_dict(a) for a in listing.recent_triggered],
        }
    )


@tool
def remove_alert(alert_id: str, path: Path | str | None = None) -> dict:
    alert = alerts.remove_alert(alert_id, path)
    return ok({"message": f"Alert removed: {alert.id}", "alert": _alert_dict(alert)})


@tool
def clear_triggered_alerts(path: Path | str | None = None) -> dict:
    removed = alerts.clear_triggered_alerts(path)
    return ok({"removed": removed})


@tool
def check_alerts(manager: ExchangeManager, path: Path | str | None = None) -> dict:
    triggered = alerts.check_alerts(manager, notify=False, path=path)
    return ok({"triggered": len(triggered), "alerts": [_alert_dict(a) for a in triggered]})
