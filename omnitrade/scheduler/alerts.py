"""Price alerts: persisted rules checked against exchange tickers.

An alert triggers at most once. Every active alert is evaluated on every
pass; the alerts document is rewritten only when something triggered.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from omnitrade.connectors.exchange import ExchangeAdapter, ExchangeManager
from omnitrade.errors import InvalidRequestError, NotFoundError
from omnitrade.notifications.dispatcher import send_notification
from omnitrade.store.documents import load_document, locked, save_document
from omnitrade.store.models import Alert, AlertCondition, new_id, now_ms
from omnitrade.store.paths import document_path

logger = logging.getLogger(__name__)

RECENT_TRIGGERED_LIMIT = 5


@dataclass
class AlertListing:
    active: list[Alert] = field(default_factory=list)
    recent_triggered: list[Alert] = field(default_factory=list)


def _load_alerts(path: Path) -> list[Alert]:
    data = load_document(path, lambda: {"alerts": []})
    return [Alert.from_dict(a) for a in data.get("alerts", [])]


def _save_alerts(path: Path, alerts: list[Alert]) -> None:
    save_document(path, {"alerts": [a.to_dict() for a in alerts]})


def condition_met(alert: Alert, price: float) -> bool:
    if alert.condition == AlertCondition.ABOVE:
        return price >= alert.target_price
    return price <= alert.target_price


def create_alert(
    manager: ExchangeManager,
    symbol: str,
    condition: str,
    target_price: float,
    exchange: str | None = None,
    path: Path | str | None = None,
) -> Alert:
    if target_price <= 0:
        raise InvalidRequestError("Target price must be positive", {"targetPrice": target_price})
    try:
        cond = AlertCondition(condition)
    except ValueError:
        raise InvalidRequestError(f"Unknown alert condition: {condition}") from None
    if exchange:
        manager.require(exchange)

    alert = Alert(
        id=new_id("alert"),
        symbol=symbol.upper(),
        condition=cond,
        target_price=target_price,
        created_at=now_ms(),
        exchange=exchange.lower() if exchange else None,
    )
    p = document_path("alerts", path)
    with locked(p):
        alerts = _load_alerts(p)
        alerts.append(alert)
        _save_alerts(p, alerts)
    logger.info(
        "Alert set: %s %s %.2f on %s", alert.symbol, cond, target_price, alert.exchange or "any"
    )
    return alert


def list_alerts(path: Path | str | None = None) -> AlertListing:
    """Active alerts plus the most recently triggered ones."""
    alerts = _load_alerts(document_path("alerts", path))
    triggered = sorted(
        (a for a in alerts if a.triggered),
        key=lambda a: a.triggered_at or 0,
        reverse=True,
    )
    return AlertListing(
        active=[a for a in alerts if not a.triggered],
        recent_triggered=triggered[:RECENT_TRIGGERED_LIMIT],
    )


def remove_alert(alert_id: str, path: Path | str | None = None) -> Alert:
    p = document_path("alerts", path)
    with locked(p):
        alerts = _load_alerts(p)
        for i, alert in enumerate(alerts):
            if alert.id == alert_id:
                del alerts[i]
                _save_alerts(p, alerts)
                return alert
    raise NotFoundError("Alert", alert_id)


def clear_triggered_alerts(path: Path | str | None = None) -> int:
    """Delete every triggered alert. Returns how many were removed."""
    p = document_path("alerts", path)
    with locked(p):
        alerts = _load_alerts(p)
        remaining = [a for a in alerts if not a.triggered]
        removed = len(alerts) - len(remaining)
        if removed:
            _save_alerts(p, remaining)
    return removed


def _candidates(manager: ExchangeManager, alert: Alert) -> list[tuple[str, ExchangeAdapter]]:
    if alert.exchange:
        adapter = manager.get(alert.exchange)
        return [(alert.exchange.lower(), adapter)] if adapter else []
    return list(manager.items())


def check_alerts(
    manager: ExchangeManager,
    notify: bool = False,
    path: Path | str | None = None,
) -> list[Alert]:
    """Evaluate every active alert once. Returns the alerts that triggered now.

    The first exchange whose last price meets the condition wins and is
    recorded on the alert. A failed fetch moves on to the next exchange.
    """
    p = document_path("alerts", path)
    triggered: list[Alert] = []
    with locked(p):
        alerts = _load_alerts(p)
        active = [a for a in alerts if not a.triggered]
        if not active:
            logger.debug("No active alerts")
            return []

        try:
            for alert in active:
                for name, adapter in _candidates(manager, alert):
                    try:
                        ticker = adapter.fetch_ticker(alert.symbol)
                    except Exception as e:
                        logger.warning("Failed to fetch %s from %s: %s", alert.symbol, name, e)
                        continue
                    price = ticker.last or 0.0
                    if price <= 0:
                        continue
                    if condition_met(alert, price):
                        alert.triggered = True
                        alert.triggered_at = now_ms()
                        alert.triggered_price = price
                        alert.exchange = name
                        triggered.append(alert)
                        logger.info(
                            "ALERT TRIGGERED: %s %s %.2f on %s (current %.2f)",
                            alert.symbol,
                            alert.condition,
                            alert.target_price,
                            name,
                            price,
                        )
                        break
        finally:
            if triggered:
                _save_alerts(p, alerts)

    logger.info("Alert check: %d active, %d triggered", len(active), len(triggered))
    if notify:
        for alert in triggered:
            send_notification(
                f"OmniTrade Alert: {alert.symbol}",
                f"{alert.symbol} is {alert.condition} ${alert.target_price:.2f}\n"
                f"Current price: ${alert.triggered_price:.2f} on {alert.exchange}",
            )
    return triggered
