"""Conditional order tools."""

from __future__ import annotations

from pathlib import Path

from omnitrade.connectors.exchange import ExchangeManager
from omnitrade.scheduler import conditional_orders as engine
from omnitrade.store.models import ConditionalOrder
from omnitrade.tools.responses import iso, ok, tool


def _order_dict(o: ConditionalOrder) -> dict:
    d = {
        "id": o.id,
        "symbol": o.symbol,
        "exchange": o.exchange,
        "condition": o.condition.to_dict(),
        "order": o.order.to_dict(),
        "status": o.status,
        "created": iso(o.created_at),
    }
    if o.triggered:
        d["triggeredAt"] = iso(o.triggered_at)
        d["orderId"] = o.order_id
        d["error"] = o.error
    return d


@tool
def set_conditional_order(
    manager: ExchangeManager,
    symbol: str,
    condition_type: str,
    order_side: str,
    amount: float,
    order_type: str = "market",
    target_price: float | None = None,
    percent_change: float | None = None,
    direction: str | None = None,
    limit_price: float | None = None,
    exchange: str | None = None,
    path: Path | str | None = None,
) -> dict:
    order = engine.create_conditional_order(
        manager,
        symbol,
        condition_type,
        order_side,
        amount,
        order_type=order_type,
        target_price=target_price,
        percent_change=percent_change,
        direction=direction,
        limit_price=limit_price,
        exchange=exchange,
        path=path,
    )
    return ok({"message": f"Conditional order created: {order.id}", "order": _order_dict(order)})


@tool
def list_conditional_orders(path: Path | str | None = None) -> dict:
    orders = engine.list_conditional_orders(path)
    return ok({"count": len(orders), "orders": [_order_dict(o) for o in orders]})


@tool
def remove_conditional_order(order_id: str, path: Path | str | None = None) -> dict:
    order = engine.remove_conditional_order(order_id, path)
    return ok({"message": f"Conditional order removed: {order.id}"})


@tool
def check_conditional_orders(manager: ExchangeManager, path: Path | str | None = None) -> dict:
    triggered = engine.check_conditional_orders(manager, notify=False, path=path)
    return ok({"triggered": len(triggered), "orders": [_order_dict(o) for o in triggered]})
