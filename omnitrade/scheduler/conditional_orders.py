"""Conditional orders: place an order once a price condition holds.

A trigger is consumed even when the order fails or is blocked by the
auto-execution gate; the outcome is recorded as orderId or error and the
order is never retried.
"""

from __future__ import annotations

import logging
from pathlib import Path

from omnitrade.connectors.exchange import ExchangeManager
from omnitrade.errors import InvalidRequestError, NotFoundError, TradingError
from omnitrade.notifications.dispatcher import send_notification
from omnitrade.scheduler.preflight import auto_execution_allowed, execute_order_spec
from omnitrade.store.documents import load_document, locked, save_document
from omnitrade.store.models import (
    Condition,
    ConditionalOrder,
    ConditionType,
    Direction,
    OrderSpec,
    OrderType,
    Side,
    new_id,
    now_ms,
)
from omnitrade.store.paths import document_path

logger = logging.getLogger(__name__)

GATE_BLOCKED_ERROR = "Auto-execution requires CONFIRM_TRADES=false"


def _load_orders(path: Path) -> list[ConditionalOrder]:
    data = load_document(path, lambda: {"orders": []})
    return [ConditionalOrder.from_dict(o) for o in data.get("orders", [])]


def _save_orders(path: Path, orders: list[ConditionalOrder]) -> None:
    save_document(path, {"orders": [o.to_dict() for o in orders]})


def _positive(value: float | None) -> bool:
    return value is not None and value > 0


def check_condition(order: ConditionalOrder, price: float) -> bool:
    cond = order.condition
    if cond.type == ConditionType.PRICE_ABOVE:
        return cond.target_price is not None and price >= cond.target_price
    if cond.type == ConditionType.PRICE_BELOW:
        return cond.target_price is not None and price <= cond.target_price
    if not cond.base_price or not cond.percent_change:
        return False
    change_pct = (price - cond.base_price) / cond.base_price * 100
    if cond.direction == Direction.UP:
        return change_pct >= cond.percent_change
    if cond.direction == Direction.DOWN:
        return change_pct <= -cond.percent_change
    return False


def create_conditional_order(
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
) -> ConditionalOrder:
    try:
        ctype = ConditionType(condition_type)
        side = Side(order_side)
        otype = OrderType(order_type)
        dir_ = Direction(direction) if direction else None
    except ValueError as e:
        raise InvalidRequestError(str(e)) from None

    if amount <= 0:
        raise InvalidRequestError("Amount must be positive", {"amount": amount})
    if ctype in (ConditionType.PRICE_ABOVE, ConditionType.PRICE_BELOW) and not _positive(target_price):
        raise InvalidRequestError(f"A positive targetPrice is required for {ctype}")
    if ctype == ConditionType.PRICE_CHANGE_PERCENT and (not _positive(percent_change) or dir_ is None):
        raise InvalidRequestError(
            "A positive percentChange and a direction are required for price_change_percent"
        )
    if otype == OrderType.LIMIT and not _positive(limit_price):
        raise InvalidRequestError("A positive limitPrice is required for limit orders")

    exchange_name = (exchange or manager.default()).lower()
    adapter = manager.require(exchange_name)
    symbol = symbol.upper()

    base_price = None
    if ctype == ConditionType.PRICE_CHANGE_PERCENT:
        # snapshotted once; the trigger stays relative to creation time
        ticker = adapter.fetch_ticker(symbol)
        base_price = ticker.last
        if not base_price or base_price <= 0:
            raise InvalidRequestError(f"Cannot get current price for {symbol} on {exchange_name}")

    order = ConditionalOrder(
        id=new_id("cond"),
        symbol=symbol,
        exchange=exchange_name,
        condition=Condition(
            type=ctype,
            target_price=target_price if ctype != ConditionType.PRICE_CHANGE_PERCENT else None,
            percent_change=percent_change if ctype == ConditionType.PRICE_CHANGE_PERCENT else None,
            direction=dir_ if ctype == ConditionType.PRICE_CHANGE_PERCENT else None,
            base_price=base_price,
        ),
        order=OrderSpec(
            side=side,
            type=otype,
            amount=amount,
            price=limit_price if otype == OrderType.LIMIT else None,
        ),
        created_at=now_ms(),
    )

    p = document_path("conditional_orders", path)
    with locked(p):
        orders = _load_orders(p)
        orders.append(order)
        _save_orders(p, orders)
    logger.info("Conditional order %s created: %s %s on %s", order.id, side, symbol, exchange_name)
    return order


def list_conditional_orders(path: Path | str | None = None) -> list[ConditionalOrder]:
    return _load_orders(document_path("conditional_orders", path))


def remove_conditional_order(order_id: str, path: Path | str | None = None) -> ConditionalOrder:
    p = document_path("conditional_orders", path)
    with locked(p):
        orders = _load_orders(p)
        for i, order in enumerate(orders):
            if order.id == order_id:
                del orders[i]
                _save_orders(p, orders)
                return order
    raise NotFoundError("Conditional order", order_id)


def _execute(manager: ExchangeManager, order: ConditionalOrder) -> None:
    if not auto_execution_allowed():
        order.error = GATE_BLOCKED_ERROR
        logger.warning("Conditional order %s triggered but execution is blocked", order.id)
        return
    try:
        result = execute_order_spec(manager.require(order.exchange), order.symbol, order.order)
    except TradingError as e:
        order.error = e.message
        logger.error("Conditional order %s failed: %s", order.id, e.message)
        return
    except Exception as e:
        # outcome unknown; still consumed so the next tick cannot place it twice
        order.error = str(e)
        logger.exception("Conditional order %s: unexpected error placing order", order.id)
        return
    order.order_id = result.id
    logger.info("Conditional order %s placed: %s", order.id, result.id)


def _current_price(manager: ExchangeManager, order: ConditionalOrder) -> float | None:
    """Last price for the order's symbol, or None when it cannot be evaluated."""
    adapter = manager.get(order.exchange)
    if adapter is None:
        logger.warning("Order %s: exchange %s not configured", order.id, order.exchange)
        return None
    try:
        price = adapter.fetch_ticker(order.symbol).last or 0.0
    except TradingError as e:
        logger.warning("Order %s: price fetch failed: %s", order.id, e)
        return None
    return price if price > 0 else None


def check_conditional_orders(
    manager: ExchangeManager,
    notify: bool = False,
    path: Path | str | None = None,
) -> list[ConditionalOrder]:
    """Evaluate enabled, untriggered orders. Returns the orders triggered now."""
    p = document_path("conditional_orders", path)
    triggered: list[ConditionalOrder] = []
    with locked(p):
        orders = _load_orders(p)
        active = [o for o in orders if o.enabled and not o.triggered]
        try:
            for order in active:
                try:
                    price = _current_price(manager, order)
                except Exception:
                    logger.exception("Order %s: price check failed", order.id)
                    continue
                if price is None or not check_condition(order, price):
                    continue

                _execute(manager, order)
                order.triggered = True
                order.triggered_at = now_ms()
                triggered.append(order)
        finally:
            # orders placed before a failure must stay consumed on disk
            if triggered:
                _save_orders(p, orders)

    logger.info("Conditional check: %d active, %d triggered", len(active), len(triggered))
    if notify:
        for order in triggered:
            outcome = f"order {order.order_id}" if order.order_id else f"not placed: {order.error}"
            send_notification(
                f"OmniTrade Conditional Order: {order.symbol}",
                f"{order.condition.type} met for {order.symbol} on {order.exchange}\n"
                f"{str(order.order.side).upper()} {order.order.amount} ({outcome})",
            )
    return triggered
