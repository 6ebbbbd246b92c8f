"""Pre-trade checks for real order placement.

Every path that can place a real order (rebalance, conditional orders, DCA,
arbitrage) goes through the same gate: auto-execution is only allowed when
CONFIRM_TRADES is explicitly false.
"""

from __future__ import annotations

import logging

from omnitrade.config import settings
from omnitrade.connectors.exchange import ExchangeAdapter, OrderResult
from omnitrade.errors import AuthorizationRequiredError, InvalidRequestError
from omnitrade.store.models import OrderSpec, OrderType, Side

logger = logging.getLogger(__name__)


def auto_execution_allowed() -> bool:
    return settings.confirm_trades is False


def require_auto_execution(action: str) -> None:
    if not auto_execution_allowed():
        logger.error("[preflight] %s blocked: CONFIRM_TRADES is enabled", action)
        raise AuthorizationRequiredError(action)


def execute_order_spec(exchange: ExchangeAdapter, symbol: str, spec: OrderSpec) -> OrderResult:
    """Place one order described by spec. Callers check the gate first."""
    if spec.type == OrderType.LIMIT:
        if spec.price is None or spec.price <= 0:
            raise InvalidRequestError("Limit order requires a positive price")
        return exchange.create_limit_order(symbol, str(spec.side), spec.amount, spec.price)
    if spec.side == Side.BUY:
        return exchange.create_market_buy_order(symbol, spec.amount)
    return exchange.create_market_sell_order(symbol, spec.amount)
