"""Tests for the auto-execution gate and order placement."""

from __future__ import annotations

import pytest

from omnitrade.errors import AuthorizationRequiredError, InvalidRequestError
from omnitrade.scheduler.preflight import (
    auto_execution_allowed,
    execute_order_spec,
    require_auto_execution,
)
from omnitrade.store.models import OrderSpec, OrderType, Side
from tests.helpers import FakeExchange


class TestGate:
    def test_blocked_by_default(self):
        assert auto_execution_allowed() is False
        with pytest.raises(AuthorizationRequiredError) as exc:
            require_auto_execution("Rebalance execution")
        assert exc.value.data["action"] == "Rebalance execution"
        assert "CONFIRM_TRADES=false" in exc.value.message

    def test_open(self, auto_execute):
        assert auto_execution_allowed() is True
        require_auto_execution("anything")


class TestExecuteOrderSpec:
    @pytest.fixture()
    def ex(self) -> FakeExchange:
        return FakeExchange(tickers={"BTC/USDT": (50_000, 50_000, 50_000)})

    def test_market_sell(self, ex):
        result = execute_order_spec(ex, "BTC/USDT", OrderSpec(Side.SELL, OrderType.MARKET, 0.1))
        assert result.id == "binance-1"
        assert ex.orders[0]["side"] == "sell"

    def test_limit(self, ex):
        execute_order_spec(ex, "BTC/USDT", OrderSpec(Side.BUY, OrderType.LIMIT, 0.1, 49_000))
        assert ex.orders[0] == {
            "id": "binance-1",
            "kind": "limit",
            "symbol": "BTC/USDT",
            "side": "buy",
            "amount": 0.1,
            "price": 49_000,
        }

    def test_limit_without_price(self, ex):
        with pytest.raises(InvalidRequestError):
            execute_order_spec(ex, "BTC/USDT", OrderSpec(Side.BUY, OrderType.LIMIT, 0.1))
