"""Tests for tool payloads (omnitrade/tools/)."""

from __future__ import annotations

import json

import pytest

from omnitrade.connectors.binance import Kline, Ticker24h
from omnitrade.tools import alerts, arbitrage, dca, history, market, paper, rebalance
from omnitrade.tools.responses import err, ok, tool
from tests.helpers import FakeExchange, make_manager


# ---------------------------------------------------------------------------
# responses
# ---------------------------------------------------------------------------


class TestResponses:
    def test_shapes(self):
        assert ok({"a": 1}) == {"ok": True, "data": {"a": 1}}
        assert err("X", "bad") == {"ok": False, "error": {"code": "X", "message": "bad", "data": {}}}

    def test_unexpected_errors_propagate(self):
        @tool
        def broken():
            raise KeyError("bug")

        with pytest.raises(KeyError):
            broken()


# ---------------------------------------------------------------------------
# market
# ---------------------------------------------------------------------------


class TestMarketTools:
    def test_get_price(self, monkeypatch):
        monkeypatch.setattr(
            "omnitrade.tools.market.binance.fetch_24h_ticker",
            lambda asset: Ticker24h("BTCUSDT", 65_000.0, 1.23456, 1_234.5, 80_000_000.25, 66_000.0, 64_000.0),
        )
        result = market.get_price("btc")
        assert result["ok"]
        assert result["data"]["price"] == 65_000.0
        assert result["data"]["change24hPercent"] == 1.23
        assert result["data"]["quoteVolume24h"] == 80_000_000.25

    def test_price_history(self, monkeypatch):
        monkeypatch.setattr(
            "omnitrade.tools.market.binance.fetch_klines",
            lambda asset, interval, limit: [
                Kline(1_700_000_000_000, 100, 110, 95, 105, 1),
                Kline(1_700_003_600_000, 105, 120, 100, 115, 1),
            ],
        )
        data = market.get_price_history("ETH", "1h", 2)["data"]
        assert data["periodHigh"] == 120
        assert data["periodLow"] == 95
        assert data["periodChangePercent"] == 15.0
        assert data["candles"][0]["time"].startswith("2023-11-14T22:13:20")

    def test_price_history_validation(self):
        result = market.get_price_history("ETH", "3h", 10)
        assert result["error"]["code"] == "INVALID_REQUEST"
        assert market.get_price_history("ETH", "1h", 0)["ok"] is False

    def test_exchange_price_all(self):
        a = FakeExchange("binance", tickers={"BTC/USDT": (50_000, 49_999, 50_001)})
        b = FakeExchange("kraken")
        data = market.get_exchange_price(make_manager(a, b), "btc/usdt")["data"]
        assert [p["exchange"] for p in data["prices"]] == ["binance"]
        assert data["errors"][0]["exchange"] == "kraken"

    def test_exchange_price_unknown(self):
        result = market.get_exchange_price(make_manager(FakeExchange()), "BTC/USDT", "ftx")
        assert result["error"]["code"] == "EXCHANGE_NOT_CONFIGURED"
        assert result["error"]["data"]["available"] == ["binance"]


# ---------------------------------------------------------------------------
# paper
# ---------------------------------------------------------------------------


class TestPaperTools:
    def test_buy_and_portfolio(self, paper_prices):
        result = paper.paper_buy("BTC", 0.1)
        assert result["ok"]
        assert result["data"]["cashBalance"] == 4_995.0
        assert result["data"]["trade"]["quoteValue"] == 5_000.0
        assert result["data"]["trade"]["time"].endswith("+00:00")

        paper_prices["BTC"] = 51_234.5678
        data = paper.paper_portfolio()["data"]
        assert data["holdings"][0]["value"] == 5_123.46
        assert data["totalPnlPercent"] == round((4_995 + 5_123.45678 - 10_000) / 100, 2)

    def test_errors_become_payloads(self, paper_prices):
        result = paper.paper_buy("BTC", 1)
        assert result["ok"] is False
        assert result["error"]["code"] == "INSUFFICIENT_FUNDS"
        assert paper.paper_sell("ETH", 1)["error"]["code"] == "INSUFFICIENT_HOLDING"
        assert paper.paper_buy("NOPE", 1)["error"]["code"] == "PRICE_UNAVAILABLE"

    def test_failed_buy_not_persisted(self, paper_prices):
        paper.paper_buy("BTC", 1)
        assert paper.paper_history()["data"]["totalTrades"] == 0

    def test_payload_is_json_serializable(self, paper_prices):
        paper.paper_buy("ETH", 1)
        json.dumps(paper.paper_history(limit=5))
        json.dumps(paper.paper_portfolio())

    def test_reset_requires_confirm(self, paper_prices):
        paper.paper_buy("ETH", 1)
        assert paper.paper_reset()["error"]["code"] == "INVALID_REQUEST"
        assert paper.paper_reset(confirm=True)["data"]["cashBalance"] == 10_000.0


# ---------------------------------------------------------------------------
# rebalance
# ---------------------------------------------------------------------------


class TestRebalanceTool:
    def test_paper_preview_then_execute(self, paper_prices):
        preview = rebalance.rebalance_portfolio({"btc": 50, "usdt": 50}, source="paper")
        assert preview["ok"]
        assert preview["data"]["executed"] is False
        assert paper.paper_history()["data"]["totalTrades"] == 0

        done = rebalance.rebalance_portfolio({"BTC": 50, "USDT": 50}, source="paper", execute=True)
        assert done["data"]["executed"] is True
        assert done["data"]["execution"]["failed"] == []
        assert paper.paper_portfolio()["data"]["holdings"][0]["asset"] == "BTC"

    def test_exchange_execute_gated(self):
        ex = FakeExchange(
            tickers={"BTC/USDT": (50_000, 50_000, 50_000)}, balances={"USDT": 1_000}
        )
        result = rebalance.rebalance_portfolio(
            {"BTC": 100}, execute=True, manager=make_manager(ex)
        )
        assert result["error"]["code"] == "AUTHORIZATION_REQUIRED"
        assert ex.orders == []

    def test_bad_source(self):
        assert rebalance.rebalance_portfolio({"BTC": 100}, source="bank")["ok"] is False


# ---------------------------------------------------------------------------
# arbitrage
# ---------------------------------------------------------------------------


class TestArbitrageTools:
    @pytest.fixture()
    def manager(self):
        a = FakeExchange("binance", tickers={"BTC/USDT": (50_005, 50_000, 50_010)})
        b = FakeExchange("kraken", tickers={"BTC/USDT": (50_405, 50_400, 50_410)})
        return make_manager(a, b)

    def test_scan(self, manager):
        data = arbitrage.get_arbitrage(manager, ["BTC/USDT"])["data"]
        assert data["count"] == 1
        assert data["opportunities"][0]["buyOn"] == "binance"

    def test_spread(self, manager):
        data = arbitrage.check_spread(manager, "BTC/USDT")["data"]
        assert data["arbitrage"]["exists"] is True

    def test_preview(self, manager):
        data = arbitrage.execute_arbitrage(manager, "BTC/USDT", 0.1, "binance", "kraken")["data"]
        assert data["preview"] is True
        assert data["plan"]["netProfit"] == round(39.0 - 10.041, 2)

    def test_not_profitable(self, manager):
        manager.get("kraken").set_ticker("BTC/USDT", 50_020, 50_020, 50_030)
        result = arbitrage.execute_arbitrage(manager, "BTC/USDT", 0.1, "binance", "kraken")
        assert result["error"]["code"] == "NOT_PROFITABLE"
        json.dumps(result)

    def test_partial(self, manager, auto_execute):
        manager.get("kraken").failing_orders.add("sell")
        result = arbitrage.execute_arbitrage(
            manager, "BTC/USDT", 0.1, "binance", "kraken", preview=False
        )
        assert result["error"]["code"] == "PARTIAL_EXECUTION"
        assert result["error"]["data"]["buyOrder"]["id"] == "binance-1"
        assert result["error"]["data"]["warning"].startswith("BUY ORDER WAS EXECUTED!")


# ---------------------------------------------------------------------------
# scheduler CRUD and history
# ---------------------------------------------------------------------------


class TestSchedulerTools:
    def test_alert_lifecycle(self):
        manager = make_manager(FakeExchange(tickers={"BTC/USDT": (61_000, 0, 0)}))
        created = alerts.set_price_alert(manager, "BTC/USDT", "above", 60_000)
        assert created["data"]["alert"]["exchange"] == "all exchanges"
        assert alerts.check_alerts(manager)["data"]["triggered"] == 1
        assert alerts.list_alerts()["data"]["recentTriggered"][0]["triggeredPrice"] == 61_000
        assert alerts.clear_triggered_alerts()["data"]["removed"] == 1
        assert alerts.remove_alert("alert_missing")["error"]["code"] == "NOT_FOUND"

    def test_dca_nothing_due(self):
        data = dca.execute_dca_orders(make_manager(FakeExchange()))["data"]
        assert data["executed"] == 0

    def test_dca_listing(self):
        manager = make_manager(FakeExchange())
        dca.setup_dca(manager, "BTC/USDT", 20, "daily")
        listing = dca.list_dca_configs()["data"]
        assert listing["active"] == 1
        assert listing["configs"][0]["nextExecution"] == "now"

    def test_history_empty(self):
        data = history.get_portfolio_history()["data"]
        assert data["count"] == 0

    def test_history_record_and_summary(self):
        manager = make_manager(FakeExchange(balances={"USDT": 250.129}))
        recorded = history.record_portfolio_snapshot(manager)["data"]
        assert recorded["totalValueUSD"] == 250.13
        assert recorded["snapshotsStored"] == 1
        data = history.get_portfolio_history("1d")["data"]
        assert data["count"] == 1
        assert data["trend"] == "UP"

    def test_history_clear_requires_confirm(self):
        assert history.clear_portfolio_history()["data"]["cleared"] is False
        assert history.clear_portfolio_history(confirm=True)["data"]["cleared"] is True
