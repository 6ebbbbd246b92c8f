"""Tests for DCA scheduling and execution."""

from __future__ import annotations

import pytest

from omnitrade.errors import InvalidRequestError, NotFoundError
from omnitrade.scheduler.dca_executor import (
    FREQUENCY_MS,
    RealExecutor,
    SimulatedExecutor,
    is_dca_due,
    list_dca_configs,
    process_due_dca,
    remove_dca,
    select_executor,
    setup_dca,
    toggle_dca,
)
from omnitrade.store.models import DCAConfig, Frequency
from tests.helpers import FakeExchange, make_manager

DAY_MS = 24 * 60 * 60 * 1000
NOW = 1_760_000_000_000


@pytest.fixture()
def binance() -> FakeExchange:
    return FakeExchange("binance", tickers={"BTC/USDT": (50_000, 49_990, 50_010)})


def _config(**overrides) -> DCAConfig:
    defaults = dict(
        id="dca_1",
        symbol="BTC/USDT",
        exchange="binance",
        amount_usd=25.0,
        frequency=Frequency.DAILY,
        created_at=NOW - 10 * DAY_MS,
    )
    defaults.update(overrides)
    return DCAConfig(**defaults)


# ---------------------------------------------------------------------------
# Due check
# ---------------------------------------------------------------------------


class TestIsDue:
    def test_never_executed(self):
        assert is_dca_due(_config(), NOW)

    def test_disabled(self):
        assert not is_dca_due(_config(enabled=False), NOW)

    def test_interval_boundary(self):
        cfg = _config(last_executed=NOW - DAY_MS)
        assert is_dca_due(cfg, NOW)
        assert not is_dca_due(cfg, NOW - 1)

    def test_monthly_is_thirty_days(self):
        assert FREQUENCY_MS[Frequency.MONTHLY] == 30 * DAY_MS


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------


class TestSetup:
    def test_persisted(self, binance):
        cfg = setup_dca(make_manager(binance), "btc/usdt", 25, "weekly")
        assert cfg.exchange == "binance"
        assert cfg.symbol == "BTC/USDT"
        assert cfg.frequency == "weekly"
        assert [c.id for c in list_dca_configs()] == [cfg.id]

    @pytest.mark.parametrize("amount,freq", [(0, "daily"), (10, "yearly")])
    def test_validation(self, binance, amount, freq):
        with pytest.raises(InvalidRequestError):
            setup_dca(make_manager(binance), "BTC/USDT", amount, freq)

    def test_toggle_and_remove(self, binance):
        cfg = setup_dca(make_manager(binance), "BTC/USDT", 25, "daily")
        assert toggle_dca(cfg.id, False).enabled is False
        assert list_dca_configs()[0].enabled is False
        remove_dca(cfg.id)
        assert list_dca_configs() == []
        with pytest.raises(NotFoundError):
            toggle_dca(cfg.id, True)


# ---------------------------------------------------------------------------
# Executor selection
# ---------------------------------------------------------------------------


class TestSelectExecutor:
    def test_simulated_while_gated(self, binance):
        assert isinstance(select_executor(make_manager(binance), "binance"), SimulatedExecutor)

    def test_simulated_without_credentials(self, binance, auto_execute):
        manager = make_manager(binance, credentials=False)
        assert isinstance(select_executor(manager, "binance"), SimulatedExecutor)

    def test_real(self, binance, auto_execute):
        assert isinstance(select_executor(make_manager(binance), "binance"), RealExecutor)


# ---------------------------------------------------------------------------
# process_due_dca
# ---------------------------------------------------------------------------


def test_simulated_run_advances_stats(binance):
    manager = make_manager(binance)
    setup_dca(manager, "BTC/USDT", 25, "daily")

    summary = process_due_dca(manager, now_ms=NOW)
    assert summary.executed == 1
    [r] = summary.results
    assert r.mode == "simulated"
    assert r.spent == 25.0
    assert r.price == 50_000
    assert binance.orders == []

    [cfg] = list_dca_configs()
    assert cfg.last_executed == NOW
    assert cfg.total_executions == 1
    assert cfg.total_spent == 25.0

    # not due again within the day
    assert process_due_dca(manager, now_ms=NOW + DAY_MS - 1).results == []
    assert process_due_dca(manager, now_ms=NOW + DAY_MS).executed == 1


def test_real_run_places_market_buy(binance, auto_execute):
    manager = make_manager(binance)
    setup_dca(manager, "BTC/USDT", 50, "daily")
    [r] = process_due_dca(manager, now_ms=NOW).results
    assert r.mode == "real"
    assert r.order_id == "binance-1"
    assert binance.orders[0]["amount"] == pytest.approx(50 / 50_000)
    assert r.spent == pytest.approx(50.0)


def test_real_order_failure_recorded_as_simulated(binance, auto_execute):
    binance.failing_orders.add("buy")
    manager = make_manager(binance)
    setup_dca(manager, "BTC/USDT", 50, "daily")
    [r] = process_due_dca(manager, now_ms=NOW).results
    assert r.status == "executed"
    assert r.mode == "simulated"
    assert "insufficient balance" in r.error
    assert list_dca_configs()[0].total_executions == 1


def test_over_max_order_size_fails_without_advancing(binance):
    manager = make_manager(binance)
    setup_dca(manager, "BTC/USDT", 500, "daily")
    summary = process_due_dca(manager, now_ms=NOW)
    assert summary.failed == 1
    assert "exceeds max order size" in summary.results[0].error
    cfg = list_dca_configs()[0]
    assert cfg.last_executed is None
    assert cfg.total_executions == 0


def test_one_failure_does_not_block_others(binance):
    manager = make_manager(binance)
    setup_dca(manager, "DOGE/USDT", 10, "daily")  # not listed
    setup_dca(manager, "BTC/USDT", 10, "daily")
    summary = process_due_dca(manager, now_ms=NOW)
    assert summary.failed == 1
    assert summary.executed == 1


def test_notify_only_for_executed(binance, monkeypatch):
    sent = []
    monkeypatch.setattr(
        "omnitrade.scheduler.dca_executor.send_notification", lambda t, m: sent.append(t) or []
    )
    manager = make_manager(binance)
    setup_dca(manager, "BTC/USDT", 10, "daily")
    setup_dca(manager, "BTC/USDT", 1_000, "daily")
    process_due_dca(manager, now_ms=NOW, notify=True)
    assert sent == ["OmniTrade DCA: BTC"]


def test_unexpected_error_keeps_earlier_executions(binance, auto_execute):
    binance.set_ticker("ETH/USDT", 3_000)
    binance.broken_tickers.add("ETH/USDT")
    manager = make_manager(binance)
    setup_dca(manager, "BTC/USDT", 50, "daily")
    setup_dca(manager, "ETH/USDT", 50, "daily")

    summary = process_due_dca(manager, now_ms=NOW)
    assert (summary.executed, summary.failed) == (1, 1)
    assert "unexpected payload" in summary.results[1].error

    # the BTC buy is on disk, so a second pass only retries ETH
    again = process_due_dca(manager, now_ms=NOW + 1)
    assert [r.symbol for r in again.results] == ["ETH/USDT"]
    assert len(binance.orders) == 1
    btc, eth = list_dca_configs()
    assert btc.last_executed == NOW
    assert eth.last_executed is None


def test_unexpected_order_error_recorded_as_simulated(binance, auto_execute, monkeypatch):
    def explode(symbol, amount):
        raise RuntimeError("connection reset")

    monkeypatch.setattr(binance, "create_market_buy_order", explode)
    manager = make_manager(binance)
    setup_dca(manager, "BTC/USDT", 50, "daily")
    [r] = process_due_dca(manager, now_ms=NOW).results
    assert r.mode == "simulated"
    assert r.error == "connection reset"
    assert list_dca_configs()[0].last_executed == NOW
