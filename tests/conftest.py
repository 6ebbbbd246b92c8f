"""Shared fixtures for omnitrade tests.

Helper classes (FakeExchange, make_manager, etc.) are in tests/helpers.py.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from omnitrade.config import settings
from omnitrade.errors import PriceUnavailableError


@pytest.fixture(autouse=True)
def data_dir(tmp_path: Path, monkeypatch) -> Path:
    """Isolated data dir per test; notifications off; live trading gated."""
    d = tmp_path / "data"
    monkeypatch.setattr(settings, "data_dir", d)
    monkeypatch.setattr(settings, "telegram_bot_token", "")
    monkeypatch.setattr(settings, "telegram_chat_id", "")
    monkeypatch.setattr(settings, "discord_webhook_url", "")
    monkeypatch.setattr(settings, "confirm_trades", True)
    monkeypatch.setattr(settings, "initial_usdt", 10_000.0)
    monkeypatch.setattr(settings, "fee_rate", 0.001)
    monkeypatch.setattr(settings, "max_order_size_usd", 100.0)
    monkeypatch.setattr(settings, "rebalance_threshold_pct", 1.0)
    return d


@pytest.fixture()
def auto_execute(monkeypatch) -> None:
    """Allow real order placement (CONFIRM_TRADES=false)."""
    monkeypatch.setattr(settings, "confirm_trades", False)


@pytest.fixture()
def paper_prices(monkeypatch) -> dict[str, float]:
    """Binance price feed stub. Mutate the returned dict to move prices."""
    prices: dict[str, float] = {"BTC": 50_000.0, "ETH": 3_000.0}

    def fake_price(asset: str) -> float:
        asset = asset.upper()
        if asset not in prices:
            raise PriceUnavailableError(f"No price for {asset}", {"symbol": asset})
        return prices[asset]

    for module in ("omnitrade.paper.wallet", "omnitrade.paper.valuation", "omnitrade.strategy.rebalance"):
        monkeypatch.setattr(f"{module}.fetch_current_price", fake_price)
    return prices
