"""Shared test helpers: import in test files: from tests.helpers import FakeExchange."""

from __future__ import annotations

from omnitrade.connectors.exchange import ExchangeManager, OrderResult, Ticker
from omnitrade.errors import ExchangeRequestError


class FakeExchange:
    """In-memory ExchangeAdapter. Unknown symbols fail like an unlisted market."""

    def __init__(
        self,
        name: str = "binance",
        tickers: dict[str, tuple[float, float, float]] | None = None,
        balances: dict[str, float] | None = None,
    ):
        self.name = name
        self.tickers: dict[str, Ticker] = {}
        for symbol, (last, bid, ask) in (tickers or {}).items():
            self.set_ticker(symbol, last, bid, ask)
        self.balances = dict(balances or {})
        self.orders: list[dict] = []
        self.failing_orders: set[str] = set()  # "buy", "sell", "limit"
        self.balance_error = False
        self.broken_tickers: set[str] = set()  # raise a non-trading error
        self.ticker_calls = 0

    def set_ticker(self, symbol: str, last: float, bid: float | None = None, ask: float | None = None):
        self.tickers[symbol] = Ticker(symbol, last, bid if bid is not None else last, ask if ask is not None else last)

    def fetch_ticker(self, symbol: str) -> Ticker:
        self.ticker_calls += 1
        if symbol in self.broken_tickers:
            raise RuntimeError(f"unexpected payload for {symbol}")
        if symbol not in self.tickers:
            raise ExchangeRequestError(f"{self.name} does not have market symbol {symbol}")
        return self.tickers[symbol]

    def fetch_ohlcv(self, symbol: str, timeframe: str = "1h", limit: int = 24):
        return []

    def fetch_balance(self) -> dict[str, float]:
        if self.balance_error:
            raise ExchangeRequestError(f"{self.name}.fetch_balance failed: auth")
        return {k: v for k, v in self.balances.items() if v > 0}

    def _order(self, kind: str, symbol: str, side: str, amount: float, price: float | None) -> OrderResult:
        if kind in self.failing_orders:
            raise ExchangeRequestError(f"{self.name} rejected {side} {symbol}: insufficient balance")
        fill = price if price is not None else self.tickers[symbol].last
        order_id = f"{self.name}-{len(self.orders) + 1}"
        self.orders.append(
            {"id": order_id, "kind": kind, "symbol": symbol, "side": side, "amount": amount, "price": price}
        )
        return OrderResult(order_id, "closed", cost=amount * fill, amount=amount, price=fill)

    def create_market_buy_order(self, symbol: str, amount: float) -> OrderResult:
        return self._order("buy", symbol, "buy", amount, None)

    def create_market_sell_order(self, symbol: str, amount: float) -> OrderResult:
        return self._order("sell", symbol, "sell", amount, None)

    def create_limit_order(self, symbol: str, side: str, amount: float, price: float) -> OrderResult:
        return self._order("limit", symbol, side, amount, price)


def make_manager(*exchanges: FakeExchange, credentials: bool = True) -> ExchangeManager:
    """ExchangeManager over fakes, in the order given."""
    return ExchangeManager(
        {ex.name: ex for ex in exchanges},
        {ex.name: credentials for ex in exchanges},
    )
