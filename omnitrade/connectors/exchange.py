"""Exchange capability interface over ccxt.

The core only needs six calls from an exchange: ticker, OHLCV, balance and
three order kinds. ExchangeAdapter names them; CcxtExchangeAdapter maps them
onto a ccxt exchange instance and converts ccxt errors to ExchangeRequestError.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any, Protocol

import ccxt

from omnitrade.config import ExchangeCredentials, settings
from omnitrade.errors import ExchangeNotConfiguredError, ExchangeRequestError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Ticker:
    symbol: str
    last: float | None = None
    bid: float | None = None
    ask: float | None = None


@dataclass(frozen=True)
class OrderResult:
    id: str
    status: str = ""
    cost: float | None = None  # quote spent/received when the venue reports it
    amount: float | None = None
    price: float | None = None


class ExchangeAdapter(Protocol):
    name: str

    def fetch_ticker(self, symbol: str) -> Ticker: ...

    def fetch_ohlcv(
        self, symbol: str, timeframe: str = "1h", limit: int = 24
    ) -> list[list[float]]: ...

    def fetch_balance(self) -> dict[str, float]: ...

    def create_market_buy_order(self, symbol: str, amount: float) -> OrderResult: ...

    def create_market_sell_order(self, symbol: str, amount: float) -> OrderResult: ...

    def create_limit_order(
        self, symbol: str, side: str, amount: float, price: float
    ) -> OrderResult: ...


def _to_float(value: Any) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _order_result(raw: dict[str, Any]) -> OrderResult:
    return OrderResult(
        id=str(raw.get("id") or ""),
        status=str(raw.get("status") or ""),
        cost=_to_float(raw.get("cost")),
        amount=_to_float(raw.get("amount")),
        price=_to_float(raw.get("average") or raw.get("price")),
    )


class CcxtExchangeAdapter:
    """ExchangeAdapter backed by a synchronous ccxt exchange instance."""

    def __init__(self, name: str, client: Any):
        self.name = name
        self._client = client

    @classmethod
    def create(cls, name: str, creds: ExchangeCredentials) -> CcxtExchangeAdapter:
        exchange_cls = getattr(ccxt, name, None)
        if exchange_cls is None:
            raise ExchangeNotConfiguredError(name, [])
        config: dict[str, Any] = {
            "enableRateLimit": True,
            "timeout": int(settings.http_timeout_sec * 1000),
        }
        if creds.api_key:
            config["apiKey"] = creds.api_key
        if creds.secret:
            config["secret"] = creds.secret
        if creds.password:
            config["password"] = creds.password
        client = exchange_cls(config)
        if creds.testnet:
            client.set_sandbox_mode(True)
        return cls(name, client)

    def _call(self, method: str, *args: Any) -> Any:
        try:
            return getattr(self._client, method)(*args)
        except ccxt.BaseError as e:
            raise ExchangeRequestError(
                f"{self.name}.{method} failed: {e}",
                {"exchange": self.name, "method": method},
            ) from e

    def fetch_ticker(self, symbol: str) -> Ticker:
        raw = self._call("fetch_ticker", symbol)
        return Ticker(
            symbol=raw.get("symbol") or symbol,
            last=_to_float(raw.get("last")),
            bid=_to_float(raw.get("bid")),
            ask=_to_float(raw.get("ask")),
        )

    def fetch_ohlcv(self, symbol: str, timeframe: str = "1h", limit: int = 24) -> list[list[float]]:
        return self._call("fetch_ohlcv", symbol, timeframe, None, limit)

    def fetch_balance(self) -> dict[str, float]:
        raw = self._call("fetch_balance")
        totals = raw.get("total") or {}
        return {asset: float(amount) for asset, amount in totals.items() if amount and amount > 0}

    def create_market_buy_order(self, symbol: str, amount: float) -> OrderResult:
        return _order_result(self._call("create_market_buy_order", symbol, amount))

    def create_market_sell_order(self, symbol: str, amount: float) -> OrderResult:
        return _order_result(self._call("create_market_sell_order", symbol, amount))

    def create_limit_order(self, symbol: str, side: str, amount: float, price: float) -> OrderResult:
        return _order_result(self._call("create_limit_order", symbol, side, amount, price))


class ExchangeManager:
    """Ordered registry of configured exchanges, keyed by lower-case name."""

    def __init__(
        self,
        adapters: dict[str, ExchangeAdapter] | None = None,
        credentials: dict[str, bool] | None = None,
    ):
        self._adapters: dict[str, ExchangeAdapter] = {
            k.lower(): v for k, v in (adapters or {}).items()
        }
        self._credentials = {k.lower(): v for k, v in (credentials or {}).items()}

    @classmethod
    def from_settings(cls) -> ExchangeManager:
        adapters: dict[str, ExchangeAdapter] = {}
        credentials: dict[str, bool] = {}
        for name, creds in settings.exchanges.items():
            key = name.lower()
            try:
                adapters[key] = CcxtExchangeAdapter.create(key, creds)
            except ExchangeNotConfiguredError:
                logger.warning("Unknown exchange %s in settings, skipping", name)
                continue
            credentials[key] = bool(creds.api_key and creds.secret)
        logger.debug("Configured exchanges: %s", ", ".join(adapters) or "none")
        return cls(adapters, credentials)

    def get(self, name: str) -> ExchangeAdapter | None:
        return self._adapters.get(name.lower())

    def require(self, name: str) -> ExchangeAdapter:
        adapter = self.get(name)
        if adapter is None:
            raise ExchangeNotConfiguredError(name, self.names())
        return adapter

    def names(self) -> list[str]:
        return list(self._adapters)

    def items(self) -> Iterator[tuple[str, ExchangeAdapter]]:
        return iter(list(self._adapters.items()))

    def default(self) -> str:
        """Name of the first configured exchange."""
        if not self._adapters:
            raise ExchangeNotConfiguredError("default", [])
        return next(iter(self._adapters))

    def has_credentials(self, name: str) -> bool:
        return self._credentials.get(name.lower(), False)

    def __len__(self) -> int:
        return len(self._adapters)
