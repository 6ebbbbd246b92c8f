"""Price and spread queries."""

from __future__ import annotations

from omnitrade.connectors import binance
from omnitrade.connectors.exchange import ExchangeManager
from omnitrade.errors import InvalidRequestError, PriceUnavailableError, TradingError
from omnitrade.strategy import arbitrage
from omnitrade.tools.responses import iso, ok, pct, qty, tool

KLINE_INTERVALS = ("1m", "5m", "15m", "30m", "1h", "4h", "1d", "1w")


@tool
def get_price(asset: str) -> dict:
    t = binance.fetch_24h_ticker(asset)
    return ok(
        {
            "symbol": t.symbol,
            "price": t.last_price,
            "change24hPercent": pct(t.price_change_percent),
            "high24h": t.high_price,
            "low24h": t.low_price,
            "volume24h": qty(t.volume),
            "quoteVolume24h": round(t.quote_volume, 2),
        }
    )


@tool
def get_price_history(asset: str, interval: str = "1h", limit: int = 24) -> dict:
    if interval not in KLINE_INTERVALS:
        raise InvalidRequestError(f"interval must be one of {', '.join(KLINE_INTERVALS)}")
    if not 1 <= limit <= 1000:
        raise InvalidRequestError("limit must be between 1 and 1000")

    klines = binance.fetch_klines(asset, interval, limit)
    if not klines:
        raise PriceUnavailableError(f"No candles returned for {asset}")
    first, last = klines[0], klines[-1]
    change = (last.close - first.open) / first.open * 100 if first.open > 0 else 0.0
    return ok(
        {
            "symbol": binance.normalize_symbol(asset),
            "interval": interval,
            "candles": [
                {
                    "time": iso(k.time),
                    "open": k.open,
                    "high": k.high,
                    "low": k.low,
                    "close": k.close,
                    "volume": qty(k.volume),
                }
                for k in klines
            ],
            "periodHigh": max(k.high for k in klines),
            "periodLow": min(k.low for k in klines),
            "periodChangePercent": pct(change),
        }
    )


@tool
def get_exchange_price(manager: ExchangeManager, symbol: str, exchange: str | None = None) -> dict:
    """Ticker from one exchange, or from every configured exchange."""
    symbol = symbol.upper()
    if exchange:
        targets = [(exchange.lower(), manager.require(exchange))]
    else:
        targets = list(manager.items())

    quotes = []
    errors = []
    for name, adapter in targets:
        try:
            t = adapter.fetch_ticker(symbol)
        except TradingError as e:
            errors.append({"exchange": name, "error": e.message})
            continue
        quotes.append({"exchange": name, "last": t.last, "bid": t.bid, "ask": t.ask})
    if not quotes:
        raise PriceUnavailableError(
            f"No prices found for {symbol} on any exchange.", {"errors": errors}
        )
    return ok({"symbol": symbol, "prices": quotes, "errors": errors})


@tool
def check_spread(manager: ExchangeManager, symbol: str) -> dict:
    report = arbitrage.check_spread(manager, symbol)
    data = {
        "symbol": report.symbol,
        "exchanges": len(report.prices),
        "prices": [
            {
                "exchange": p.exchange,
                "bid": p.bid,
                "ask": p.ask,
                "spread": p.spread,
                "spreadPercent": p.spread_percent,
            }
            for p in report.prices
        ],
        "arbitrage": None,
    }
    if report.arbitrage:
        a = report.arbitrage
        data["arbitrage"] = {
            "exists": True,
            "buyOn": a.buy_exchange,
            "buyAt": a.buy_price,
            "sellOn": a.sell_exchange,
            "sellAt": a.sell_price,
            "profit": a.potential_profit,
            "profitPercent": a.spread_percent,
        }
    elif report.reason:
        data["arbitrage"] = {"exists": False, "reason": report.reason}
    return ok(data)
