"""Binance public REST price feed (no auth) used by the paper ledger."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any

import httpx

from omnitrade.config import settings
from omnitrade.errors import PriceUnavailableError

logger = logging.getLogger(__name__)

_USDT_PAIR = re.compile(r"^[A-Z0-9]+USDT$")
_OTHER_QUOTE_PAIR = re.compile(r"^[A-Z0-9]+(BTC|ETH|BNB|USDC|BUSD)$")


@dataclass(frozen=True)
class Ticker24h:
    symbol: str
    last_price: float
    price_change_percent: float
    volume: float
    quote_volume: float
    high_price: float
    low_price: float


@dataclass(frozen=True)
class Kline:
    time: int  # open time, epoch ms
    open: float
    high: float
    low: float
    close: float
    volume: float


def normalize_symbol(asset: str) -> str:
    """BTC -> BTCUSDT, btc/usdt -> BTCUSDT, ETHBTC stays ETHBTC."""
    upper = asset.upper().replace("/", "")
    if _USDT_PAIR.match(upper) or _OTHER_QUOTE_PAIR.match(upper):
        return upper
    return f"{upper}USDT"


def _get_httpx_client() -> httpx.Client:
    return httpx.Client(base_url=settings.price_api_url, timeout=settings.http_timeout_sec)


def _get_json(path: str, params: dict[str, Any], symbol: str) -> Any:
    try:
        with _get_httpx_client() as client:
            resp = client.get(path, params=params)
            resp.raise_for_status()
            return resp.json()
    except httpx.HTTPStatusError as e:
        raise PriceUnavailableError(
            f"Binance request {path} failed for {symbol}: HTTP {e.response.status_code}",
            {"symbol": symbol, "status": e.response.status_code},
        ) from e
    except httpx.HTTPError as e:
        raise PriceUnavailableError(
            f"Binance request {path} failed for {symbol}: {e}", {"symbol": symbol}
        ) from e
    except ValueError as e:
        raise PriceUnavailableError(
            f"Binance returned an unparsable body for {symbol}", {"symbol": symbol}
        ) from e


def fetch_current_price(asset: str) -> float:
    """Last traded price of asset against USDT. Never returns a fallback."""
    symbol = normalize_symbol(asset)
    data = _get_json("/ticker/price", {"symbol": symbol}, symbol)
    try:
        price = float(data["price"])
    except (KeyError, TypeError, ValueError) as e:
        raise PriceUnavailableError(
            f"Binance price missing for {symbol}", {"symbol": symbol}
        ) from e
    if price <= 0:
        raise PriceUnavailableError(
            f"Binance returned non-positive price {price} for {symbol}", {"symbol": symbol}
        )
    logger.debug("Price %s = %s", symbol, price)
    return price


def fetch_24h_ticker(asset: str) -> Ticker24h:
    symbol = normalize_symbol(asset)
    data = _get_json("/ticker/24hr", {"symbol": symbol}, symbol)
    try:
        ticker = Ticker24h(
            symbol=symbol,
            last_price=float(data.get("lastPrice", 0)),
            price_change_percent=float(data.get("priceChangePercent", 0)),
            volume=float(data.get("volume", 0)),
            quote_volume=float(data.get("quoteVolume", 0)),
            high_price=float(data.get("highPrice", 0)),
            low_price=float(data.get("lowPrice", 0)),
        )
    except (AttributeError, TypeError, ValueError) as e:
        raise PriceUnavailableError(
            f"Binance 24h ticker malformed for {symbol}", {"symbol": symbol}
        ) from e
    if ticker.last_price <= 0:
        raise PriceUnavailableError(
            f"Binance returned non-positive price for {symbol}", {"symbol": symbol}
        )
    return ticker


def fetch_klines(asset: str, interval: str = "1h", limit: int = 24) -> list[Kline]:
    """Candles oldest first. Each raw row is [openTime, o, h, l, c, v, ...]."""
    symbol = normalize_symbol(asset)
    raw = _get_json(
        "/klines", {"symbol": symbol, "interval": interval, "limit": limit}, symbol
    )
    try:
        return [
            Kline(
                time=int(k[0]),
                open=float(k[1]),
                high=float(k[2]),
                low=float(k[3]),
                close=float(k[4]),
                volume=float(k[5]),
            )
            for k in raw
        ]
    except (IndexError, TypeError, ValueError) as e:
        raise PriceUnavailableError(
            f"Binance klines malformed for {symbol}", {"symbol": symbol}
        ) from e
