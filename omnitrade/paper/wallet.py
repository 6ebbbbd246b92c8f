"""Paper wallet ledger: virtual USDT balance, holdings with cost basis, trade log.

Fills are always full at the last Binance price. Cash only changes through
execute_buy / execute_sell, and every successful trade rewrites the wallet
document.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from omnitrade.config import settings
from omnitrade.connectors.binance import fetch_current_price
from omnitrade.errors import (
    InsufficientFundsError,
    InsufficientHoldingError,
    InvalidAmountError,
)
from omnitrade.store.documents import load_document, locked, save_document
from omnitrade.store.models import Holding, Side, Trade, Wallet, new_id, now_ms
from omnitrade.store.paths import document_path

logger = logging.getLogger(__name__)

DUST_EPSILON = 1e-10


@dataclass(frozen=True)
class TradeResult:
    trade: Trade
    wallet: Wallet


def _fresh_wallet() -> Wallet:
    return Wallet(cash=settings.initial_usdt)


def load_wallet(path: Path | str | None = None) -> Wallet:
    """Load the wallet, creating (and persisting) a fresh one if missing or corrupt."""
    p = document_path("wallet", path)
    data = load_document(p, dict)
    if data:
        try:
            return Wallet.from_dict(data)
        except (KeyError, TypeError, ValueError):
            logger.warning("Paper wallet %s is malformed, creating fresh wallet", p)
    wallet = _fresh_wallet()
    save_wallet(wallet, p)
    return wallet


def save_wallet(wallet: Wallet, path: Path | str | None = None) -> None:
    save_document(document_path("wallet", path), wallet.to_dict())


def reset_wallet(path: Path | str | None = None) -> Wallet:
    """Discard every holding and trade and start again from initial_usdt."""
    p = document_path("wallet", path)
    with locked(p):
        wallet = _fresh_wallet()
        save_wallet(wallet, p)
    logger.info("Paper wallet reset to $%.2f", wallet.cash)
    return wallet


@contextmanager
def wallet_session(path: Path | str | None = None) -> Iterator[Wallet]:
    """Hold the wallet lock for one read-modify-write sequence.

    The wallet is saved on a clean exit; an exception leaves the file as is.
    """
    p = document_path("wallet", path)
    with locked(p):
        wallet = load_wallet(p)
        yield wallet
        save_wallet(wallet, p)


def execute_buy(
    wallet: Wallet, asset: str, amount: float, path: Path | str | None = None
) -> TradeResult:
    if amount <= 0:
        raise InvalidAmountError("Amount must be positive", {"amount": amount})

    asset = asset.upper()
    price = fetch_current_price(asset)
    quote_required = amount * price
    fee = quote_required * settings.fee_rate
    total_cost = quote_required + fee

    if wallet.cash < total_cost:
        raise InsufficientFundsError(total_cost, wallet.cash)

    existing = wallet.holdings.get(asset)
    prev_amount = existing.amount if existing else 0.0
    prev_cost = existing.total_cost if existing else 0.0
    new_total_cost = prev_cost + quote_required
    new_amount = prev_amount + amount

    wallet.cash -= total_cost
    wallet.holdings[asset] = Holding(
        asset=asset,
        amount=new_amount,
        avg_buy_price=new_total_cost / new_amount,
        total_cost=new_total_cost,
    )

    trade = Trade(
        id=new_id("trade"),
        timestamp=now_ms(),
        side=Side.BUY,
        asset=asset,
        symbol=f"{asset}/{settings.quote_currency}",
        amount=amount,
        price=price,
        quote_value=quote_required,
        fee=fee,
        balance_after=wallet.cash,
        fee_asset=settings.quote_currency,
    )
    wallet.trades.append(trade)
    save_wallet(wallet, path)

    logger.info("Paper BUY %.8f %s @ %.4f (fee %.4f)", amount, asset, price, fee)
    return TradeResult(trade, wallet)


def execute_sell(
    wallet: Wallet, asset: str, amount: float, path: Path | str | None = None
) -> TradeResult:
    if amount <= 0:
        raise InvalidAmountError("Amount must be positive", {"amount": amount})

    asset = asset.upper()
    holding = wallet.holdings.get(asset)
    available = holding.amount if holding else 0.0
    if holding is None or available < amount - DUST_EPSILON:
        raise InsufficientHoldingError(asset, amount, available)

    price = fetch_current_price(asset)
    gross = amount * price
    fee = gross * settings.fee_rate
    net = gross - fee

    remaining = holding.amount - amount
    if remaining < DUST_EPSILON:
        del wallet.holdings[asset]
    else:
        # avg_buy_price is untouched; cost shrinks with the amount
        holding.amount = remaining
        holding.total_cost = holding.avg_buy_price * remaining

    wallet.cash += net

    trade = Trade(
        id=new_id("trade"),
        timestamp=now_ms(),
        side=Side.SELL,
        asset=asset,
        symbol=f"{asset}/{settings.quote_currency}",
        amount=amount,
        price=price,
        quote_value=gross,
        fee=fee,
        balance_after=wallet.cash,
        fee_asset=settings.quote_currency,
    )
    wallet.trades.append(trade)
    save_wallet(wallet, path)

    logger.info("Paper SELL %.8f %s @ %.4f (fee %.4f)", amount, asset, price, fee)
    return TradeResult(trade, wallet)


def trade_history(wallet: Wallet, limit: int = 20, asset: str | None = None) -> list[Trade]:
    """Most recent trades first, optionally for one asset."""
    trades = wallet.trades
    if asset:
        trades = [t for t in trades if t.asset == asset.upper()]
    return list(reversed(trades))[:limit]


def format_price(price: float) -> str:
    if price >= 10_000:
        return f"${price:,.2f}"
    if price >= 100:
        return f"${price:.2f}"
    if price >= 1:
        return f"${price:.4f}"
    return f"${price:.6f}"


def format_pnl(pnl: float, pct: float) -> str:
    sign = "+" if pnl >= 0 else "-"
    return f"{sign}${abs(pnl):.2f} ({sign}{abs(pct):.2f}%)"
