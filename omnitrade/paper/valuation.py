"""Mark the paper wallet to market."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from omnitrade.config import settings
from omnitrade.connectors.binance import fetch_current_price
from omnitrade.store.models import Wallet

logger = logging.getLogger(__name__)


@dataclass
class HoldingWithValue:
    asset: str
    amount: float
    price: float
    value: float
    avg_buy_price: float
    pnl: float
    pnl_pct: float
    allocation: float = 0.0  # % of total portfolio value


@dataclass
class PortfolioSummary:
    total_value: float
    cash: float
    holdings_value: float
    initial_value: float
    total_pnl: float
    total_pnl_pct: float
    holdings: list[HoldingWithValue] = field(default_factory=list)


def get_portfolio_summary(wallet: Wallet) -> PortfolioSummary:
    """Value every holding at the live price.

    Read only. A price failure on any holding propagates and aborts the whole
    summary; no partial result is returned. Overall P&L is measured against
    the initial endowment, not against cost basis.
    """
    rows: list[HoldingWithValue] = []
    holdings_value = 0.0

    for asset, holding in wallet.holdings.items():
        price = fetch_current_price(asset)
        value = holding.amount * price
        pnl = value - holding.total_cost
        pnl_pct = pnl / holding.total_cost * 100 if holding.total_cost > 0 else 0.0
        holdings_value += value
        rows.append(
            HoldingWithValue(
                asset=asset,
                amount=holding.amount,
                price=price,
                value=value,
                avg_buy_price=holding.avg_buy_price,
                pnl=pnl,
                pnl_pct=pnl_pct,
            )
        )

    total_value = wallet.cash + holdings_value
    for row in rows:
        row.allocation = row.value / total_value * 100 if total_value > 0 else 0.0
    rows.sort(key=lambda r: r.value, reverse=True)

    initial = settings.initial_usdt
    total_pnl = total_value - initial
    total_pnl_pct = total_pnl / initial * 100 if initial > 0 else 0.0

    return PortfolioSummary(
        total_value=total_value,
        cash=wallet.cash,
        holdings_value=holdings_value,
        initial_value=initial,
        total_pnl=total_pnl,
        total_pnl_pct=total_pnl_pct,
        holdings=rows,
    )
