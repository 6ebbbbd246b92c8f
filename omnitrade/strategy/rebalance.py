"""Rebalancing planner: allocation deltas -> minimal trade list.

Plans are derived, never persisted. Deviations inside the no-trade band
(settings.rebalance_threshold_pct of total value) are reported as hold.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from omnitrade.config import settings
from omnitrade.connectors.binance import fetch_current_price
from omnitrade.connectors.exchange import ExchangeAdapter
from omnitrade.errors import (
    InvalidRequestError,
    InvalidTargetsError,
    MissingPriceError,
    PriceUnavailableError,
    TradingError,
)
from omnitrade.paper.wallet import execute_buy, execute_sell
from omnitrade.scheduler.preflight import require_auto_execution
from omnitrade.store.models import Side, Wallet

logger = logging.getLogger(__name__)

STABLECOINS = ("USDT", "USD", "USDC", "BUSD", "DAI")
QUOTE_PREFERENCE = ("USDT", "USD", "BUSD")
TARGET_SUM_TOLERANCE = 0.1
BAND_EPSILON = 1e-9  # relative to total value
BUY_MARGIN = 1e-9  # keeps a trimmed buy within cash after the fee is recomputed


@dataclass
class AssetAllocation:
    asset: str
    target_percent: float
    current_amount: float
    current_value: float
    current_percent: float
    target_value: float
    difference: float
    action: str  # buy, sell, hold
    trade_amount: float
    price: float


@dataclass(frozen=True)
class RebalanceTrade:
    symbol: str
    side: Side
    amount: float
    estimated_cost: float


@dataclass(frozen=True)
class RebalanceSummary:
    total_buy_value: float
    total_sell_value: float
    assets_to_rebalance: int


@dataclass
class RebalancePlan:
    source: str
    total_value: float
    allocations: list[AssetAllocation]
    trades: list[RebalanceTrade]
    summary: RebalanceSummary


@dataclass
class PortfolioData:
    balances: dict[str, float] = field(default_factory=dict)
    prices: dict[str, float] = field(default_factory=dict)
    total_value: float = 0.0


@dataclass(frozen=True)
class ExecutedTrade:
    symbol: str
    side: Side
    amount: float
    order_id: str
    status: str


@dataclass(frozen=True)
class FailedTrade:
    symbol: str
    side: Side
    amount: float
    error: str


@dataclass
class RebalanceExecution:
    executed: list[ExecutedTrade] = field(default_factory=list)
    failed: list[FailedTrade] = field(default_factory=list)


def _trading_pair(asset: str, prices: dict[str, float]) -> str:
    for quote in QUOTE_PREFERENCE:
        if prices.get(quote):
            return f"{asset}/{quote}"
    return f"{asset}/{settings.quote_currency}"


def create_rebalance_plan(
    target_percentages: dict[str, float],
    balances: dict[str, float],
    prices: dict[str, float],
    total_value: float,
    source: str = "exchange",
) -> RebalancePlan:
    """Derive per-asset actions and the trade list that reaches the targets."""
    if any(p < 0 or p > 100 for p in target_percentages.values()):
        raise InvalidTargetsError(
            "Target percentages must be between 0 and 100", {"targets": target_percentages}
        )
    total_percent = sum(target_percentages.values())
    if abs(total_percent - 100) > TARGET_SUM_TOLERANCE:
        raise InvalidTargetsError(
            f"Target percentages must sum to 100% (got {total_percent:.2f}%)",
            {"sum": total_percent},
        )
    if total_value <= 0:
        raise InvalidRequestError(
            f"No portfolio value found on {source}. Cannot rebalance empty portfolio."
        )

    band = total_value * settings.rebalance_threshold_pct / 100
    allocations: list[AssetAllocation] = []
    trades: list[RebalanceTrade] = []

    for raw_asset, target_percent in target_percentages.items():
        asset = raw_asset.upper()
        price = prices.get(asset)
        if not price or price <= 0:
            raise MissingPriceError(
                f"Cannot get price for {asset}. Ensure the asset is tradeable on {source}.",
                {"asset": asset},
            )

        current_amount = balances.get(asset, 0.0)
        current_value = current_amount * price
        target_value = total_value * target_percent / 100
        difference = target_value - current_value

        action = "hold"
        trade_amount = 0.0
        if abs(difference) - band > BAND_EPSILON * total_value:
            action = "buy" if difference > 0 else "sell"
            trade_amount = abs(difference) / price

        allocations.append(
            AssetAllocation(
                asset=asset,
                target_percent=target_percent,
                current_amount=current_amount,
                current_value=current_value,
                current_percent=current_value / total_value * 100,
                target_value=target_value,
                difference=difference,
                action=action,
                trade_amount=trade_amount,
                price=price,
            )
        )
        if action != "hold":
            trades.append(
                RebalanceTrade(
                    symbol=_trading_pair(asset, prices),
                    side=Side(action),
                    amount=trade_amount,
                    estimated_cost=abs(difference),
                )
            )

    summary = RebalanceSummary(
        total_buy_value=sum(t.estimated_cost for t in trades if t.side == Side.BUY),
        total_sell_value=sum(t.estimated_cost for t in trades if t.side == Side.SELL),
        assets_to_rebalance=len(trades),
    )
    return RebalancePlan(source, total_value, allocations, trades, summary)


def usd_price(exchange: ExchangeAdapter, asset: str) -> float:
    for quote in QUOTE_PREFERENCE:
        try:
            ticker = exchange.fetch_ticker(f"{asset}/{quote}")
        except TradingError:
            continue
        if ticker.last and ticker.last > 0:
            return ticker.last
    if asset in STABLECOINS:
        return 1.0
    return 0.0


def collect_exchange_portfolio(
    exchange: ExchangeAdapter, extra_assets: Iterable[str] = ()
) -> PortfolioData:
    """Balances and USD prices for every held asset plus any extra target assets.

    An asset that cannot be priced is left out of prices and out of the total.
    """
    data = PortfolioData(balances=exchange.fetch_balance())
    for asset, amount in data.balances.items():
        price = usd_price(exchange, asset)
        if price > 0:
            data.prices[asset] = price
            data.total_value += amount * price
        else:
            logger.warning("No USD price for %s on %s, excluded", asset, exchange.name)

    for asset in {a.upper() for a in extra_assets} - set(data.balances):
        price = usd_price(exchange, asset)
        if price > 0:
            data.prices[asset] = price
    return data


def collect_paper_portfolio(wallet: Wallet, extra_assets: Iterable[str] = ()) -> PortfolioData:
    """Same shape as collect_exchange_portfolio, from the paper ledger."""
    quote = settings.quote_currency
    data = PortfolioData(
        balances={quote: wallet.cash},
        prices={quote: 1.0},
        total_value=wallet.cash,
    )
    for asset, holding in wallet.holdings.items():
        price = fetch_current_price(asset)
        data.balances[asset] = holding.amount
        data.prices[asset] = price
        data.total_value += holding.amount * price

    for asset in {a.upper() for a in extra_assets} - set(data.prices):
        if asset in STABLECOINS:
            data.prices[asset] = 1.0
            continue
        try:
            data.prices[asset] = fetch_current_price(asset)
        except PriceUnavailableError:
            logger.warning("No paper price for target asset %s", asset)
    return data


def execute_rebalance_plan(plan: RebalancePlan, exchange: ExchangeAdapter) -> RebalanceExecution:
    """Submit every planned trade as a market order.

    Not atomic: each trade succeeds or fails on its own and a failure never
    blocks the rest, so a partial run can leave an intermediate allocation.
    A quote-asset leg such as USDT/USDT is not an order and is skipped.
    """
    require_auto_execution("Rebalance execution")
    result = RebalanceExecution()
    for trade in plan.trades:
        base, _, quote = trade.symbol.partition("/")
        if base == quote:
            continue  # cash moves with the other legs
        try:
            if trade.side == Side.BUY:
                order = exchange.create_market_buy_order(trade.symbol, trade.amount)
            else:
                order = exchange.create_market_sell_order(trade.symbol, trade.amount)
        except Exception as e:
            logger.warning("Rebalance %s %s failed: %s", trade.side, trade.symbol, e)
            result.failed.append(FailedTrade(trade.symbol, trade.side, trade.amount, str(e)))
            continue
        result.executed.append(
            ExecutedTrade(trade.symbol, trade.side, trade.amount, order.id, order.status)
        )
    logger.info(
        "Rebalance on %s: %d executed, %d failed",
        exchange.name,
        len(result.executed),
        len(result.failed),
    )
    return result


def execute_paper_rebalance(plan: RebalancePlan, wallet: Wallet, path=None) -> RebalanceExecution:
    """Apply a plan to the paper ledger, sells first so their proceeds fund the buys.

    Buys are trimmed to what the cash balance can pay for, fee included, at
    the planned price.
    """
    result = RebalanceExecution()
    ordered = sorted(plan.trades, key=lambda t: 0 if t.side == Side.SELL else 1)
    for trade in ordered:
        asset = trade.symbol.split("/")[0]
        if asset == settings.quote_currency:
            continue  # cash moves with the other legs
        amount = trade.amount
        try:
            if trade.side == Side.SELL:
                held = wallet.holdings.get(asset)
                if held is not None:
                    amount = min(amount, held.amount)
                res = execute_sell(wallet, asset, amount, path)
            else:
                planned_price = trade.estimated_cost / trade.amount
                unit_cost = planned_price * (1 + settings.fee_rate)
                affordable = wallet.cash / unit_cost * (1 - BUY_MARGIN)
                amount = min(amount, affordable)
                res = execute_buy(wallet, asset, amount, path)
        except TradingError as e:
            logger.warning("Paper rebalance %s %s failed: %s", trade.side, asset, e.message)
            result.failed.append(FailedTrade(trade.symbol, trade.side, amount, e.message))
            continue
        result.executed.append(
            ExecutedTrade(trade.symbol, trade.side, amount, res.trade.id, "filled")
        )
    return result
