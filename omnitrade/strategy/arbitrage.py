"""Cross-exchange arbitrage scanner and two-leg executor.

Scan and spread figures are pre-fee. plan_arbitrage() applies an estimated
fee per leg and refuses trades that are not profitable after fees.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from omnitrade.connectors.exchange import ExchangeManager, OrderResult
from omnitrade.errors import (
    ExchangeNotConfiguredError,
    ExchangeRequestError,
    InvalidRequestError,
    NotProfitableError,
    PriceUnavailableError,
    TradingError,
)
from omnitrade.scheduler.preflight import require_auto_execution

logger = logging.getLogger(__name__)

DEFAULT_SYMBOLS = [
    "BTC/USDT",
    "ETH/USDT",
    "BNB/USDT",
    "SOL/USDT",
    "XRP/USDT",
    "ADA/USDT",
    "DOGE/USDT",
    "DOT/USDT",
    "MATIC/USDT",
    "LTC/USDT",
]
DEFAULT_MIN_SPREAD = 0.5
LEG_FEE_RATE = 0.001
UNHEDGED_WARNING = (
    "BUY ORDER WAS EXECUTED! The asset is now held unhedged on the buy exchange. "
    "Manual intervention required."
)


@dataclass(frozen=True)
class Quote:
    exchange: str
    bid: float
    ask: float


@dataclass(frozen=True)
class ArbitrageOpportunity:
    symbol: str
    buy_exchange: str
    buy_price: float
    sell_exchange: str
    sell_price: float
    spread_percent: float
    potential_profit: float  # per unit, pre-fee


@dataclass(frozen=True)
class ExchangeSpread:
    exchange: str
    bid: float
    ask: float
    spread: float
    spread_percent: float


@dataclass
class SpreadReport:
    symbol: str
    prices: list[ExchangeSpread] = field(default_factory=list)
    arbitrage: ArbitrageOpportunity | None = None
    reason: str | None = None  # why no cross-exchange opportunity


@dataclass(frozen=True)
class ArbitragePlan:
    symbol: str
    amount: float
    buy_exchange: str
    buy_price: float
    sell_exchange: str
    sell_price: float
    buy_cost: float
    sell_revenue: float
    gross_profit: float
    gross_profit_percent: float
    estimated_fees: float
    net_profit: float
    net_profit_percent: float


@dataclass
class ArbitrageExecution:
    status: str  # completed, partial
    plan: ArbitragePlan
    buy_order: OrderResult
    sell_order: OrderResult | None = None
    error: str | None = None
    warning: str | None = None


def _collect_quotes(manager: ExchangeManager, symbol: str) -> list[Quote]:
    quotes: list[Quote] = []
    for name, adapter in manager.items():
        try:
            ticker = adapter.fetch_ticker(symbol)
        except TradingError:
            logger.debug("%s not available on %s", symbol, name)
            continue
        if ticker.bid and ticker.ask and ticker.bid > 0 and ticker.ask > 0:
            quotes.append(Quote(name, ticker.bid, ticker.ask))
    return quotes


def _best_pair(quotes: list[Quote]) -> tuple[Quote, Quote]:
    # strict comparisons: the first quote wins ties
    best_buy = quotes[0]
    best_sell = quotes[0]
    for q in quotes[1:]:
        if q.ask < best_buy.ask:
            best_buy = q
        if q.bid > best_sell.bid:
            best_sell = q
    return best_buy, best_sell


def _opportunity(symbol: str, buy: Quote, sell: Quote) -> ArbitrageOpportunity:
    spread = sell.bid - buy.ask
    return ArbitrageOpportunity(
        symbol=symbol,
        buy_exchange=buy.exchange,
        buy_price=buy.ask,
        sell_exchange=sell.exchange,
        sell_price=sell.bid,
        spread_percent=round(spread / buy.ask * 100, 3),
        potential_profit=round(spread, 8),
    )


def scan_arbitrage(
    manager: ExchangeManager,
    symbols: list[str] | None = None,
    min_spread: float = DEFAULT_MIN_SPREAD,
) -> list[ArbitrageOpportunity]:
    """Opportunities across configured exchanges, best spread first."""
    if len(manager.names()) < 2:
        raise ExchangeNotConfiguredError("second exchange (arbitrage needs at least 2)", manager.names())
    if min_spread < 0 or min_spread > 100:
        raise InvalidRequestError("minSpread must be between 0 and 100")

    found: list[ArbitrageOpportunity] = []
    for raw in symbols or DEFAULT_SYMBOLS:
        symbol = raw.upper()
        quotes = _collect_quotes(manager, symbol)
        if len(quotes) < 2:
            continue
        best_buy, best_sell = _best_pair(quotes)
        if best_sell.bid <= best_buy.ask:
            continue
        spread_pct = (best_sell.bid - best_buy.ask) / best_buy.ask * 100
        if spread_pct >= min_spread:
            found.append(_opportunity(symbol, best_buy, best_sell))

    found.sort(key=lambda o: o.spread_percent, reverse=True)
    logger.info("Arbitrage scan: %d opportunity(ies)", len(found))
    return found


def check_spread(manager: ExchangeManager, symbol: str) -> SpreadReport:
    """Per-exchange bid/ask for one pair, cheapest ask first."""
    symbol = symbol.upper()
    quotes = _collect_quotes(manager, symbol)
    if not quotes:
        raise PriceUnavailableError(f"No prices found for {symbol} on any exchange.", {"symbol": symbol})

    quotes.sort(key=lambda q: q.ask)
    report = SpreadReport(
        symbol=symbol,
        prices=[
            ExchangeSpread(
                exchange=q.exchange,
                bid=q.bid,
                ask=q.ask,
                spread=round(q.ask - q.bid, 8),
                spread_percent=round((q.ask - q.bid) / q.bid * 100, 3),
            )
            for q in quotes
        ],
    )
    if len(quotes) >= 2:
        best_buy = quotes[0]
        _, best_sell = _best_pair(quotes)
        if best_sell.bid > best_buy.ask and best_sell.exchange != best_buy.exchange:
            report.arbitrage = _opportunity(symbol, best_buy, best_sell)
        else:
            report.reason = "Best bid is not higher than best ask across exchanges"
    return report


def plan_arbitrage(
    manager: ExchangeManager,
    symbol: str,
    amount: float,
    buy_exchange: str,
    sell_exchange: str,
) -> ArbitragePlan:
    """Price both legs now. Raises NotProfitableError (carrying the plan) when net <= 0."""
    if amount <= 0:
        raise InvalidRequestError("Amount must be positive", {"amount": amount})
    symbol = symbol.upper()
    buy_ex = manager.require(buy_exchange)
    sell_ex = manager.require(sell_exchange)

    buy_price = buy_ex.fetch_ticker(symbol).ask or 0.0
    sell_price = sell_ex.fetch_ticker(symbol).bid or 0.0
    if buy_price <= 0 or sell_price <= 0:
        raise PriceUnavailableError("Invalid prices fetched. Cannot proceed.", {"symbol": symbol})

    buy_cost = amount * buy_price
    sell_revenue = amount * sell_price
    gross = sell_revenue - buy_cost
    fees = buy_cost * LEG_FEE_RATE + sell_revenue * LEG_FEE_RATE
    net = gross - fees
    plan = ArbitragePlan(
        symbol=symbol,
        amount=amount,
        buy_exchange=buy_exchange.lower(),
        buy_price=buy_price,
        sell_exchange=sell_exchange.lower(),
        sell_price=sell_price,
        buy_cost=buy_cost,
        sell_revenue=sell_revenue,
        gross_profit=gross,
        gross_profit_percent=gross / buy_cost * 100,
        estimated_fees=fees,
        net_profit=net,
        net_profit_percent=net / buy_cost * 100,
    )
    if net <= 0:
        raise NotProfitableError(
            "This arbitrage is NOT profitable after fees", {"plan": plan}
        )
    return plan


def execute_arbitrage(manager: ExchangeManager, plan: ArbitragePlan) -> ArbitrageExecution:
    """Market buy then market sell. No automatic unwind if the sell leg fails."""
    require_auto_execution("Arbitrage execution")
    buy_ex = manager.require(plan.buy_exchange)
    sell_ex = manager.require(plan.sell_exchange)

    try:
        buy_order = buy_ex.create_market_buy_order(plan.symbol, plan.amount)
    except TradingError as e:
        raise ExchangeRequestError(
            f"Buy order failed on {plan.buy_exchange}: {e.message}",
            {"exchange": plan.buy_exchange},
        ) from e
    logger.info("Arbitrage buy %s on %s: %s", plan.symbol, plan.buy_exchange, buy_order.id)

    try:
        sell_order = sell_ex.create_market_sell_order(plan.symbol, plan.amount)
    except TradingError as e:
        logger.error(
            "Arbitrage sell leg failed on %s after buy %s: %s",
            plan.sell_exchange,
            buy_order.id,
            e.message,
        )
        return ArbitrageExecution(
            status="partial",
            plan=plan,
            buy_order=buy_order,
            error=e.message,
            warning=UNHEDGED_WARNING,
        )
    logger.info("Arbitrage sell %s on %s: %s", plan.symbol, plan.sell_exchange, sell_order.id)
    return ArbitrageExecution(status="completed", plan=plan, buy_order=buy_order, sell_order=sell_order)
