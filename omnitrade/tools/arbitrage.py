"""Arbitrage scan, spread and two-leg execution tools."""

from __future__ import annotations

from dataclasses import asdict

from omnitrade.connectors.exchange import ExchangeManager, OrderResult
from omnitrade.errors import NotProfitableError
from omnitrade.strategy import arbitrage
from omnitrade.strategy.arbitrage import ArbitragePlan
from omnitrade.tools.market import check_spread
from omnitrade.tools.responses import err, ok, pct, qty, tool, usd

__all__ = ["check_spread", "execute_arbitrage", "get_arbitrage"]


def _plan_dict(plan: ArbitragePlan) -> dict:
    return {
        "symbol": plan.symbol,
        "amount": qty(plan.amount),
        "buy": {"exchange": plan.buy_exchange, "price": plan.buy_price, "cost": usd(plan.buy_cost)},
        "sell": {
            "exchange": plan.sell_exchange,
            "price": plan.sell_price,
            "revenue": usd(plan.sell_revenue),
        },
        "grossProfit": usd(plan.gross_profit),
        "grossProfitPercent": pct(plan.gross_profit_percent, 3),
        "estimatedFees": usd(plan.estimated_fees),
        "netProfit": usd(plan.net_profit),
        "netProfitPercent": pct(plan.net_profit_percent, 3),
    }


def _order_dict(order: OrderResult | None) -> dict | None:
    return asdict(order) if order is not None else None


@tool
def get_arbitrage(
    manager: ExchangeManager,
    symbols: list[str] | None = None,
    min_spread: float = arbitrage.DEFAULT_MIN_SPREAD,
) -> dict:
    found = arbitrage.scan_arbitrage(manager, symbols, min_spread)
    data = {
        "exchanges": manager.names(),
        "minSpread": min_spread,
        "count": len(found),
        "opportunities": [
            {
                "symbol": o.symbol,
                "buyOn": o.buy_exchange,
                "buyAt": o.buy_price,
                "sellOn": o.sell_exchange,
                "sellAt": o.sell_price,
                "spreadPercent": o.spread_percent,
                "profitPerUnit": o.potential_profit,
            }
            for o in found
        ],
        "note": "Spreads are before trading and withdrawal fees.",
    }
    if not found:
        data["message"] = f"No arbitrage opportunities found with spread >= {min_spread}%"
    return ok(data)


@tool
def execute_arbitrage(
    manager: ExchangeManager,
    symbol: str,
    amount: float,
    buy_exchange: str,
    sell_exchange: str,
    preview: bool = True,
) -> dict:
    """Price both legs and, when preview is off, buy then sell at market."""
    try:
        plan = arbitrage.plan_arbitrage(manager, symbol, amount, buy_exchange, sell_exchange)
    except NotProfitableError as e:
        return err(e.code, e.message, {"plan": _plan_dict(e.data["plan"])})

    if preview:
        return ok(
            {
                "preview": True,
                "plan": _plan_dict(plan),
                "message": "Preview only. Pass preview=false to execute both legs.",
            }
        )

    result = arbitrage.execute_arbitrage(manager, plan)
    if result.status == "partial":
        return err(
            "PARTIAL_EXECUTION",
            f"Sell order failed on {plan.sell_exchange}: {result.error}",
            {
                "plan": _plan_dict(plan),
                "buyOrder": _order_dict(result.buy_order),
                "warning": result.warning,
            },
        )
    return ok(
        {
            "preview": False,
            "plan": _plan_dict(plan),
            "buyOrder": _order_dict(result.buy_order),
            "sellOrder": _order_dict(result.sell_order),
            "message": f"Arbitrage executed on {plan.symbol}",
        }
    )
