"""Portfolio rebalancing tool for exchange and paper portfolios."""

from __future__ import annotations

from pathlib import Path

from omnitrade.connectors.exchange import ExchangeManager
from omnitrade.errors import InvalidRequestError
from omnitrade.paper.wallet import wallet_session
from omnitrade.strategy.rebalance import (
    RebalanceExecution,
    RebalancePlan,
    collect_exchange_portfolio,
    collect_paper_portfolio,
    create_rebalance_plan,
    execute_paper_rebalance,
    execute_rebalance_plan,
)
from omnitrade.tools.responses import ok, pct, qty, tool, usd

SOURCES = ("exchange", "paper")


def _plan_dict(plan: RebalancePlan) -> dict:
    return {
        "source": plan.source,
        "totalValue": usd(plan.total_value),
        "allocations": [
            {
                "asset": a.asset,
                "currentAmount": qty(a.current_amount),
                "currentValue": usd(a.current_value),
                "currentPercent": pct(a.current_percent),
                "targetPercent": a.target_percent,
                "targetValue": usd(a.target_value),
                "difference": usd(a.difference),
                "action": a.action,
                "tradeAmount": qty(a.trade_amount),
            }
            for a in plan.allocations
        ],
        "trades": [
            {
                "symbol": t.symbol,
                "side": str(t.side),
                "amount": qty(t.amount),
                "estimatedCost": usd(t.estimated_cost),
            }
            for t in plan.trades
        ],
        "summary": {
            "totalBuyValue": usd(plan.summary.total_buy_value),
            "totalSellValue": usd(plan.summary.total_sell_value),
            "assetsToRebalance": plan.summary.assets_to_rebalance,
        },
    }


def _execution_dict(result: RebalanceExecution) -> dict:
    return {
        "executed": [
            {
                "symbol": t.symbol,
                "side": str(t.side),
                "amount": qty(t.amount),
                "orderId": t.order_id,
                "status": t.status,
            }
            for t in result.executed
        ],
        "failed": [
            {"symbol": t.symbol, "side": str(t.side), "amount": qty(t.amount), "error": t.error}
            for t in result.failed
        ],
    }


@tool
def rebalance_portfolio(
    allocations: dict[str, float],
    source: str = "exchange",
    exchange: str | None = None,
    execute: bool = False,
    manager: ExchangeManager | None = None,
    path: Path | str | None = None,
) -> dict:
    """Plan, and optionally execute, the trades that reach target allocations.

    allocations maps asset to target percent. A paper plan executes against
    the local ledger without the live-trading gate.
    """
    if source not in SOURCES:
        raise InvalidRequestError(f"source must be one of {', '.join(SOURCES)}")
    if not allocations:
        raise InvalidRequestError("At least one target allocation is required")
    targets = {asset.upper(): float(percent) for asset, percent in allocations.items()}

    if source == "paper":
        with wallet_session(path) as wallet:
            data = collect_paper_portfolio(wallet, targets)
            plan = create_rebalance_plan(
                targets, data.balances, data.prices, data.total_value, source="paper wallet"
            )
            result = execute_paper_rebalance(plan, wallet, path) if execute and plan.trades else None
    else:
        if manager is None:
            manager = ExchangeManager.from_settings()
        adapter = manager.require(exchange or manager.default())
        data = collect_exchange_portfolio(adapter, targets)
        plan = create_rebalance_plan(
            targets, data.balances, data.prices, data.total_value, source=adapter.name
        )
        result = execute_rebalance_plan(plan, adapter) if execute and plan.trades else None

    payload = {"plan": _plan_dict(plan), "executed": result is not None}
    if not plan.trades:
        payload["message"] = "Portfolio is within the rebalance threshold. No trades needed."
    elif result is None:
        payload["message"] = "Preview only. Pass execute=true to place these trades."
    else:
        payload["execution"] = _execution_dict(result)
        payload["message"] = (
            f"Rebalance executed: {len(result.executed)} succeeded, {len(result.failed)} failed"
        )
    return ok(payload)
