"""Paper trading tools over the local ledger."""

from __future__ import annotations

from pathlib import Path

from omnitrade.config import settings
from omnitrade.errors import InvalidRequestError
from omnitrade.paper.valuation import get_portfolio_summary
from omnitrade.paper.wallet import (
    TradeResult,
    execute_buy,
    execute_sell,
    load_wallet,
    reset_wallet,
    trade_history,
    wallet_session,
)
from omnitrade.store.models import Trade
from omnitrade.tools.responses import iso, ok, pct, qty, tool, usd


def _trade_dict(t: Trade) -> dict:
    return {
        "id": t.id,
        "time": iso(t.timestamp),
        "side": str(t.side),
        "asset": t.asset,
        "symbol": t.symbol,
        "amount": qty(t.amount),
        "price": t.price,
        "quoteValue": usd(t.quote_value),
        "fee": round(t.fee, 4),
        "feeAsset": t.fee_asset,
        "balanceAfter": usd(t.balance_after),
    }


def _trade_payload(result: TradeResult) -> dict:
    holding = result.wallet.holdings.get(result.trade.asset)
    return ok(
        {
            "trade": _trade_dict(result.trade),
            "cashBalance": usd(result.wallet.cash),
            "holding": qty(holding.amount) if holding else 0.0,
        }
    )


@tool
def paper_buy(asset: str, amount: float, path: Path | str | None = None) -> dict:
    with wallet_session(path) as wallet:
        result = execute_buy(wallet, asset, amount, path)
    return _trade_payload(result)


@tool
def paper_sell(asset: str, amount: float, path: Path | str | None = None) -> dict:
    with wallet_session(path) as wallet:
        result = execute_sell(wallet, asset, amount, path)
    return _trade_payload(result)


@tool
def paper_portfolio(path: Path | str | None = None) -> dict:
    summary = get_portfolio_summary(load_wallet(path))
    return ok(
        {
            "totalValue": usd(summary.total_value),
            "cashBalance": usd(summary.cash),
            "holdingsValue": usd(summary.holdings_value),
            "initialValue": usd(summary.initial_value),
            "totalPnl": usd(summary.total_pnl),
            "totalPnlPercent": pct(summary.total_pnl_pct),
            "holdings": [
                {
                    "asset": h.asset,
                    "amount": qty(h.amount),
                    "price": h.price,
                    "value": usd(h.value),
                    "avgBuyPrice": h.avg_buy_price,
                    "pnl": usd(h.pnl),
                    "pnlPercent": pct(h.pnl_pct),
                    "allocation": pct(h.allocation),
                }
                for h in summary.holdings
            ],
        }
    )


@tool
def paper_history(limit: int = 20, asset: str | None = None, path: Path | str | None = None) -> dict:
    if limit <= 0:
        raise InvalidRequestError("limit must be positive")
    wallet = load_wallet(path)
    trades = trade_history(wallet, limit, asset)
    return ok(
        {
            "count": len(trades),
            "totalTrades": len(wallet.trades),
            "trades": [_trade_dict(t) for t in trades],
        }
    )


@tool
def paper_reset(confirm: bool = False, path: Path | str | None = None) -> dict:
    if not confirm:
        raise InvalidRequestError(
            "Resetting erases every paper holding and trade. Pass confirm=true to proceed."
        )
    wallet = reset_wallet(path)
    return ok(
        {
            "message": f"Paper wallet reset to ${settings.initial_usdt:,.2f} USDT",
            "cashBalance": usd(wallet.cash),
        }
    )
