"""DCA tools."""

from __future__ import annotations

from pathlib import Path

from omnitrade.connectors.exchange import ExchangeManager
from omnitrade.scheduler import dca_executor
from omnitrade.store.models import DCAConfig, now_ms
from omnitrade.tools.responses import iso, ok, tool, usd


def _config_dict(c: DCAConfig) -> dict:
    next_run = None
    if c.enabled:
        next_run = iso((c.last_executed or now_ms()) + dca_executor.frequency_interval(c.frequency))
        if not c.last_executed:
            next_run = "now"
    return {
        "id": c.id,
        "symbol": c.symbol,
        "exchange": c.exchange,
        "amountUSD": usd(c.amount_usd),
        "frequency": str(c.frequency),
        "enabled": c.enabled,
        "created": iso(c.created_at),
        "lastExecuted": iso(c.last_executed),
        "nextExecution": next_run,
        "totalExecutions": c.total_executions,
        "totalSpent": usd(c.total_spent),
    }


@tool
def setup_dca(
    manager: ExchangeManager,
    symbol: str,
    amount_usd: float,
    frequency: str,
    exchange: str | None = None,
    path: Path | str | None = None,
) -> dict:
    config = dca_executor.setup_dca(manager, symbol, amount_usd, frequency, exchange, path)
    return ok(
        {
            "message": f"DCA set up: ${amount_usd:.2f} of {config.symbol} {config.frequency}",
            "config": _config_dict(config),
        }
    )


@tool
def list_dca_configs(path: Path | str | None = None) -> dict:
    configs = dca_executor.list_dca_configs(path)
    return ok(
        {
            "count": len(configs),
            "active": sum(1 for c in configs if c.enabled),
            "configs": [_config_dict(c) for c in configs],
        }
    )


@tool
def toggle_dca(dca_id: str, enabled: bool, path: Path | str | None = None) -> dict:
    config = dca_executor.toggle_dca(dca_id, enabled, path)
    state = "enabled" if enabled else "disabled"
    return ok({"message": f"DCA {config.id} {state}", "config": _config_dict(config)})


@tool
def remove_dca(dca_id: str, path: Path | str | None = None) -> dict:
    config = dca_executor.remove_dca(dca_id, path)
    return ok({"message": f"DCA removed: {config.id}"})


@tool
def execute_dca_orders(manager: ExchangeManager, path: Path | str | None = None) -> dict:
    summary = dca_executor.process_due_dca(manager, path=path)
    if not summary.results:
        return ok({"message": "No DCA orders ready to execute", "executed": 0, "failed": 0})
    return ok(
        {
            "message": (
                f"DCA execution complete: {summary.executed} succeeded, {summary.failed} failed"
            ),
            "executed": summary.executed,
            "failed": summary.failed,
            "results": [
                {
                    "dcaId": r.dca_id,
                    "symbol": r.symbol,
                    "success": r.status == "executed",
                    "mode": r.mode,
                    "price": r.price,
                    "spent": usd(r.spent) if r.spent is not None else None,
                    "orderId": r.order_id,
                    "error": r.error,
                }
                for r in summary.results
            ],
        }
    )
