"""DCA (Dollar Cost Averaging) recurring purchases.

Each config buys a fixed USD amount of one symbol at most once per frequency
interval. Who places the order is decided per exchange by select_executor():

- RealExecutor: credentials present and auto-execution allowed. Places a
  market buy; if the order itself fails the run is recorded as simulated
  with the error attached.
- SimulatedExecutor: no order, spent = amount_usd.

Either way lastExecuted, totalExecutions and totalSpent advance, so in
simulation the statistics reflect intent rather than settled trades.
Failures before an executor runs (exchange missing, no price, order over
max_order_size_usd) do not advance anything.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from omnitrade.config import settings
from omnitrade.connectors.exchange import ExchangeAdapter, ExchangeManager
from omnitrade.errors import InvalidRequestError, NotFoundError, TradingError
from omnitrade.notifications.dispatcher import send_notification
from omnitrade.scheduler.preflight import auto_execution_allowed
from omnitrade.store.documents import load_document, locked, save_document
from omnitrade.store.models import DCAConfig, Frequency, new_id
from omnitrade.store.models import now_ms as current_ms
from omnitrade.store.paths import document_path

logger = logging.getLogger(__name__)

HOUR_MS = 60 * 60 * 1000
FREQUENCY_MS = {
    Frequency.HOURLY: HOUR_MS,
    Frequency.DAILY: 24 * HOUR_MS,
    Frequency.WEEKLY: 7 * 24 * HOUR_MS,
    Frequency.MONTHLY: 30 * 24 * HOUR_MS,
}


@dataclass(frozen=True)
class DCAExecution:
    """What an executor did for one due config."""

    mode: str  # real, simulated
    spent: float
    order_id: str | None = None
    error: str | None = None


@dataclass
class DCAResult:
    """Outcome of processing a single DCA config."""

    dca_id: str
    symbol: str
    status: str  # executed, failed
    mode: str | None = None
    price: float | None = None
    spent: float | None = None
    order_id: str | None = None
    error: str | None = None


@dataclass
class DCARunSummary:
    executed: int = 0
    failed: int = 0
    results: list[DCAResult] = field(default_factory=list)


class DCAExecutor(Protocol):
    def execute(self, config: DCAConfig, exchange: ExchangeAdapter, price: float) -> DCAExecution: ...


class SimulatedExecutor:
    def execute(self, config: DCAConfig, exchange: ExchangeAdapter, price: float) -> DCAExecution:
        logger.info(
            "DCA %s: SIMULATED buy %s $%.2f at %.2f",
            config.id,
            config.symbol,
            config.amount_usd,
            price,
        )
        return DCAExecution("simulated", config.amount_usd)


class RealExecutor:
    def execute(self, config: DCAConfig, exchange: ExchangeAdapter, price: float) -> DCAExecution:
        amount = config.amount_usd / price
        try:
            order = exchange.create_market_buy_order(config.symbol, amount)
        except Exception as e:
            logger.warning("DCA %s: real order failed, logging as simulated: %s", config.id, e)
            return DCAExecution("simulated", config.amount_usd, error=str(e))
        spent = order.cost if order.cost is not None else config.amount_usd
        logger.info(
            "DCA %s: REAL buy %s $%.2f at %.2f (order %s)",
            config.id,
            config.symbol,
            spent,
            price,
            order.id,
        )
        return DCAExecution("real", spent, order_id=order.id)


def select_executor(manager: ExchangeManager, exchange: str) -> DCAExecutor:
    if manager.has_credentials(exchange) and auto_execution_allowed():
        return RealExecutor()
    return SimulatedExecutor()


def frequency_interval(frequency: Frequency | str) -> int:
    """Interval in milliseconds."""
    return FREQUENCY_MS[Frequency(frequency)]


def is_dca_due(config: DCAConfig, now_ms: int) -> bool:
    if not config.enabled:
        return False
    if not config.last_executed:
        return True
    return now_ms - config.last_executed >= frequency_interval(config.frequency)


def _load_configs(path: Path) -> list[DCAConfig]:
    data = load_document(path, lambda: {"configs": []})
    return [DCAConfig.from_dict(c) for c in data.get("configs", [])]


def _save_configs(path: Path, configs: list[DCAConfig]) -> None:
    save_document(path, {"configs": [c.to_dict() for c in configs]})


def setup_dca(
    manager: ExchangeManager,
    symbol: str,
    amount_usd: float,
    frequency: str,
    exchange: str | None = None,
    path: Path | str | None = None,
) -> DCAConfig:
    if amount_usd <= 0:
        raise InvalidRequestError("amountUSD must be positive", {"amountUSD": amount_usd})
    try:
        freq = Frequency(frequency)
    except ValueError:
        raise InvalidRequestError(f"Unknown frequency: {frequency}") from None

    exchange_name = (exchange or manager.default()).lower()
    manager.require(exchange_name)

    config = DCAConfig(
        id=new_id("dca"),
        symbol=symbol.upper(),
        exchange=exchange_name,
        amount_usd=amount_usd,
        frequency=freq,
        created_at=current_ms(),
    )
    p = document_path("dca", path)
    with locked(p):
        configs = _load_configs(p)
        configs.append(config)
        _save_configs(p, configs)
    logger.info("DCA %s set up: $%.2f %s %s on %s", config.id, amount_usd, config.symbol, freq, exchange_name)
    return config


def list_dca_configs(path: Path | str | None = None) -> list[DCAConfig]:
    return _load_configs(document_path("dca", path))


def toggle_dca(dca_id: str, enabled: bool, path: Path | str | None = None) -> DCAConfig:
    p = document_path("dca", path)
    with locked(p):
        configs = _load_configs(p)
        for config in configs:
            if config.id == dca_id:
                config.enabled = enabled
                _save_configs(p, configs)
                return config
    raise NotFoundError("DCA config", dca_id)


def remove_dca(dca_id: str, path: Path | str | None = None) -> DCAConfig:
    p = document_path("dca", path)
    with locked(p):
        configs = _load_configs(p)
        for i, config in enumerate(configs):
            if config.id == dca_id:
                del configs[i]
                _save_configs(p, configs)
                return config
    raise NotFoundError("DCA config", dca_id)


def _process_one(manager: ExchangeManager, config: DCAConfig, now: int) -> DCAResult:
    adapter = manager.get(config.exchange)
    if adapter is None:
        return DCAResult(
            config.id, config.symbol, "failed", error=f"Exchange {config.exchange} not configured"
        )

    try:
        price = adapter.fetch_ticker(config.symbol).last or 0.0
    except TradingError as e:
        return DCAResult(config.id, config.symbol, "failed", error=e.message)
    if price <= 0:
        return DCAResult(config.id, config.symbol, "failed", error="Invalid price")

    if config.amount_usd > settings.max_order_size_usd:
        return DCAResult(
            config.id,
            config.symbol,
            "failed",
            price=price,
            error=(
                f"Order size ${config.amount_usd:.2f} exceeds max order size "
                f"${settings.max_order_size_usd:.2f}"
            ),
        )

    execution = select_executor(manager, config.exchange).execute(config, adapter, price)
    config.last_executed = now
    config.total_executions += 1
    config.total_spent += execution.spent
    return DCAResult(
        dca_id=config.id,
        symbol=config.symbol,
        status="executed",
        mode=execution.mode,
        price=price,
        spent=execution.spent,
        order_id=execution.order_id,
        error=execution.error,
    )


def process_due_dca(
    manager: ExchangeManager,
    now_ms: int | None = None,
    notify: bool = False,
    path: Path | str | None = None,
) -> DCARunSummary:
    """Run every due DCA config once. One config failing never stops the others."""
    now = now_ms if now_ms is not None else current_ms()
    p = document_path("dca", path)
    summary = DCARunSummary()

    with locked(p):
        configs = _load_configs(p)
        due = [c for c in configs if is_dca_due(c, now)]
        if not due:
            logger.debug("DCA check: no orders due")
            return summary

        logger.info("DCA check: %d order(s) due", len(due))
        try:
            for config in due:
                try:
                    result = _process_one(manager, config, now)
                except Exception as e:
                    logger.exception("DCA %s: unexpected error", config.id)
                    result = DCAResult(config.id, config.symbol, "failed", error=str(e))
                if result.status == "failed":
                    logger.warning("DCA %s failed: %s", config.id, result.error)
                    summary.failed += 1
                else:
                    summary.executed += 1
                summary.results.append(result)
        finally:
            # configs that already ran must keep their advanced stats on disk
            if summary.executed:
                _save_configs(p, configs)

    if notify:
        for r in summary.results:
            if r.status != "executed":
                continue
            base = r.symbol.split("/")[0]
            send_notification(
                f"OmniTrade DCA: {base}",
                f"DCA executed ({r.mode}): bought ${r.spent:.2f} of {base} at ${r.price:.2f}",
            )
    logger.info("DCA check complete: %d executed, %d failed", summary.executed, summary.failed)
    return summary
