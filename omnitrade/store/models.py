"""Data models for the JSON documents.

Dataclasses only, no file access. to_dict()/from_dict() map between Python
attribute names and the camelCase keys stored on disk. Timestamps are epoch
milliseconds.
"""

from __future__ import annotations

import random
import string
import time
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

WALLET_VERSION = 1


def now_ms() -> int:
    return int(time.time() * 1000)


def new_id(prefix: str) -> str:
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=7))
    return f"{prefix}_{now_ms()}_{suffix}"


class Side(StrEnum):
    BUY = "buy"
    SELL = "sell"


class AlertCondition(StrEnum):
    ABOVE = "above"
    BELOW = "below"


class ConditionType(StrEnum):
    PRICE_ABOVE = "price_above"
    PRICE_BELOW = "price_below"
    PRICE_CHANGE_PERCENT = "price_change_percent"


class Direction(StrEnum):
    UP = "up"
    DOWN = "down"


class OrderType(StrEnum):
    MARKET = "market"
    LIMIT = "limit"


class Frequency(StrEnum):
    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


# ---------------------------------------------------------------------------
# Paper wallet
# ---------------------------------------------------------------------------


@dataclass
class Holding:
    asset: str
    amount: float
    avg_buy_price: float
    total_cost: float  # quote cost attributed to the amount currently held

    def to_dict(self) -> dict[str, Any]:
        return {
            "asset": self.asset,
            "amount": self.amount,
            "avgBuyPrice": self.avg_buy_price,
            "totalCost": self.total_cost,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Holding:
        return cls(
            asset=d["asset"],
            amount=float(d["amount"]),
            avg_buy_price=float(d.get("avgBuyPrice", 0.0)),
            total_cost=float(d.get("totalCost", 0.0)),
        )


@dataclass(frozen=True)
class Trade:
    id: str
    timestamp: int
    side: Side
    asset: str
    symbol: str
    amount: float
    price: float
    quote_value: float
    fee: float
    balance_after: float
    fee_asset: str = "USDT"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "side": str(self.side),
            "asset": self.asset,
            "symbol": self.symbol,
            "amount": self.amount,
            "price": self.price,
            "quoteValue": self.quote_value,
            "fee": self.fee,
            "feeAsset": self.fee_asset,
            "balanceAfter": self.balance_after,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Trade:
        return cls(
            id=d["id"],
            timestamp=int(d["timestamp"]),
            side=Side(d["side"]),
            asset=d["asset"],
            symbol=d.get("symbol", f"{d['asset']}/USDT"),
            amount=float(d["amount"]),
            price=float(d["price"]),
            # usdtValue: files written before the rename
            quote_value=float(d.get("quoteValue", d.get("usdtValue", 0.0))),
            fee=float(d.get("fee", 0.0)),
            balance_after=float(d.get("balanceAfter", 0.0)),
            fee_asset=d.get("feeAsset", "USDT"),
        )


@dataclass
class Wallet:
    cash: float
    created_at: int = field(default_factory=now_ms)
    holdings: dict[str, Holding] = field(default_factory=dict)
    trades: list[Trade] = field(default_factory=list)
    version: int = WALLET_VERSION

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "createdAt": self.created_at,
            "usdt": self.cash,
            "holdings": {k: h.to_dict() for k, h in self.holdings.items()},
            "trades": [t.to_dict() for t in self.trades],
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Wallet:
        return cls(
            version=int(d.get("version", WALLET_VERSION)),
            created_at=int(d.get("createdAt", now_ms())),
            cash=float(d["usdt"]),
            holdings={k: Holding.from_dict(h) for k, h in d.get("holdings", {}).items()},
            trades=[Trade.from_dict(t) for t in d.get("trades", [])],
        )


# ---------------------------------------------------------------------------
# Alerts
# ---------------------------------------------------------------------------


@dataclass
class Alert:
    id: str
    symbol: str
    condition: AlertCondition
    target_price: float
    created_at: int
    exchange: str | None = None  # None = any configured exchange
    triggered: bool = False
    triggered_at: int | None = None
    triggered_price: float | None = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "symbol": self.symbol,
            "condition": str(self.condition),
            "targetPrice": self.target_price,
            "createdAt": self.created_at,
            "triggered": self.triggered,
        }
        if self.exchange:
            d["exchange"] = self.exchange
        if self.triggered_at is not None:
            d["triggeredAt"] = self.triggered_at
        if self.triggered_price is not None:
            d["triggeredPrice"] = self.triggered_price
        return d

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Alert:
        return cls(
            id=d["id"],
            symbol=d["symbol"],
            condition=AlertCondition(d["condition"]),
            target_price=float(d["targetPrice"]),
            created_at=int(d.get("createdAt", 0)),
            exchange=d.get("exchange"),
            triggered=bool(d.get("triggered", False)),
            triggered_at=d.get("triggeredAt"),
            triggered_price=d.get("triggeredPrice"),
        )


# ---------------------------------------------------------------------------
# Conditional orders
# ---------------------------------------------------------------------------


@dataclass
class Condition:
    type: ConditionType
    target_price: float | None = None
    percent_change: float | None = None
    direction: Direction | None = None
    base_price: float | None = None  # snapshotted once at creation, never refreshed

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"type": str(self.type)}
        if self.target_price is not None:
            d["targetPrice"] = self.target_price
        if self.percent_change is not None:
            d["percentChange"] = self.percent_change
        if self.direction is not None:
            d["direction"] = str(self.direction)
        if self.base_price is not None:
            d["basePrice"] = self.base_price
        return d

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Condition:
        direction = d.get("direction")
        return cls(
            type=ConditionType(d["type"]),
            target_price=d.get("targetPrice"),
            percent_change=d.get("percentChange"),
            direction=Direction(direction) if direction else None,
            base_price=d.get("basePrice"),
        )


@dataclass
class OrderSpec:
    side: Side
    type: OrderType
    amount: float
    price: float | None = None  # limit orders only

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "side": str(self.side),
            "type": str(self.type),
            "amount": self.amount,
        }
        if self.price is not None:
            d["price"] = self.price
        return d

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> OrderSpec:
        return cls(
            side=Side(d["side"]),
            type=OrderType(d.get("type", "market")),
            amount=float(d["amount"]),
            price=d.get("price"),
        )


@dataclass
class ConditionalOrder:
    id: str
    symbol: str
    exchange: str
    condition: Condition
    order: OrderSpec
    created_at: int
    enabled: bool = True
    triggered: bool = False
    triggered_at: int | None = None
    order_id: str | None = None
    error: str | None = None

    @property
    def status(self) -> str:
        if self.triggered:
            return "triggered"
        return "active" if self.enabled else "disabled"

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "symbol": self.symbol,
            "exchange": self.exchange,
            "condition": self.condition.to_dict(),
            "order": self.order.to_dict(),
            "enabled": self.enabled,
            "createdAt": self.created_at,
            "triggered": self.triggered,
        }
        if self.triggered_at is not None:
            d["triggeredAt"] = self.triggered_at
        if self.order_id is not None:
            d["orderId"] = self.order_id
        if self.error is not None:
            d["error"] = self.error
        return d

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> ConditionalOrder:
        return cls(
            id=d["id"],
            symbol=d["symbol"],
            exchange=d["exchange"],
            condition=Condition.from_dict(d["condition"]),
            order=OrderSpec.from_dict(d["order"]),
            created_at=int(d.get("createdAt", 0)),
            enabled=bool(d.get("enabled", True)),
            triggered=bool(d.get("triggered", False)),
            triggered_at=d.get("triggeredAt"),
            order_id=d.get("orderId"),
            error=d.get("error"),
        )


# ---------------------------------------------------------------------------
# DCA
# ---------------------------------------------------------------------------


@dataclass
class DCAConfig:
    id: str
    symbol: str
    exchange: str
    amount_usd: float
    frequency: Frequency
    created_at: int
    enabled: bool = True
    last_executed: int | None = None
    total_executions: int = 0
    total_spent: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "symbol": self.symbol,
            "exchange": self.exchange,
            "amountUSD": self.amount_usd,
            "frequency": str(self.frequency),
            "enabled": self.enabled,
            "createdAt": self.created_at,
            "totalExecutions": self.total_executions,
            "totalSpent": self.total_spent,
        }
        if self.last_executed is not None:
            d["lastExecuted"] = self.last_executed
        return d

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> DCAConfig:
        return cls(
            id=d["id"],
            symbol=d["symbol"],
            exchange=d["exchange"],
            amount_usd=float(d["amountUSD"]),
            frequency=Frequency(d["frequency"]),
            created_at=int(d.get("createdAt", 0)),
            enabled=bool(d.get("enabled", True)),
            last_executed=d.get("lastExecuted"),
            total_executions=int(d.get("totalExecutions", 0)),
            total_spent=float(d.get("totalSpent", 0.0)),
        )


# ---------------------------------------------------------------------------
# Portfolio history
# ---------------------------------------------------------------------------


@dataclass
class AssetValue:
    amount: float
    usd_value: float


@dataclass
class ExchangeSnapshot:
    total_value_usd: float = 0.0
    assets: dict[str, AssetValue] = field(default_factory=dict)


@dataclass
class PortfolioSnapshot:
    timestamp: int
    total_value_usd: float = 0.0
    exchanges: dict[str, ExchangeSnapshot] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "totalValueUSD": self.total_value_usd,
            "exchanges": {
                name: {
                    "totalValueUSD": ex.total_value_usd,
                    "assets": {
                        asset: {"amount": v.amount, "usdValue": v.usd_value}
                        for asset, v in ex.assets.items()
                    },
                }
                for name, ex in self.exchanges.items()
            },
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> PortfolioSnapshot:
        exchanges = {}
        for name, ex in d.get("exchanges", {}).items():
            exchanges[name] = ExchangeSnapshot(
                total_value_usd=float(ex.get("totalValueUSD", 0.0)),
                assets={
                    asset: AssetValue(float(v["amount"]), float(v["usdValue"]))
                    for asset, v in ex.get("assets", {}).items()
                },
            )
        return cls(
            timestamp=int(d["timestamp"]),
            total_value_usd=float(d.get("totalValueUSD", 0.0)),
            exchanges=exchanges,
        )
