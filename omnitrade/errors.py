"""Trading errors surfaced to callers as structured error payloads."""

from __future__ import annotations

from typing import Any


class TradingError(Exception):
    """Base exception for every expected failure of a trading operation."""

    code = "TRADING_ERROR"

    def __init__(self, message: str, data: dict[str, Any] | None = None):
        self.message = message
        self.data = data or {}
        super().__init__(message)


class InvalidAmountError(TradingError):
    code = "INVALID_AMOUNT"


class InsufficientFundsError(TradingError):
    code = "INSUFFICIENT_FUNDS"

    def __init__(self, required: float, available: float):
        super().__init__(
            f"Insufficient USDT. Need ${required:.2f}, have ${available:.2f}",
            {"required": required, "available": available},
        )


class InsufficientHoldingError(TradingError):
    code = "INSUFFICIENT_HOLDING"

    def __init__(self, asset: str, requested: float, available: float):
        super().__init__(
            f"Insufficient {asset}. Need {requested}, have {available:.8f}",
            {"asset": asset, "requested": requested, "available": available},
        )


class PriceUnavailableError(TradingError):
    code = "PRICE_UNAVAILABLE"


class InvalidTargetsError(TradingError):
    code = "INVALID_TARGETS"


class MissingPriceError(TradingError):
    code = "MISSING_PRICE"


class AuthorizationRequiredError(TradingError):
    code = "AUTHORIZATION_REQUIRED"

    def __init__(self, action: str):
        super().__init__(
            f"{action} requires auto-execution to be enabled "
            "(set CONFIRM_TRADES=false). Review the plan and place orders manually.",
            {"action": action},
        )


class ExchangeNotConfiguredError(TradingError):
    code = "EXCHANGE_NOT_CONFIGURED"

    def __init__(self, name: str, available: list[str]):
        listed = ", ".join(available) if available else "none"
        super().__init__(
            f"Exchange not configured: {name}. Available: {listed}",
            {"exchange": name, "available": available},
        )


class NotFoundError(TradingError):
    code = "NOT_FOUND"

    def __init__(self, resource: str, identifier: str):
        super().__init__(f"{resource} not found: {identifier}", {"id": identifier})


class InvalidRequestError(TradingError):
    code = "INVALID_REQUEST"


class NotProfitableError(TradingError):
    code = "NOT_PROFITABLE"


class ExchangeRequestError(TradingError):
    """The trading library rejected or failed a request."""

    code = "EXCHANGE_ERROR"
