from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel
from pydantic_settings import BaseSettings


class ExchangeCredentials(BaseModel):
    api_key: str = ""
    secret: str = ""
    password: str = ""  # passphrase (coinbase, okx, kucoin)
    testnet: bool = False


class Settings(BaseSettings):
    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    # Local state (JSON documents, logs, pid/heartbeat markers)
    data_dir: Path = Path.home() / ".omnitrade"

    # === Paper trading ===
    initial_usdt: float = 10_000.0
    fee_rate: float = 0.001  # 0.1% spot taker, applied to both sides
    quote_currency: str = "USDT"

    # Public REST price feed (no auth)
    price_api_url: str = "https://api.binance.com/api/v3"
    http_timeout_sec: float = 10.0

    # === Exchanges ===
    # JSON env: EXCHANGES='{"binance": {"api_key": "...", "secret": "..."}}'
    exchanges: dict[str, ExchangeCredentials] = {}

    # === Security ===
    confirm_trades: bool = True  # True = manual confirmation, auto-execution blocked
    max_order_size_usd: float = 100.0

    # === Rebalance ===
    rebalance_threshold_pct: float = 1.0  # no-trade band, % of total value

    # === Daemon ===
    daemon_poll_interval_sec: int = 60

    # === Portfolio history ===
    history_max_snapshots: int = 1000

    # Telegram (optional)
    telegram_bot_token: str = ""
    telegram_chat_id: str = ""

    # Discord (optional)
    discord_webhook_url: str = ""

    structured_logging: bool = False


settings = Settings()
