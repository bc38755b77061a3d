from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return str(raw).strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int, min_value: int | None = None, max_value: int | None = None) -> int:
    raw = os.environ.get(name)
    if raw is None:
        value = default
    else:
        value = int(raw)
    if min_value is not None:
        value = max(min_value, value)
    if max_value is not None:
        value = min(max_value, value)
    return value


def _env_float(name: str, default: float, min_value: float | None = None) -> float:
    raw = os.environ.get(name)
    if raw is None:
        value = default
    else:
        value = float(raw)
    if min_value is not None:
        value = max(min_value, value)
    return value


@dataclass(frozen=True)
class Settings:
    data_dir: str
    log_level: str
    host: str
    port: int
    trade_interval_sec: float
    history_interval_sec: float
    demo_start_balance: float
    max_trades_in_memory: int
    price_cache_ttl_sec: float
    http_timeout_sec: float
    helius_api_key: str
    helius_rpc_url: str
    jupiter_api_base: str
    slippage_bps: int
    max_round_trip_loss: float
    profit_lock_enabled: bool
    profit_lock_percentage: int
    scorer_enabled: bool
    scorer_retrain_every: int
    auto_execute_live: bool
    dry_run: bool
    token_discovery_enabled: bool


def load_settings(env_file: str | None = None) -> Settings:
    load_dotenv(os.path.expanduser(env_file or os.environ.get("SOULBOT_ENV_FILE", "~/.soulbot.env")))
    return Settings(
        data_dir=os.environ.get("DATA_DIR", "./data"),
        log_level=os.environ.get("LOG_LEVEL", "INFO").strip().upper(),
        host=os.environ.get("WEB_HOST", "0.0.0.0").strip(),
        port=_env_int("PORT", 3030, min_value=1),
        trade_interval_sec=_env_float("TRADE_INTERVAL_SEC", 30.0, min_value=0.1),
        history_interval_sec=_env_float("HISTORY_INTERVAL_SEC", 60.0, min_value=0.1),
        demo_start_balance=_env_float("DEMO_START_BALANCE", 50.0, min_value=0.0),
        max_trades_in_memory=_env_int("MAX_TRADES_IN_MEMORY", 100, min_value=1),
        price_cache_ttl_sec=_env_float("PRICE_CACHE_TTL_SEC", 60.0, min_value=0.0),
        http_timeout_sec=_env_float("HTTP_TIMEOUT_SEC", 8.0, min_value=0.5),
        helius_api_key=os.environ.get("HELIUS_API_KEY", "").strip(),
        helius_rpc_url=os.environ.get("HELIUS_RPC_URL", "https://mainnet.helius-rpc.com").strip(),
        jupiter_api_base=os.environ.get("JUPITER_API_BASE", "https://quote-api.jup.ag/v6").strip().rstrip("/"),
        slippage_bps=_env_int("SLIPPAGE_BPS", 50, min_value=1, max_value=10_000),
        max_round_trip_loss=_env_float("MAX_ROUND_TRIP_LOSS", 0.10, min_value=0.0),
        profit_lock_enabled=_env_bool("PROFIT_LOCK_ENABLED", True),
        profit_lock_percentage=_env_int("PROFIT_LOCK_PERCENTAGE", 20, min_value=0, max_value=100),
        scorer_enabled=_env_bool("SCORER_ENABLED", True),
        scorer_retrain_every=_env_int("SCORER_RETRAIN_EVERY", 50, min_value=1),
        auto_execute_live=_env_bool("AUTO_EXECUTE_LIVE", False),
        dry_run=_env_bool("DRY_RUN", True),
        token_discovery_enabled=_env_bool("TOKEN_DISCOVERY_ENABLED", True),
    )
