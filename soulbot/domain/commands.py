from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, ClassVar, Union

from soulbot.domain.errors import ValidationError
from soulbot.domain.models import ExecutionOutcome, SessionMode


@dataclass(frozen=True)
class StartSession:
    type: ClassVar[str] = "start"
    mode: SessionMode
    identity: str | None = None


@dataclass(frozen=True)
class StopSession:
    type: ClassVar[str] = "stop"


@dataclass(frozen=True)
class ConfigureProfitLock:
    type: ClassVar[str] = "configure_profit_lock"
    percentage_points: int | None = None
    enabled: bool | None = None


@dataclass(frozen=True)
class WithdrawLock:
    type: ClassVar[str] = "withdraw_lock"
    amount: float


@dataclass(frozen=True)
class IngestTradeResult:
    type: ClassVar[str] = "ingest_trade_result"
    trade_id: str
    outcome: ExecutionOutcome


@dataclass(frozen=True)
class ToggleScorer:
    type: ClassVar[str] = "toggle_scorer"
    enabled: bool


@dataclass(frozen=True)
class ScanTokens:
    type: ClassVar[str] = "scan_tokens"


@dataclass(frozen=True)
class PrepareLiveTrade:
    type: ClassVar[str] = "prepare_live_trade"
    from_symbol: str
    to_symbol: str
    usd_amount: float


Command = Union[
    StartSession,
    StopSession,
    ConfigureProfitLock,
    WithdrawLock,
    IngestTradeResult,
    ToggleScorer,
    ScanTokens,
    PrepareLiveTrade,
]


def _amount(raw: Any, name: str = "amount") -> float:
    try:
        value = float(raw)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be a number, got {raw!r}") from None
    if not math.isfinite(value):
        raise ValidationError(f"{name} must be finite, got {raw!r}")
    return value


def _flag(raw: Any, name: str = "enabled") -> bool:
    if not isinstance(raw, bool):
        raise ValidationError(f"{name} must be true or false, got {raw!r}")
    return raw


def parse_command(payload: dict[str, Any]) -> Command:
    """Turn a decoded JSON payload from the push channel into a typed command."""
    if not isinstance(payload, dict):
        raise ValidationError("command payload must be an object")
    kind = str(payload.get("type", "")).strip()
    if kind == StartSession.type:
        identity = payload.get("identity")
        return StartSession(
            mode=SessionMode.parse(payload.get("mode", SessionMode.DEMO.value)),
            identity=str(identity) if identity else None,
        )
    if kind == StopSession.type:
        return StopSession()
    if kind == ConfigureProfitLock.type:
        pct = payload.get("percentage_points", payload.get("percentage"))
        enabled = payload.get("enabled")
        if pct is not None and (
            isinstance(pct, bool) or not isinstance(pct, (int, float)) or not math.isfinite(pct) or int(pct) != pct
        ):
            raise ValidationError(f"percentage_points must be an integer, got {pct!r}")
        return ConfigureProfitLock(
            percentage_points=int(pct) if pct is not None else None,
            enabled=_flag(enabled) if enabled is not None else None,
        )
    if kind == WithdrawLock.type:
        return WithdrawLock(amount=_amount(payload.get("amount")))
    if kind == IngestTradeResult.type:
        trade_id = str(payload.get("trade_id") or "")
        if not trade_id:
            raise ValidationError("trade_id is required")
        outcome = payload.get("outcome")
        if not isinstance(outcome, dict):
            raise ValidationError("outcome must be an object")
        return IngestTradeResult(trade_id=trade_id, outcome=ExecutionOutcome.from_dict(outcome))
    if kind == ToggleScorer.type:
        if "enabled" not in payload:
            raise ValidationError("enabled is required")
        return ToggleScorer(enabled=_flag(payload["enabled"]))
    if kind == ScanTokens.type:
        return ScanTokens()
    if kind == PrepareLiveTrade.type:
        return PrepareLiveTrade(
            from_symbol=str(payload.get("from_symbol") or ""),
            to_symbol=str(payload.get("to_symbol") or ""),
            usd_amount=_amount(payload.get("usd_amount"), "usd_amount"),
        )
    raise ValidationError(f"unknown command type {kind!r}")
