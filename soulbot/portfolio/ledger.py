from __future__ import annotations

import copy
import logging
import math
import time
from dataclasses import asdict, dataclass, field
from typing import Any

from soulbot.domain.errors import ValidationError
from soulbot.domain.models import Trade

DAY_SEC = 24 * 60 * 60


@dataclass(frozen=True)
class ProfitLockConfig:
    enabled: bool = True
    percentage_points: int = 20

    def __post_init__(self) -> None:
        if isinstance(self.percentage_points, bool) or not isinstance(self.percentage_points, int):
            raise ValidationError(f"profit-lock percentage must be an integer, got {self.percentage_points!r}")
        if not 0 <= self.percentage_points <= 100:
            raise ValidationError(f"profit-lock percentage must be within 0..100, got {self.percentage_points}")

    def to_dict(self) -> dict[str, Any]:
        return {"enabled": self.enabled, "percentage_points": self.percentage_points}

    @classmethod
    def from_dict(cls, row: dict[str, Any] | None) -> "ProfitLockConfig":
        row = row or {}
        return cls(
            enabled=bool(row.get("enabled", True)),
            percentage_points=int(row.get("percentage_points", row.get("percentage", 20))),
        )


@dataclass(frozen=True)
class LockEntry:
    trade_id: str
    profit: float
    lock_amount: float
    timestamp: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class PortfolioState:
    balance: float = 0.0
    cumulative_pnl: float = 0.0
    daily_return_percent: float = 0.0
    locked_balance: float = 0.0
    total_locked: float = 0.0
    last_lock_time: float | None = None
    history: list[LockEntry] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "balance": self.balance,
            "cumulative_pnl": self.cumulative_pnl,
            "daily_return_percent": self.daily_return_percent,
            "locked_balance": self.locked_balance,
            "total_locked": self.total_locked,
            "last_lock_time": self.last_lock_time,
            "history": [e.to_dict() for e in self.history],
        }

    @classmethod
    def from_dict(cls, row: dict[str, Any] | None) -> "PortfolioState":
        row = row or {}
        return cls(
            balance=float(row.get("balance", 0.0) or 0.0),
            cumulative_pnl=float(row.get("cumulative_pnl", 0.0) or 0.0),
            daily_return_percent=float(row.get("daily_return_percent", 0.0) or 0.0),
            locked_balance=float(row.get("locked_balance", 0.0) or 0.0),
            total_locked=float(row.get("total_locked", 0.0) or 0.0),
            last_lock_time=row.get("last_lock_time"),
            history=[
                LockEntry(
                    trade_id=str(h.get("trade_id", "")),
                    profit=float(h.get("profit", 0.0) or 0.0),
                    lock_amount=float(h.get("lock_amount", 0.0) or 0.0),
                    timestamp=float(h.get("timestamp", 0.0) or 0.0),
                )
                for h in row.get("history") or []
            ],
        )


class PortfolioLedger:
    """Session balance, P&L and profit-lock skim.

    Only `apply_trade` and `withdraw_lock` move money. The balance is allowed
    to go negative in demo sessions. Skimmed profit is counted in both
    `balance` and `locked_balance` until withdrawn.
    """

    def __init__(
        self,
        *,
        starting_balance: float = 0.0,
        lock: ProfitLockConfig | None = None,
        clock=time.time,
        log: logging.Logger | None = None,
    ):
        self.clock = clock
        self.log = log or logging.getLogger("soulbot.ledger")
        self.lock = lock or ProfitLockConfig()
        self.state = PortfolioState(balance=float(starting_balance))
        self.started_at = self.clock()

    def reset(self, starting_balance: float = 0.0) -> None:
        self.state = PortfolioState(balance=float(starting_balance))
        self.started_at = self.clock()

    def restore(self, state: PortfolioState, lock: ProfitLockConfig | None = None) -> None:
        self.state = state
        if lock is not None:
            self.lock = lock
        self.started_at = self.clock()

    def _daily_return(self) -> float:
        days = (self.clock() - self.started_at) / DAY_SEC
        if days <= 0:
            return 0.0
        return (self.state.cumulative_pnl / (days * 100.0)) * 100.0

    def apply_trade(self, trade: Trade) -> LockEntry | None:
        profit = float(trade.profit)
        if not math.isfinite(profit):
            raise ValidationError(f"trade {trade.id} profit is not finite")
        st = self.state
        st.balance += profit
        st.cumulative_pnl += profit
        st.daily_return_percent = self._daily_return()

        if not (self.lock.enabled and profit > 0 and self.lock.percentage_points > 0):
            return None
        amount = profit * self.lock.percentage_points / 100.0
        entry = LockEntry(trade_id=trade.id, profit=profit, lock_amount=amount, timestamp=self.clock())
        st.locked_balance += amount
        st.total_locked += amount
        st.last_lock_time = entry.timestamp
        st.history.append(entry)
        self.log.info(
            "locked %.2f (%d%%) of profit from trade %s", amount, self.lock.percentage_points, trade.id
        )
        return entry

    def withdraw_lock(self, amount: float) -> float:
        """Move locked profit back into the free balance; returns the amount moved."""
        try:
            requested = float(amount)
        except (TypeError, ValueError):
            raise ValidationError(f"invalid withdraw amount {amount!r}") from None
        if not math.isfinite(requested) or requested <= 0:
            raise ValidationError(f"withdraw amount must be positive, got {amount!r}")
        moved = min(requested, self.state.locked_balance)
        if moved <= 0:
            raise ValidationError("no locked profits available to withdraw")
        self.state.locked_balance -= moved
        self.state.balance += moved
        self.log.info("withdrew %.2f from locked profits", moved)
        return moved

    def configure(self, percentage_points: int | None = None, enabled: bool | None = None) -> ProfitLockConfig:
        self.lock = ProfitLockConfig(
            enabled=self.lock.enabled if enabled is None else bool(enabled),
            percentage_points=self.lock.percentage_points if percentage_points is None else percentage_points,
        )
        return self.lock

    def snapshot(self) -> dict[str, Any]:
        return copy.deepcopy(self.state.to_dict())

    def to_dict(self) -> dict[str, Any]:
        return {"portfolio": self.state.to_dict(), "profit_lock": self.lock.to_dict()}
