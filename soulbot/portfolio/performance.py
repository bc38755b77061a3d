from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

from soulbot.domain.models import Trade


@dataclass
class TokenStats:
    trades: int = 0
    successes: int = 0
    failures: int = 0
    total_profit: float = 0.0
    last_trade_at: float | None = None

    @property
    def win_rate(self) -> float:
        return self.successes / self.trades if self.trades else 0.0

    def to_dict(self) -> dict[str, Any]:
        out = asdict(self)
        out["win_rate"] = self.win_rate
        return out


class TokenPerformanceBook:
    """Per-symbol outcome counters; both legs of a trade are credited."""

    def __init__(self):
        self._stats: dict[str, TokenStats] = {}

    def get(self, symbol: str) -> TokenStats:
        return self._stats.setdefault(symbol.upper(), TokenStats())

    def record(self, trade: Trade) -> None:
        for asset in (trade.from_asset, trade.to_asset):
            st = self.get(asset.symbol)
            st.trades += 1
            if trade.succeeded:
                st.successes += 1
            else:
                st.failures += 1
            st.total_profit += trade.profit
            st.last_trade_at = trade.timestamp

    def clear(self) -> None:
        self._stats.clear()

    def to_dict(self) -> dict[str, dict[str, Any]]:
        return {sym: st.to_dict() for sym, st in sorted(self._stats.items())}

    def load(self, rows: dict[str, Any] | None) -> None:
        self._stats.clear()
        for sym, r in (rows or {}).items():
            self._stats[str(sym).upper()] = TokenStats(
                trades=int(r.get("trades", 0) or 0),
                successes=int(r.get("successes", 0) or 0),
                failures=int(r.get("failures", 0) or 0),
                total_profit=float(r.get("total_profit", 0.0) or 0.0),
                last_trade_at=r.get("last_trade_at"),
            )
