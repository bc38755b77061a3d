from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Union


@dataclass(frozen=True)
class TradeCreated:
    type: ClassVar[str] = "trade_created"
    trade: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "trade": self.trade}


@dataclass(frozen=True)
class PortfolioUpdated:
    type: ClassVar[str] = "portfolio_updated"
    portfolio: dict[str, Any]
    profit_lock: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "portfolio": self.portfolio, "profit_lock": self.profit_lock}


@dataclass(frozen=True)
class SessionStatusChanged:
    type: ClassVar[str] = "session_status_changed"
    session: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "session": self.session}


@dataclass(frozen=True)
class ScorerStatsUpdated:
    type: ClassVar[str] = "scorer_stats_updated"
    stats: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "stats": self.stats}


Event = Union[TradeCreated, PortfolioUpdated, SessionStatusChanged, ScorerStatsUpdated]
