from __future__ import annotations

import math
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from soulbot.domain.errors import ValidationError


class SessionMode(str, Enum):
    IDLE = "idle"
    DEMO = "demo"
    LIVE = "live"

    @classmethod
    def parse(cls, raw: Any) -> "SessionMode":
        if isinstance(raw, SessionMode):
            return raw
        try:
            return cls(str(raw).strip().lower())
        except ValueError:
            raise ValidationError(f"unknown session mode {raw!r}") from None


def _finite(name: str, value: Any) -> float:
    try:
        out = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be a number, got {value!r}") from None
    if not math.isfinite(out):
        raise ValidationError(f"{name} must be finite, got {value!r}")
    return out


@dataclass(frozen=True)
class Asset:
    symbol: str
    mint: str
    decimals: int = 9
    name: str = ""

    def __post_init__(self) -> None:
        if not self.symbol or not self.symbol.strip():
            raise ValidationError("asset symbol is required")
        if not self.mint or not self.mint.strip():
            raise ValidationError(f"asset {self.symbol} has no mint")
        if not 0 <= int(self.decimals) <= 18:
            raise ValidationError(f"asset {self.symbol} decimals out of range: {self.decimals}")
        if not self.name:
            object.__setattr__(self, "name", self.symbol)

    def to_dict(self) -> dict[str, Any]:
        return {"symbol": self.symbol, "mint": self.mint, "decimals": self.decimals, "name": self.name}

    @classmethod
    def from_dict(cls, row: dict[str, Any]) -> "Asset":
        return cls(
            symbol=str(row.get("symbol", "")),
            mint=str(row.get("mint", "")),
            decimals=int(row.get("decimals", 9)),
            name=str(row.get("name", "") or ""),
        )


@dataclass(frozen=True)
class FeatureContribution:
    name: str
    value: float
    weighted_impact: float

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "value": self.value, "weighted_impact": self.weighted_impact}


@dataclass(frozen=True)
class PredictionRecord:
    predicted_outcome: int
    probability: float
    confidence: float
    contributing_features: tuple[FeatureContribution, ...] = ()
    is_disabled: bool = False
    timestamp: float = field(default_factory=time.time)

    def __post_init__(self) -> None:
        if self.predicted_outcome not in (0, 1):
            raise ValidationError(f"predicted_outcome must be 0 or 1, got {self.predicted_outcome!r}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "predicted_outcome": self.predicted_outcome,
            "probability": self.probability,
            "confidence": self.confidence,
            "contributing_features": [c.to_dict() for c in self.contributing_features],
            "is_disabled": self.is_disabled,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, row: dict[str, Any]) -> "PredictionRecord":
        return cls(
            predicted_outcome=int(row.get("predicted_outcome", 0)),
            probability=float(row.get("probability", 0.5)),
            confidence=float(row.get("confidence", 0.5)),
            contributing_features=tuple(
                FeatureContribution(
                    name=str(c.get("name", "")),
                    value=float(c.get("value", 0.0)),
                    weighted_impact=float(c.get("weighted_impact", 0.0)),
                )
                for c in row.get("contributing_features") or []
            ),
            is_disabled=bool(row.get("is_disabled", False)),
            timestamp=float(row.get("timestamp", 0.0) or 0.0),
        )


@dataclass(frozen=True)
class Trade:
    """A booked trade. Immutable; validated once at construction."""

    id: str
    timestamp: float
    from_asset: Asset
    to_asset: Asset
    input_amount: float
    usd_value: float
    profit: float
    profit_percent: float
    succeeded: bool
    prediction_details: PredictionRecord | None = None
    mode: str = SessionMode.DEMO.value
    signature: str | None = None

    def __post_init__(self) -> None:
        if not self.id:
            raise ValidationError("trade id is required")
        if self.from_asset.mint == self.to_asset.mint:
            raise ValidationError(f"trade {self.id} swaps {self.from_asset.symbol} into itself")
        for name in ("timestamp", "input_amount", "usd_value", "profit", "profit_percent"):
            object.__setattr__(self, name, _finite(name, getattr(self, name)))
        if self.input_amount <= 0:
            raise ValidationError(f"trade {self.id} input_amount must be positive")
        if self.usd_value < 0:
            raise ValidationError(f"trade {self.id} usd_value must not be negative")

    @property
    def route(self) -> str:
        return f"{self.from_asset.symbol} -> {self.to_asset.symbol}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "from_asset": self.from_asset.to_dict(),
            "to_asset": self.to_asset.to_dict(),
            "input_amount": self.input_amount,
            "usd_value": self.usd_value,
            "profit": self.profit,
            "profit_percent": self.profit_percent,
            "succeeded": self.succeeded,
            "prediction_details": self.prediction_details.to_dict() if self.prediction_details else None,
            "mode": self.mode,
            "signature": self.signature,
            "route": self.route,
        }

    @classmethod
    def from_dict(cls, row: dict[str, Any]) -> "Trade":
        pred = row.get("prediction_details")
        return cls(
            id=str(row.get("id", "")),
            timestamp=row.get("timestamp", 0.0),
            from_asset=Asset.from_dict(row.get("from_asset") or {}),
            to_asset=Asset.from_dict(row.get("to_asset") or {}),
            input_amount=row.get("input_amount", 0.0),
            usd_value=row.get("usd_value", 0.0),
            profit=row.get("profit", 0.0),
            profit_percent=row.get("profit_percent", 0.0),
            succeeded=bool(row.get("succeeded", False)),
            prediction_details=PredictionRecord.from_dict(pred) if pred else None,
            mode=str(row.get("mode", SessionMode.DEMO.value)),
            signature=row.get("signature"),
        )


@dataclass(frozen=True)
class Quote:
    """Non-binding swap estimate from the aggregator, amounts in smallest units."""

    input_mint: str
    output_mint: str
    input_amount: int
    output_amount: int
    price_impact_pct: float = 0.0
    slippage_bps: int = 50
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "input_mint": self.input_mint,
            "output_mint": self.output_mint,
            "input_amount": self.input_amount,
            "output_amount": self.output_amount,
            "price_impact_pct": self.price_impact_pct,
            "slippage_bps": self.slippage_bps,
        }


@dataclass(frozen=True)
class PriceCacheEntry:
    asset: str
    price: float
    resolved_at: float
    source: str


@dataclass(frozen=True)
class ExecutionOutcome:
    """What the signing collaborator reports back for a prepared trade."""

    success: bool
    signature: str | None = None
    error: str | None = None

    @classmethod
    def from_dict(cls, row: dict[str, Any]) -> "ExecutionOutcome":
        return cls(
            success=bool(row.get("success", False)),
            signature=row.get("signature") or None,
            error=row.get("error") or None,
        )


@dataclass
class Session:
    mode: SessionMode = SessionMode.IDLE
    started_at: float | None = None
    identity: str | None = None
    running: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "mode": self.mode.value,
            "started_at": self.started_at,
            "identity": self.identity,
            "running": self.running,
        }
