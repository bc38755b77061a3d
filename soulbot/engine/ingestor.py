from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass, field
from typing import Any

from soulbot.data.price_resolver import PriceResolver
from soulbot.data.token_registry import TokenRegistry
from soulbot.domain.errors import UpstreamUnavailable, ValidationError
from soulbot.domain.models import Asset, ExecutionOutcome, PredictionRecord, Quote, SessionMode, Trade
from soulbot.engine.synthesizer import next_trade_id


@dataclass(frozen=True)
class PreparedTrade:
    """A quoted live trade awaiting its execution outcome."""

    trade_id: str
    created_at: float
    from_asset: Asset
    to_asset: Asset
    input_amount: float
    usd_value: float
    quote: Quote
    features: dict[str, Any] = field(default_factory=dict)
    prediction: PredictionRecord | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "trade_id": self.trade_id,
            "created_at": self.created_at,
            "from_asset": self.from_asset.to_dict(),
            "to_asset": self.to_asset.to_dict(),
            "input_amount": self.input_amount,
            "usd_value": self.usd_value,
            "quote": self.quote.to_dict(),
            "prediction": self.prediction.to_dict() if self.prediction else None,
        }


class TradeIngestor:
    """Quotes live trades and turns execution outcomes into booked Trades."""

    def __init__(
        self,
        resolver: PriceResolver,
        registry: TokenRegistry,
        *,
        slippage_bps: int = 50,
        clock=time.time,
        log: logging.Logger | None = None,
    ):
        self.resolver = resolver
        self.registry = registry
        self.slippage_bps = int(slippage_bps)
        self.clock = clock
        self.log = log or logging.getLogger("soulbot.ingest")

    async def prepare(self, from_symbol: str, to_symbol: str, usd_amount: float) -> PreparedTrade:
        src = self.registry.require(from_symbol)
        dst = self.registry.require(to_symbol)
        if src.mint == dst.mint:
            raise ValidationError(f"cannot swap {src.symbol} into itself")
        try:
            usd = float(usd_amount)
        except (TypeError, ValueError):
            raise ValidationError(f"invalid usd amount {usd_amount!r}") from None
        if not math.isfinite(usd) or usd <= 0:
            raise ValidationError(f"usd amount must be positive, got {usd_amount!r}")

        price = await self.resolver.get_price(src)
        if price is None:
            raise UpstreamUnavailable("prices", f"no price for {src.symbol}")
        input_amount = usd / price
        units = int(input_amount * 10**src.decimals)
        if units <= 0:
            raise ValidationError(f"{usd:.2f} USD is below one unit of {src.symbol}")

        quote = await self.resolver.get_quote(src, dst, units, self.slippage_bps)
        if quote is None:
            raise UpstreamUnavailable("quotes", f"no route {src.symbol} -> {dst.symbol}")

        impact = float(quote.price_impact_pct)
        return PreparedTrade(
            trade_id=next_trade_id(self.clock),
            created_at=self.clock(),
            from_asset=src,
            to_asset=dst,
            input_amount=input_amount,
            usd_value=usd,
            quote=quote,
            features={
                "profit_percentage": -impact,
                "slippage": self.slippage_bps / 100.0,
                "liquidity": usd,
                "volume": usd,
                "price_history": self.resolver.price_history(dst),
            },
        )

    def ingest(self, prepared: PreparedTrade, outcome: ExecutionOutcome) -> Trade:
        if outcome.success:
            profit = prepared.usd_value * -float(prepared.quote.price_impact_pct) / 100.0
        else:
            profit = 0.0
        profit_percent = (profit / prepared.usd_value) * 100.0 if prepared.usd_value else 0.0
        trade = Trade(
            id=prepared.trade_id,
            timestamp=self.clock(),
            from_asset=prepared.from_asset,
            to_asset=prepared.to_asset,
            input_amount=prepared.input_amount,
            usd_value=prepared.usd_value,
            profit=profit,
            profit_percent=profit_percent,
            succeeded=outcome.success,
            prediction_details=prepared.prediction,
            mode=SessionMode.LIVE.value,
            signature=outcome.signature,
        )
        if not outcome.success:
            self.log.warning("live trade %s failed: %s", trade.id, outcome.error or "unknown error")
        return trade
