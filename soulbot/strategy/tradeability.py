from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from soulbot.data.price_resolver import PriceResolver
from soulbot.domain.models import Asset


class TradeabilityReason(str, Enum):
    NO_PRICE = "NoPrice"
    NO_FORWARD_QUOTE = "NoForwardQuote"
    NO_REVERSE_QUOTE = "NoReverseQuote"
    EXCESSIVE_SLIPPAGE = "ExcessiveSlippage"


@dataclass(frozen=True)
class TradeabilityResult:
    asset: Asset
    tradeable: bool
    implied_slippage_percent: float | None = None
    round_trip_loss: float | None = None
    reason: TradeabilityReason | None = None
    price: float | None = None
    forward_output: int | None = None
    reverse_output: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "asset": self.asset.to_dict(),
            "tradeable": self.tradeable,
            "implied_slippage_percent": self.implied_slippage_percent,
            "round_trip_loss": self.round_trip_loss,
            "reason": self.reason.value if self.reason else None,
            "price": self.price,
        }


class TradeabilityChecker:
    """Buy-then-sell quote test against the base currency.

    The reverse leg sells exactly what the forward leg would buy, so the
    round-trip loss reflects real route depth rather than a nominal amount.
    """

    def __init__(
        self,
        resolver: PriceResolver,
        base: Asset,
        *,
        probe_amount: int = 1_000_000,
        max_round_trip_loss: float = 0.10,
        slippage_bps: int = 100,
        log: logging.Logger | None = None,
    ):
        self.resolver = resolver
        self.base = base
        self.probe_amount = int(probe_amount)
        self.max_round_trip_loss = float(max_round_trip_loss)
        self.slippage_bps = int(slippage_bps)
        self.log = log or logging.getLogger("soulbot.tradeability")

    async def verify(self, asset: Asset) -> TradeabilityResult:
        price = await self.resolver.get_price(asset)
        if price is None:
            return TradeabilityResult(asset=asset, tradeable=False, reason=TradeabilityReason.NO_PRICE)

        forward = await self.resolver.get_quote(self.base, asset, self.probe_amount, self.slippage_bps)
        if forward is None:
            return TradeabilityResult(
                asset=asset, tradeable=False, reason=TradeabilityReason.NO_FORWARD_QUOTE, price=price
            )

        reverse = await self.resolver.get_quote(asset, self.base, forward.output_amount, self.slippage_bps)
        if reverse is None:
            return TradeabilityResult(
                asset=asset,
                tradeable=False,
                reason=TradeabilityReason.NO_REVERSE_QUOTE,
                price=price,
                forward_output=forward.output_amount,
            )

        loss = 1.0 - (reverse.output_amount / self.probe_amount)
        tradeable = loss <= self.max_round_trip_loss
        if not tradeable:
            self.log.info("%s round-trip loss %.2f%% exceeds limit", asset.symbol, loss * 100)
        return TradeabilityResult(
            asset=asset,
            tradeable=tradeable,
            implied_slippage_percent=loss * 100.0,
            round_trip_loss=loss,
            reason=None if tradeable else TradeabilityReason.EXCESSIVE_SLIPPAGE,
            price=price,
            forward_output=forward.output_amount,
            reverse_output=reverse.output_amount,
        )
