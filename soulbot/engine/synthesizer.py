from __future__ import annotations

import asyncio
import itertools
import logging
import random
import time
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from soulbot.data.price_resolver import PriceResolver
from soulbot.data.token_registry import SOL_MINT, TokenRegistry
from soulbot.domain.errors import UpstreamUnavailable
from soulbot.domain.models import Asset
from soulbot.strategy.features import momentum

SOL_REFERENCE_PRICE = 150.0


_TRADE_SEQ = itertools.count(1)


def next_trade_id(clock=time.time) -> str:
    return f"trade-{int(clock() * 1000)}-{next(_TRADE_SEQ)}"


@dataclass(frozen=True)
class TradeCandidate:
    """Unscored demo trade; becomes a Trade once the scorer has seen it."""

    trade_id: str
    timestamp: float
    from_asset: Asset
    to_asset: Asset
    input_amount: float
    usd_value: float
    profit: float
    profit_percent: float
    features: dict[str, Any] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.profit_percent > 0


class TradeSynthesizer:
    """Generates demo trades from real prices and a simulated price move.

    The pair is drawn from the tracked assets when at least two are tracked,
    otherwise from the whole registry. Only assets with a resolvable price
    are eligible.
    """

    def __init__(
        self,
        resolver: PriceResolver,
        registry: TokenRegistry,
        *,
        rng: random.Random | None = None,
        clock=time.time,
        slippage_bps: int = 50,
        log: logging.Logger | None = None,
    ):
        self.resolver = resolver
        self.registry = registry
        self.rng = rng or random.Random()
        self.clock = clock
        self.slippage_bps = int(slippage_bps)
        self.log = log or logging.getLogger("soulbot.synth")
        self._tracked: list[Asset] = []

    @property
    def tracked(self) -> list[Asset]:
        return list(self._tracked)

    def track(self, assets: Iterable[Asset]) -> None:
        self._tracked = list(dict.fromkeys(assets))

    def _pool(self) -> list[Asset]:
        if len(self._tracked) >= 2:
            return list(self._tracked)
        return self.registry.all()

    async def _priced(self, pool: list[Asset]) -> list[tuple[Asset, float]]:
        prices = await asyncio.gather(*(self.resolver.get_price(a) for a in pool))
        return [(a, p) for a, p in zip(pool, prices) if p is not None and p > 0]

    def _features(self, target: Asset, usd_value: float) -> dict[str, Any]:
        history = self.resolver.price_history(target)
        drift = momentum(history)
        if drift > 0:
            trend = "up"
        elif drift < 0:
            trend = "down"
        else:
            trend = "neutral"
        return {
            "profit_percentage": abs(drift) * 100.0,
            "slippage": self.slippage_bps / 100.0,
            "liquidity": usd_value,
            "volume": usd_value,
            "price_history": history,
            "market_trend": trend,
        }

    async def synthesize(self) -> TradeCandidate:
        priced = await self._priced(self._pool())
        if len(priced) < 2:
            raise UpstreamUnavailable("synthesizer", f"only {len(priced)} priced assets, need 2")

        (src, src_price), (dst, _) = self.rng.sample(priced, 2)
        sol_price = next((p for a, p in priced if a.mint == SOL_MINT), SOL_REFERENCE_PRICE)

        # 0.1 to 2.0 SOL worth of the source token
        base_amount = 0.1 + self.rng.random() * 1.9
        input_amount = base_amount if src.mint == SOL_MINT else base_amount * (sol_price / src_price)
        usd_value = input_amount * src_price
        move = -3.0 + self.rng.random() * 8.0
        profit = usd_value * move / 100.0

        candidate = TradeCandidate(
            trade_id=next_trade_id(self.clock),
            timestamp=self.clock(),
            from_asset=src,
            to_asset=dst,
            input_amount=input_amount,
            usd_value=usd_value,
            profit=profit,
            profit_percent=move,
            features=self._features(dst, usd_value),
        )
        self.log.debug(
            "synthesized %s %s -> %s usd=%.2f move=%.2f%%", candidate.trade_id, src.symbol, dst.symbol, usd_value, move
        )
        return candidate
