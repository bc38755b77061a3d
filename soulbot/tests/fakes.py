from __future__ import annotations

import asyncio
import random
from pathlib import Path

from soulbot.data.price_resolver import PriceResolver
from soulbot.data.token_registry import TokenRegistry
from soulbot.data.wallet_store import WalletStateStore
from soulbot.domain.errors import PersistenceFailure, UpstreamUnavailable
from soulbot.domain.models import Asset, Quote
from soulbot.engine.ingestor import TradeIngestor
from soulbot.engine.session_controller import SessionController
from soulbot.engine.synthesizer import TradeSynthesizer
from soulbot.execution.manager import ExecutionManager
from soulbot.infra.telemetry import RuntimeEventLogger
from soulbot.strategy.scorer import AdaptiveScorer
from soulbot.strategy.tradeability import TradeabilityChecker

DEFAULT_PRICES = {"SOL": 150.0, "USDC": 1.0, "BONK": 0.00002, "JUP": 0.8}


class FakeClock:
    def __init__(self, t: float = 1_700_000_000.0):
        self.t = t

    def __call__(self) -> float:
        return self.t

    def advance(self, sec: float) -> None:
        self.t += sec


class FakePriceSource:
    def __init__(self, name: str, prices: dict[str, float] | None = None, *, fail: bool = False):
        self.name = name
        self.prices = dict(prices or {})
        self.fail = fail
        self.calls = 0
        self.gate: asyncio.Event | None = None

    async def fetch_price(self, asset: Asset) -> float | None:
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.fail:
            raise UpstreamUnavailable(self.name, "down")
        return self.prices.get(asset.symbol)


class FakeQuoteSource:
    """Quotes at the given USD prices, shaving `loss` off every leg."""

    name = "fake-quotes"

    def __init__(
        self,
        registry: TokenRegistry,
        prices: dict[str, float],
        *,
        loss: float = 0.0,
        impact_pct: float = 0.0,
        no_reverse_for: set[str] | None = None,
    ):
        self.registry = registry
        self.prices = prices
        self.loss = loss
        self.impact_pct = impact_pct
        self.no_reverse_for = no_reverse_for or set()

    async def fetch_quote(self, from_mint: str, to_mint: str, amount: int, slippage_bps: int) -> Quote:
        src = self.registry.by_mint(from_mint)
        dst = self.registry.by_mint(to_mint)
        if src is None or dst is None or src.symbol not in self.prices or dst.symbol not in self.prices:
            raise UpstreamUnavailable(self.name, "no route")
        if src.symbol in self.no_reverse_for:
            raise UpstreamUnavailable(self.name, "no reverse route")
        usd = amount / 10**src.decimals * self.prices[src.symbol]
        out = int(usd / self.prices[dst.symbol] * 10**dst.decimals * (1.0 - self.loss))
        return Quote(
            input_mint=from_mint,
            output_mint=to_mint,
            input_amount=amount,
            output_amount=out,
            price_impact_pct=self.impact_pct,
            slippage_bps=slippage_bps,
        )


class FlakyStore(WalletStateStore):
    def __init__(self, data_dir: str):
        super().__init__(data_dir)
        self.fail_writes = False

    def save(self, identity, snapshot):
        if self.fail_writes:
            raise PersistenceFailure("disk full")
        return super().save(identity, snapshot)


def make_resolver(prices=None, *, registry=None, clock=None, loss=0.0, impact_pct=0.0, sources=None):
    registry = registry or TokenRegistry()
    prices = DEFAULT_PRICES if prices is None else prices
    quotes = FakeQuoteSource(registry, prices, loss=loss, impact_pct=impact_pct)
    kwargs = {"clock": clock} if clock is not None else {}
    return PriceResolver(sources or [FakePriceSource("primary", prices)], quotes, **kwargs)


def make_controller(
    tmp_path: Path,
    *,
    prices=None,
    store=None,
    registry=None,
    auto_execute: bool = False,
    impact_pct: float = -0.5,
    sources=None,
) -> SessionController:
    registry = registry or TokenRegistry()
    resolver = make_resolver(prices, registry=registry, impact_pct=impact_pct, sources=sources)
    rng = random.Random(7)
    return SessionController(
        registry=registry,
        scorer=AdaptiveScorer(rng=rng),
        store=store or WalletStateStore(str(tmp_path)),
        synthesizer=TradeSynthesizer(resolver, registry, rng=rng),
        ingestor=TradeIngestor(resolver, registry),
        tradeability=TradeabilityChecker(resolver, registry.base),
        executor=ExecutionManager(dry_run=True),
        journal=RuntimeEventLogger(str(tmp_path)),
        trade_interval_sec=3600,
        auto_execute=auto_execute,
    )
