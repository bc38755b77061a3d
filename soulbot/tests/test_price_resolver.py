import asyncio

import pytest

from soulbot.data.price_resolver import PriceResolver
from soulbot.data.price_sources import parse_quote
from soulbot.data.token_registry import TokenRegistry
from soulbot.domain.errors import UpstreamUnavailable
from soulbot.strategy.tradeability import TradeabilityChecker, TradeabilityReason
from soulbot.tests.fakes import FakeClock, FakePriceSource, FakeQuoteSource

REGISTRY = TokenRegistry()
SOL = REGISTRY.require("SOL")
USDC = REGISTRY.require("USDC")


def _resolver(sources, clock=None):
    quotes = FakeQuoteSource(REGISTRY, {"SOL": 150.0, "USDC": 1.0})
    return PriceResolver(sources, quotes, ttl_sec=60, clock=clock or FakeClock())


def test_price_cache_ttl() -> None:
    clock = FakeClock()
    src = FakePriceSource("primary", {"SOL": 150.0})
    resolver = _resolver([src], clock)

    async def run():
        assert await resolver.get_price(SOL) == 150.0
        clock.advance(59)
        assert await resolver.get_price(SOL) == 150.0
        assert src.calls == 1
        src.prices["SOL"] = 151.0
        clock.advance(2)
        assert await resolver.get_price(SOL) == 151.0
        assert src.calls == 2

    asyncio.run(run())


def test_price_fallback_order() -> None:
    primary = FakePriceSource("primary", fail=True)
    secondary = FakePriceSource("secondary", {"SOL": 149.0})
    static = FakePriceSource("static", {"SOL": 150.0})
    resolver = _resolver([primary, secondary, static])
    entry = asyncio.run(resolver.resolve(SOL))
    assert entry.price == 149.0
    assert entry.source == "secondary"
    assert static.calls == 0


def test_price_failures_not_cached() -> None:
    src = FakePriceSource("primary", {"SOL": 150.0}, fail=True)
    resolver = _resolver([src])

    async def run():
        assert await resolver.get_price(SOL) is None
        src.fail = False
        assert await resolver.get_price(SOL) == 150.0

    asyncio.run(run())
    assert src.calls == 2


def test_zero_price_is_not_a_price() -> None:
    resolver = _resolver([FakePriceSource("primary", {"SOL": 0.0}), FakePriceSource("static", {"SOL": 150.0})])
    assert asyncio.run(resolver.get_price(SOL)) == 150.0


def test_all_sources_fail_gives_none_and_no_price_reason() -> None:
    resolver = _resolver([FakePriceSource("a", fail=True), FakePriceSource("b", fail=True)])

    async def run():
        assert await resolver.get_price(SOL) is None
        return await TradeabilityChecker(resolver, USDC).verify(SOL)

    result = asyncio.run(run())
    assert result.tradeable is False
    assert result.reason is TradeabilityReason.NO_PRICE


def test_price_source_timeout_falls_through() -> None:
    slow = FakePriceSource("slow", {"SOL": 1.0})
    slow.gate = asyncio.Event()
    fast = FakePriceSource("fast", {"SOL": 150.0})
    quotes = FakeQuoteSource(REGISTRY, {"SOL": 150.0, "USDC": 1.0})
    resolver = PriceResolver([slow, fast], quotes, timeout=0.1)
    entry = asyncio.run(resolver.resolve(SOL))
    assert entry.source == "fast"


def test_failed_quote_is_none() -> None:
    quotes = FakeQuoteSource(REGISTRY, {"SOL": 150.0})
    resolver = PriceResolver([], quotes)
    assert asyncio.run(resolver.get_quote(USDC, SOL, 1_000_000)) is None


def test_quote_without_out_amount_is_rejected() -> None:
    with pytest.raises(UpstreamUnavailable):
        parse_quote({"inAmount": "1000000"}, source="jupiter", amount=1_000_000, slippage_bps=50)
    with pytest.raises(UpstreamUnavailable):
        parse_quote({"outAmount": "0"}, source="jupiter", amount=1_000_000, slippage_bps=50)
    q = parse_quote({"outAmount": "6500000", "priceImpactPct": "0.12"}, source="jupiter", amount=1_000_000, slippage_bps=50)
    assert q.output_amount == 6_500_000
    assert q.price_impact_pct == 0.12
