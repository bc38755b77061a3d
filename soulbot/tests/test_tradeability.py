import asyncio

import pytest

from soulbot.data.token_registry import TokenRegistry
from soulbot.strategy.tradeability import TradeabilityChecker, TradeabilityReason
from soulbot.tests.fakes import FakeQuoteSource, make_resolver

REGISTRY = TokenRegistry()
PRICES = {"SOL": 150.0, "USDC": 1.0}


def _check(loss: float, **quote_kw):
    resolver = make_resolver(PRICES, registry=REGISTRY)
    resolver.quote_source = FakeQuoteSource(REGISTRY, PRICES, loss=loss, **quote_kw)
    checker = TradeabilityChecker(resolver, REGISTRY.base)
    return asyncio.run(checker.verify(REGISTRY.require("SOL")))


def test_round_trip_within_limit() -> None:
    result = _check(0.02)
    assert result.tradeable is True
    assert result.reason is None
    assert result.round_trip_loss == pytest.approx(1 - result.reverse_output / 1_000_000)
    assert result.round_trip_loss == pytest.approx(0.0396, abs=1e-4)
    assert result.implied_slippage_percent == pytest.approx(result.round_trip_loss * 100)


def test_reverse_leg_sells_forward_output() -> None:
    result = _check(0.0)
    assert result.forward_output == 6_666_666
    assert result.round_trip_loss >= 0


def test_excessive_slippage() -> None:
    result = _check(0.06)
    assert result.tradeable is False
    assert result.reason is TradeabilityReason.EXCESSIVE_SLIPPAGE
    assert result.round_trip_loss > 0.10


def test_missing_reverse_quote() -> None:
    result = _check(0.0, no_reverse_for={"SOL"})
    assert result.tradeable is False
    assert result.reason is TradeabilityReason.NO_REVERSE_QUOTE


def test_missing_forward_quote() -> None:
    resolver = make_resolver({"SOL": 150.0, "USDC": 1.0, "BONK": 0.00002}, registry=REGISTRY)
    resolver.quote_source = FakeQuoteSource(REGISTRY, {"SOL": 150.0})
    checker = TradeabilityChecker(resolver, REGISTRY.base)
    result = asyncio.run(checker.verify(REGISTRY.require("BONK")))
    assert result.reason is TradeabilityReason.NO_FORWARD_QUOTE
