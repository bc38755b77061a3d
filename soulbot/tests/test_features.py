from datetime import datetime

import pytest

from soulbot.strategy.features import NEUTRAL_DEFAULTS, engineer_features, macd, momentum, rsi, volatility

NOON_MONDAY = datetime(2024, 1, 1, 12, 30)


def test_short_history_keeps_neutral_defaults() -> None:
    out = engineer_features({"profit_percentage": 1.2, "price_history": [1.0]}, now=NOON_MONDAY)
    assert out["rsi"] == NEUTRAL_DEFAULTS["rsi"]
    assert out["macd"] == 0.0
    assert out["momentum"] == 0.0
    assert out["volatility"] is None
    assert out["profit_percentage"] == 1.2
    assert out["slippage"] == 0.0


def test_time_features() -> None:
    out = engineer_features({}, now=NOON_MONDAY)
    assert out["hour_of_day"] == 12
    assert out["time_of_day"] == 12
    assert out["day_of_week"] == 1


def test_indicators_with_long_history() -> None:
    prices = [100.0 + i for i in range(30)]
    out = engineer_features({"price_history": prices, "market_trend": "up"}, now=NOON_MONDAY)
    assert out["rsi"] == 100.0
    assert out["macd"] == pytest.approx(sum(prices[-12:]) / 12 - sum(prices[-26:]) / 26)
    assert out["momentum"] == pytest.approx((129.0 - 125.0) / 125.0)
    assert out["volatility"] > 0
    assert out["trend_alignment"] == 1.0


def test_indicator_helpers() -> None:
    assert volatility([1.0, 1.0, 1.0]) == 0.0
    assert momentum([1.0, 2.0]) == 0.0
    assert macd([1.0] * 10) == 0.0
    falling = [100.0 - i for i in range(15)]
    assert rsi(falling) == pytest.approx(0.0)
    mixed = [10, 11, 10, 11, 10, 11, 10, 11, 10, 11, 10, 11, 10, 11, 10]
    assert rsi([float(p) for p in mixed]) == pytest.approx(50.0)


def test_price_history_accepts_price_mappings() -> None:
    hist = [{"price": 1.0}, {"price": 1.1}, {"price": "bad"}, 1.2]
    out = engineer_features({"price_history": hist}, now=NOON_MONDAY)
    assert out["volatility"] is not None
