from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any

RSI_PERIOD = 14
MACD_FAST = 12
MACD_SLOW = 26
MOMENTUM_WINDOW = 5

# Neutral values used when the price history is too short for an indicator.
NEUTRAL_DEFAULTS: dict[str, float] = {
    "rsi": 50.0,
    "macd": 0.0,
    "momentum": 0.0,
    "trend_alignment": 0.0,
}

_CORE_KEYS = ("profit_percentage", "slippage", "liquidity", "volume")
_TREND = {"up": 1.0, "down": -1.0, "neutral": 0.0}


def _prices(history: Iterable[Any] | None) -> list[float]:
    out: list[float] = []
    for p in history or ():
        if isinstance(p, Mapping):
            p = p.get("price")
        if isinstance(p, bool) or not isinstance(p, (int, float)):
            continue
        if math.isfinite(float(p)):
            out.append(float(p))
    return out


def volatility(prices: list[float]) -> float:
    """Population stdev of simple returns."""
    if len(prices) < 2:
        return 0.0
    changes = [(b - a) / a for a, b in zip(prices, prices[1:]) if a != 0]
    if not changes:
        return 0.0
    mean = sum(changes) / len(changes)
    return math.sqrt(sum((c - mean) ** 2 for c in changes) / len(changes))


def momentum(prices: list[float]) -> float:
    if len(prices) < MOMENTUM_WINDOW:
        return 0.0
    prev = prices[-MOMENTUM_WINDOW]
    if prev == 0:
        return 0.0
    return (prices[-1] - prev) / prev


def rsi(prices: list[float]) -> float:
    """RSI over the first 14 price changes; 100 when there were no losses."""
    if len(prices) < RSI_PERIOD:
        return NEUTRAL_DEFAULTS["rsi"]
    changes = [b - a for a, b in zip(prices, prices[1:])][:RSI_PERIOD]
    avg_gain = sum(c for c in changes if c > 0) / RSI_PERIOD
    avg_loss = sum(-c for c in changes if c < 0) / RSI_PERIOD
    if avg_loss == 0:
        return 100.0
    rs = avg_gain / avg_loss
    return 100.0 - (100.0 / (1.0 + rs))


def macd(prices: list[float]) -> float:
    """Difference of the 12- and 26-sample simple averages."""
    if len(prices) < MACD_SLOW:
        return NEUTRAL_DEFAULTS["macd"]
    fast = sum(prices[-MACD_FAST:]) / MACD_FAST
    slow = sum(prices[-MACD_SLOW:]) / MACD_SLOW
    return fast - slow


def engineer_features(data: Mapping[str, Any], now: datetime | None = None) -> dict[str, Any]:
    """Derive the scorer's feature vector from raw market data.

    Recognised inputs: profit_percentage, slippage, liquidity, volume,
    price_history (numbers or {"price": x} mappings) and market_trend
    ("up" / "down" / "neutral"). Unknown keys pass through untouched.
    volatility stays None until at least two prices are known.
    """
    out: dict[str, Any] = dict(data)
    now = now or datetime.now()
    out.setdefault("hour_of_day", now.hour)
    out.setdefault("time_of_day", out["hour_of_day"])
    # Sunday=0
    out.setdefault("day_of_week", (now.weekday() + 1) % 7)

    for key, value in NEUTRAL_DEFAULTS.items():
        out.setdefault(key, value)
    out.setdefault("volatility", None)

    prices = _prices(data.get("price_history"))
    if len(prices) > 1:
        out["volatility"] = volatility(prices)
        if len(prices) >= MOMENTUM_WINDOW:
            out["momentum"] = momentum(prices)
        if len(prices) >= RSI_PERIOD:
            out["rsi"] = rsi(prices)
        if len(prices) >= MACD_SLOW:
            out["macd"] = macd(prices)

    trend = data.get("market_trend")
    if trend is not None:
        out["trend_alignment"] = _TREND.get(str(trend).lower(), 0.0)

    for key in _CORE_KEYS:
        try:
            v = float(out.get(key) or 0.0)
        except (TypeError, ValueError):
            v = 0.0
        out[key] = v if math.isfinite(v) else 0.0
    return out
