from __future__ import annotations

import asyncio
import logging
import math
import time
from collections import deque
from collections.abc import Callable, Sequence

from soulbot.data.price_sources import PriceSource, QuoteSource
from soulbot.domain.errors import UpstreamUnavailable
from soulbot.domain.models import Asset, PriceCacheEntry, Quote


class PriceResolver:
    """Resolves USD prices through an ordered fallback chain with a per-asset TTL cache.

    Sources are tried in the order given; the first positive price wins and is
    cached (one entry per mint, last write wins). Failures are never cached, so
    the next call retries the whole chain. A fully failed lookup returns None,
    which callers treat as "untradeable right now", never as zero.
    """

    def __init__(
        self,
        sources: Sequence[PriceSource],
        quote_source: QuoteSource,
        *,
        ttl_sec: float = 60.0,
        timeout: float = 8.0,
        default_slippage_bps: int = 50,
        history_len: int = 64,
        clock: Callable[[], float] = time.time,
        log: logging.Logger | None = None,
    ):
        self.sources = list(sources)
        self.quote_source = quote_source
        self.ttl_sec = max(0.0, float(ttl_sec))
        self.timeout = max(0.1, float(timeout))
        self.default_slippage_bps = int(default_slippage_bps)
        self.clock = clock
        self.log = log or logging.getLogger("soulbot.prices")
        self._cache: dict[str, PriceCacheEntry] = {}
        self._history: dict[str, deque] = {}
        self._history_len = max(2, int(history_len))
        self.upstream_calls = 0

    def cached(self, asset: Asset) -> PriceCacheEntry | None:
        entry = self._cache.get(asset.mint)
        if entry is None:
            return None
        if self.clock() - entry.resolved_at < self.ttl_sec:
            return entry
        return None

    def price_history(self, asset: Asset) -> list[float]:
        return list(self._history.get(asset.mint, ()))

    async def resolve(self, asset: Asset) -> PriceCacheEntry | None:
        entry = self.cached(asset)
        if entry is not None:
            return entry

        for source in self.sources:
            self.upstream_calls += 1
            try:
                price = await asyncio.wait_for(source.fetch_price(asset), timeout=self.timeout)
            except asyncio.TimeoutError:
                self.log.warning("price source %s timed out for %s", source.name, asset.symbol)
                continue
            except UpstreamUnavailable as exc:
                self.log.warning("price source %s unavailable for %s: %s", source.name, asset.symbol, exc)
                continue
            except (TypeError, ValueError, KeyError, AttributeError) as exc:
                self.log.warning("price source %s returned garbage for %s: %s", source.name, asset.symbol, exc)
                continue
            if price is None:
                continue
            try:
                price = float(price)
            except (TypeError, ValueError):
                continue
            if not math.isfinite(price) or price <= 0:
                continue

            entry = PriceCacheEntry(asset=asset.mint, price=price, resolved_at=self.clock(), source=source.name)
            self._cache[asset.mint] = entry
            self._history.setdefault(asset.mint, deque(maxlen=self._history_len)).append(price)
            self.log.debug("price %s=%.8f via %s", asset.symbol, price, source.name)
            return entry

        self.log.error("no price for %s from any source", asset.symbol)
        return None

    async def get_price(self, asset: Asset) -> float | None:
        entry = await self.resolve(asset)
        return entry.price if entry is not None else None

    async def get_quote(
        self,
        from_asset: Asset,
        to_asset: Asset,
        amount: int,
        slippage_bps: int | None = None,
    ) -> Quote | None:
        bps = self.default_slippage_bps if slippage_bps is None else int(slippage_bps)
        try:
            return await asyncio.wait_for(
                self.quote_source.fetch_quote(from_asset.mint, to_asset.mint, int(amount), bps),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            self.log.warning("quote %s -> %s timed out", from_asset.symbol, to_asset.symbol)
        except UpstreamUnavailable as exc:
            self.log.warning("quote %s -> %s unavailable: %s", from_asset.symbol, to_asset.symbol, exc)
        except (TypeError, ValueError, KeyError, AttributeError) as exc:
            self.log.warning("quote %s -> %s malformed: %s", from_asset.symbol, to_asset.symbol, exc)
        return None
