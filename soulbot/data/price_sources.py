from __future__ import annotations

from typing import Any, Protocol

from soulbot.data.http_service import HttpService
from soulbot.domain.errors import UpstreamUnavailable
from soulbot.domain.models import Asset, Quote


class PriceSource(Protocol):
    name: str

    async def fetch_price(self, asset: Asset) -> float | None:
        """USD price, None when the source has no price, raises UpstreamUnavailable on failure."""


class QuoteSource(Protocol):
    name: str

    async def fetch_quote(self, from_mint: str, to_mint: str, amount: int, slippage_bps: int) -> Quote:
        """Raise UpstreamUnavailable on transport failure or malformed payload."""


def parse_quote(data: Any, *, source: str, amount: int, slippage_bps: int) -> Quote:
    """Validate an aggregator quote payload; a missing output amount is a failure."""
    if not isinstance(data, dict):
        raise UpstreamUnavailable(source, "quote payload is not an object")
    raw_out = data.get("outAmount")
    try:
        out_amount = int(raw_out)
    except (TypeError, ValueError):
        raise UpstreamUnavailable(source, f"quote has no usable outAmount ({raw_out!r})") from None
    if out_amount <= 0:
        raise UpstreamUnavailable(source, "quote outAmount is not positive")
    try:
        impact = float(data.get("priceImpactPct") or 0.0)
    except (TypeError, ValueError):
        impact = 0.0
    return Quote(
        input_mint=str(data.get("inputMint") or ""),
        output_mint=str(data.get("outputMint") or ""),
        input_amount=int(data.get("inAmount") or amount),
        output_amount=out_amount,
        price_impact_pct=impact,
        slippage_bps=int(slippage_bps),
        raw=data,
    )


class HeliusOracle:
    """Primary oracle: DAS `getAsset` JSON-RPC, reads token_info.price_info."""

    name = "helius"

    def __init__(self, http: HttpService, *, rpc_url: str, api_key: str, timeout: float = 8.0):
        self.http = http
        self.api_key = api_key
        self.timeout = timeout
        if "?" in rpc_url or not api_key:
            self.url = rpc_url
        else:
            self.url = f"{rpc_url.rstrip('/')}/?api-key={api_key}"

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def fetch_price(self, asset: Asset) -> float | None:
        if not self.configured:
            return None
        data = await self.http.post_json(
            self.url,
            {"jsonrpc": "2.0", "id": "soulbot-price", "method": "getAsset", "params": {"id": asset.mint}},
            timeout=self.timeout,
        )
        if not isinstance(data, dict):
            raise UpstreamUnavailable(self.name, "malformed getAsset response")
        if data.get("error"):
            raise UpstreamUnavailable(self.name, str(data["error"]))
        result = data.get("result") or {}
        price_info = ((result.get("token_info") or {}).get("price_info")) or {}
        price = price_info.get("price_per_token")
        if price is None:
            return None
        return float(price)


class JupiterAggregator:
    """Swap aggregator: `/quote`. Also prices an asset by quoting one unit into USDC."""

    name = "jupiter"

    def __init__(self, http: HttpService, *, api_base: str, usdc_mint: str, timeout: float = 8.0):
        self.http = http
        self.api_base = api_base.rstrip("/")
        self.usdc_mint = usdc_mint
        self.timeout = timeout

    async def fetch_quote(self, from_mint: str, to_mint: str, amount: int, slippage_bps: int) -> Quote:
        amount = int(amount)
        if amount <= 0:
            raise UpstreamUnavailable(self.name, "quote amount must be positive")
        data = await self.http.get_json(
            f"{self.api_base}/quote",
            params={
                "inputMint": from_mint,
                "outputMint": to_mint,
                "amount": str(amount),
                "slippageBps": str(int(slippage_bps)),
            },
            timeout=self.timeout,
        )
        return parse_quote(data, source=self.name, amount=amount, slippage_bps=slippage_bps)

    async def fetch_price(self, asset: Asset) -> float | None:
        if asset.mint == self.usdc_mint:
            return 1.0
        unit = 10 ** int(asset.decimals)
        quote = await self.fetch_quote(asset.mint, self.usdc_mint, unit, 50)
        return quote.output_amount / 1_000_000


class StaticPriceTable:
    """Last-resort table of indicative prices keyed by mint."""

    name = "static"

    def __init__(self, prices: dict[str, float]):
        self.prices = dict(prices)

    async def fetch_price(self, asset: Asset) -> float | None:
        return self.prices.get(asset.mint)
