from __future__ import annotations

from soulbot.domain.errors import ValidationError
from soulbot.domain.models import Asset

USDC_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
SOL_MINT = "So11111111111111111111111111111111111111112"

# symbol, mint, decimals, name, last-resort USD price
_KNOWN = (
    ("SOL", SOL_MINT, 9, "Solana", 150.0),
    ("USDC", USDC_MINT, 6, "USD Coin", 1.0),
    ("USDT", "Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenwNYB", 6, "Tether USD", 1.0),
    ("BONK", "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263", 5, "Bonk", 0.00002),
    ("JUP", "JUPyiwrYJFskUPiHa7hkeR8VUtAeFoSYbKedZNsDvCN", 6, "Jupiter", 0.85),
    ("ORCA", "orcaEKTdK7LKz57vaAYr9QeNsVEPfiu6QeMU1kektZE", 6, "Orca", 2.5),
    ("WIF", "EKpQGSJtjMFqKZ9KQanSqYXRcF8fBopzLZYQJB9ihCn3", 6, "dogwifhat", 1.8),
    ("JITO", "7i5KKsX2weiTkry7jA4ZwSuXGhs5eJBEjY8vVxR4pfRx", 9, "Jito", 2.9),
    ("RAY", "4k3Dyjzvzp8eMZWUXbBCjEvwSkkk59S5iCNLY3QrkX6R", 6, "Raydium", 1.7),
    ("SAMO", "7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU", 9, "Samoyedcoin", 0.01),
    ("mSOL", "mSoLzYCxHdYgdzU16g5QSh3i5K3z3KZK7ytfqcJm7So", 9, "Marinade staked SOL", 175.0),
    ("stSOL", "7dHbWXmci3dT8UFYWYZweBLXgycu7Y3iL6trKn1Y7ARj", 9, "Lido staked SOL", 170.0),
    ("ETH", "7vfCXTUXx5WJV5JADk17DUJ4ksgau7utNKj4b963voxs", 8, "Ether (Wormhole)", 3100.0),
)


class TokenRegistry:
    """Known tradeable assets, looked up by symbol or mint."""

    def __init__(self, assets: list[Asset] | None = None, static_prices: dict[str, float] | None = None):
        if assets is None:
            assets = [Asset(symbol=s, mint=m, decimals=d, name=n) for s, m, d, n, _ in _KNOWN]
            static_prices = {m: p for _, m, _, _, p in _KNOWN} if static_prices is None else static_prices
        self._by_mint = {a.mint: a for a in assets}
        self._by_symbol = {a.symbol.upper(): a for a in assets}
        self.static_prices = dict(static_prices or {})

    def all(self) -> list[Asset]:
        return list(self._by_mint.values())

    def by_mint(self, mint: str) -> Asset | None:
        return self._by_mint.get(mint)

    def by_symbol(self, symbol: str) -> Asset | None:
        return self._by_symbol.get(str(symbol or "").upper())

    def require(self, key: str) -> Asset:
        asset = self.by_symbol(key) or self.by_mint(key)
        if asset is None:
            raise ValidationError(f"unknown asset {key!r}")
        return asset

    @property
    def base(self) -> Asset:
        return self.require("USDC")
