from .http_service import HttpService
from .price_resolver import PriceResolver
from .price_sources import HeliusOracle, JupiterAggregator, PriceSource, QuoteSource, StaticPriceTable
from .token_registry import TokenRegistry
from .wallet_store import WalletStateStore

__all__ = [
    "HeliusOracle",
    "HttpService",
    "JupiterAggregator",
    "PriceResolver",
    "PriceSource",
    "QuoteSource",
    "StaticPriceTable",
    "TokenRegistry",
    "WalletStateStore",
]
