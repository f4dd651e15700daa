"""multiswap - client-side swap quote aggregator and provider router."""

from multiswap.aggregator import SwapAggregator, TokenUniverse
from multiswap.errors import MultiswapError, ProviderError, UnknownProviderError
from multiswap.helpers import has_valid_decimals

__version__ = "0.1.0"

__all__ = [
    "SwapAggregator",
    "TokenUniverse",
    "MultiswapError",
    "ProviderError",
    "UnknownProviderError",
    "has_valid_decimals",
]
