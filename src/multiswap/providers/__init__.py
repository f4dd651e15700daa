"""Swap provider adapters.

Providers:
- 1inch: EVM DEX aggregator
- 0x: EVM DEX aggregator
- ParaSwap: EVM DEX aggregator
- Changelly: cross-chain fixed-rate exchange
"""

from multiswap.providers.base import (
    ExchangeInfo,
    ProviderAdapter,
    ProviderName,
    Quote,
    QuoteRequest,
    Token,
    TradeResult,
    TransactionSender,
)
from multiswap.providers.changelly import ChangellyProvider
from multiswap.providers.factory import create_default_providers
from multiswap.providers.oneinch import OneInchProvider
from multiswap.providers.paraswap import ParaSwapProvider
from multiswap.providers.zerox import ZeroExProvider

__all__ = [
    # Base classes and types
    "ProviderAdapter",
    "ProviderName",
    "TransactionSender",
    "Token",
    "Quote",
    "QuoteRequest",
    "TradeResult",
    "ExchangeInfo",
    # Providers
    "OneInchProvider",
    "ZeroExProvider",
    "ParaSwapProvider",
    "ChangellyProvider",
    # Factory
    "create_default_providers",
]
