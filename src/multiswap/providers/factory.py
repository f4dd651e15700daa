"""Factory for the default, ordered provider adapter list.

Order matters: it is the precedence order for token merging and the order
quotes are concatenated in before ranking.
"""

import logging
from typing import Optional

from multiswap.config import Settings, get_settings
from multiswap.providers.base import ProviderAdapter, TransactionSender
from multiswap.providers.changelly import ChangellyProvider
from multiswap.providers.oneinch import OneInchProvider
from multiswap.providers.paraswap import ParaSwapProvider
from multiswap.providers.zerox import ZeroExProvider

logger = logging.getLogger(__name__)


def create_oneinch_provider(
    sender: TransactionSender, chain: str, settings: Optional[Settings] = None
) -> OneInchProvider:
    """Create 1inch provider."""
    settings = settings or get_settings()
    if not settings.oneinch_api_key:
        logger.warning("ONEINCH_API_KEY not set - 1inch requests will likely be rejected")
    return OneInchProvider(
        sender,
        chain,
        base_url=settings.oneinch_api_url,
        timeout=settings.http_timeout_seconds,
        slippage_percent=settings.swap_slippage_percent,
        api_key=settings.oneinch_api_key,
        referrer=settings.partner_address,
    )


def create_zerox_provider(
    sender: TransactionSender, chain: str, settings: Optional[Settings] = None
) -> ZeroExProvider:
    """Create 0x provider."""
    settings = settings or get_settings()
    return ZeroExProvider(
        sender,
        chain,
        base_url=settings.zerox_api_url,
        timeout=settings.http_timeout_seconds,
        slippage_percent=settings.swap_slippage_percent,
        api_key=settings.zerox_api_key,
    )


def create_paraswap_provider(
    sender: TransactionSender, chain: str, settings: Optional[Settings] = None
) -> ParaSwapProvider:
    """Create ParaSwap provider."""
    settings = settings or get_settings()
    return ParaSwapProvider(
        sender,
        chain,
        base_url=settings.paraswap_api_url,
        timeout=settings.http_timeout_seconds,
        slippage_percent=settings.swap_slippage_percent,
    )


def create_changelly_provider(
    sender: TransactionSender, chain: str, settings: Optional[Settings] = None
) -> ChangellyProvider:
    """Create Changelly provider."""
    settings = settings or get_settings()
    return ChangellyProvider(
        sender,
        chain,
        base_url=settings.changelly_api_url,
        timeout=settings.http_timeout_seconds,
        api_key=settings.changelly_api_key,
    )


def create_default_providers(
    sender: TransactionSender, chain: str, settings: Optional[Settings] = None
) -> list[ProviderAdapter]:
    """Create the default adapter list: 1inch, 0x, ParaSwap, Changelly."""
    settings = settings or get_settings()
    providers = [
        create_oneinch_provider(sender, chain, settings),
        create_zerox_provider(sender, chain, settings),
        create_paraswap_provider(sender, chain, settings),
        create_changelly_provider(sender, chain, settings),
    ]
    logger.info(f"Created {len(providers)} provider adapters for {chain}")
    return providers
