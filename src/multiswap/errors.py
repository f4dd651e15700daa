"""Exceptions raised by the swap aggregator and its provider adapters."""

from typing import Optional


class MultiswapError(Exception):
    """Base exception for aggregator errors."""
    pass


class ProviderError(MultiswapError):
    """Raised when a provider API call fails or returns an unusable response."""

    def __init__(self, provider: str, message: str, status_code: Optional[int] = None):
        self.provider = provider
        self.status_code = status_code
        super().__init__(f"{provider}: {message}")


class UnknownProviderError(MultiswapError):
    """Raised in strict dispatch mode when no adapter matches a provider tag."""

    def __init__(self, provider: Optional[str]):
        self.provider = provider
        super().__init__(f"No provider adapter configured for tag {provider!r}")
