"""Pytest configuration and fixtures."""

import asyncio
import os
from typing import Any, Optional

import pytest

# Set test environment
os.environ["ENVIRONMENT"] = "test"
os.environ["TELEMETRY_ENABLED"] = "false"
os.environ["STRICT_DISPATCH"] = "false"

from multiswap.config import Settings
from multiswap.providers.base import (
    ProviderAdapter,
    Quote,
    QuoteRequest,
    Token,
    TradeResult,
    payload_value,
)


def make_token(contract: Optional[str], symbol: str, name: Optional[str] = None, decimals: int = 18) -> Token:
    return Token(contract=contract, symbol=symbol, name=name or symbol, decimals=decimals)


ETH = make_token("0xeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeee", "ETH", "Ethereum")
USDC = make_token("0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48", "USDC", "USD Coin", 6)


class FakeSender:
    """Transaction sender that records submissions."""

    def __init__(self, statuses: Optional[dict[str, str]] = None):
        self.sent: list[dict] = []
        self.statuses = statuses or {}

    async def send_transaction(self, tx: dict) -> dict:
        self.sent.append(tx)
        return {"tx_hash": f"0x{len(self.sent):064x}"}

    async def get_transaction_status(self, tx_hash: str) -> str:
        return self.statuses.get(tx_hash, "success")


class FakeProvider(ProviderAdapter):
    """Scriptable adapter that records every dispatched call."""

    def __init__(
        self,
        tag: str,
        tokens: Optional[list[Token]] = None,
        quotes: Optional[list[dict]] = None,
        supported: bool = True,
        token_error: Optional[Exception] = None,
        quote_error: Optional[Exception] = None,
        execute_error: Optional[Exception] = None,
        quote_delay: float = 0.0,
    ):
        super().__init__(FakeSender(), "ETH")
        self.provider = tag
        self.tokens = tokens or []
        self.quotes = quotes or []
        self.supported = supported
        self.token_error = token_error
        self.quote_error = quote_error
        self.execute_error = execute_error
        self.quote_delay = quote_delay
        self.calls: list[tuple[str, Any]] = []

    def is_supported_network(self, chain: str) -> bool:
        return self.supported

    async def get_supported_tokens(self) -> list[Token]:
        self.calls.append(("get_supported_tokens", None))
        if self.token_error:
            raise self.token_error
        return list(self.tokens)

    async def get_quote(self, request: QuoteRequest) -> list[Quote]:
        self.calls.append(("get_quote", request))
        if self.quote_delay:
            await asyncio.sleep(self.quote_delay)
        if self.quote_error:
            raise self.quote_error
        return [
            Quote(
                provider=self.provider,
                exchange=q["exchange"],
                amount=q["amount"],
                from_token=request.from_token,
                to_token=request.to_token,
                from_amount=request.from_amount,
            )
            for q in self.quotes
        ]

    async def get_trade(self, trade_info: Any) -> TradeResult:
        self.calls.append(("get_trade", trade_info))
        return TradeResult(provider=self.provider, transactions=[{"to": "0x1"}])

    async def execute_trade(self, trade_info: Any, confirm_info: Any) -> dict:
        self.calls.append(("execute_trade", (trade_info, confirm_info)))
        if self.execute_error:
            raise self.execute_error
        return {"provider": self.provider, "tx_hash": "0xabc"}

    async def is_valid_to_address(self, address_info: Any) -> bool:
        self.calls.append(("is_valid_to_address", address_info))
        return payload_value(address_info, "address") == "valid"

    async def get_min_max_amount(self, trade_info: Any) -> dict:
        self.calls.append(("get_min_max_amount", trade_info))
        return {"min": "0.1", "max": "10"}

    async def get_status(self, status: Any) -> dict:
        self.calls.append(("get_status", status))
        return {"provider": self.provider, "status": "success"}


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from any local .env file."""
    return Settings(_env_file=None)


@pytest.fixture
def sender() -> FakeSender:
    return FakeSender()
