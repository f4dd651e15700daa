"""Shared behavior for EVM DEX aggregator adapters.

1inch, 0x and ParaSwap all return a ready-to-sign swap transaction and
require an ERC20 approval for non-native input tokens, so trade building,
execution, limits and status tracking live here. Subclasses implement the
API-specific token listing, quoting and swap transaction calls.
"""

import logging
import re
from abc import abstractmethod
from typing import Any, Optional

from multiswap.chains import MAIN_TOKEN_ADDRESS, get_chain_id
from multiswap.errors import ProviderError
from multiswap.providers.base import (
    ProviderAdapter,
    Quote,
    QuoteRequest,
    TradeResult,
    from_base_units,
    payload_value,
    to_base_units,
)

logger = logging.getLogger(__name__)

EVM_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")

# ERC20 approve(address,uint256)
APPROVE_SELECTOR = "0x095ea7b3"
MAX_UINT256 = 2**256 - 1

# Transaction states reported by the sender
TX_PENDING = "pending"
TX_SUCCESS = "success"
TX_FAILED = "failed"


def is_native(contract: Optional[str]) -> bool:
    """Check if a contract address is the native coin placeholder."""
    return bool(contract) and contract.lower() == MAIN_TOKEN_ADDRESS


def encode_approve(spender: str, amount: int = MAX_UINT256) -> str:
    """Encode ERC20 approve calldata."""
    return (
        APPROVE_SELECTOR
        + spender.lower().removeprefix("0x").rjust(64, "0")
        + format(amount, "x").rjust(64, "0")
    )


class EvmAggregatorProvider(ProviderAdapter):
    """Base for adapters over EVM swap aggregation APIs."""

    supported_chains = frozenset({"ETH", "BSC", "MATIC", "ARB", "OP", "AVAX", "BASE"})
    exchange: str = ""

    def __init__(self, *args, slippage_percent: float = 0.5, **kwargs):
        super().__init__(*args, **kwargs)
        self.slippage_percent = slippage_percent
        self.chain_id = get_chain_id(self.chain)

    @abstractmethod
    async def _build_swap_tx(self, quote: Quote, from_address: str) -> tuple[dict, str]:
        """Build the swap transaction for a quote.

        Returns the transaction dict and the spender that needs an allowance.
        """
        pass

    def _quote_from_response(
        self, request: QuoteRequest, to_amount_wei: Any, extra: Optional[dict] = None
    ) -> Quote:
        return Quote(
            provider=self.provider,
            exchange=self.exchange,
            amount=from_base_units(to_amount_wei, request.to_token.decimals),
            from_token=request.from_token,
            to_token=request.to_token,
            from_amount=request.from_amount,
            extra={"chain": self.chain, "chain_id": self.chain_id, **(extra or {})},
        )

    async def get_trade(self, trade_info: Any) -> TradeResult:
        """Build approval (when needed) and swap transactions for a quote."""
        quote = self._as_quote(trade_info)
        from_address = payload_value(trade_info, "from_address") or quote.extra.get("from_address")
        if not from_address:
            raise ProviderError(self.provider, "trade requires from_address")

        swap_tx, spender = await self._build_swap_tx(quote, from_address)
        transactions = []
        if not is_native(quote.from_token.contract) and spender:
            amount = to_base_units(quote.from_amount, quote.from_token.decimals)
            transactions.append(
                {
                    "from": from_address,
                    "to": quote.from_token.contract,
                    "data": encode_approve(spender, amount),
                    "value": "0x0",
                }
            )
        transactions.append(swap_tx)

        logger.debug(
            f"{self.provider} trade built: {quote.from_amount} {quote.from_token.display} -> "
            f"{quote.amount} {quote.to_token.display} ({len(transactions)} tx)"
        )
        return TradeResult(
            provider=self.provider,
            transactions=transactions,
            to_amount=quote.amount,
            extra={"spender": spender},
        )

    async def execute_trade(self, trade_info: Any, confirm_info: Any) -> dict:
        """Submit the trade's transactions in order through the sender."""
        trade = payload_value(trade_info, "trade") or await self.get_trade(trade_info)
        hashes = []
        for tx in trade.transactions:
            result = await self.sender.send_transaction(tx)
            hashes.append(result["tx_hash"])

        logger.info(f"{self.provider} trade submitted: {', '.join(hashes)}")
        return {
            "provider": self.provider,
            "hashes": hashes,
            "tx_hash": hashes[-1] if hashes else None,
        }

    async def is_valid_to_address(self, address_info: Any) -> bool:
        address = payload_value(address_info, "address") or ""
        return bool(EVM_ADDRESS_RE.match(address))

    async def get_min_max_amount(self, trade_info: Any) -> dict:
        """Aggregators accept any positive amount; max None means unbounded."""
        from_token = payload_value(trade_info, "from_token")
        decimals = from_token.decimals if from_token else 18
        return {"min": from_base_units(1, decimals), "max": None}

    async def get_status(self, status: Any) -> dict:
        """Combine the sender's status for each submitted transaction."""
        hashes = payload_value(status, "hashes") or []
        if not hashes and payload_value(status, "tx_hash"):
            hashes = [payload_value(status, "tx_hash")]

        states = [await self.sender.get_transaction_status(h) for h in hashes]
        if TX_FAILED in states:
            overall = TX_FAILED
        elif not states or TX_PENDING in states:
            overall = TX_PENDING
        else:
            overall = TX_SUCCESS
        return {"provider": self.provider, "status": overall, "hashes": hashes}

    def _as_quote(self, trade_info: Any) -> Quote:
        if isinstance(trade_info, Quote):
            return trade_info
        quote = payload_value(trade_info, "quote")
        if isinstance(quote, Quote):
            return quote
        raise ProviderError(self.provider, "trade payload does not carry a quote")
