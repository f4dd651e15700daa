"""Swap aggregator: fans quotes and token lists out to every provider and
routes follow-up calls back to the provider that produced a quote.

Flow:
1. get_all_tokens() seeds the token universe from a base provider and merges
   the cross-chain providers' lists (first seen wins)
2. get_all_quotes() asks every provider on the chain, ranks by output amount
3. get_trade/execute_trade/get_status/... dispatch on the payload's provider tag
"""

import asyncio
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Awaitable, Optional, TypeVar

from multiswap.chains import DOGE_ADDRESS, normalize_chain
from multiswap.config import Settings, get_settings
from multiswap.errors import UnknownProviderError
from multiswap.exchanges import get_exchange_info
from multiswap.providers.base import (
    ProviderAdapter,
    ProviderName,
    Quote,
    QuoteRequest,
    Token,
    TransactionSender,
    payload_value,
)
from multiswap.providers.factory import create_default_providers
from multiswap.telemetry import EventEmitter, create_emitter, emit_background

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Base provider index for token listing
FLAGSHIP_BASE_INDEX = 0
DEFAULT_BASE_INDEX = 3


@dataclass
class TokenUniverse:
    """Merged token lists across providers."""

    tokens: dict[str, Token] = field(default_factory=dict)  # key -> token, merge order
    from_tokens: list[Token] = field(default_factory=list)
    to_tokens: list[Token] = field(default_factory=list)


def _token_label(token: Optional[Token]) -> Optional[str]:
    if token is None:
        return None
    return token.symbol or token.contract


def _is_excluded(token: Token) -> bool:
    return bool(token.contract) and token.contract.lower() == DOGE_ADDRESS.lower()


def _rank_key(quote: Quote) -> Decimal:
    amount = quote.amount_decimal
    # Unparsable amounts rank last
    return Decimal("-Infinity") if amount.is_nan() else amount


class SwapAggregator:
    """Aggregates quotes and token lists across swap providers.

    Holds only the adapter list built at construction, so concurrent calls
    are independent.
    """

    def __init__(
        self,
        context: TransactionSender,
        chain: str,
        providers: Optional[list[ProviderAdapter]] = None,
        emitter: Optional[EventEmitter] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.chain = normalize_chain(chain)
        self.context = context
        self.providers: tuple[ProviderAdapter, ...] = tuple(
            providers
            if providers is not None
            else create_default_providers(context, self.chain, self.settings)
        )
        self.emitter: EventEmitter = emitter or create_emitter(self.settings)

        self._by_tag: dict[str, ProviderAdapter] = {}
        for adapter in self.providers:
            if adapter.provider in self._by_tag:
                logger.warning(f"Duplicate provider tag {adapter.provider!r} ignored")
                continue
            self._by_tag[adapter.provider] = adapter

    async def __aenter__(self) -> "SwapAggregator":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close provider and emitter HTTP clients."""
        for adapter in self.providers:
            await adapter.aclose()
        close = getattr(self.emitter, "aclose", None)
        if close is not None:
            await close()

    # ======================
    # Helpers
    # ======================

    def _emit(self, event_name: str, attributes: dict[str, Any]) -> None:
        emit_background(self.emitter, event_name, {**attributes, "chain": self.chain})

    async def _guarded(self, adapter: ProviderAdapter, call: Awaitable[T], what: str) -> Optional[T]:
        """Await one fan-out branch; failures and timeouts yield None."""
        try:
            if self.settings.provider_timeout_seconds:
                return await asyncio.wait_for(call, self.settings.provider_timeout_seconds)
            return await call
        except asyncio.TimeoutError:
            logger.warning(f"{adapter.provider} {what} timed out")
        except Exception as e:
            logger.warning(f"{adapter.provider} {what} failed: {type(e).__name__}: {e}")
        return None

    def _eligible(self) -> list[ProviderAdapter]:
        return [p for p in self.providers if p.is_supported_network(self.chain)]

    def get_provider(self, tag: Any) -> Optional[ProviderAdapter]:
        """Get the adapter registered under a provider tag."""
        if isinstance(tag, ProviderName):
            tag = tag.value
        return self._by_tag.get(tag)

    def _resolve(self, payload: Any, operation: str) -> Optional[ProviderAdapter]:
        tag = payload_value(payload, "provider")
        adapter = self.get_provider(tag)
        if adapter is None:
            if self.settings.strict_dispatch:
                raise UnknownProviderError(tag)
            logger.warning(f"{operation}: no provider adapter for tag {tag!r}")
        return adapter

    # ======================
    # Token universe
    # ======================

    def _base_index(self) -> int:
        if self.settings.is_flagship_chain(self.chain):
            index = FLAGSHIP_BASE_INDEX
        else:
            index = DEFAULT_BASE_INDEX
        return min(index, len(self.providers) - 1)

    async def get_all_tokens(self) -> TokenUniverse:
        """Build the supported token universe for the chain.

        The base provider's list is fetched first and its failure propagates.
        Providers from index 3 on that support the chain are then queried
        concurrently and their failures are only logged.
        """
        if not self.providers:
            return TokenUniverse()

        base_index = self._base_index()
        base = self.providers[base_index]
        tokens: dict[str, Token] = {}

        base_list = await base.get_supported_tokens()
        for token in base_list or []:
            if not _is_excluded(token):
                tokens.setdefault(token.key, token)
        logger.debug(f"Base provider {base.provider} listed {len(tokens)} tokens on {self.chain}")

        # Only the cross-chain providers from DEFAULT_BASE_INDEX on extend the list
        others = [
            p for i, p in enumerate(self.providers)
            if i >= DEFAULT_BASE_INDEX and i != base_index and p.is_supported_network(self.chain)
        ]
        results = await asyncio.gather(
            *(self._guarded(p, p.get_supported_tokens(), "token list") for p in others)
        )
        for adapter, listed in zip(others, results):
            added = 0
            for token in listed or []:
                if _is_excluded(token) or token.key in tokens:
                    continue
                tokens[token.key] = token
                added += 1
            logger.debug(f"{adapter.provider} added {added} tokens")

        to_tokens = sorted(tokens.values(), key=lambda t: t.name or "")
        from_tokens = [t for t in to_tokens if t.contract]
        logger.info(
            f"Token universe for {self.chain}: {len(to_tokens)} tokens "
            f"({len(from_tokens)} swappable from)"
        )
        return TokenUniverse(tokens=tokens, from_tokens=from_tokens, to_tokens=to_tokens)

    # ======================
    # Quotes
    # ======================

    async def get_all_quotes(
        self, from_token: Token, to_token: Token, from_amount: str
    ) -> list[Quote]:
        """Get quotes from every eligible provider, best output first.

        A failing provider contributes no quotes; the others still merge.
        """
        from_amount = str(from_amount)
        self._emit(
            "swap_quote_request",
            {
                "fromToken": _token_label(from_token),
                "toToken": _token_label(to_token),
                "fromAmount": from_amount,
            },
        )
        logger.debug(
            f"Getting quotes for {from_amount} {_token_label(from_token)} -> {_token_label(to_token)}"
        )

        request = QuoteRequest(from_token=from_token, to_token=to_token, from_amount=from_amount)
        eligible = self._eligible()
        batches = await asyncio.gather(
            *(self._guarded(p, p.get_quote(request), "quote") for p in eligible)
        )

        quotes: list[Quote] = []
        for batch in batches:
            if batch:
                quotes.extend(batch)

        # sorted() is stable with reverse=True, so equal amounts keep arrival order
        ranked = sorted(quotes, key=_rank_key, reverse=True)
        for quote in ranked:
            quote.exchange_info = get_exchange_info(quote.exchange)

        self._emit(
            "swap_quotes_received",
            {
                "fromToken": _token_label(from_token),
                "toToken": _token_label(to_token),
                "quotesCount": len(ranked),
                "bestQuote": ranked[0].amount if ranked else None,
                "providers": ",".join(q.exchange for q in ranked),
            },
        )
        if ranked:
            logger.info(
                f"Got {len(ranked)} quote(s) for {_token_label(from_token)}->{_token_label(to_token)}. "
                f"Best: {ranked[0].exchange} ({ranked[0].amount})"
            )
        else:
            logger.warning(
                f"No quotes available for {_token_label(from_token)}->{_token_label(to_token)} "
                f"on {self.chain}"
            )
        return ranked

    async def get_quotes_for_set(self, requests: list[QuoteRequest]) -> list[list[Quote]]:
        """Quote several pairs against the cross-chain exchange provider.

        Results are in request order. Any failure fails the whole batch.
        """
        adapter = self.get_provider(ProviderName.CHANGELLY)
        if adapter is None:
            logger.warning("get_quotes_for_set: no Changelly adapter configured")
            return []
        return list(await asyncio.gather(*(adapter.get_quote(r) for r in requests)))

    # ======================
    # Dispatch
    # ======================

    async def get_trade(self, trade_info: Any) -> Any:
        adapter = self._resolve(trade_info, "get_trade")
        if adapter is None:
            return None
        return await adapter.get_trade(trade_info)

    async def is_valid_to_address(self, address_info: Any) -> Optional[bool]:
        adapter = self._resolve(address_info, "is_valid_to_address")
        if adapter is None:
            return None
        return await adapter.is_valid_to_address(address_info)

    async def get_min_max_amount(self, trade_info: Any) -> Optional[dict]:
        adapter = self._resolve(trade_info, "get_min_max_amount")
        if adapter is None:
            return None
        return await adapter.get_min_max_amount(trade_info)

    def _trade_attributes(self, trade_info: Any) -> dict[str, Any]:
        return {
            "provider": payload_value(trade_info, "provider"),
            "fromToken": _token_label(payload_value(trade_info, "from_token")),
            "toToken": _token_label(payload_value(trade_info, "to_token")),
        }

    async def execute_trade(self, trade_info: Any, confirm_info: Any = None) -> Optional[dict]:
        """Execute a trade through the provider that quoted it.

        Errors from the provider are re-raised after the error event.
        """
        attributes = self._trade_attributes(trade_info)
        self._emit(
            "swap_execute_start",
            {
                **attributes,
                "fromAmount": payload_value(trade_info, "from_amount"),
                "expectedAmount": payload_value(trade_info, "amount"),
            },
        )

        adapter = self._resolve(trade_info, "execute_trade")
        if adapter is None:
            return None

        try:
            result = await adapter.execute_trade(trade_info, confirm_info)
        except Exception as e:
            self._emit("swap_execute_error", {**attributes, "error": str(e) or type(e).__name__})
            logger.error(f"{adapter.provider} trade execution failed: {e}")
            raise

        self._emit(
            "swap_execute_success",
            {
                **attributes,
                "txHash": payload_value(result, "tx_hash") or payload_value(result, "id"),
            },
        )
        return result

    async def get_status(self, status: Any) -> Optional[dict]:
        """Poll trade status from the provider that executed it."""
        attributes = {
            "provider": payload_value(status, "provider"),
            "orderId": payload_value(status, "order_id") or payload_value(status, "id"),
        }
        self._emit("swap_status_check", attributes)

        adapter = self._resolve(status, "get_status")
        if adapter is None:
            return None

        try:
            result = await adapter.get_status(status)
        except Exception as e:
            self._emit("swap_status_error", {**attributes, "error": str(e) or type(e).__name__})
            raise

        self._emit(
            "swap_status_result",
            {
                **attributes,
                "status": payload_value(result, "status") or payload_value(result, "state"),
            },
        )
        return result
