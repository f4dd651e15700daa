"""0x Swap API adapter (allowance-holder flow).

API docs: https://0x.org/docs/api#tag/Swap
"""

import logging

from multiswap.chains import MAIN_TOKEN_ADDRESS
from multiswap.providers.base import ProviderName, Quote, QuoteRequest, Token, to_base_units
from multiswap.providers.evm import EvmAggregatorProvider

logger = logging.getLogger(__name__)


class ZeroExProvider(EvmAggregatorProvider):
    """0x aggregation on EVM chains."""

    provider = ProviderName.ZEROX.value
    exchange = "ZERO_X"

    def __init__(self, *args, api_key: str = "", **kwargs):
        super().__init__(*args, **kwargs)
        self.api_key = api_key

    def _get_headers(self) -> dict:
        headers = {"Accept": "application/json", "0x-version": "v2"}
        if self.api_key:
            headers["0x-api-key"] = self.api_key
        return headers

    async def get_supported_tokens(self) -> list[Token]:
        # 0x quotes any ERC20 and publishes no token list
        return []

    def _params(self, from_token: Token, to_token: Token, from_amount: str) -> dict:
        return {
            "chainId": str(self.chain_id),
            "sellToken": from_token.contract or MAIN_TOKEN_ADDRESS,
            "buyToken": to_token.contract or MAIN_TOKEN_ADDRESS,
            "sellAmount": str(to_base_units(from_amount, from_token.decimals)),
        }

    async def get_quote(self, request: QuoteRequest) -> list[Quote]:
        data = await self._request(
            "GET",
            "/swap/allowance-holder/price",
            params=self._params(request.from_token, request.to_token, request.from_amount),
        )
        if not data.get("liquidityAvailable", True) or not data.get("buyAmount"):
            logger.debug(f"0x has no liquidity for {request.from_token.display}->{request.to_token.display}")
            return []
        sources = [f.get("source") for f in (data.get("route") or {}).get("fills", [])]
        return [self._quote_from_response(request, data["buyAmount"], {"sources": sources})]

    async def _build_swap_tx(self, quote: Quote, from_address: str) -> tuple[dict, str]:
        params = self._params(quote.from_token, quote.to_token, quote.from_amount)
        params["taker"] = from_address
        params["slippageBps"] = str(int(self.slippage_percent * 100))
        data = await self._request("GET", "/swap/allowance-holder/quote", params=params)

        tx = data.get("transaction", {})
        allowance = (data.get("issues") or {}).get("allowance") or {}
        return (
            {
                "from": from_address,
                "to": tx.get("to"),
                "data": tx.get("data"),
                "value": hex(int(tx.get("value", "0"))),
                "gas": tx.get("gas"),
            },
            allowance.get("spender", ""),
        )
