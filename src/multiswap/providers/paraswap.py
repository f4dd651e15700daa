"""ParaSwap (Velora) market API adapter.

API docs: https://developers.velora.xyz/api/velora-api
"""

import logging

from multiswap.chains import MAIN_TOKEN_ADDRESS
from multiswap.errors import ProviderError
from multiswap.providers.base import ProviderName, Quote, QuoteRequest, Token, to_base_units
from multiswap.providers.evm import EvmAggregatorProvider

logger = logging.getLogger(__name__)

API_VERSION = "6.2"


class ParaSwapProvider(EvmAggregatorProvider):
    """ParaSwap aggregation on EVM chains.

    The swap transaction is built from the price route returned with the
    quote, so the route is kept in the quote's extra fields.
    """

    provider = ProviderName.PARASWAP.value
    exchange = "PARASWAP"

    def __init__(self, *args, partner: str = "multiswap", **kwargs):
        super().__init__(*args, **kwargs)
        self.partner = partner

    async def get_supported_tokens(self) -> list[Token]:
        data = await self._request("GET", f"/tokens/{self.chain_id}")
        return [
            Token(
                contract=t.get("address"),
                symbol=t.get("symbol", ""),
                name=t.get("name") or t.get("symbol") or "",
                decimals=int(t.get("decimals", 18)),
                network=self.chain,
                logo=t.get("img"),
            )
            for t in data.get("tokens", [])
        ]

    async def get_quote(self, request: QuoteRequest) -> list[Quote]:
        data = await self._request(
            "GET",
            "/prices",
            params={
                "srcToken": request.from_token.contract or MAIN_TOKEN_ADDRESS,
                "destToken": request.to_token.contract or MAIN_TOKEN_ADDRESS,
                "amount": str(to_base_units(request.from_amount, request.from_token.decimals)),
                "srcDecimals": request.from_token.decimals,
                "destDecimals": request.to_token.decimals,
                "side": "SELL",
                "network": self.chain_id,
                "partner": self.partner,
                "version": API_VERSION,
            },
        )
        route = data.get("priceRoute")
        if not route or not route.get("destAmount"):
            return []
        return [self._quote_from_response(request, route["destAmount"], {"price_route": route})]

    async def _build_swap_tx(self, quote: Quote, from_address: str) -> tuple[dict, str]:
        route = quote.extra.get("price_route")
        if not route:
            raise ProviderError(self.provider, "quote is missing its price route")

        data = await self._request(
            "POST",
            f"/transactions/{self.chain_id}",
            params={"ignoreChecks": "true"},
            json={
                "srcToken": route["srcToken"],
                "destToken": route["destToken"],
                "srcAmount": route["srcAmount"],
                "srcDecimals": quote.from_token.decimals,
                "destDecimals": quote.to_token.decimals,
                "slippage": int(self.slippage_percent * 100),
                "priceRoute": route,
                "userAddress": from_address,
                "partner": self.partner,
            },
        )
        return (
            {
                "from": from_address,
                "to": data.get("to"),
                "data": data.get("data"),
                "value": hex(int(data.get("value", "0"))),
                "gas": data.get("gas"),
            },
            route.get("tokenTransferProxy", ""),
        )
