"""1inch DEX aggregator adapter.

API docs: https://portal.1inch.dev/documentation/apis/swap/introduction
"""

import logging

from multiswap.chains import MAIN_TOKEN_ADDRESS
from multiswap.providers.base import ProviderName, Quote, QuoteRequest, Token, to_base_units
from multiswap.providers.evm import EvmAggregatorProvider

logger = logging.getLogger(__name__)


class OneInchProvider(EvmAggregatorProvider):
    """1inch aggregation protocol on EVM chains.

    Its token list is the most complete one for the flagship chains, so it
    seeds the token universe there.
    """

    provider = ProviderName.ONEINCH.value
    exchange = "ONE_INCH"
    supported_chains = frozenset({"ETH", "BSC", "MATIC", "ARB", "OP", "AVAX", "BASE", "GNO", "FTM"})

    def __init__(self, *args, api_key: str = "", referrer: str = "", **kwargs):
        super().__init__(*args, **kwargs)
        self.api_key = api_key
        self.referrer = referrer

    def _get_headers(self) -> dict:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def get_supported_tokens(self) -> list[Token]:
        data = await self._request("GET", f"/{self.chain_id}/tokens")
        tokens = []
        for address, info in (data.get("tokens") or {}).items():
            tokens.append(
                Token(
                    contract=info.get("address", address),
                    symbol=info.get("symbol", ""),
                    name=info.get("name") or "",
                    decimals=int(info.get("decimals", 18)),
                    network=self.chain,
                    logo=info.get("logoURI"),
                )
            )
        logger.debug(f"1inch listed {len(tokens)} tokens on {self.chain}")
        return tokens

    async def get_quote(self, request: QuoteRequest) -> list[Quote]:
        data = await self._request(
            "GET",
            f"/{self.chain_id}/quote",
            params={
                "src": request.from_token.contract or MAIN_TOKEN_ADDRESS,
                "dst": request.to_token.contract or MAIN_TOKEN_ADDRESS,
                "amount": str(to_base_units(request.from_amount, request.from_token.decimals)),
                "includeGas": "true",
            },
        )
        to_amount = data.get("dstAmount")
        if not to_amount or int(to_amount) == 0:
            return []
        return [self._quote_from_response(request, to_amount, {"gas": data.get("gas")})]

    async def _build_swap_tx(self, quote: Quote, from_address: str) -> tuple[dict, str]:
        params = {
            "src": quote.from_token.contract or MAIN_TOKEN_ADDRESS,
            "dst": quote.to_token.contract or MAIN_TOKEN_ADDRESS,
            "amount": str(to_base_units(quote.from_amount, quote.from_token.decimals)),
            "from": from_address,
            "slippage": str(self.slippage_percent),
            "disableEstimate": "true",
        }
        if self.referrer:
            params["referrer"] = self.referrer
        data = await self._request("GET", f"/{self.chain_id}/swap", params=params)
        spender = await self._request("GET", f"/{self.chain_id}/approve/spender")

        tx = data.get("tx", {})
        return (
            {
                "from": from_address,
                "to": tx.get("to"),
                "data": tx.get("data"),
                "value": hex(int(tx.get("value", "0"))),
                "gas": tx.get("gas"),
            },
            spender.get("address", ""),
        )
