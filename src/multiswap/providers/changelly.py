"""Changelly cross-chain exchange adapter.

Changelly is a custodial instant exchange: a fixed-rate transaction returns
a payin address the user sends funds to, and the exchange pays out on the
destination chain. Requests go over JSON-RPC; the configured URL is expected
to be a proxy that signs requests with the partner key.

API docs: https://docs.changelly.com/
"""

import logging
from decimal import Decimal
from typing import Any, Optional

from multiswap.chains import MAIN_TOKEN_ADDRESS
from multiswap.errors import ProviderError
from multiswap.providers.base import (
    ProviderAdapter,
    ProviderName,
    Quote,
    QuoteRequest,
    Token,
    TradeResult,
    payload_value,
    to_base_units,
)

logger = logging.getLogger(__name__)

# Chain symbol -> Changelly blockchain name
CHANGELLY_BLOCKCHAINS = {
    "ETH": "ethereum",
    "BSC": "binance_smart_chain",
    "MATIC": "polygon",
    "ARB": "arbitrum",
    "OP": "optimism",
    "AVAX": "avaxc",
    "BASE": "base",
    "BTC": "bitcoin",
    "LTC": "litecoin",
    "DOGE": "doge",
    "SOL": "solana",
    "DOT": "polkadot",
}

# ERC20 transfer(address,uint256)
TRANSFER_SELECTOR = "0xa9059cbb"

# Changelly order states mapped to the aggregator's status vocabulary
STATUS_MAP = {
    "new": "pending",
    "waiting": "pending",
    "confirming": "pending",
    "exchanging": "pending",
    "sending": "pending",
    "hold": "pending",
    "finished": "success",
    "failed": "failed",
    "refunded": "failed",
    "overdue": "failed",
    "expired": "failed",
}


def encode_transfer(to: str, amount: int) -> str:
    """Encode ERC20 transfer calldata."""
    return (
        TRANSFER_SELECTOR
        + to.lower().removeprefix("0x").rjust(64, "0")
        + format(amount, "x").rjust(64, "0")
    )


class ChangellyProvider(ProviderAdapter):
    """Fixed-rate cross-chain exchange through Changelly."""

    provider = ProviderName.CHANGELLY.value
    exchange = "CHANGELLY"
    supported_chains = frozenset(CHANGELLY_BLOCKCHAINS)

    def __init__(self, *args, api_key: str = "", **kwargs):
        super().__init__(*args, **kwargs)
        self.api_key = api_key
        self._request_id = 0

    def _get_headers(self) -> dict:
        headers = {"Accept": "application/json", "Content-Type": "application/json"}
        if self.api_key:
            headers["X-Api-Key"] = self.api_key
        return headers

    async def _call(self, method: str, params: Any) -> Any:
        """Make a JSON-RPC call and return its result."""
        self._request_id += 1
        data = await self._request(
            "POST",
            "",
            json={"jsonrpc": "2.0", "id": self._request_id, "method": method, "params": params},
        )
        if data.get("error"):
            error = data["error"]
            raise ProviderError(self.provider, f"{method}: {error.get('message', error)}")
        return data.get("result")

    @staticmethod
    def _ticker(token: Token) -> str:
        return token.extra.get("changelly_ticker") or token.symbol.lower()

    def _is_local(self, token: Token) -> bool:
        return bool(token.contract)

    async def get_supported_tokens(self) -> list[Token]:
        """List fixed-rate currencies.

        Currencies on this adapter's chain get a contract (the native coin
        placeholder for the chain's own coin). Currencies on other chains are
        destination-only and have no contract.
        """
        currencies = await self._call("getCurrenciesFull", {})
        local_chain = CHANGELLY_BLOCKCHAINS.get(self.chain)
        tokens = []
        for c in currencies or []:
            if not c.get("enabled") or not c.get("fixRateEnabled"):
                continue
            on_chain = c.get("blockchain") == local_chain
            contract: Optional[str] = None
            if on_chain:
                contract = c.get("contractAddress") or MAIN_TOKEN_ADDRESS
            tokens.append(
                Token(
                    contract=contract,
                    symbol=(c.get("ticker") or c.get("name", "")).upper(),
                    name=c.get("fullName") or c.get("name") or "",
                    decimals=int(c.get("decimals") or 18),
                    network=c.get("blockchain"),
                    logo=c.get("image"),
                    extra={"changelly_ticker": c.get("name")},
                )
            )
        logger.debug(f"Changelly listed {len(tokens)} currencies for {self.chain}")
        return tokens

    async def get_quote(self, request: QuoteRequest) -> list[Quote]:
        result = await self._call(
            "getFixRateForAmount",
            [
                {
                    "from": self._ticker(request.from_token),
                    "to": self._ticker(request.to_token),
                    "amountFrom": request.from_amount,
                }
            ],
        )
        quotes = []
        for rate in result or []:
            if not rate.get("amountTo") or Decimal(rate["amountTo"]) <= 0:
                continue
            quotes.append(
                Quote(
                    provider=self.provider,
                    exchange=self.exchange,
                    amount=str(rate["amountTo"]),
                    from_token=request.from_token,
                    to_token=request.to_token,
                    from_amount=request.from_amount,
                    extra={
                        "rate_id": rate.get("id"),
                        "rate": rate.get("result"),
                        "network_fee": rate.get("networkFee"),
                        "expires_at": rate.get("expiredAt"),
                    },
                )
            )
        return quotes

    async def get_trade(self, trade_info: Any) -> TradeResult:
        """Create a fixed-rate exchange and build the payin transfer.

        The payin transfer can only be built when the input currency lives on
        this adapter's chain; otherwise the caller pays in manually.
        """
        quote = trade_info if isinstance(trade_info, Quote) else payload_value(trade_info, "quote")
        if not isinstance(quote, Quote):
            raise ProviderError(self.provider, "trade payload does not carry a quote")
        to_address = payload_value(trade_info, "to_address") or quote.extra.get("to_address")
        refund_address = payload_value(trade_info, "refund_address") or quote.extra.get("refund_address")
        from_address = payload_value(trade_info, "from_address") or quote.extra.get("from_address")
        if not to_address:
            raise ProviderError(self.provider, "trade requires to_address")

        params = {
            "from": self._ticker(quote.from_token),
            "to": self._ticker(quote.to_token),
            "rateId": quote.extra.get("rate_id"),
            "address": to_address,
            "amountFrom": quote.from_amount,
        }
        if refund_address or from_address:
            params["refundAddress"] = refund_address or from_address
        order = await self._call("createFixTransaction", params)

        payin = order["payinAddress"]
        transactions = []
        if self._is_local(quote.from_token) and from_address:
            amount = to_base_units(quote.from_amount, quote.from_token.decimals)
            if quote.from_token.contract.lower() == MAIN_TOKEN_ADDRESS:
                transactions.append(
                    {"from": from_address, "to": payin, "value": hex(amount), "data": "0x"}
                )
            else:
                transactions.append(
                    {
                        "from": from_address,
                        "to": quote.from_token.contract,
                        "value": "0x0",
                        "data": encode_transfer(payin, amount),
                    }
                )

        logger.info(f"Changelly order {order.get('id')} created, payin {payin}")
        return TradeResult(
            provider=self.provider,
            transactions=transactions,
            to_amount=str(order.get("amountExpectedTo") or quote.amount),
            order_id=order.get("id"),
            payin_address=payin,
            extra={"payin_extra_id": order.get("payinExtraId")},
        )

    async def execute_trade(self, trade_info: Any, confirm_info: Any) -> dict:
        trade = payload_value(trade_info, "trade") or await self.get_trade(trade_info)
        hashes = []
        for tx in trade.transactions:
            result = await self.sender.send_transaction(tx)
            hashes.append(result["tx_hash"])
        return {
            "provider": self.provider,
            "id": trade.order_id,
            "payin_address": trade.payin_address,
            "hashes": hashes,
            "tx_hash": hashes[-1] if hashes else None,
        }

    async def is_valid_to_address(self, address_info: Any) -> bool:
        token = payload_value(address_info, "to_token")
        currency = self._ticker(token) if token else payload_value(address_info, "currency")
        result = await self._call(
            "validateAddress",
            {"currency": currency, "address": payload_value(address_info, "address")},
        )
        return bool(result and result.get("result"))

    async def get_min_max_amount(self, trade_info: Any) -> dict:
        from_token = payload_value(trade_info, "from_token")
        to_token = payload_value(trade_info, "to_token")
        result = await self._call(
            "getPairsParams", [{"from": self._ticker(from_token), "to": self._ticker(to_token)}]
        )
        if not result:
            raise ProviderError(self.provider, "no limits returned for pair")
        pair = result[0]
        return {"min": pair.get("minAmountFixed"), "max": pair.get("maxAmountFixed")}

    async def get_status(self, status: Any) -> dict:
        order_id = payload_value(status, "order_id") or payload_value(status, "id")
        state = await self._call("getStatus", {"id": order_id})
        return {
            "provider": self.provider,
            "order_id": order_id,
            "state": state,
            "status": STATUS_MAP.get(state, "pending"),
        }
