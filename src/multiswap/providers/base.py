"""Abstract adapter interface for swap liquidity providers."""

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Optional, Protocol

import httpx

from multiswap.chains import normalize_chain
from multiswap.errors import ProviderError

logger = logging.getLogger(__name__)


class ProviderName(str, Enum):
    """Stable provider tags used to route follow-up calls."""

    ONEINCH = "oneinch"
    ZEROX = "zerox"
    PARASWAP = "paraswap"
    CHANGELLY = "changelly"


@dataclass
class Token:
    """A token a provider can swap."""

    contract: Optional[str]
    symbol: str
    name: str
    decimals: int = 18
    network: Optional[str] = None
    logo: Optional[str] = None
    price: Optional[Decimal] = None
    extra: dict = field(default_factory=dict)

    @property
    def key(self) -> str:
        """Identity key: lowercased contract, or symbol for contract-less assets."""
        if self.contract:
            return self.contract.lower()
        return f"symbol:{self.symbol.lower()}"

    @property
    def display(self) -> str:
        return self.symbol or self.contract or ""


@dataclass(frozen=True)
class ExchangeInfo:
    """Display metadata for an exchange or liquidity source."""

    name: str
    logo: str = ""
    website: str = ""


@dataclass
class QuoteRequest:
    """Input for a quote: token pair and human-readable input amount."""

    from_token: Token
    to_token: Token
    from_amount: str


@dataclass
class Quote:
    """A priced exchange proposal from one provider.

    Quotes are also the trade payload passed back for dispatch, so
    provider-specific state is kept in ``extra``.
    """

    provider: str
    exchange: str
    amount: str  # output amount, decimal string
    from_token: Token
    to_token: Token
    from_amount: str
    extra: dict = field(default_factory=dict)
    exchange_info: Optional[ExchangeInfo] = None

    @property
    def amount_decimal(self) -> Decimal:
        """Output amount as Decimal (NaN when the provider sent garbage)."""
        try:
            return Decimal(self.amount)
        except (InvalidOperation, TypeError):
            return Decimal("NaN")


@dataclass
class TradeResult:
    """Transactions and metadata needed to execute a quote."""

    provider: str
    transactions: list[dict] = field(default_factory=list)
    to_amount: Optional[str] = None
    order_id: Optional[str] = None
    payin_address: Optional[str] = None
    extra: dict = field(default_factory=dict)


def payload_value(payload: Any, name: str, default: Any = None) -> Any:
    """Read a field from a dataclass-like object or a mapping payload."""
    if isinstance(payload, Mapping):
        return payload.get(name, default)
    return getattr(payload, name, default)


def to_base_units(amount: str, decimals: int) -> int:
    """Convert a human-readable decimal amount to integer base units."""
    return int(Decimal(amount).scaleb(decimals))


def from_base_units(amount: Any, decimals: int) -> str:
    """Convert integer base units to a normalized decimal string."""
    value = Decimal(str(amount)).scaleb(-decimals)
    return format(value.normalize(), "f")


class TransactionSender(Protocol):
    """Signs and submits transactions on behalf of the aggregator.

    Supplied by the host wallet layer; the aggregator never signs.
    """

    async def send_transaction(self, tx: dict) -> dict:
        """Submit a transaction and return at least {"tx_hash": ...}."""
        ...

    async def get_transaction_status(self, tx_hash: str) -> str:
        """Return "pending", "success" or "failed" for a submitted transaction."""
        ...


class ProviderAdapter(ABC):
    """Base class for swap provider adapters.

    An adapter is constructed once per aggregator for a given chain and
    exposes the uniform capability set the aggregator fans out to.
    """

    provider: str = ""
    supported_chains: frozenset[str] = frozenset()

    def __init__(
        self,
        sender: TransactionSender,
        chain: str,
        base_url: str = "",
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.sender = sender
        self.chain = normalize_chain(chain)
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    def _get_headers(self) -> dict:
        return {"Accept": "application/json"}

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        """Issue an API request and return decoded JSON.

        Transport and HTTP status errors are raised as ProviderError.
        """
        client = await self._get_client()
        url = f"{self.base_url}{path}"
        try:
            response = await client.request(method, url, headers=self._get_headers(), **kwargs)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            logger.warning(
                f"{self.provider} API error: {e.response.status_code} - {e.response.text[:200]}"
            )
            raise ProviderError(
                self.provider,
                f"HTTP {e.response.status_code} from {path}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            logger.warning(f"{self.provider} request to {path} failed: {e}")
            raise ProviderError(self.provider, f"request to {path} failed: {e}") from e

    async def aclose(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def is_supported_network(self, chain: str) -> bool:
        """Check if this provider can quote on a chain."""
        return normalize_chain(chain) in self.supported_chains

    @abstractmethod
    async def get_supported_tokens(self) -> list[Token]:
        """List tokens swappable through this provider on the adapter's chain."""
        pass

    @abstractmethod
    async def get_quote(self, request: QuoteRequest) -> list[Quote]:
        """Get zero or more quotes for a token pair and input amount."""
        pass

    @abstractmethod
    async def get_trade(self, trade_info: Any) -> TradeResult:
        """Build the transactions needed to execute a quote."""
        pass

    @abstractmethod
    async def execute_trade(self, trade_info: Any, confirm_info: Any) -> dict:
        """Execute a quote through the transaction sender.

        Returns a result dict carrying at least ``provider`` and ``tx_hash``
        or ``id``.
        """
        pass

    @abstractmethod
    async def is_valid_to_address(self, address_info: Any) -> bool:
        """Check a destination address for this provider."""
        pass

    @abstractmethod
    async def get_min_max_amount(self, trade_info: Any) -> dict:
        """Get {"min": str, "max": str} input limits for a pair."""
        pass

    @abstractmethod
    async def get_status(self, status: Any) -> dict:
        """Get the status of an executed trade."""
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(chain={self.chain})"
