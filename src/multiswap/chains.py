"""Chain identifiers and well-known token addresses.

Chains are referred to by their short symbol ("ETH", "BSC", ...) throughout
the aggregator. EVM chains carry the numeric chain id used by the
aggregator APIs.
"""

from dataclasses import dataclass
from typing import Optional

# Placeholder address used by EVM aggregators for the chain's native coin
MAIN_TOKEN_ADDRESS = "0xeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeee"

# Always excluded from token listings
DOGE_ADDRESS = "0x4206931337dc273a630d328dA6441786BfaD668f"


@dataclass(frozen=True)
class ChainConfig:
    """Configuration for a blockchain the aggregator can quote on."""

    name: str
    symbol: str
    native_symbol: str
    chain_id: Optional[int] = None  # EVM chains only
    decimals: int = 18

    @property
    def is_evm(self) -> bool:
        return self.chain_id is not None


CHAINS: dict[str, ChainConfig] = {
    "ETH": ChainConfig(name="Ethereum", symbol="ETH", native_symbol="ETH", chain_id=1),
    "BSC": ChainConfig(name="BNB Smart Chain", symbol="BSC", native_symbol="BNB", chain_id=56),
    "MATIC": ChainConfig(name="Polygon", symbol="MATIC", native_symbol="POL", chain_id=137),
    "ARB": ChainConfig(name="Arbitrum", symbol="ARB", native_symbol="ETH", chain_id=42161),
    "OP": ChainConfig(name="Optimism", symbol="OP", native_symbol="ETH", chain_id=10),
    "AVAX": ChainConfig(name="Avalanche", symbol="AVAX", native_symbol="AVAX", chain_id=43114),
    "BASE": ChainConfig(name="Base", symbol="BASE", native_symbol="ETH", chain_id=8453),
    "GNO": ChainConfig(name="Gnosis", symbol="GNO", native_symbol="XDAI", chain_id=100),
    "FTM": ChainConfig(name="Fantom", symbol="FTM", native_symbol="FTM", chain_id=250),
    "BTC": ChainConfig(name="Bitcoin", symbol="BTC", native_symbol="BTC", decimals=8),
    "LTC": ChainConfig(name="Litecoin", symbol="LTC", native_symbol="LTC", decimals=8),
    "DOGE": ChainConfig(name="Dogecoin", symbol="DOGE", native_symbol="DOGE", decimals=8),
    "SOL": ChainConfig(name="Solana", symbol="SOL", native_symbol="SOL", decimals=9),
    "DOT": ChainConfig(name="Polkadot", symbol="DOT", native_symbol="DOT", decimals=10),
}

# Accepted aliases for chain symbols
CHAIN_ALIASES = {
    "POL": "MATIC",
    "POLYGON": "MATIC",
    "BNB": "BSC",
    "ETHEREUM": "ETH",
    "ARBITRUM": "ARB",
    "OPTIMISM": "OP",
}


def normalize_chain(chain: str) -> str:
    """Return the canonical chain symbol for a chain name or alias."""
    upper = chain.upper()
    return CHAIN_ALIASES.get(upper, upper)


def get_chain(chain: str) -> Optional[ChainConfig]:
    """Get chain configuration by symbol or alias."""
    return CHAINS.get(normalize_chain(chain))


def get_chain_id(chain: str) -> Optional[int]:
    """Get the EVM chain id for a chain, or None for non-EVM chains."""
    config = get_chain(chain)
    return config.chain_id if config else None
