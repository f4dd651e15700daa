"""Application configuration using pydantic-settings.

All values can be overridden through environment variables or a .env file.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from multiswap.chains import normalize_chain


class Settings(BaseSettings):
    """Aggregator settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ======================
    # Environment
    # ======================
    environment: str = Field(default="development", description="Runtime environment")
    debug: bool = Field(default=False, description="Enable debug logging")

    # ======================
    # Aggregation
    # ======================
    flagship_chains: list[str] = Field(
        default_factory=lambda: ["ETH", "MATIC", "BSC"],
        description="Chains whose token universe is seeded from the first adapter",
    )
    provider_timeout_seconds: Optional[float] = Field(
        default=None,
        description="Per-provider timeout for fan-out calls (None = wait indefinitely)",
    )
    strict_dispatch: bool = Field(
        default=False,
        description="Raise UnknownProviderError instead of returning None on a dispatch miss",
    )
    swap_slippage_percent: float = Field(
        default=0.5, description="Default slippage tolerance in percent"
    )

    # ======================
    # Provider APIs
    # ======================
    http_timeout_seconds: float = Field(default=30.0, description="HTTP client timeout")
    oneinch_api_url: str = Field(
        default="https://api.1inch.dev/swap/v6.0", description="1inch swap API URL"
    )
    oneinch_api_key: str = Field(default="", description="1inch API key")
    zerox_api_url: str = Field(default="https://api.0x.org", description="0x API URL")
    zerox_api_key: str = Field(default="", description="0x API key")
    paraswap_api_url: str = Field(
        default="https://api.paraswap.io", description="ParaSwap API URL"
    )
    changelly_api_url: str = Field(
        default="https://api.changelly.com/v2", description="Changelly JSON-RPC URL"
    )
    changelly_api_key: str = Field(default="", description="Changelly API key")
    partner_address: str = Field(
        default="", description="Partner/referrer address passed to providers"
    )

    # ======================
    # Telemetry
    # ======================
    telemetry_enabled: bool = Field(default=False, description="Emit lifecycle span events")
    telemetry_url: str = Field(default="", description="Span event collector URL")
    telemetry_api_key: str = Field(default="", description="Span event collector API key")

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"

    def is_flagship_chain(self, chain: str) -> bool:
        """Check if a chain seeds its token list from the first adapter."""
        return normalize_chain(chain) in {normalize_chain(c) for c in self.flagship_chains}

    def get_safe_dict(self) -> dict:
        """Return settings dict with secrets redacted."""
        return {
            "environment": self.environment,
            "debug": self.debug,
            "flagship_chains": self.flagship_chains,
            "provider_timeout_seconds": self.provider_timeout_seconds,
            "strict_dispatch": self.strict_dispatch,
            "providers": {
                "oneinch": {
                    "url": self.oneinch_api_url,
                    "api_key": "***" if self.oneinch_api_key else "(not set)",
                },
                "zerox": {
                    "url": self.zerox_api_url,
                    "api_key": "***" if self.zerox_api_key else "(not set)",
                },
                "paraswap": {"url": self.paraswap_api_url},
                "changelly": {
                    "url": self.changelly_api_url,
                    "api_key": "***" if self.changelly_api_key else "(not set)",
                },
            },
            "telemetry": {
                "enabled": self.telemetry_enabled,
                "url": self.telemetry_url or "(not set)",
                "api_key": "***" if self.telemetry_api_key else "(not set)",
            },
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
