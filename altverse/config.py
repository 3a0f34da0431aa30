from decimal import Decimal
from pathlib import Path
from typing import Dict, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


BASE_DIR = Path(__file__).resolve().parents[1]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Environment
    environment: str = Field(default="development", description="Deployment environment name")
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(
        default="console",
        pattern="^(console|json)$",
        description="Log renderer: human-readable console output or JSON lines",
    )

    # Quote Engine
    quote_debounce_ms: int = Field(
        default=300,
        ge=0,
        description="Quiet period after the last input change before a quote is requested",
    )
    quote_refresh_interval_ms: int = Field(
        default=5000,
        ge=100,
        description="Interval between periodic re-quotes of an unchanged request",
    )
    quote_default_slippage: str = Field(
        default="3.25%",
        description="Slippage used when the user has not chosen one ('auto' or a percent string)",
    )
    quote_referrer_address: Optional[str] = Field(
        default=None,
        description="Referrer wallet credited by the routing service",
    )
    quote_referrer_bps: int = Field(
        default=50,
        ge=0,
        le=10000,
        description="Referrer fee in basis points passed to the routing service",
    )
    quote_gas_drop: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        description="Native gas delivered on the destination chain",
    )
    quote_timeout_seconds: float = Field(default=10.0, gt=0, description="Quote request timeout")

    # Routing service (Mayan)
    mayan_api_base_url: str = Field(
        default="https://price-api.mayan.finance/v3",
        description="Base URL for the Mayan quote API",
    )
    mayan_sdk_version: str = Field(
        default="10_4_0",
        description="SDK version string reported to the Mayan quote API",
    )

    # Price / balance indexing service
    token_api_base_url: str = Field(
        default="http://localhost:8080/api",
        description="Base URL for the token price/balance indexing service",
    )
    token_api_timeout_seconds: float = Field(default=10.0, gt=0, description="Indexing service timeout")

    # Chain RPC
    rpc_timeout_seconds: float = Field(default=15.0, gt=0, description="JSON-RPC request timeout")
    rpc_url_overrides: Dict[int, str] = Field(
        default_factory=dict,
        description="Per chain id RPC URLs that replace the catalog defaults",
    )
    confirmation_timeout_seconds: float = Field(
        default=300.0,
        gt=0,
        description="How long to wait for a transaction receipt before reporting it as pending",
    )
    confirmation_poll_interval_seconds: float = Field(
        default=2.0,
        gt=0,
        description="Receipt polling interval",
    )
    chain_switch_settle_seconds: float = Field(
        default=1.0,
        ge=0,
        description="Pause after a wallet network switch before re-reading the chain id",
    )

    vault_teller_overrides: Dict[int, str] = Field(
        default_factory=dict,
        description="Per vault id teller contract addresses that replace the catalog defaults",
    )

    # TVL cache
    tvl_cache_ttl_seconds: float = Field(default=60.0, gt=0, description="Vault TVL cache TTL")
    tvl_retry_attempts: int = Field(default=3, ge=0, description="Retries after the first TVL fetch attempt")
    tvl_retry_initial_delay_ms: int = Field(default=1000, ge=0, description="Delay before the first TVL retry")
    tvl_backoff_factor: float = Field(default=2.0, ge=1.0, description="Multiplier applied to each successive retry delay")

    @property
    def quote_debounce_seconds(self) -> float:
        return self.quote_debounce_ms / 1000

    @property
    def quote_refresh_interval_seconds(self) -> float:
        return self.quote_refresh_interval_ms / 1000

    @property
    def tvl_retry_initial_delay_seconds(self) -> float:
        return self.tvl_retry_initial_delay_ms / 1000

    @property
    def is_json_logging(self) -> bool:
        return self.log_format.lower() == "json"

    def rpc_url_for(self, chain_id: int, default: Optional[str] = None) -> Optional[str]:
        return self.rpc_url_overrides.get(chain_id, default)


# Global settings instance
settings = Settings()
