"""
Gasless Arcade Configuration Management
Uses pydantic-settings for type-safe environment variable loading
"""

import re
from decimal import Decimal
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when configuration is unusable at startup"""


_HEX_KEY = re.compile(r"^0x[0-9a-fA-F]{64}$")


class ArcadeConfig(BaseSettings):
    """Configuration for the paywall backend"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Server Configuration
    arcade_host: str = Field(default="0.0.0.0", description="Host to bind the server to")
    arcade_port: int = Field(default=5000, description="Port to bind the server to")
    cors_origins: list[str] = Field(default=["*"], description="Allowed CORS origins")

    # Network Configuration
    network: str = Field(default="cronos-testnet")
    chain_id: int = Field(default=338)
    rpc_url: str = Field(default="https://evm-t3.cronos.org")

    # Payment Configuration
    pay_to_address: str = Field(
        default="0x0000000000000000000000000000000000000000",
        description="Address that receives game fees"
    )
    asset_address: str = Field(
        default="0xc21223249CA28397B4B6541dfFaEcC539BfF0c59",
        description="USDC.e contract address on Cronos testnet"
    )
    game_fee_amount: int = Field(default=10_000, ge=0, description="Fee in smallest unit (6 decimals)")
    game_fee_currency: str = Field(default="USDC")
    max_timeout_seconds: int = Field(default=300, gt=0)
    strict_payment_verification: bool = Field(default=False)

    # Paywall
    free_play_limit: int = Field(default=3, ge=0)
    invoice_ttl_seconds: int = Field(default=300, gt=0)
    invoice_sweep_interval_seconds: int = Field(default=60, gt=0)

    # Rewards
    reward_private_key: str = Field(default="", description="Private key of the reward wallet")
    reward_testnet_mode: bool = Field(default=True, description="Simulate reward transfers")
    reward_rate: int = Field(default=100, gt=0, description="Points per whole token")
    reward_claim_window_seconds: int = Field(default=300, ge=0)

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")
    log_format: Literal["json", "text"] = Field(default="json")

    # Development
    debug: bool = Field(default=False)
    reload: bool = Field(default=False)

    @field_validator("reward_private_key")
    @classmethod
    def validate_private_key(cls, v):
        if v and not v.startswith("0x"):
            return f"0x{v}"
        return v


class AgentConfig(BaseSettings):
    """Configuration for the auto-pay agent"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Wallet Configuration
    agent_private_key: str = Field(default="", description="Private key of the paying wallet")

    # Backend Connection
    backend_url: str = Field(default="http://localhost:5000", description="URL of the paywall backend")
    watch_path: str = Field(default="/play", description="Gated resource polled by the agent")
    poll_interval_seconds: float = Field(default=30.0, gt=0)
    payment_header_format: Literal["signature", "payload"] = Field(default="signature")

    # Network Configuration
    network: str = Field(default="cronos-testnet")
    rpc_url: str = Field(default="https://evm-t3.cronos.org")
    chain_id: int = Field(default=338)
    usdc_address: str = Field(default="0xc21223249CA28397B4B6541dfFaEcC539BfF0c59")
    token_name: str = Field(default="USD Coin")
    token_version: str = Field(default="2")
    token_decimals: int = Field(default=6, ge=0)
    authorization_timeout_seconds: int = Field(default=300, gt=0)

    # Spending Rules
    max_payment_per_tx: float = Field(default=0.05, ge=0)
    daily_spending_limit: float = Field(default=0.50, ge=0)
    auto_pay_enabled: bool = Field(default=False)

    # Advisory AI
    ai_mode: Literal["rules", "advisory", "both"] = Field(default="rules")
    advisory_timeout_seconds: int = Field(default=10, gt=0)
    advisory_api_key: str = Field(default="")
    advisory_base_url: str = Field(default="https://api.groq.com/openai/v1")
    advisory_model: str = Field(default="llama-3.1-70b-versatile")
    advisory_temperature: float = Field(default=0.3, ge=0)
    advisory_max_tokens: int = Field(default=200, gt=0)

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")
    log_format: Literal["json", "text"] = Field(default="text")

    @field_validator("agent_private_key")
    @classmethod
    def validate_private_key(cls, v):
        if v and not v.startswith("0x"):
            return f"0x{v}"
        return v

    @field_validator("ai_mode", mode="before")
    @classmethod
    def normalize_ai_mode(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @property
    def max_payment_per_tx_decimal(self) -> Decimal:
        return Decimal(str(self.max_payment_per_tx))

    @property
    def daily_spending_limit_decimal(self) -> Decimal:
        return Decimal(str(self.daily_spending_limit))

    @property
    def advisory_enabled(self) -> bool:
        return self.ai_mode in ("advisory", "both") and bool(self.advisory_api_key)

    def require_private_key(self) -> str:
        """Return the agent key, raising ConfigurationError if it is unusable"""
        key = self.agent_private_key
        if not key:
            raise ConfigurationError("AGENT_PRIVATE_KEY is not set")
        if "your_private_key_here" in key:
            raise ConfigurationError("AGENT_PRIVATE_KEY still holds the placeholder value")
        if not _HEX_KEY.match(key):
            raise ConfigurationError(
                "AGENT_PRIVATE_KEY must be a 64-character hex string (with or without 0x prefix)"
            )
        return key


# Singleton instances
_arcade_config: ArcadeConfig | None = None
_agent_config: AgentConfig | None = None


def get_arcade_config() -> ArcadeConfig:
    """Get or create paywall configuration singleton"""
    global _arcade_config
    if _arcade_config is None:
        _arcade_config = ArcadeConfig()
    return _arcade_config


def get_agent_config() -> AgentConfig:
    """Get or create agent configuration singleton"""
    global _agent_config
    if _agent_config is None:
        _agent_config = AgentConfig()
    return _agent_config
