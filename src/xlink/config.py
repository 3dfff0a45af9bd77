"""Application configuration using pydantic-settings.

The passphrase protecting the master mnemonic is deliberately absent: it is
only ever read interactively.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ======================
    # Gateway
    # ======================
    gateway_host: str = Field(default="127.0.0.1", description="Gateway listen address")
    gateway_port: int = Field(default=1337, description="Gateway listen port")
    cors_origins: str = Field(
        default="*", description="Comma-separated list of allowed CORS origins"
    )

    # ======================
    # Master secret
    # ======================
    secret_file: str = Field(
        default="secret.txt", description="Plaintext file holding the BIP-39 mnemonic"
    )

    # ======================
    # Solana
    # ======================
    sol_rpc_url: str = Field(
        default="https://api.mainnet-beta.solana.com", description="Solana RPC URL"
    )
    blockhash_refresh_seconds: float = Field(
        default=15.0, gt=0, description="Recent blockhash refresh interval"
    )
    blockhash_mailbox_size: int = Field(
        default=1024, ge=2, description="Pending blockhash reads before callers wait"
    )
    blockhash_timeout: float = Field(
        default=10.0, gt=0, description="Max seconds a request waits for a blockhash"
    )

    # ======================
    # Jupiter
    # ======================
    jupiter_api_url: str = Field(
        default="https://api.jup.ag/swap/v1", description="Jupiter swap API base URL"
    )
    jupiter_api_key: Optional[str] = Field(default=None, description="Jupiter API key")
    slippage_bps: int = Field(
        default=2000, ge=0, le=10000, description="Swap slippage tolerance (2000 = 20%)"
    )

    # ======================
    # Timeouts
    # ======================
    collaborator_timeout: float = Field(
        default=30.0, gt=0, description="Timeout for Jupiter and Solana RPC calls"
    )

    # ======================
    # Environment
    # ======================
    environment: str = Field(default="development", description="Runtime environment")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        return value.upper()

    @property
    def cors_origin_list(self) -> list[str]:
        """Parse CORS origins into a list."""
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    def get_safe_dict(self) -> dict:
        """Return settings dict with secrets redacted."""
        return {
            "environment": self.environment,
            "debug": self.debug,
            "gateway": {"host": self.gateway_host, "port": self.gateway_port},
            "secret_file": "***" if self.secret_file else "(not set)",
            "solana": {
                "rpc": self.sol_rpc_url,
                "blockhash_refresh_seconds": self.blockhash_refresh_seconds,
                "blockhash_mailbox_size": self.blockhash_mailbox_size,
            },
            "jupiter": {
                "api": self.jupiter_api_url,
                "api_key": "***" if self.jupiter_api_key else "(not set)",
                "slippage_bps": self.slippage_bps,
            },
            "collaborator_timeout": self.collaborator_timeout,
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
