"""
Shared configuration management for the Wallet Access Layer.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Environment
    env: str = Field(default="local", validation_alias="WALLET_ENV")
    log_level: str = Field(default="info", validation_alias="WALLET_LOG_LEVEL")

    # Wallet gateway
    gateway_url: Optional[str] = Field(default=None, validation_alias="WALLET_GATEWAY_URL")
    client_id: Optional[str] = Field(default=None, validation_alias="WALLET_CLIENT_ID")
    merchant_private_key_path: Optional[str] = Field(
        default=None, validation_alias="WALLET_MERCHANT_PRIVATE_KEY_PATH"
    )
    gateway_public_key_path: Optional[str] = Field(
        default=None, validation_alias="WALLET_GATEWAY_PUBLIC_KEY_PATH"
    )
    gateway_timeout: float = Field(default=25.0, validation_alias="WALLET_GATEWAY_TIMEOUT")

    # Claims tokens
    claims_key: Optional[str] = Field(default=None, validation_alias="WALLET_CLAIMS_KEY")

    # Public URL used for notify/redirect URLs embedded in payment requests
    base_url: str = Field(default="http://localhost:1999", validation_alias="WALLET_BASE_URL")
    default_currency: str = Field(default="IQD", validation_alias="WALLET_DEFAULT_CURRENCY")

    # Reconciliation
    reconcile_max_attempts: int = Field(default=12, validation_alias="WALLET_RECONCILE_MAX_ATTEMPTS")
    reconcile_interval_seconds: float = Field(
        default=5.0, validation_alias="WALLET_RECONCILE_INTERVAL_SECONDS"
    )


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"

    def __init__(self, service_name: str, port: int, **kwargs):
        super().__init__(service_name=service_name, port=port, **kwargs)


def get_config(service_name: str, port: int, **overrides) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port, **overrides)
