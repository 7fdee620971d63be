"""
Shared configuration management for the Donation Bridge.
"""

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="BRIDGE_",
        case_sensitive=False,
        populate_by_name=True,
        extra="allow"
    )

    # Environment
    env: str = "local"
    log_level: str = "info"

    # Observability
    enable_tracing: bool = False
    otel_exporter: str = "http://localhost:4317"
    enable_console_tracing: bool = False

    # Webhook ingestion
    webhook_rate_limit_per_minute: int = Field(
        default=30,
        validation_alias=AliasChoices("BRIDGE_WEBHOOK_RATE_LIMIT_PER_MINUTE", "RATE_LIMIT_PER_MINUTE"),
    )
    min_donor_interval_seconds: int = Field(
        default=10,
        validation_alias=AliasChoices("BRIDGE_MIN_DONOR_INTERVAL_SECONDS", "MIN_DONOR_INTERVAL"),
    )
    max_amount: int = 999_999_999
    default_message: str = "Terima kasih atas donasi Anda!"
    dedupe_horizon_ms: int = 3_600_000

    # Queue lifetime
    queue_expiry_ms: int = 60_000
    display_buffer_ms: int = 10_000
    display_time_ms: int = 8_000
    sweep_interval_seconds: float = 5.0

    # Game polling
    poll_rate_limit_per_second: int = 10
    game_id_prefix: str = "roblox_"
    game_id_min_suffix: int = 5

    # Listing
    list_default_limit: int = 50
    list_max_limit: int = 100


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
