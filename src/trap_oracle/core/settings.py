"""Application settings and configuration.

This module defines all configuration options for the Trap Oracle service.
Settings are loaded from environment variables with sensible defaults.
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(RuntimeError):
    """Raised when a component is used without the configuration it needs."""


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Key material and chain endpoints default to ``None`` so the module can be
    imported without them; the components that need them raise
    :class:`ConfigurationError` when they are missing.
    """

    # Application metadata
    app_name: str = Field(default="Trap Oracle", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Database configuration
    database_url: str = Field(default="sqlite:///./oracle.db", alias="DATABASE_URL")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Key material
    master_enc_key: str | None = Field(default=None, alias="MASTER_ENC_KEY")
    api_hmac_key: str | None = Field(default=None, alias="API_HMAC_KEY")

    # Chain connectivity
    oracle_enabled: bool = Field(default=False, alias="ORACLE_ENABLED")
    provider_url: str | None = Field(default=None, alias="PROVIDER_URL")
    oracle_private_key: str | None = Field(default=None, alias="ORACLE_PRIVATE_KEY")
    verifier_contract_address: str | None = Field(
        default=None,
        alias="VERIFIER_CONTRACT_ADDRESS",
    )
    gas_limit: int = Field(default=300_000, alias="GAS_LIMIT")
    receipt_timeout_seconds: float = Field(default=120.0, alias="RECEIPT_TIMEOUT_SECONDS")
    rpc_timeout_seconds: float = Field(default=10.0, alias="RPC_TIMEOUT_SECONDS")

    # Work queue
    worker_concurrency: int = Field(default=3, alias="WORKER_CONCURRENCY")
    shutdown_drain_timeout_seconds: float = Field(
        default=300.0,
        alias="SHUTDOWN_DRAIN_TIMEOUT_SECONDS",
    )

    # Submission correlation (inline polling, then requeue with linear backoff)
    submission_poll_attempts: int = Field(default=10, alias="SUBMISSION_POLL_ATTEMPTS")
    submission_poll_delay_seconds: float = Field(
        default=2.0,
        alias="SUBMISSION_POLL_DELAY_SECONDS",
    )
    requeue_max_attempts: int = Field(default=3, alias="REQUEUE_MAX_ATTEMPTS")
    requeue_base_delay_seconds: float = Field(default=5.0, alias="REQUEUE_BASE_DELAY_SECONDS")
    requeue_step_delay_seconds: float = Field(default=2.0, alias="REQUEUE_STEP_DELAY_SECONDS")

    # On-chain fulfillment (exponential backoff)
    fulfill_max_attempts: int = Field(default=4, alias="FULFILL_MAX_ATTEMPTS")
    fulfill_backoff_base_seconds: float = Field(
        default=1.0,
        alias="FULFILL_BACKOFF_BASE_SECONDS",
    )

    # Event listener
    event_poll_interval_seconds: float = Field(default=2.0, alias="EVENT_POLL_INTERVAL_SECONDS")
    event_block_batch_size: int = Field(default=500, alias="EVENT_BLOCK_BATCH_SIZE")
    start_block: int | None = Field(default=None, alias="START_BLOCK")

    # One-time-password rotation
    rotation_mode: Literal["block", "time"] = Field(default="block", alias="OTP_ROTATION_MODE")
    rotation_interval_blocks: int = Field(default=5, alias="ROTATION_INTERVAL_BLOCKS")
    time_step_seconds: int = Field(default=30, alias="TIME_STEP_SECONDS")

    # CORS configuration
    cors_origins: list[str] = Field(default=["*"], alias="CORS_ORIGINS")

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def chain_configured(self) -> bool:
        """Return True when every setting the chain client needs is present."""
        return bool(
            self.provider_url
            and self.oracle_private_key
            and self.verifier_contract_address
        )


settings = Settings()
