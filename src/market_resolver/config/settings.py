"""Configuration models and loading utilities for the market resolver."""

from __future__ import annotations

import re
from dataclasses import dataclass, field

import structlog
from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .secrets import SecretsManager

logger = structlog.get_logger(__name__)

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


class _ResolverSettings(BaseSettings):
    """Base for settings groups; accepts field names as well as env aliases."""

    model_config = SettingsConfigDict(populate_by_name=True, extra="ignore")


def _check_address(value: str | None, name: str) -> str | None:
    if value is None or value == "":
        return None
    if not _ADDRESS_RE.match(value):
        raise ValueError(f"{name} must be a 20-byte hex address with 0x prefix")
    return value


class ChainSettings(_ResolverSettings):
    """RPC endpoint, contract addresses and transaction policy."""

    rpc_url: str = Field(
        "http://127.0.0.1:8545",
        validation_alias=AliasChoices("RPC_URL", "CHAIN_RPC_URL"),
        description="JSON-RPC endpoint of the chain hosting the oracle.",
    )
    oracle_address: str | None = Field(
        None,
        validation_alias=AliasChoices("ORACLE_ADDRESS", "CHAIN_ORACLE_ADDRESS"),
        description="Oracle contract receiving commit/finalize transactions.",
    )
    factory_address: str | None = Field(
        None,
        validation_alias=AliasChoices("FACTORY_ADDRESS", "CHAIN_FACTORY_ADDRESS"),
        description="Market factory contract address.",
    )
    chain_id: int = Field(
        421614,
        validation_alias=AliasChoices("CHAIN_ID", "CHAIN_CHAIN_ID"),
        description="EVM chain id used when signing transactions.",
    )
    gas_limit_multiplier: float = Field(
        1.2,
        ge=1.0,
        le=3.0,
        validation_alias=AliasChoices("GAS_LIMIT_MULTIPLIER", "CHAIN_GAS_LIMIT_MULTIPLIER"),
        description="Factor applied to estimated gas before submission.",
    )
    transaction_timeout_seconds: float = Field(
        300.0,
        gt=0,
        validation_alias=AliasChoices("TRANSACTION_TIMEOUT_SECONDS", "CHAIN_TRANSACTION_TIMEOUT_SECONDS"),
        description="Maximum time to wait for a transaction receipt.",
    )

    @field_validator("oracle_address")
    @classmethod
    def _validate_oracle(cls, value: str | None) -> str | None:
        return _check_address(value, "ORACLE_ADDRESS")

    @field_validator("factory_address")
    @classmethod
    def _validate_factory(cls, value: str | None) -> str | None:
        return _check_address(value, "FACTORY_ADDRESS")


class DataSourceSettings(_ResolverSettings):
    """External metric and price API."""

    base_url: str = Field(
        "https://api.hyperliquid.xyz/info",
        validation_alias=AliasChoices("HYPERLIQUID_API_URL", "DATA_SOURCE_BASE_URL"),
        description="Base URL of the metric/price API.",
    )
    timeout_seconds: float = Field(
        30.0,
        gt=0,
        validation_alias=AliasChoices("API_TIMEOUT_SECONDS", "DATA_SOURCE_TIMEOUT_SECONDS"),
    )
    cache_ttl_seconds: float = Field(
        60.0,
        ge=0,
        validation_alias=AliasChoices("DATA_SOURCE_CACHE_TTL_SECONDS"),
        description="How long fetched values are reused; 0 disables caching.",
    )


class WebhookSettings(_ResolverSettings):
    """HTTP listener for change-data-capture deliveries."""

    host: str = Field("0.0.0.0", validation_alias=AliasChoices("WEBHOOK_HOST"))
    port: int = Field(3001, ge=1024, le=65535, validation_alias=AliasChoices("WEBHOOK_PORT"))


class QueueSettings(_ResolverSettings):
    """Concurrency and rate window of the resolution queue."""

    concurrency: int = Field(
        10,
        ge=1,
        le=100,
        validation_alias=AliasChoices("BATCH_SIZE", "QUEUE_CONCURRENCY"),
        description="Maximum concurrent jobs and job starts per interval.",
    )
    interval_seconds: float = Field(
        1.0,
        gt=0,
        validation_alias=AliasChoices("QUEUE_INTERVAL_SECONDS"),
    )


class RetrySettings(_ResolverSettings):
    """Retry policy around transient data-source and RPC failures."""

    attempts: int = Field(
        3,
        ge=0,
        le=10,
        validation_alias=AliasChoices("RETRY_ATTEMPTS"),
        description="Retries after the first attempt.",
    )
    delay_ms: int = Field(5000, ge=0, validation_alias=AliasChoices("RETRY_DELAY_MS"))


class LoggingSettings(_ResolverSettings):
    """Log verbosity."""

    level: str = Field("INFO", validation_alias=AliasChoices("LOG_LEVEL"))

    @field_validator("level")
    @classmethod
    def _validate_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level {value!r}")
        return level


class AwsSettings(_ResolverSettings):
    """Optional AWS Secrets Manager source for signing material."""

    region: str | None = Field(None, validation_alias=AliasChoices("AWS_REGION"))
    secrets_prefix: str = Field(
        "market-resolver/",
        validation_alias=AliasChoices("AWS_SECRETS_PREFIX"),
    )


@dataclass(slots=True)
class Settings:
    """Aggregated application settings loaded from environment variables."""

    chain: ChainSettings = field(default_factory=ChainSettings)
    data_source: DataSourceSettings = field(default_factory=DataSourceSettings)
    webhook: WebhookSettings = field(default_factory=WebhookSettings)
    queue: QueueSettings = field(default_factory=QueueSettings)
    retry: RetrySettings = field(default_factory=RetrySettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    private_key: str | None = field(default=None, repr=False)
    webhook_secret: str | None = field(default=None, repr=False)

    @classmethod
    def from_env(cls) -> Settings:
        """Hydrate the composed settings model from environment variables."""

        aws = AwsSettings()
        secrets_manager = SecretsManager(region=aws.region, prefix=aws.secrets_prefix)

        private_key = secrets_manager.get_secret("PRIVATE_KEY")
        if private_key is not None and not re.match(r"^0x[0-9a-fA-F]{64}$", private_key):
            logger.warning("invalid_private_key_format")
            private_key = None

        webhook_secret = secrets_manager.get_secret("WEBHOOK_SECRET") or None
        if webhook_secret is None:
            logger.warning("webhook_signature_verification_disabled")

        return cls(
            chain=ChainSettings(),
            data_source=DataSourceSettings(),
            webhook=WebhookSettings(),
            queue=QueueSettings(),
            retry=RetrySettings(),
            logging=LoggingSettings(),
            private_key=private_key,
            webhook_secret=webhook_secret,
        )


_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create singleton settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


__all__ = [
    "AwsSettings",
    "ChainSettings",
    "DataSourceSettings",
    "LoggingSettings",
    "QueueSettings",
    "RetrySettings",
    "Settings",
    "WebhookSettings",
    "get_settings",
]
