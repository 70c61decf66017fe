"""Configuration management service with Pydantic Settings.

This module provides centralized configuration management for the
Sui graph ingestion service, loading and validating environment
variables at startup.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_ENV_FILE = ".env"
_ENV_FILE_ENCODING = "utf-8"

DEFAULT_SUI_RPC_URL = "https://fullnode.mainnet.sui.io:443"


def _validate_http_url(v: str | None) -> str | None:
    if v is None:
        return v
    if not v.startswith(("http://", "https://")):
        raise ValueError("URL must be an HTTP(S) endpoint")
    return v


class SuiSettings(BaseSettings):
    """Sui full node JSON-RPC settings."""

    model_config = SettingsConfigDict(env_prefix="SUI_", extra="ignore")

    rpc_url: str = Field(
        default=DEFAULT_SUI_RPC_URL,
        alias="SUI_RPC_URL",
        description="Primary Sui full node JSON-RPC endpoint",
    )
    fallback_rpc_url: str | None = Field(
        default=None,
        alias="SUI_FALLBACK_RPC_URL",
        description="Fallback Sui JSON-RPC endpoint",
    )
    max_requests_per_second: float = Field(
        default=10.0,
        alias="SUI_MAX_REQUESTS_PER_SECOND",
        gt=0.0,
        le=1000.0,
        description="Client-side rate limit for full node calls",
    )
    max_retries: int = Field(
        default=3,
        alias="SUI_MAX_RETRIES",
        ge=1,
        le=10,
        description="Attempts per RPC call on transport errors",
    )
    retry_delay_seconds: float = Field(
        default=1.0,
        alias="SUI_RETRY_DELAY_SECONDS",
        ge=0.0,
        le=60.0,
        description="Initial backoff delay between RPC attempts",
    )

    @field_validator("rpc_url", "fallback_rpc_url")
    @classmethod
    def validate_url(cls, v: str | None) -> str | None:
        """Validate RPC URL format."""
        return _validate_http_url(v)


class NebulaSettings(BaseSettings):
    """NebulaGraph HTTP gateway settings."""

    model_config = SettingsConfigDict(env_prefix="NEBULA_", extra="ignore")

    gateway_url: str = Field(
        default="http://localhost:3002",
        alias="NEBULA_GATEWAY_URL",
        description="Base URL of the query gateway (POST /query)",
    )
    space: str = Field(
        default="sui_analysis",
        alias="NEBULA_SPACE",
        pattern=r"^[A-Za-z_][A-Za-z0-9_]*$",
        description="Graph space the ingestion writes into",
    )
    partition_num: int = Field(
        default=10,
        alias="NEBULA_PARTITION_NUM",
        ge=1,
        le=1024,
    )
    replica_factor: int = Field(
        default=1,
        alias="NEBULA_REPLICA_FACTOR",
        ge=1,
        le=7,
    )
    schema_settle_seconds: float = Field(
        default=3.0,
        alias="NEBULA_SCHEMA_SETTLE_SECONDS",
        ge=0.0,
        le=120.0,
        description="Wait after CREATE SPACE before creating tags/edges",
    )
    request_timeout_seconds: float = Field(
        default=15.0,
        alias="NEBULA_REQUEST_TIMEOUT_SECONDS",
        gt=0.0,
        le=600.0,
    )
    max_retries: int = Field(
        default=3,
        alias="NEBULA_MAX_RETRIES",
        ge=1,
        le=10,
        description="Attempts per gateway request on transport errors",
    )

    @field_validator("gateway_url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate gateway URL format."""
        checked = _validate_http_url(v)
        assert checked is not None
        return checked.rstrip("/")


class RedisSettings(BaseSettings):
    """Redis connection settings (RPC cache and run lock)."""

    model_config = SettingsConfigDict(env_prefix="", extra="ignore")

    url: str | None = Field(
        default=None,
        alias="REDIS_URL",
        description="Redis connection string; unset disables caching and the shared run lock",
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str | None) -> str | None:
        """Validate Redis URL format."""
        if v is None:
            return v
        if not v.startswith(("redis://", "rediss://")):
            raise ValueError("REDIS_URL must start with redis:// or rediss://")
        return v


class IngestSettings(BaseSettings):
    """Ingestion run defaults."""

    model_config = SettingsConfigDict(env_prefix="INGEST_", extra="ignore")

    default_checkpoint_count: int = Field(
        default=10,
        alias="INGEST_DEFAULT_CHECKPOINT_COUNT",
        ge=1,
        le=1_000_000,
    )
    enrichment_top_n: int = Field(
        default=20,
        alias="INGEST_ENRICHMENT_TOP_N",
        ge=0,
        le=10_000,
        description="Most active wallets to enrich in enhanced mode",
    )
    enrichment_delay_seconds: float = Field(
        default=0.2,
        alias="INGEST_ENRICHMENT_DELAY_SECONDS",
        ge=0.0,
        le=60.0,
        description="Pause between enrichment lookups",
    )
    classify_relationships: bool = Field(
        default=False,
        alias="INGEST_CLASSIFY_RELATIONSHIPS",
        description="Assign strong/medium/weak instead of 'unknown'",
    )
    run_lock_ttl_seconds: int = Field(
        default=6 * 3600,
        alias="INGEST_RUN_LOCK_TTL_SECONDS",
        ge=60,
        le=7 * 24 * 3600,
        description="Expiry of the shared 'run in progress' flag",
    )


class RunConfig(BaseModel):
    """Configuration of a single ingestion run, as sent by the transport layer."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    checkpoint_count: int = Field(default=10, alias="checkpointCount", ge=1)
    rpc_url: str = Field(default=DEFAULT_SUI_RPC_URL, alias="rpcUrl")
    enhanced_mode: bool = Field(default=False, alias="enhancedMode")

    @field_validator("rpc_url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        checked = _validate_http_url(v)
        assert checked is not None
        return checked


class Settings(BaseSettings):
    """Main application settings.

    Loads configuration from environment variables with support for
    .env files via python-dotenv.

    Example:
        ```python
        from sui_graph_ingest.config import get_settings

        settings = get_settings()
        print(settings.nebula.gateway_url)
        print(settings.log_level)
        ```
    """

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE,
        env_file_encoding=_ENV_FILE_ENCODING,
        extra="ignore",
    )

    # NOTE: Each nested BaseSettings must be given the same env_file, otherwise it
    # will only read from the process environment (and ignore `.env`).
    sui: SuiSettings = Field(
        default_factory=lambda: SuiSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    nebula: NebulaSettings = Field(
        default_factory=lambda: NebulaSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    redis: RedisSettings = Field(
        default_factory=lambda: RedisSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    ingest: IngestSettings = Field(
        default_factory=lambda: IngestSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging level",
    )

    def get_logging_level(self) -> int:
        """Get the numeric logging level."""
        level: int = getattr(logging, self.log_level)
        return level

    def default_run_config(self, **overrides: object) -> RunConfig:
        """Build a run configuration from settings defaults plus overrides."""
        values: dict[str, object] = {
            "checkpoint_count": self.ingest.default_checkpoint_count,
            "rpc_url": self.sui.rpc_url,
            "enhanced_mode": False,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return RunConfig(**values)

    def redacted_summary(self) -> dict[str, str | dict[str, str]]:
        """Get a summary of settings with secrets redacted.

        Returns:
            Dictionary of settings with sensitive values masked.
        """
        return {
            "sui": {
                "rpc_url": self.sui.rpc_url,
                "fallback_rpc_url": self.sui.fallback_rpc_url or "(not set)",
                "max_requests_per_second": str(self.sui.max_requests_per_second),
            },
            "nebula": {
                "gateway_url": self._redact_url(self.nebula.gateway_url),
                "space": self.nebula.space,
            },
            "redis_url": self._redact_url(self.redis.url) if self.redis.url else "(not set)",
            "ingest": {
                "default_checkpoint_count": str(self.ingest.default_checkpoint_count),
                "enrichment_top_n": str(self.ingest.enrichment_top_n),
                "classify_relationships": str(self.ingest.classify_relationships),
            },
            "log_level": self.log_level,
        }

    @staticmethod
    def _redact_url(url: str) -> str:
        """Redact password from URL if present."""
        if "@" in url and "://" in url:
            protocol_end = url.index("://") + 3
            at_pos = url.index("@")
            creds_part = url[protocol_end:at_pos]
            if ":" in creds_part:
                username = creds_part.split(":")[0]
                return f"{url[:protocol_end]}{username}:***@{url[at_pos + 1 :]}"
        return url


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the application settings singleton.

    Returns:
        The Settings instance.

    Raises:
        ValidationError: If environment variables have invalid values.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Useful for testing when you need to reload settings with
    different environment variables.
    """
    get_settings.cache_clear()
