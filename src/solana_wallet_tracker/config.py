"""Configuration management service with Pydantic Settings.

This module provides centralized configuration management for the
Solana Wallet Tracker application, loading and validating environment
variables at startup.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Annotated, Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

_ENV_FILE = ".env"
_ENV_FILE_ENCODING = "utf-8"


class ConfigurationError(Exception):
    """Raised when the configuration cannot support the requested command."""


def _validate_http_url(v: str | None) -> str | None:
    if v is None or v == "":
        return None
    if not v.startswith(("http://", "https://")):
        raise ValueError("RPC URL must be an HTTP(S) endpoint")
    return v


class RpcSettings(BaseSettings):
    """Solana RPC endpoint settings.

    Endpoints are tried in order: the explicit ``RPC_ENDPOINTS`` list first,
    then the named provider URLs.
    """

    model_config = SettingsConfigDict(env_prefix="", extra="ignore")

    endpoints: Annotated[tuple[str, ...], NoDecode] = Field(
        default=(),
        alias="RPC_ENDPOINTS",
        description="Ordered RPC endpoint URLs (comma-separated)",
    )
    alchemy_rpc_url: str | None = Field(
        default=None,
        alias="ALCHEMY_RPC_URL",
        description="Alchemy Solana RPC endpoint (preferred)",
    )
    helius_rpc_url: str | None = Field(
        default=None,
        alias="HELIUS_RPC_URL",
        description="Helius Solana RPC endpoint",
    )
    ankr_rpc_url: str | None = Field(
        default=None,
        alias="ANKR_RPC_URL",
        description="Ankr Solana RPC endpoint",
    )
    public_rpc_url: str | None = Field(
        default=None,
        alias="PUBLIC_RPC_URL",
        description="Public Solana RPC endpoint (last resort)",
    )
    commitment: Literal["processed", "confirmed", "finalized"] = Field(
        default="confirmed",
        alias="RPC_COMMITMENT",
        description="Commitment level for RPC queries",
    )

    @field_validator("endpoints", mode="before")
    @classmethod
    def _parse_endpoints(cls, v: object) -> tuple[str, ...]:
        if v is None:
            return ()
        if isinstance(v, str):
            parts = [p.strip() for p in v.split(",") if p.strip()]
            return tuple(parts)
        if isinstance(v, (list, tuple)):
            return tuple(str(x) for x in v)
        raise TypeError("Invalid RPC_ENDPOINTS type")

    @field_validator("endpoints")
    @classmethod
    def _validate_endpoints(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        for url in v:
            _validate_http_url(url)
        return v

    @field_validator("alchemy_rpc_url", "helius_rpc_url", "ankr_rpc_url", "public_rpc_url")
    @classmethod
    def validate_url(cls, v: str | None) -> str | None:
        """Validate RPC URL format."""
        return _validate_http_url(v)

    def endpoint_urls(self) -> list[str]:
        """Return the ordered, de-duplicated endpoint list."""
        candidates = [
            *self.endpoints,
            self.alchemy_rpc_url,
            self.helius_rpc_url,
            self.ankr_rpc_url,
            self.public_rpc_url,
        ]
        urls: list[str] = []
        for url in candidates:
            if url and url not in urls:
                urls.append(url)
        return urls


class PollerSettings(BaseSettings):
    """Per-wallet polling settings."""

    model_config = SettingsConfigDict(env_prefix="POLLER_", extra="ignore")

    interval_seconds: float = Field(
        default=30.0,
        alias="POLLER_INTERVAL_SECONDS",
        ge=1.0,
        le=3600.0,
        description="Seconds between polls of a tracked wallet",
    )
    signature_limit: int = Field(
        default=2,
        alias="POLLER_SIGNATURE_LIMIT",
        ge=1,
        le=1000,
        description="Recent signatures fetched per poll",
    )
    transaction_delay_seconds: float = Field(
        default=0.5,
        alias="POLLER_TRANSACTION_DELAY_SECONDS",
        ge=0.0,
        le=60.0,
        description="Delay between transaction body fetches within one poll",
    )
    max_retries: int = Field(
        default=3,
        alias="POLLER_MAX_RETRIES",
        ge=0,
        le=10,
        description="Rate-limit retries per upstream call",
    )


class AggregatorSettings(BaseSettings):
    """Cross-wallet aggregation settings."""

    model_config = SettingsConfigDict(env_prefix="AGGREGATOR_", extra="ignore")

    window_ttl_seconds: int = Field(
        default=3600,
        alias="AGGREGATOR_WINDOW_TTL_SECONDS",
        ge=60,
        le=7 * 24 * 3600,
        description="Idle time after which an untriggered window is dropped",
    )


class SubscriberDefaults(BaseSettings):
    """Defaults applied to subscribers on first interaction."""

    model_config = SettingsConfigDict(env_prefix="DEFAULT_", extra="ignore")

    sol_threshold: float = Field(
        default=0.5,
        alias="DEFAULT_SOL_THRESHOLD",
        gt=0.0,
        description="Minimum pooled spend (SOL) before alerting",
    )
    required_wallets: int = Field(
        default=3,
        alias="DEFAULT_REQUIRED_WALLETS",
        ge=1,
        le=1000,
        description="Minimum distinct buyers before alerting",
    )


class EnrichmentSettings(BaseSettings):
    """Token metadata / market data enrichment settings."""

    model_config = SettingsConfigDict(env_prefix="CALLSTATIC_", extra="ignore")

    api_key: SecretStr | None = Field(
        default=None,
        alias="CALLSTATIC_API_KEY",
        description="CallStatic API key for token enrichment",
    )
    base_url: str = Field(
        default="https://api.callstaticrpc.com/pumpfun/v1",
        alias="CALLSTATIC_BASE_URL",
        description="CallStatic API base URL",
    )
    cache_ttl_seconds: int = Field(
        default=600,
        alias="CALLSTATIC_CACHE_TTL_SECONDS",
        ge=0,
        le=24 * 3600,
        description="Freshness window for cached enrichment lookups",
    )
    timeout_seconds: float = Field(
        default=10.0,
        alias="CALLSTATIC_TIMEOUT_SECONDS",
        gt=0.0,
        le=120.0,
        description="HTTP timeout for enrichment requests",
    )

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("CALLSTATIC_BASE_URL must be an HTTP(S) endpoint")
        return v.rstrip("/")

    @property
    def enabled(self) -> bool:
        """Check if enrichment lookups are configured."""
        return self.api_key is not None


class RedisSettings(BaseSettings):
    """Redis connection settings (optional enrichment cache)."""

    model_config = SettingsConfigDict(env_prefix="", extra="ignore")

    url: str | None = Field(
        default=None,
        alias="REDIS_URL",
        description="Redis connection string",
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str | None) -> str | None:
        """Validate Redis URL format."""
        if v is None or v == "":
            return None
        if not v.startswith(("redis://", "rediss://")):
            raise ValueError("REDIS_URL must start with redis:// or rediss://")
        return v


class TelegramSettings(BaseSettings):
    """Telegram notification settings."""

    model_config = SettingsConfigDict(env_prefix="TELEGRAM_", extra="ignore")

    bot_token: SecretStr | None = Field(
        default=None,
        alias="BOT_TOKEN",
        description="Telegram bot token",
    )
    chat_id: str | None = Field(
        default=None,
        alias="TELEGRAM_CHAT_ID",
        description="Default subscriber (chat) for wallets watched from the CLI",
    )

    @property
    def enabled(self) -> bool:
        """Check if Telegram notifications are enabled."""
        return self.bot_token is not None


class WebhookSettings(BaseSettings):
    """Inbound webhook server settings."""

    model_config = SettingsConfigDict(env_prefix="WEBHOOK_", extra="ignore")

    enabled: bool = Field(
        default=False,
        alias="WEBHOOK_ENABLED",
        description="Serve POST /webhook for out-of-band transactions",
    )
    host: str = Field(
        default="0.0.0.0",
        alias="WEBHOOK_HOST",
        description="Bind address for the webhook server",
    )
    port: int = Field(
        default=3000,
        alias="WEBHOOK_PORT",
        ge=1,
        le=65535,
        description="HTTP port for the webhook server",
    )


class Settings(BaseSettings):
    """Main application settings.

    Loads configuration from environment variables with support for
    .env files via python-dotenv.

    Example:
        ```python
        from solana_wallet_tracker.config import get_settings

        settings = get_settings()
        print(settings.rpc.endpoint_urls())
        print(settings.log_level)
        ```
    """

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE,
        env_file_encoding=_ENV_FILE_ENCODING,
        extra="ignore",
    )

    # Nested configuration groups
    #
    # NOTE: Each nested BaseSettings must be given the same env_file, otherwise it
    # will only read from the process environment (and ignore `.env`).
    rpc: RpcSettings = Field(
        default_factory=lambda: RpcSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    poller: PollerSettings = Field(
        default_factory=lambda: PollerSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    aggregator: AggregatorSettings = Field(
        default_factory=lambda: AggregatorSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    defaults: SubscriberDefaults = Field(
        default_factory=lambda: SubscriberDefaults(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    enrichment: EnrichmentSettings = Field(
        default_factory=lambda: EnrichmentSettings(
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
    telegram: TelegramSettings = Field(
        default_factory=lambda: TelegramSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    webhook: WebhookSettings = Field(
        default_factory=lambda: WebhookSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )

    # Application settings
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging level",
    )
    dry_run: bool = Field(
        default=False,
        alias="DRY_RUN",
        description="Run without sending actual alerts",
    )

    def get_logging_level(self) -> int:
        """Get the numeric logging level."""
        level: int = getattr(logging, self.log_level)
        return level

    def redacted_summary(self) -> dict[str, str | dict[str, str]]:
        """Get a summary of settings with secrets redacted.

        Returns:
            Dictionary of settings with sensitive values masked.
        """
        return {
            "rpc": {
                "endpoints": ", ".join(self._redact_url(u) for u in self.rpc.endpoint_urls()) or "(not set)",
                "commitment": self.rpc.commitment,
            },
            "poller": {
                "interval_seconds": str(self.poller.interval_seconds),
                "signature_limit": str(self.poller.signature_limit),
                "transaction_delay_seconds": str(self.poller.transaction_delay_seconds),
                "max_retries": str(self.poller.max_retries),
            },
            "aggregator": {
                "window_ttl_seconds": str(self.aggregator.window_ttl_seconds),
            },
            "defaults": {
                "sol_threshold": str(self.defaults.sol_threshold),
                "required_wallets": str(self.defaults.required_wallets),
            },
            "enrichment": {
                "base_url": self.enrichment.base_url,
                "api_key": "(set)" if self.enrichment.api_key else "(not set)",
                "cache_ttl_seconds": str(self.enrichment.cache_ttl_seconds),
            },
            "redis_url": self._redact_url(self.redis.url) if self.redis.url else "(not set)",
            "telegram_enabled": str(self.telegram.enabled),
            "webhook": {
                "enabled": str(self.webhook.enabled),
                "port": str(self.webhook.port),
            },
            "log_level": self.log_level,
            "dry_run": str(self.dry_run),
        }

    def validate_requirements(self, *, command: Literal["run", "config"] = "run") -> None:
        """Validate command-specific requirements.

        Missing endpoints, or a missing bot token outside dry run, are fatal
        for ``run``.
        """
        if command != "run":
            return

        if not self.rpc.endpoint_urls():
            raise ConfigurationError(
                "No RPC endpoints configured (set RPC_ENDPOINTS or one of "
                "ALCHEMY_RPC_URL, HELIUS_RPC_URL, ANKR_RPC_URL, PUBLIC_RPC_URL)"
            )
        if not self.dry_run and not self.telegram.enabled:
            raise ConfigurationError("BOT_TOKEN is required unless DRY_RUN is set")

    @staticmethod
    def _redact_url(url: str) -> str:
        """Redact credentials and query strings (API keys) from a URL."""
        if "?" in url:
            url = url.split("?", 1)[0] + "?***"
        if "@" in url and "://" in url:
            # URL has credentials - redact the password
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

    Uses LRU cache to ensure settings are loaded only once and
    reused across the application.

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
