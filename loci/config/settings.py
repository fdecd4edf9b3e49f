"""Configuration management using Pydantic Settings.

This module provides type-safe configuration management with automatic
environment variable loading and validation using Pydantic Settings v2.

The configuration is organized into logical groups:
- LoggingConfig: Logging levels, files, and debugging options
- CredentialsConfig: Spotify OAuth application credentials
- APIConfig: Spotify catalog API limits and pacing
- EnrichmentConfig: Batch scheduling, matching policy and reconciliation deadline
- CacheConfig: Track cache bounds
"""

from pathlib import Path
from typing import Any

from pydantic import BaseModel, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LoggingConfig(BaseModel):
    """Logging configuration for console and file output."""

    console_level: str = "INFO"
    file_level: str = "DEBUG"
    log_file: Path = Path("loci.log")
    real_time_debug: bool = True


class CredentialsConfig(BaseModel):
    """API credentials and authentication settings."""

    spotify_client_id: str = ""
    spotify_client_secret: str = ""
    spotify_redirect_uri: str = "http://localhost:8888/callback"


class APIConfig(BaseModel):
    """Spotify catalog API configuration and rate limiting."""

    spotify_batch_size: int = 50  # Spotify's max search batch
    spotify_request_delay: float = 0.1
    spotify_retry_count: int = 3
    spotify_retry_max_delay: float = 30.0
    spotify_history_limit: int = 50  # recently-played hard cap
    spotify_market: str = "US"


class EnrichmentConfig(BaseModel):
    """Pending queue, matching and reconciliation configuration."""

    batch_size: int = 50
    batch_interval_seconds: float = 5.0
    match_window_seconds: float = 180.0
    match_threshold: float = 0.8
    reconcile_timeout_seconds: float | None = 120.0


class CacheConfig(BaseModel):
    """Track cache bounds. A ttl of None keeps entries for the process lifetime."""

    max_entries: int = 5000
    ttl_seconds: float | None = None


class Settings(BaseSettings):
    """Main application settings with environment variable support.

    Environment variables can be set using flat naming or nested naming:
    - Flat: CONSOLE_LOG_LEVEL, SPOTIFY_CLIENT_ID, ENRICHMENT_BATCH_SIZE
    - Nested: LOGGING__CONSOLE_LEVEL, ENRICHMENT__BATCH_SIZE

    The .env file is automatically loaded for development convenience.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    logging: LoggingConfig = LoggingConfig()
    credentials: CredentialsConfig = CredentialsConfig()
    api: APIConfig = APIConfig()
    enrichment: EnrichmentConfig = EnrichmentConfig()
    cache: CacheConfig = CacheConfig()

    @model_validator(mode="before")
    @classmethod
    def transform_flat_env_vars(cls, data: Any) -> Any:
        """Transform flat environment variables to nested structure.

        Handles flat env vars (SPOTIFY_CLIENT_ID) and maps them to the
        nested structure expected by the models (credentials.spotify_client_id).
        """
        if not isinstance(data, dict):
            return data

        transformed: dict[str, dict[str, Any]] = {}

        groups = {
            "logging": {
                "console_log_level": "console_level",
                "file_log_level": "file_level",
                "log_file": "log_file",
                "log_real_time_debug": "real_time_debug",
            },
            "credentials": {
                "spotify_client_id": "spotify_client_id",
                "spotify_client_secret": "spotify_client_secret",
                "spotify_redirect_uri": "spotify_redirect_uri",
            },
            "api": {
                "spotify_api_batch_size": "spotify_batch_size",
                "spotify_api_request_delay": "spotify_request_delay",
                "spotify_api_retry_count": "spotify_retry_count",
                "spotify_api_retry_max_delay": "spotify_retry_max_delay",
                "spotify_history_limit": "spotify_history_limit",
                "spotify_market": "spotify_market",
            },
            "enrichment": {
                "enrichment_batch_size": "batch_size",
                "enrichment_batch_interval": "batch_interval_seconds",
                "enrichment_match_window": "match_window_seconds",
                "enrichment_match_threshold": "match_threshold",
                "enrichment_reconcile_timeout": "reconcile_timeout_seconds",
            },
            "cache": {
                "cache_max_entries": "max_entries",
                "cache_ttl_seconds": "ttl_seconds",
            },
        }
        for group, mapping in groups.items():
            for env_key, field_key in mapping.items():
                if env_key in data:
                    transformed.setdefault(group, {})[field_key] = data.pop(env_key)

        # Flat values win over nested ones for the same field
        for group, values in transformed.items():
            nested = data.get(group)
            data[group] = {**nested, **values} if isinstance(nested, dict) else values

        return data


# Singleton instance for application use
settings = Settings()


# =============================================================================
# FLAT KEY ACCESS
# =============================================================================

_FLAT_KEY_MAP = {
    # Logging settings
    "CONSOLE_LOG_LEVEL": lambda: settings.logging.console_level,
    "FILE_LOG_LEVEL": lambda: settings.logging.file_level,
    "LOG_FILE": lambda: settings.logging.log_file,
    "LOG_REAL_TIME_DEBUG": lambda: settings.logging.real_time_debug,
    # Credentials
    "SPOTIFY_CLIENT_ID": lambda: settings.credentials.spotify_client_id,
    "SPOTIFY_CLIENT_SECRET": lambda: settings.credentials.spotify_client_secret,
    "SPOTIFY_REDIRECT_URI": lambda: settings.credentials.spotify_redirect_uri,
    # Spotify API settings
    "SPOTIFY_API_BATCH_SIZE": lambda: settings.api.spotify_batch_size,
    "SPOTIFY_API_REQUEST_DELAY": lambda: settings.api.spotify_request_delay,
    "SPOTIFY_API_RETRY_COUNT": lambda: settings.api.spotify_retry_count,
    "SPOTIFY_API_RETRY_MAX_DELAY": lambda: settings.api.spotify_retry_max_delay,
    "SPOTIFY_HISTORY_LIMIT": lambda: settings.api.spotify_history_limit,
    "SPOTIFY_MARKET": lambda: settings.api.spotify_market,
    # Enrichment settings
    "ENRICHMENT_BATCH_SIZE": lambda: settings.enrichment.batch_size,
    "ENRICHMENT_BATCH_INTERVAL": lambda: settings.enrichment.batch_interval_seconds,
    "ENRICHMENT_MATCH_WINDOW": lambda: settings.enrichment.match_window_seconds,
    "ENRICHMENT_MATCH_THRESHOLD": lambda: settings.enrichment.match_threshold,
    "ENRICHMENT_RECONCILE_TIMEOUT": lambda: settings.enrichment.reconcile_timeout_seconds,
    # Cache settings
    "CACHE_MAX_ENTRIES": lambda: settings.cache.max_entries,
    "CACHE_TTL_SECONDS": lambda: settings.cache.ttl_seconds,
}


def get_config(key: str, default=None):
    """Read a setting by its flat environment-style name.

    Maps flat keys to the nested Pydantic settings structure.

    Args:
        key: Configuration key to retrieve
        default: Default value if key not found

    Returns:
        Configuration value or default

    Example:
        >>> batch_size = get_config("ENRICHMENT_BATCH_SIZE", 50)
    """
    if key in _FLAT_KEY_MAP:
        return _FLAT_KEY_MAP[key]()

    return default
