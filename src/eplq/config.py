"""Configuration settings for the EPLQ engine.

Settings are read from environment variables prefixed with ``EPLQ_`` (nested
fields use ``__``, e.g. ``EPLQ_SEARCH__SCAN_MODE=region``) and an optional
``.env`` file, using Pydantic's BaseSettings.
"""

from functools import lru_cache

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from eplq.shared.protocol import ScanMode


class CryptoSettings(BaseModel):
    """Crypto codec settings.

    Attributes:
        default_passphrase: Passphrase the process-wide default key is derived from.
    """

    default_passphrase: str = Field(
        "EPLQ-2024-Privacy-Key",
        min_length=1,
        description="Passphrase for the default record key",
    )


class SearchSettings(BaseModel):
    """Proximity search settings.

    Attributes:
        collection: Document store collection holding encrypted POIs.
        scan_mode: Candidate selection, "full" (whole collection) or "region"
            (approximate-region pre-filter).
        max_workers: Decrypt workers per search; 1 keeps the loop sequential.
    """

    collection: str = Field("encrypted_pois", description="POI collection name")
    scan_mode: ScanMode = Field(ScanMode.FULL, description="Candidate selection mode")
    max_workers: int = Field(1, ge=1, le=64, description="Decrypt worker threads")


class LoggingSettings(BaseModel):
    """Logging configuration settings.

    Attributes:
        level: The logging level (e.g., INFO, DEBUG).
        format: The log message format string.
    """

    level: str = Field("INFO", description="Logging level")
    format: str = Field(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log message format",
    )


class ServerSettings(BaseModel):
    """HTTP server bind address."""

    host: str = Field("127.0.0.1", description="Bind host")
    port: int = Field(8000, ge=1, le=65535, description="Bind port")


class Settings(BaseSettings):
    """Global application settings.

    Attributes:
        crypto: Crypto codec settings.
        search: Proximity search settings.
        logging: Logging configuration settings.
        server: HTTP server settings.
    """

    crypto: CryptoSettings = Field(default_factory=CryptoSettings)
    search: SearchSettings = Field(default_factory=SearchSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)

    model_config = SettingsConfigDict(
        env_prefix="EPLQ_",
        env_file=".env",
        env_nested_delimiter="__",
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """Return a cached instance of the settings.

    Returns:
        The global Settings instance.
    """
    return Settings()
