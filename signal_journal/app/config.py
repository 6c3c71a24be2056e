"""
Centralized configuration for the journal signing service.

Pydantic v2 settings, parsed once at startup. Configuration bounds
resource usage and selects collaborators; it never influences how a
signature is verified.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Literal

from pydantic import AnyHttpUrl, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings parsed from SIGNAL_* environment variables."""

    # ---------------------------------------------------------------------
    # Operational Boundaries
    # ---------------------------------------------------------------------

    max_content_size_mb: Annotated[
        int,
        Field(
            default=10,
            ge=1,
            le=50,
            description="Largest accepted upload or text body in megabytes",
        ),
    ]

    max_batch_size: Annotated[
        int,
        Field(
            default=50,
            ge=1,
            le=500,
            description="Upper bound on items per batch verification call",
        ),
    ]

    # ---------------------------------------------------------------------
    # Verification Links
    # ---------------------------------------------------------------------

    verification_base_url: Annotated[
        AnyHttpUrl,
        Field(
            default="https://signal.example.com",
            description="Public base URL encoded into verification QR codes",
        ),
    ]

    add_verification_page: Annotated[
        bool,
        Field(
            default=False,
            description="Append a human-readable signature page when signing",
        ),
    ]

    # ---------------------------------------------------------------------
    # Storage
    # ---------------------------------------------------------------------

    storage_backend: Annotated[
        Literal["memory", "filesystem"],
        Field(default="memory"),
    ]

    storage_dir: Annotated[
        Path,
        Field(
            default=Path("./data/journals"),
            description="Root directory for the filesystem backend",
        ),
    ]

    # ---------------------------------------------------------------------
    # Server
    # ---------------------------------------------------------------------

    host: Annotated[
        str,
        Field(default="127.0.0.1", min_length=1),
    ]

    port: Annotated[
        int,
        Field(default=8000, ge=1, le=65535),
    ]

    # ---------------------------------------------------------------------
    # Logging
    # ---------------------------------------------------------------------

    log_level: Annotated[
        Literal["DEBUG", "INFO", "WARNING", "ERROR"],
        Field(default="INFO"),
    ]

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: object) -> object:
        return v.upper() if isinstance(v, str) else v

    @property
    def max_content_bytes(self) -> int:
        return self.max_content_size_mb * 1024 * 1024

    @property
    def base_url(self) -> str:
        return str(self.verification_base_url).rstrip("/")

    model_config = SettingsConfigDict(
        env_prefix="SIGNAL_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
        frozen=True,
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Dependency injection provider for application settings.

    Singleton within the process.
    """
    return Settings()
