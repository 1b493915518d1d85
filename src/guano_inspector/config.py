"""Application configuration management using Pydantic Settings.

This module defines the `Settings` class, which loads configuration parameters
from environment variables and a `.env` file. It covers the object-store
backend, the trailing window size, the binary extension list and the optional
structured-data extractor.

The `get_settings` function provides a cached, singleton instance of the
configuration, ensuring consistent settings throughout the application.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Any

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings
from pydantic_settings import SettingsConfigDict as _SettingsConfigDict

DEFAULT_WINDOW_BYTES = 1024 * 1024
DEFAULT_BINARY_EXTENSIONS = ["wav", "mp3", "ogg", "zip", "gz", "bin"]


class Settings(BaseSettings):
    """Defines all application configuration parameters.

    Values come from environment variables or a `.env` file. List-valued
    settings accept comma-separated strings so they can be set from the
    environment without JSON quoting.
    """

    model_config = _SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Logging
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")

    # ---------------- Object store -----------------
    STORAGE_BACKEND: str = Field(
        default="local",
        description="Object store adapter: 'local' (filesystem) or 'http' (object gateway)",
    )
    LOCAL_STORAGE_ROOT: str = Field(
        default="/tmp/uploads", description="Root directory used by the local object store"
    )
    STORAGE_PREFIX: str = Field(
        default="uploads/",
        description="Key prefix under which uploaded files live (blank for none)",
    )
    OBJECT_STORE_URL: str = Field(default="", description="Base URL of the HTTP object gateway")
    OBJECT_STORE_TOKEN: str = Field(default="", description="Bearer token for the object gateway")
    OBJECT_STORE_TIMEOUT: int = Field(
        default=30, description="Timeout (seconds) for object gateway requests"
    )
    SIGNING_SECRET: str = Field(
        default="", description="HMAC secret used to sign local download/upload URLs"
    )
    SIGNED_URL_TTL_SECONDS: int = Field(
        default=900, description="Default lifetime (seconds) of signed URLs"
    )

    # ---------------- Metadata location -----------------
    WINDOW_BYTES: int = Field(
        default=DEFAULT_WINDOW_BYTES,
        description="Number of trailing bytes fetched from binary files (default 1 MiB)",
    )
    # Use Any type to prevent Pydantic Settings JSON decoding; validator converts to list[str]
    BINARY_EXTENSIONS: Any = Field(
        default_factory=lambda: list(DEFAULT_BINARY_EXTENSIONS),
        description=(
            "Comma-separated extensions treated as binary (metadata located in the "
            "trailing window). Everything else is read whole as UTF-8 text."
        ),
    )

    # ---------------- Structured-data extraction -----------------
    ENABLE_EXTRACTION: bool = Field(
        default=True,
        description="Hand decoded text to the structured-data extractor",
    )
    EXTRACTOR_BACKEND: str = Field(
        default="fields",
        description="'fields' (local GUANO field mapping) or 'http' (remote extraction service)",
    )
    EXTRACTOR_URL: str = Field(default="", description="Endpoint of the remote extractor")
    EXTRACTOR_API_KEY: str = Field(default="", description="Bearer key for the remote extractor")
    EXTRACTOR_TIMEOUT: int = Field(
        default=60, description="Timeout (seconds) for remote extraction requests"
    )

    @field_validator("BINARY_EXTENSIONS", mode="before")
    @classmethod
    def parse_extensions(cls, v: Any) -> list[str]:
        """Parse a comma-separated string (or list) into bare lowercase extensions.

        Leading dots are dropped so `.WAV`, `wav` and ` wav ` all normalize to
        `wav`. Empty entries are removed.
        """
        if isinstance(v, str):
            items = v.split(",")
        elif isinstance(v, (list, tuple, set)):
            items = [str(s) for s in v]
        else:
            return []
        return [s.strip().lstrip(".").lower() for s in items if s.strip().lstrip(".")]

    @field_validator("STORAGE_BACKEND", "EXTRACTOR_BACKEND", mode="before")
    @classmethod
    def normalize_backend(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("WINDOW_BYTES")
    @classmethod
    def window_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("WINDOW_BYTES must be positive")
        return v

    @model_validator(mode="after")
    def normalize_paths(self) -> "Settings":
        """Normalize the key prefix and strip trailing slashes from base URLs."""
        prefix = self.STORAGE_PREFIX.strip().lstrip("/")
        if prefix and not prefix.endswith("/"):
            prefix = f"{prefix}/"
        self.STORAGE_PREFIX = prefix
        self.OBJECT_STORE_URL = self.OBJECT_STORE_URL.strip().rstrip("/")
        self.EXTRACTOR_URL = self.EXTRACTOR_URL.strip()
        return self

    def key_for(self, name: str) -> str:
        """Return the object-store key of an uploaded file name."""
        return f"{self.STORAGE_PREFIX}{name}"


@lru_cache(maxsize=1)
def get_settings() -> Settings:  # pragma: no cover - trivial
    """Return a cached, singleton instance of the application settings."""
    return Settings()


__all__ = ["DEFAULT_BINARY_EXTENSIONS", "DEFAULT_WINDOW_BYTES", "Settings", "get_settings"]
