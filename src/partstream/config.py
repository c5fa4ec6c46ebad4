"""Engine configuration using environment variables."""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import AliasChoices, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve the project root once so that `.env` is discovered regardless of CWD
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent

OFFICIAL_ENDPOINT = "https://generativelanguage.googleapis.com"


class Settings(BaseSettings):
    """Load configuration from environment variables and `.env`."""

    model_config = SettingsConfigDict(
        env_file=str(PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    gemini_api_key: SecretStr = Field(
        default=SecretStr(""),
        validation_alias=AliasChoices(
            "GEMINI_API_KEY", "GOOGLE_API_KEY", "gemini_api_key"
        ),
    )
    endpoint_url: str = Field(
        default=OFFICIAL_ENDPOINT,
        validation_alias=AliasChoices("GEMINI_ENDPOINT_URL", "endpoint_url"),
    )
    default_model: str = Field(
        default="gemini-3-pro-image-preview",
        validation_alias=AliasChoices("GEMINI_DEFAULT_MODEL", "default_model"),
    )
    api_version: str = Field(
        default="v1beta",
        validation_alias=AliasChoices("GEMINI_API_VERSION", "api_version"),
    )
    request_timeout: float = Field(
        default=120.0,
        validation_alias=AliasChoices("GEMINI_TIMEOUT", "timeout", "request_timeout"),
        ge=1,
    )
    log_level: str = Field(
        default="info",
        validation_alias=AliasChoices("LOG_LEVEL", "log_level"),
    )
    log_file: Optional[Path] = Field(
        default=None,
        validation_alias=AliasChoices("LOG_FILE", "log_file"),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached `Settings` instance."""

    return Settings()  # pyright: ignore[reportCallIssue]


__all__ = ["OFFICIAL_ENDPOINT", "PROJECT_ROOT", "Settings", "get_settings"]
