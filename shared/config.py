"""Base configuration with pydantic-settings.

Services inherit ``BaseSettings`` and declare the fields they need. Required
fields have no default so a misconfigured process fails at startup, not on the
first request that touches the missing value.

Usage in a service:
    from shared.config import BaseSettings, database_url_field

    class Settings(BaseSettings):
        database_url: str = database_url_field(required=True)
"""

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings as PydanticBaseSettings, SettingsConfigDict


class BaseSettings(PydanticBaseSettings):
    """Settings common to every service process."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    service_name: str = Field(
        default="autodeploy",
        description="Service name bound to every structured log event",
    )
    log_format: Literal["json", "console"] = Field(
        default="console",
        description="Log output format",
    )
    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR)",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_v = v.upper()
        if upper_v not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return upper_v


# === Field definitions for reuse in service configs ===


def database_url_field(required: bool = True):
    """Database URL field definition."""
    if required:
        return Field(
            ...,
            description="SQLAlchemy async connection URL",
            examples=[
                "postgresql+asyncpg://user:pass@db:5432/autodeploy",
                "sqlite+aiosqlite:///./autodeploy.db",
            ],
        )
    return Field(
        default=None,
        description="SQLAlchemy async connection URL (optional)",
    )


def provider_token_field(provider: str):
    """Optional credential for an external deploy provider.

    An empty value means the provider is not configured and is skipped.
    """
    return Field(
        default=None,
        description=f"{provider} API token; leave unset to disable {provider}",
    )
