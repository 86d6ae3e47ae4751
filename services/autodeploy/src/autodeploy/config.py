"""Autodeploy service configuration.

Requires: DATABASE_URL
Optional: provider tokens (VERCEL_TOKEN, RENDER_API_TOKEN, RAILWAY_TOKEN) and
LLM credentials (OPENAI_API_KEY or OPEN_ROUTER_KEY). A provider without a token
is skipped by the deployment coordinator and by env-var sync.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field

from shared.config import BaseSettings, database_url_field, provider_token_field
from shared.retry import RetryPolicy, is_transient_http_error


class Settings(BaseSettings):
    """Autodeploy service settings."""

    # Required
    database_url: str = database_url_field(required=True)

    # Schema management; production runs alembic instead
    auto_create_schema: bool = False

    # Where patch folders, local process logs and uploads live
    workspace_root: Path = Path("./workspace")

    # Subprocess timeouts (seconds)
    install_timeout_sec: int = Field(default=600, ge=1)
    build_timeout_sec: int = Field(default=300, ge=1)
    test_timeout_sec: int = Field(default=180, ge=1)

    # Auto-Fix
    autofix_max_cycles: int = Field(default=3, ge=1)
    auto_merge_pull_requests: bool = True

    # Code-repair / analysis service
    llm_provider: Literal["openai", "openrouter"] = "openai"
    llm_model: str = "gpt-4o"
    llm_temperature: float = 0.0
    llm_timeout_sec: int = Field(default=120, ge=1)
    openai_api_key: str | None = None
    open_router_key: str | None = None

    # Deploy providers
    vercel_token: str | None = provider_token_field("Vercel")
    vercel_team_id: str | None = None
    render_api_token: str | None = provider_token_field("Render")
    render_owner_id: str | None = None
    render_region: str = "oregon"
    railway_token: str | None = provider_token_field("Railway")

    # Provider HTTP calls
    http_timeout_sec: float = Field(default=30.0, gt=0)
    http_retry_attempts: int = Field(default=3, ge=1)
    http_retry_backoff_sec: float = Field(default=0.5, ge=0)

    # Managed-provider deploy status polling
    render_poll_interval_sec: float = Field(default=10.0, ge=0)
    render_poll_max_attempts: int = Field(default=60, ge=1)

    # Self-healing monitor
    health_check_interval_sec: float = Field(default=300.0, gt=0)
    health_probe_timeout_sec: float = Field(default=10.0, gt=0)
    health_failure_threshold: int = Field(default=3, ge=1)
    monitor_enabled: bool = True

    # Local process fallback
    local_host: str = "localhost"
    local_startup_grace_sec: float = Field(default=3.0, ge=0)

    @property
    def patches_dir(self) -> Path:
        return self.workspace_root / "patches"

    @property
    def process_logs_dir(self) -> Path:
        return self.workspace_root / "logs"

    @property
    def llm_configured(self) -> bool:
        if self.llm_provider == "openrouter":
            return bool(self.open_router_key)
        return bool(self.openai_api_key)

    def http_retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.http_retry_attempts,
            backoff=self.http_retry_backoff_sec,
            is_retryable=is_transient_http_error,
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Validates required env vars on first call.
    Raises ValidationError if DATABASE_URL is missing.
    """
    return Settings()
