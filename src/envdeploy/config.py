"""Application configuration using pydantic-settings."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings


class DeploymentSettings(BaseSettings):
    """Orchestration policy values."""

    enabled: bool = Field(default=True, alias="DEPLOY_ENABLED")
    lock_timeout_ms: int = Field(default=10 * 60 * 1000, alias="DEPLOY_LOCK_TIMEOUT_MS")
    stale_lock_threshold_ms: int = Field(
        default=30 * 60 * 1000, alias="DEPLOY_STALE_LOCK_THRESHOLD_MS"
    )
    prod_plan_freshness_ms: int = Field(
        default=15 * 60 * 1000, alias="DEPLOY_PROD_PLAN_FRESHNESS_MS"
    )
    prod_environment_id: str = Field(default="prod", alias="DEPLOY_PROD_ENVIRONMENT_ID")
    # None keeps a drift flag until the next plan or report overwrites it.
    drift_expiry_ms: int | None = Field(default=None, alias="DEPLOY_DRIFT_EXPIRY_MS")
    run_history_retention_days: int = Field(default=30, alias="DEPLOY_RUN_HISTORY_RETENTION_DAYS")
    report_interval_ms: int = Field(default=5000, alias="DEPLOY_REPORT_INTERVAL_MS")
    report_max_cycles: int = Field(default=3, alias="DEPLOY_REPORT_MAX_CYCLES")

    model_config = {"env_prefix": "DEPLOY_", "extra": "ignore", "populate_by_name": True}


class WorkspaceSettings(BaseSettings):
    """Filesystem layout and adapter selection."""

    templates_dir: str = Field(default="config/projects", alias="WORKSPACE_TEMPLATES_DIR")
    state_dir: str = Field(default=".envdeploy", alias="WORKSPACE_STATE_DIR")
    adapter: str = Field(default="simulated", alias="WORKSPACE_ADAPTER")

    model_config = {"env_prefix": "WORKSPACE_", "extra": "ignore", "populate_by_name": True}


class ObservabilitySettings(BaseSettings):
    """Observability configuration."""

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: str = Field(default="json", alias="LOG_FORMAT")

    model_config = {"env_prefix": "OBS_", "extra": "ignore", "populate_by_name": True}


class Settings(BaseSettings):
    """Main application settings."""

    debug: bool = Field(default=False, alias="DEBUG")

    deployment: DeploymentSettings = Field(default_factory=DeploymentSettings)
    workspace: WorkspaceSettings = Field(default_factory=WorkspaceSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)

    model_config = {"env_prefix": "", "extra": "ignore", "populate_by_name": True}


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
