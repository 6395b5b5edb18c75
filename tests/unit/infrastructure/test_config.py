"""Unit tests for application configuration."""

from __future__ import annotations

import pytest

from envdeploy.config import (
    DeploymentSettings,
    get_settings,
    ObservabilitySettings,
    Settings,
    WorkspaceSettings,
)


class TestDeploymentSettings:
    def test_defaults(self) -> None:
        settings = DeploymentSettings()
        assert settings.enabled is True
        assert settings.lock_timeout_ms == 600_000
        assert settings.stale_lock_threshold_ms == 1_800_000
        assert settings.prod_plan_freshness_ms == 900_000
        assert settings.prod_environment_id == "prod"
        assert settings.drift_expiry_ms is None
        assert settings.run_history_retention_days == 30
        assert settings.report_max_cycles == 3

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DEPLOY_ENABLED", "false")
        monkeypatch.setenv("DEPLOY_DRIFT_EXPIRY_MS", "60000")
        settings = DeploymentSettings()
        assert settings.enabled is False
        assert settings.drift_expiry_ms == 60_000

    def test_field_names_accepted(self) -> None:
        assert DeploymentSettings(prod_environment_id="live").prod_environment_id == "live"


class TestWorkspaceSettings:
    def test_defaults(self) -> None:
        settings = WorkspaceSettings()
        assert settings.templates_dir == "config/projects"
        assert settings.state_dir == ".envdeploy"
        assert settings.adapter == "simulated"

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("WORKSPACE_ADAPTER", "mypkg.adapters:build")
        assert WorkspaceSettings().adapter == "mypkg.adapters:build"


class TestObservabilitySettings:
    def test_defaults(self) -> None:
        settings = ObservabilitySettings()
        assert settings.log_level == "INFO"
        assert settings.log_format == "json"


class TestSettings:
    def test_nested_defaults(self) -> None:
        settings = Settings()
        assert settings.debug is False
        assert settings.deployment.enabled is True
        assert settings.workspace.state_dir == ".envdeploy"

    def test_get_settings_is_cached(self) -> None:
        assert get_settings() is get_settings()
