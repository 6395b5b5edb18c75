"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Iterator
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pytest
import structlog
import yaml

from envdeploy.config import DeploymentSettings, get_settings
from envdeploy.dependencies import ServiceContainer
from envdeploy.domain.models.state import ProjectRecord
from envdeploy.domain.services.orchestrator import DeploymentOrchestrator
from envdeploy.infrastructure.persistence.repositories import (
    InMemoryProjectStore,
    ProjectEnvironmentStateStore,
)
from envdeploy.infrastructure.provisioning.simulated import SimulatedProvisioningAdapter


PROJECT_PATH = "/projects/demo"
NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

MAIN_TF = """\
resource "null_resource" "app" {
  triggers = {
    environment = "{{ tz.environment.id }}"
    instance    = "{{ tz.constraints.instanceSize }}"
  }
}

output "APP_BASE_URL" {
  value = "https://{{ tz.environment.id }}.example.com"
}

output "DATABASE_URL" {
  value = "postgres://db/{{ tz.environment.id }}"
}
"""


@pytest.fixture(autouse=True)
def clear_stores() -> Iterator[None]:
    """Clear in-memory stores and cached singletons around each test."""
    InMemoryProjectStore.clear()
    ServiceContainer.reset()
    get_settings.cache_clear()
    yield
    structlog.reset_defaults()


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def deployment_settings() -> DeploymentSettings:
    return DeploymentSettings()


@pytest.fixture
def project_store() -> InMemoryProjectStore:
    return InMemoryProjectStore()


@pytest.fixture
def state_store(project_store: InMemoryProjectStore) -> ProjectEnvironmentStateStore:
    return ProjectEnvironmentStateStore(project_store, clock=lambda: NOW)


@pytest.fixture
def adapter() -> SimulatedProvisioningAdapter:
    return SimulatedProvisioningAdapter()


@pytest.fixture
def orchestrator(
    state_store: ProjectEnvironmentStateStore,
    adapter: SimulatedProvisioningAdapter,
    deployment_settings: DeploymentSettings,
) -> DeploymentOrchestrator:
    return DeploymentOrchestrator(
        state_store, adapter, settings=deployment_settings, clock=lambda: NOW
    )


@pytest.fixture
async def registered_project(project_store: InMemoryProjectStore) -> str:
    await project_store.save(
        PROJECT_PATH,
        ProjectRecord(name="demo", path=PROJECT_PATH, type="webapp"),
    )
    return PROJECT_PATH


def make_template_data() -> dict[str, Any]:
    """A valid template: staging and prod on one provider, two presets."""
    return {
        "version": "2",
        "providers": [
            {"id": "aws", "driver": {"type": "opentofu", "entry": "infra/aws/main.tf"}},
        ],
        "environments": [
            {
                "id": "staging",
                "label": "Staging",
                "provider": "aws",
                "capabilities": ["appRuntime", "envConfig"],
                "constraints": {"instanceSize": "small"},
                "outputs": [
                    {"key": "APP_BASE_URL", "type": "string"},
                ],
            },
            {
                "id": "prod",
                "label": "Production",
                "provider": "aws",
                "capabilities": ["appRuntime", "postgres", "envConfig"],
                "constraints": {"instanceSize": "large"},
                "outputs": [
                    {"key": "APP_BASE_URL", "type": "string"},
                    {"key": "DATABASE_URL", "type": "secret-ref", "sensitive": True},
                    {"key": "LOG_LEVEL", "type": "string", "default": "info"},
                ],
            },
        ],
        "presets": [
            {
                "id": "cheap",
                "label": "Cheap",
                "description": "Smallest footprint",
                "environments": ["staging"],
                "constraints": {"instanceSize": "micro"},
            },
            {
                "id": "ha",
                "label": "Highly available",
                "description": "Multi-AZ",
                "environments": ["prod", "staging"],
                "provider": "aws",
                "constraints": {"multiAz": True},
            },
        ],
    }


@pytest.fixture
def template_data() -> dict[str, Any]:
    return make_template_data()


@pytest.fixture
def templates_dir(tmp_path: Path, template_data: dict[str, Any]) -> Path:
    """A templates root holding the ``webapp`` template and its driver sources."""
    root = tmp_path / "templates"
    template_dir = root / "webapp"
    driver_dir = template_dir / "infra" / "aws"
    driver_dir.mkdir(parents=True)
    (template_dir / "deploy.yaml").write_text(yaml.safe_dump(template_data), encoding="utf-8")
    (driver_dir / "main.tf").write_text(MAIN_TF, encoding="utf-8")
    (driver_dir / "README.md").write_text("{{ not a provisioning file }}\n", encoding="utf-8")
    return root
