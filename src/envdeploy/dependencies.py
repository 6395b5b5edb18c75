"""Composition root wiring stores, adapter and services from settings."""

from __future__ import annotations

from envdeploy.config import get_settings, Settings
from envdeploy.domain.ports.repositories import ProjectStore
from envdeploy.domain.ports.services import ProvisioningAdapter
from envdeploy.domain.services.orchestrator import DeploymentOrchestrator
from envdeploy.infrastructure.observability.metrics import record_run_metrics
from envdeploy.infrastructure.persistence.repositories import (
    JsonFileProjectStore,
    ProjectEnvironmentStateStore,
)
from envdeploy.infrastructure.provisioning.factory import create_adapter
from envdeploy.infrastructure.templates.materializer import WorkspaceMaterializer


class ServiceContainer:
    """Simple dependency injection container.

    The adapter lives as long as the container. Stores and services are built
    per command because each command runs in its own event loop.
    """

    _instance: ServiceContainer | None = None

    def __init__(
        self,
        settings: Settings | None = None,
        adapter: ProvisioningAdapter | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._adapter = adapter

    @classmethod
    def get_instance(cls) -> ServiceContainer:
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def set_instance(cls, container: ServiceContainer) -> None:
        cls._instance = container

    @classmethod
    def reset(cls) -> None:
        cls._instance = None

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def adapter(self) -> ProvisioningAdapter:
        if self._adapter is None:
            self._adapter = create_adapter(self._settings.workspace.adapter)
        return self._adapter

    def project_store(self) -> ProjectStore:
        return JsonFileProjectStore(self._settings.workspace.state_dir)

    def orchestrator(self) -> DeploymentOrchestrator:
        state_store = ProjectEnvironmentStateStore(self.project_store())
        return DeploymentOrchestrator(
            state_store,
            self.adapter,
            settings=self._settings.deployment,
            run_listeners=[record_run_metrics],
        )

    def materializer(self) -> WorkspaceMaterializer:
        return WorkspaceMaterializer(
            self.project_store(),
            templates_dir=self._settings.workspace.templates_dir,
            state_dir=self._settings.workspace.state_dir,
        )


def get_service_container() -> ServiceContainer:
    return ServiceContainer.get_instance()
