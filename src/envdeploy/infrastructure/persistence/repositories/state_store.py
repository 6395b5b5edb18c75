"""Environment state store layered on a project store."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

from envdeploy.domain.errors import ProjectNotFoundError
from envdeploy.domain.models.base import utc_now
from envdeploy.domain.models.state import (
    DeploymentRunRecord,
    EnvironmentRuntimeState,
    ProjectRecord,
)
from envdeploy.domain.ports.repositories import (
    EnvironmentStateStore,
    ProjectStore,
    StateMutator,
)
from envdeploy.domain.services.run_history import prune_expired


class ProjectEnvironmentStateStore(EnvironmentStateStore):
    """Keeps environment state and run history inside the project record.

    Writes go through :meth:`ProjectStore.modify`, so they share the project
    store's lock with every other writer of the same record and lock
    acquisition is a check-and-set for callers in this process.
    """

    def __init__(
        self,
        project_store: ProjectStore,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._project_store = project_store
        self._clock = clock

    async def _require(self, project_path: str) -> ProjectRecord:
        record = await self._project_store.load(project_path)
        if record is None:
            raise ProjectNotFoundError(f"Project not found: {project_path}")
        return record

    async def read(self, project_path: str, environment_id: str) -> EnvironmentRuntimeState:
        record = await self._require(project_path)
        return record.environment_state(environment_id)

    async def update(
        self, project_path: str, environment_id: str, mutate: StateMutator
    ) -> EnvironmentRuntimeState:
        def apply(record: ProjectRecord) -> ProjectRecord:
            state = mutate(record.environment_state(environment_id))
            record.deployment_state.environments[environment_id] = state
            return record

        updated = await self._project_store.modify(project_path, apply)
        return updated.environment_state(environment_id)

    async def append_run(self, project_path: str, record: DeploymentRunRecord) -> None:
        # Retention is judged at the time the run happened, not the wall clock.
        def append(project: ProjectRecord) -> ProjectRecord:
            project.deployment_run_history = prune_expired(
                [*project.deployment_run_history, record], record.created_at
            )
            return project

        await self._project_store.modify(project_path, append)

    async def list_runs(
        self,
        project_path: str,
        environment_id: str | None = None,
        now: datetime | None = None,
    ) -> list[DeploymentRunRecord]:
        project = await self._require(project_path)
        runs = prune_expired(project.deployment_run_history, now or self._clock())
        if environment_id is not None:
            runs = [run for run in runs if run.environment_id == environment_id]
        return runs
