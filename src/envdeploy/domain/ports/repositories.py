"""Repository port interfaces (hexagonal architecture)."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import datetime

from envdeploy.domain.models.state import (
    DeploymentRunRecord,
    EnvironmentRuntimeState,
    ProjectRecord,
)


StateMutator = Callable[[EnvironmentRuntimeState], EnvironmentRuntimeState]
RecordMutator = Callable[[ProjectRecord], ProjectRecord]


class ProjectStore(ABC):
    """Port for whole-record project persistence."""

    @abstractmethod
    async def load(self, project_path: str) -> ProjectRecord | None:
        """Load the project record stored for a path."""

    @abstractmethod
    async def save(self, project_path: str, record: ProjectRecord) -> ProjectRecord:
        """Replace the stored project record."""

    @abstractmethod
    async def modify(self, project_path: str, mutate: RecordMutator) -> ProjectRecord:
        """Atomically load, transform and save a project record.

        An exception raised by ``mutate`` aborts the write.
        """


class EnvironmentStateStore(ABC):
    """Port for keyed per-environment runtime state and run history."""

    @abstractmethod
    async def read(self, project_path: str, environment_id: str) -> EnvironmentRuntimeState:
        """Read the current state of an environment."""

    @abstractmethod
    async def update(
        self, project_path: str, environment_id: str, mutate: StateMutator
    ) -> EnvironmentRuntimeState:
        """Atomically read, transform and write an environment's state.

        An exception raised by ``mutate`` aborts the write and propagates.
        """

    @abstractmethod
    async def append_run(self, project_path: str, record: DeploymentRunRecord) -> None:
        """Append a run record to the project's history."""

    @abstractmethod
    async def list_runs(
        self,
        project_path: str,
        environment_id: str | None = None,
        now: datetime | None = None,
    ) -> list[DeploymentRunRecord]:
        """List run records still retained at ``now``, newest first."""
