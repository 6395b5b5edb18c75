"""In-memory project store for development and testing."""

from __future__ import annotations

import asyncio

from envdeploy.domain.errors import ProjectNotFoundError
from envdeploy.domain.models.state import ProjectRecord
from envdeploy.domain.ports.repositories import ProjectStore, RecordMutator


# Module-level shared store keeps a single clear point for test isolation.
_project_store: dict[str, ProjectRecord] = {}


class InMemoryProjectStore(ProjectStore):
    """In-memory project store for testing and demo use."""

    def __init__(self) -> None:
        self._store = _project_store
        self._lock = asyncio.Lock()

    async def load(self, project_path: str) -> ProjectRecord | None:
        record = self._store.get(project_path)
        return record.model_copy(deep=True) if record is not None else None

    async def save(self, project_path: str, record: ProjectRecord) -> ProjectRecord:
        self._store[project_path] = record.model_copy(deep=True)
        return record

    async def modify(self, project_path: str, mutate: RecordMutator) -> ProjectRecord:
        async with self._lock:
            record = await self.load(project_path)
            if record is None:
                raise ProjectNotFoundError(f"Project not found: {project_path}")
            updated = mutate(record)
            return await self.save(project_path, updated)

    @classmethod
    def clear(cls) -> None:
        """Clear the shared store. Used by test fixtures for isolation."""
        _project_store.clear()
