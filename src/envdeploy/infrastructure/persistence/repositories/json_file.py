"""Project store persisting one JSON document per project directory."""

from __future__ import annotations

import asyncio
import os
from pathlib import Path

import structlog
from pydantic import ValidationError

from envdeploy.domain.errors import EnvdeployError, ProjectNotFoundError
from envdeploy.domain.models.state import ProjectRecord
from envdeploy.domain.ports.repositories import ProjectStore, RecordMutator


logger = structlog.get_logger(__name__)

PROJECT_RECORD_FILE = "project.json"


class CorruptProjectRecordError(EnvdeployError):
    """Raised when a stored project record cannot be parsed."""


class JsonFileProjectStore(ProjectStore):
    """Stores the record at ``<project>/<state_dir>/project.json``.

    Writes go to a temporary file that is renamed over the target, so a
    crash mid-write never leaves a truncated record behind.
    """

    def __init__(self, state_dir: str = ".envdeploy") -> None:
        self._state_dir = state_dir
        self._locks: dict[str, asyncio.Lock] = {}

    def record_path(self, project_path: str) -> Path:
        return Path(project_path) / self._state_dir / PROJECT_RECORD_FILE

    def _lock_for(self, project_path: str) -> asyncio.Lock:
        key = str(Path(project_path).resolve())
        if key not in self._locks:
            self._locks[key] = asyncio.Lock()
        return self._locks[key]

    async def load(self, project_path: str) -> ProjectRecord | None:
        path = self.record_path(project_path)
        if not path.exists():
            return None
        try:
            return ProjectRecord.model_validate_json(path.read_text(encoding="utf-8"))
        except ValidationError as e:
            raise CorruptProjectRecordError(f"Invalid project record '{path}': {e}") from e

    async def save(self, project_path: str, record: ProjectRecord) -> ProjectRecord:
        path = self.record_path(project_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(".json.tmp")
        tmp_path.write_text(record.model_dump_json(indent=2), encoding="utf-8")
        os.replace(tmp_path, path)
        logger.debug("project_record_saved", path=str(path))
        return record

    async def modify(self, project_path: str, mutate: RecordMutator) -> ProjectRecord:
        async with self._lock_for(project_path):
            record = await self.load(project_path)
            if record is None:
                raise ProjectNotFoundError(f"Project not found: {project_path}")
            return await self.save(project_path, mutate(record))
