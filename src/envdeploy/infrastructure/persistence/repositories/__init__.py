"""Repository implementations."""

from envdeploy.infrastructure.persistence.repositories.in_memory import InMemoryProjectStore
from envdeploy.infrastructure.persistence.repositories.json_file import (
    CorruptProjectRecordError,
    JsonFileProjectStore,
)
from envdeploy.infrastructure.persistence.repositories.state_store import (
    ProjectEnvironmentStateStore,
)


__all__ = [
    "CorruptProjectRecordError",
    "InMemoryProjectStore",
    "JsonFileProjectStore",
    "ProjectEnvironmentStateStore",
]
