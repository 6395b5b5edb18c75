"""Advisory per-environment locks held inside the environment state record."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime

import structlog

from envdeploy.domain.errors import LOCK_STALE, LOCK_TIMEOUT, PreconditionError
from envdeploy.domain.models.base import elapsed_ms
from envdeploy.domain.models.state import ActiveLock, EnvironmentRuntimeState
from envdeploy.domain.ports.repositories import EnvironmentStateStore


logger = structlog.get_logger(__name__)


class LockManager:
    """Acquires and releases the exclusive lock of a (project, environment) pair.

    There is no renewal or heartbeat: a lock left behind by a stuck caller is
    cleared only by :meth:`force_unlock`. The timeout and staleness values only
    decide how a second caller is told about an existing lock.
    """

    def __init__(self, state_store: EnvironmentStateStore) -> None:
        self._state_store = state_store

    async def acquire(
        self,
        project_path: str,
        environment_id: str,
        run_id: str,
        now: datetime,
        lock_timeout_ms: int,
        stale_threshold_ms: int,
    ) -> ActiveLock:
        """Take the lock or raise ``LOCK_STALE`` / ``LOCK_TIMEOUT``."""
        lock = ActiveLock(run_id=run_id, acquired_at=now)

        def take(state: EnvironmentRuntimeState) -> EnvironmentRuntimeState:
            existing = state.active_lock
            if existing is not None:
                age_ms = elapsed_ms(existing.acquired_at, now)
                if age_ms > stale_threshold_ms:
                    raise PreconditionError(
                        LOCK_STALE,
                        f"Existing lock for '{environment_id}' is stale "
                        f"(> {stale_threshold_ms // 60000}m). Force-unlock before retrying.",
                        remediation=f"Run force-unlock for '{environment_id}', then plan again.",
                    )
                raise PreconditionError(
                    LOCK_TIMEOUT,
                    f"Lock already held for '{environment_id}' by {existing.run_id}. "
                    f"Timeout policy is {lock_timeout_ms // 60000}m.",
                    remediation="Wait for the running action to finish and retry.",
                )
            return state.model_copy(update={"active_lock": lock})

        await self._state_store.update(project_path, environment_id, take)
        logger.debug("lock_acquired", environment_id=environment_id, run_id=run_id)
        return lock

    async def release(self, project_path: str, environment_id: str) -> None:
        """Clear the lock. Safe to call on an unlocked environment."""
        await self._state_store.update(
            project_path,
            environment_id,
            lambda state: state.model_copy(update={"active_lock": None}),
        )
        logger.debug("lock_released", environment_id=environment_id)

    async def force_unlock(
        self, project_path: str, environment_id: str, now: datetime
    ) -> EnvironmentRuntimeState:
        """Clear the lock and stamp the takeover so the next apply needs a fresh plan."""
        state = await self._state_store.update(
            project_path,
            environment_id,
            lambda s: s.model_copy(update={"active_lock": None, "last_force_unlock_at": now}),
        )
        logger.warning("lock_force_released", environment_id=environment_id)
        return state

    @asynccontextmanager
    async def hold(
        self,
        project_path: str,
        environment_id: str,
        run_id: str,
        now: datetime,
        lock_timeout_ms: int,
        stale_threshold_ms: int,
    ) -> AsyncIterator[ActiveLock]:
        """Hold the lock for the body of an ``async with`` block.

        The lock is released on every exit path once it has been acquired.
        A failed acquisition leaves the other holder's lock untouched.
        """
        lock = await self.acquire(
            project_path, environment_id, run_id, now, lock_timeout_ms, stale_threshold_ms
        )
        try:
            yield lock
        finally:
            await self.release(project_path, environment_id)
