"""Deployment orchestrator: sequences plan, apply, destroy and report per environment."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from contextlib import asynccontextmanager
from datetime import datetime

import structlog

from envdeploy.config import DeploymentSettings
from envdeploy.domain.errors import (
    DeploymentsDisabledError,
    PreconditionError,
    PROD_DRIFT_CONFIRM_REQUIRED,
    PROD_PLAN_REQUIRED,
    PROD_PLAN_STALE,
    RefreshLoopBusyError,
    REPLAN_REQUIRED_AFTER_FORCE_UNLOCK,
)
from envdeploy.domain.models.base import elapsed_ms, generate_run_id, utc_now, ValueObject
from envdeploy.domain.models.results import (
    AdapterRequest,
    AdapterResult,
    ApplyResult,
    DestroyResult,
    PlanResult,
    ReportResult,
)
from envdeploy.domain.models.state import (
    DeploymentRunRecord,
    EnvironmentRuntimeState,
    EnvironmentStatus,
    RunAction,
    RunStatus,
    RunSummary,
)
from envdeploy.domain.ports.repositories import EnvironmentStateStore
from envdeploy.domain.ports.services import ProvisioningAdapter
from envdeploy.domain.services.confirmation import (
    assert_destroy_confirmation,
    DestroyConfirmation,
)
from envdeploy.domain.services.lock_manager import LockManager
from envdeploy.domain.services.run_history import build_run_record


logger = structlog.get_logger(__name__)


class OrchestrationOptions(ValueObject):
    """Per-call overrides; unset values fall back to :class:`DeploymentSettings`."""

    now: datetime | None = None
    actor: str | None = None
    lock_timeout_ms: int | None = None
    stale_lock_threshold_ms: int | None = None


class ApplyOptions(OrchestrationOptions):
    confirm_drift_for_prod: bool = False


class ReportRefreshOptions(OrchestrationOptions):
    interval_ms: int | None = None
    max_cycles: int | None = None


ReportCycleCallback = Callable[[int, ReportResult], None]
RunListener = Callable[[DeploymentRunRecord, Exception | None], None]


class _RunOutcome:
    """Collects what the run record of a successful invocation should say."""

    def __init__(self) -> None:
        self.status = RunStatus.SUCCESS
        self.summary: RunSummary | None = None
        self.logs: list[str] | None = None

    def complete(self, result: AdapterResult) -> None:
        self.status = RunStatus.FAILED if result.has_errors else RunStatus.SUCCESS
        if isinstance(result, (PlanResult, ApplyResult, DestroyResult)):
            self.summary = result.summary
        self.logs = list(result.logs)


class DeploymentOrchestrator:
    """State machine binding the lock manager, confirmation protocol and adapter.

    Each public action appends exactly one run record. Precondition failures
    raise :class:`PreconditionError`; adapter-reported errors are returned as
    data and only mark the run record failed; any other exception is recorded,
    the lock is released and the exception propagates.
    """

    def __init__(
        self,
        state_store: EnvironmentStateStore,
        adapter: ProvisioningAdapter,
        settings: DeploymentSettings | None = None,
        clock: Callable[[], datetime] = utc_now,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        run_listeners: Sequence[RunListener] = (),
    ) -> None:
        self._state_store = state_store
        self._adapter = adapter
        self._settings = settings or DeploymentSettings()
        self._clock = clock
        self._sleep = sleep
        self._lock_manager = LockManager(state_store)
        self._refreshing: set[tuple[str, str]] = set()
        self._run_listeners = list(run_listeners)

    @property
    def lock_manager(self) -> LockManager:
        return self._lock_manager

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _prepare(self, project_path: str, environment_id: str) -> None:
        """Fail before any state is touched when the action cannot be recorded."""
        if not self._settings.enabled:
            raise DeploymentsDisabledError(
                "Deployments mode is not enabled. Complete backend setup and validation first."
            )
        await self._state_store.read(project_path, environment_id)

    def _lock_policy(self, options: OrchestrationOptions) -> tuple[int, int]:
        timeout = options.lock_timeout_ms
        stale = options.stale_lock_threshold_ms
        return (
            self._settings.lock_timeout_ms if timeout is None else timeout,
            self._settings.stale_lock_threshold_ms if stale is None else stale,
        )

    async def _set_status(
        self,
        project_path: str,
        environment_id: str,
        status: EnvironmentStatus,
        now: datetime,
        **extra: object,
    ) -> EnvironmentRuntimeState:
        return await self._state_store.update(
            project_path,
            environment_id,
            lambda state: state.model_copy(
                update={**extra, "last_status": status, "last_status_updated_at": now}
            ),
        )

    async def _append_run(
        self,
        project_path: str,
        environment_id: str,
        action: RunAction,
        run_id: str,
        now: datetime,
        actor: str | None,
        status: RunStatus,
        summary: RunSummary | None,
        logs: list[str] | None,
        error: Exception | None = None,
    ) -> DeploymentRunRecord:
        record = build_run_record(
            run_id=run_id,
            environment_id=environment_id,
            action=action,
            status=status,
            now=now,
            actor=actor,
            summary=summary,
            logs=logs,
            retention_days=self._settings.run_history_retention_days,
        )
        await self._state_store.append_run(project_path, record)
        for listener in self._run_listeners:
            listener(record, error)
        return record

    @asynccontextmanager
    async def _track_run(
        self,
        project_path: str,
        environment_id: str,
        action: RunAction,
        run_id: str,
        now: datetime,
        actor: str | None,
    ) -> AsyncIterator[_RunOutcome]:
        """Append exactly one run record for the enclosed action."""
        outcome = _RunOutcome()
        with structlog.contextvars.bound_contextvars(
            run_id=run_id, environment_id=environment_id, action=action.value
        ):
            try:
                yield outcome
            except Exception as exc:
                if isinstance(exc, PreconditionError):
                    logger.warning("deployment_action_blocked", code=exc.code, error=str(exc))
                else:
                    logger.exception("deployment_action_failed", error=str(exc))
                await self._append_run(
                    project_path, environment_id, action, run_id, now, actor,
                    RunStatus.FAILED, None, [str(exc) or f"{action.value} failed"], exc,
                )
                raise
            await self._append_run(
                project_path, environment_id, action, run_id, now, actor,
                outcome.status, outcome.summary, outcome.logs,
            )
            logger.info(
                f"deployment_{action.value}_completed",
                run_status=outcome.status.value,
            )

    def _drift_flag_active(self, state: EnvironmentRuntimeState, now: datetime) -> bool:
        if state.last_plan_drift_detected is not True:
            return False
        expiry_ms = self._settings.drift_expiry_ms
        if expiry_ms is None:
            return True
        observed_at = state.drift_observed_at
        return observed_at is not None and elapsed_ms(observed_at, now) <= expiry_ms

    def _check_apply_preconditions(
        self,
        environment_id: str,
        state: EnvironmentRuntimeState,
        now: datetime,
        options: ApplyOptions,
    ) -> None:
        is_prod = environment_id == self._settings.prod_environment_id
        if is_prod:
            if state.last_plan_at is None:
                raise PreconditionError(
                    PROD_PLAN_REQUIRED,
                    "prod apply requires a fresh plan.",
                    remediation=f"Run plan for '{environment_id}' first.",
                )
            window_ms = self._settings.prod_plan_freshness_ms
            if elapsed_ms(state.last_plan_at, now) > window_ms:
                raise PreconditionError(
                    PROD_PLAN_STALE,
                    f"prod apply requires a plan not older than {window_ms // 60000} minutes.",
                    remediation=f"Run plan for '{environment_id}' again.",
                )

        if state.last_force_unlock_at is not None:
            if state.last_plan_at is None:
                raise PreconditionError(
                    REPLAN_REQUIRED_AFTER_FORCE_UNLOCK,
                    "Run plan before apply after force-unlock.",
                )
            if state.last_plan_at <= state.last_force_unlock_at:
                raise PreconditionError(
                    REPLAN_REQUIRED_AFTER_FORCE_UNLOCK,
                    "Run plan after force-unlock before apply.",
                )

        if is_prod and self._drift_flag_active(state, now) and not options.confirm_drift_for_prod:
            raise PreconditionError(
                PROD_DRIFT_CONFIRM_REQUIRED,
                "Re-plan and explicitly confirm drift path.",
                remediation="Review the plan and retry with --confirm-drift-prod.",
            )

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def plan(
        self,
        project_path: str,
        environment_id: str,
        options: OrchestrationOptions | None = None,
    ) -> PlanResult:
        """Compute pending changes under the environment lock."""
        opts = options or OrchestrationOptions()
        now = opts.now or self._clock()
        run_id = generate_run_id()
        lock_timeout_ms, stale_ms = self._lock_policy(opts)
        await self._prepare(project_path, environment_id)

        async with self._track_run(
            project_path, environment_id, RunAction.PLAN, run_id, now, opts.actor
        ) as outcome:
            async with self._lock_manager.hold(
                project_path, environment_id, run_id, now, lock_timeout_ms, stale_ms
            ):
                result = await self._adapter.plan(
                    AdapterRequest(project_path=project_path, environment_id=environment_id, now=now)
                )
                await self._set_status(
                    project_path,
                    environment_id,
                    result.status,
                    now,
                    last_plan_at=now,
                    last_plan_drift_detected=result.drift_detected,
                )
            outcome.complete(result)
        return result

    async def apply(
        self,
        project_path: str,
        environment_id: str,
        options: ApplyOptions | None = None,
    ) -> ApplyResult:
        """Apply pending changes once freshness and drift preconditions hold."""
        opts = options or ApplyOptions()
        now = opts.now or self._clock()
        run_id = generate_run_id()
        lock_timeout_ms, stale_ms = self._lock_policy(opts)
        await self._prepare(project_path, environment_id)

        async with self._track_run(
            project_path, environment_id, RunAction.APPLY, run_id, now, opts.actor
        ) as outcome:
            state = await self._state_store.read(project_path, environment_id)
            self._check_apply_preconditions(environment_id, state, now, opts)
            async with self._lock_manager.hold(
                project_path, environment_id, run_id, now, lock_timeout_ms, stale_ms
            ):
                await self._set_status(
                    project_path, environment_id, EnvironmentStatus.DEPLOYING, now
                )
                try:
                    result = await self._adapter.apply(
                        AdapterRequest(
                            project_path=project_path, environment_id=environment_id, now=now
                        )
                    )
                except Exception:
                    await self._set_status(
                        project_path, environment_id, EnvironmentStatus.FAILED, now
                    )
                    raise
                await self._set_status(project_path, environment_id, result.status, now)
            outcome.complete(result)
        return result

    async def destroy(
        self,
        project_path: str,
        environment_id: str,
        confirmation: DestroyConfirmation | None,
        options: OrchestrationOptions | None = None,
    ) -> DestroyResult:
        """Tear down an environment after the confirmation protocol passes."""
        opts = options or OrchestrationOptions()
        now = opts.now or self._clock()
        run_id = generate_run_id()
        lock_timeout_ms, stale_ms = self._lock_policy(opts)
        await self._prepare(project_path, environment_id)

        async with self._track_run(
            project_path, environment_id, RunAction.DESTROY, run_id, now, opts.actor
        ) as outcome:
            assert_destroy_confirmation(
                environment_id, confirmation, self._settings.prod_environment_id
            )
            async with self._lock_manager.hold(
                project_path, environment_id, run_id, now, lock_timeout_ms, stale_ms
            ):
                result = await self._adapter.destroy(
                    AdapterRequest(project_path=project_path, environment_id=environment_id, now=now)
                )
                # A destroyed environment is never reported healthy.
                status = (
                    EnvironmentStatus.UNKNOWN
                    if result.status == EnvironmentStatus.HEALTHY
                    else result.status
                )
                await self._set_status(project_path, environment_id, status, now)
            outcome.complete(result)
        return result

    async def report(
        self,
        project_path: str,
        environment_id: str,
        options: OrchestrationOptions | None = None,
    ) -> ReportResult:
        """Read status and drift without locking, so it works while a lock is stuck."""
        opts = options or OrchestrationOptions()
        now = opts.now or self._clock()
        run_id = generate_run_id()
        await self._prepare(project_path, environment_id)

        async with self._track_run(
            project_path, environment_id, RunAction.REPORT, run_id, now, opts.actor
        ) as outcome:
            result = await self._adapter.report(
                AdapterRequest(project_path=project_path, environment_id=environment_id, now=now)
            )
            await self._set_status(
                project_path,
                environment_id,
                result.status,
                now,
                last_plan_drift_detected=result.drift_detected,
                last_reported_at=now,
            )
            outcome.complete(result)
        return result

    async def report_refresh_loop(
        self,
        project_path: str,
        environment_id: str,
        options: ReportRefreshOptions | None = None,
        on_cycle: ReportCycleCallback | None = None,
    ) -> list[ReportResult]:
        """Run up to ``max_cycles`` reports sequentially with a delay between them."""
        opts = options or ReportRefreshOptions()
        max_cycles = self._settings.report_max_cycles if opts.max_cycles is None else opts.max_cycles
        interval_ms = (
            self._settings.report_interval_ms if opts.interval_ms is None else opts.interval_ms
        )
        if max_cycles < 1:
            raise ValueError("max_cycles must be at least 1")

        key = (project_path, environment_id)
        if key in self._refreshing:
            raise RefreshLoopBusyError(
                f"A report refresh loop is already running for '{environment_id}'."
            )
        self._refreshing.add(key)
        results: list[ReportResult] = []
        try:
            for cycle in range(1, max_cycles + 1):
                cycle_options = OrchestrationOptions(
                    now=opts.now or self._clock(),
                    actor=opts.actor,
                )
                result = await self.report(project_path, environment_id, cycle_options)
                results.append(result)
                if on_cycle is not None:
                    on_cycle(cycle, result)
                if cycle < max_cycles and interval_ms > 0:
                    await self._sleep(interval_ms / 1000)
        finally:
            self._refreshing.discard(key)

        logger.info(
            "report_refresh_loop_finished",
            environment_id=environment_id,
            cycles=len(results),
        )
        return results

    async def force_unlock(
        self,
        project_path: str,
        environment_id: str,
        now: datetime | None = None,
    ) -> EnvironmentRuntimeState:
        """Clear a stuck lock; the next apply then requires a fresh plan."""
        await self._prepare(project_path, environment_id)
        return await self._lock_manager.force_unlock(
            project_path, environment_id, now or self._clock()
        )

    async def history(
        self,
        project_path: str,
        environment_id: str | None = None,
        now: datetime | None = None,
    ) -> list[DeploymentRunRecord]:
        return await self._state_store.list_runs(project_path, environment_id, now)
