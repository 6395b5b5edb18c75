"""Simulated provisioning adapter."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

import structlog

from envdeploy.domain.models.results import (
    AdapterIssue,
    AdapterRequest,
    ApplyResult,
    DestroyResult,
    PlannedResourceChange,
    PlanResult,
    ReportResult,
)
from envdeploy.domain.models.state import EnvironmentStatus, RunAction, RunSummary
from envdeploy.domain.ports.services import ProvisioningAdapter


logger = structlog.get_logger(__name__)

SIMULATED_RESOURCES: list[tuple[str, str]] = [
    ("app_runtime", "simulated_app_service"),
    ("env_config", "simulated_config_store"),
]


@dataclass
class AdapterCall:
    action: RunAction
    environment_id: str
    project_path: str


class SimulatedProvisioningAdapter(ProvisioningAdapter):
    """Simulated backend for development and testing.

    Tracks which environments are deployed and can be told to report drift,
    return adapter errors, raise, or take time, without touching any cloud
    account.
    """

    def __init__(self, latency_seconds: float = 0.0) -> None:
        self.latency_seconds = latency_seconds
        self.calls: list[AdapterCall] = []
        self._deployed: set[str] = set()
        self._drifted: set[str] = set()
        self._errors: dict[RunAction, list[AdapterIssue]] = {}
        self._failures: dict[RunAction, Exception] = {}

    def mark_drifted(self, environment_id: str, drifted: bool = True) -> None:
        if drifted:
            self._drifted.add(environment_id)
        else:
            self._drifted.discard(environment_id)

    def fail_with(self, action: RunAction, *issues: AdapterIssue) -> None:
        """Make ``action`` return the given errors as data."""
        self._errors[action] = list(issues)

    def raise_on(self, action: RunAction, error: Exception) -> None:
        """Make ``action`` raise instead of returning a result."""
        self._failures[action] = error

    def clear_failures(self) -> None:
        self._errors.clear()
        self._failures.clear()

    def is_deployed(self, environment_id: str) -> bool:
        return environment_id in self._deployed

    def calls_for(self, action: RunAction) -> list[AdapterCall]:
        return [call for call in self.calls if call.action == action]

    async def _enter(self, action: RunAction, request: AdapterRequest) -> list[AdapterIssue]:
        self.calls.append(
            AdapterCall(
                action=action,
                environment_id=request.environment_id,
                project_path=request.project_path,
            )
        )
        logger.info(
            f"simulated_{action.value}",
            environment_id=request.environment_id,
            project_path=request.project_path,
        )
        if self.latency_seconds > 0:
            await asyncio.sleep(self.latency_seconds)
        failure = self._failures.get(action)
        if failure is not None:
            raise failure
        return list(self._errors.get(action, []))

    def _current_status(self, environment_id: str) -> EnvironmentStatus:
        if environment_id in self._drifted:
            return EnvironmentStatus.DRIFTED
        if environment_id in self._deployed:
            return EnvironmentStatus.HEALTHY
        return EnvironmentStatus.UNKNOWN

    async def plan(self, request: AdapterRequest) -> PlanResult:
        errors = await self._enter(RunAction.PLAN, request)
        env_id = request.environment_id
        drifted = env_id in self._drifted
        if env_id not in self._deployed:
            changes = [
                PlannedResourceChange(
                    address=f"{resource_type}.{name}",
                    actions=["create"],
                    provider_name="simulated",
                    resource_type=resource_type,
                )
                for name, resource_type in SIMULATED_RESOURCES
            ]
            summary = RunSummary(add=len(changes), change=0, destroy=0)
        elif drifted:
            changes = [
                PlannedResourceChange(
                    address=f"{SIMULATED_RESOURCES[0][1]}.{SIMULATED_RESOURCES[0][0]}",
                    actions=["update"],
                    provider_name="simulated",
                    resource_type=SIMULATED_RESOURCES[0][1],
                )
            ]
            summary = RunSummary(add=0, change=1, destroy=0)
        else:
            changes = []
            summary = RunSummary(add=0, change=0, destroy=0)
        return PlanResult(
            status=EnvironmentStatus.FAILED if errors else self._current_status(env_id),
            errors=errors,
            logs=[
                f"Plan: {summary.add} to add, {summary.change} to change, "
                f"{summary.destroy} to destroy."
            ],
            summary=summary,
            drift_detected=drifted,
            planned_changes=changes,
        )

    async def apply(self, request: AdapterRequest) -> ApplyResult:
        errors = await self._enter(RunAction.APPLY, request)
        env_id = request.environment_id
        if errors:
            return ApplyResult(
                status=EnvironmentStatus.FAILED,
                errors=errors,
                logs=["Apply failed."],
            )
        added = 0 if env_id in self._deployed else len(SIMULATED_RESOURCES)
        changed = 1 if env_id in self._drifted else 0
        self._deployed.add(env_id)
        self._drifted.discard(env_id)
        return ApplyResult(
            status=EnvironmentStatus.HEALTHY,
            logs=[f"Apply complete! Resources: {added} added, {changed} changed, 0 destroyed."],
            summary=RunSummary(add=added, change=changed, destroy=0),
        )

    async def destroy(self, request: AdapterRequest) -> DestroyResult:
        errors = await self._enter(RunAction.DESTROY, request)
        env_id = request.environment_id
        if errors:
            return DestroyResult(
                status=EnvironmentStatus.FAILED,
                errors=errors,
                logs=["Destroy failed."],
            )
        destroyed = len(SIMULATED_RESOURCES) if env_id in self._deployed else 0
        self._deployed.discard(env_id)
        self._drifted.discard(env_id)
        return DestroyResult(
            status=EnvironmentStatus.UNKNOWN,
            logs=[f"Destroy complete! Resources: {destroyed} destroyed."],
            summary=RunSummary(add=0, change=0, destroy=destroyed),
        )

    async def report(self, request: AdapterRequest) -> ReportResult:
        errors = await self._enter(RunAction.REPORT, request)
        env_id = request.environment_id
        return ReportResult(
            status=EnvironmentStatus.FAILED if errors else self._current_status(env_id),
            errors=errors,
            logs=[f"Status: {self._current_status(env_id).value}"],
            drift_detected=env_id in self._drifted,
        )
