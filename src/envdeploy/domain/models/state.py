"""Per-environment runtime state and deployment run history."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import Field

from envdeploy.domain.models.base import DomainModel, ValueObject


class EnvironmentStatus(str, Enum):
    """Last known status of a deployed environment."""

    HEALTHY = "healthy"
    DRIFTED = "drifted"
    DEPLOYING = "deploying"
    FAILED = "failed"
    UNKNOWN = "unknown"


class RunAction(str, Enum):
    """Actions that produce a run record."""

    PLAN = "plan"
    APPLY = "apply"
    DESTROY = "destroy"
    REPORT = "report"
    ROTATE = "rotate"


class RunStatus(str, Enum):
    """Outcome of a single orchestrator invocation."""

    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"


class RunSummary(ValueObject):
    """Resource change counts reported by the provisioning backend."""

    add: int | None = None
    change: int | None = None
    destroy: int | None = None


class ActiveLock(ValueObject):
    """Exclusive lock held by one run on one environment."""

    run_id: str
    acquired_at: datetime


class EnvironmentRuntimeState(DomainModel):
    """Durable state of one environment, overwritten in place."""

    last_plan_at: datetime | None = None
    last_plan_drift_detected: bool | None = None
    last_force_unlock_at: datetime | None = None
    last_reported_at: datetime | None = None
    last_status_updated_at: datetime | None = None
    last_status: EnvironmentStatus = EnvironmentStatus.UNKNOWN
    active_lock: ActiveLock | None = None

    @property
    def is_locked(self) -> bool:
        return self.active_lock is not None

    @property
    def drift_observed_at(self) -> datetime | None:
        """When the drift flag was last written by a plan or a report."""
        stamps = [s for s in (self.last_plan_at, self.last_reported_at) if s is not None]
        return max(stamps) if stamps else None


class DeploymentState(DomainModel):
    environments: dict[str, EnvironmentRuntimeState] = Field(default_factory=dict)


class DeploymentRunRecord(ValueObject):
    """Append-only history entry, one per orchestrator invocation."""

    id: str
    environment_id: str
    action: RunAction
    status: RunStatus
    actor: str | None = None
    summary: RunSummary | None = None
    logs: list[str] | None = None
    started_at: datetime
    finished_at: datetime
    created_at: datetime
    expires_at: datetime


class ReleaseSelection(DomainModel):
    """Release and preset chosen for one environment."""

    selected_image_ref: str | None = None
    selected_image_digest: str | None = None
    selected_release_tag: str | None = None
    selected_deploy_preset_id: str | None = None
    selected_at: datetime | None = None


class ReleaseState(DomainModel):
    environments: dict[str, ReleaseSelection] = Field(default_factory=dict)


class ProjectRecord(DomainModel):
    """The persisted project record shared with the rest of the CLI."""

    name: str
    path: str
    type: str
    deployment_state: DeploymentState = Field(default_factory=DeploymentState)
    deployment_run_history: list[DeploymentRunRecord] = Field(default_factory=list)
    release_state: ReleaseState = Field(default_factory=ReleaseState)

    def environment_state(self, environment_id: str) -> EnvironmentRuntimeState:
        return self.deployment_state.environments.get(
            environment_id, EnvironmentRuntimeState()
        )

    def release_selection(self, environment_id: str) -> ReleaseSelection:
        return self.release_state.environments.get(environment_id, ReleaseSelection())
