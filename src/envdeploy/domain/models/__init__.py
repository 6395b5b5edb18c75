"""Domain models package."""

from envdeploy.domain.models.base import (
    DomainModel,
    elapsed_ms,
    generate_run_id,
    utc_now,
    ValueObject,
)
from envdeploy.domain.models.results import (
    AdapterIssue,
    AdapterRequest,
    AdapterResult,
    ApplyResult,
    DestroyResult,
    PlannedResourceChange,
    PlanResult,
    ReportResult,
)
from envdeploy.domain.models.state import (
    ActiveLock,
    DeploymentRunRecord,
    DeploymentState,
    EnvironmentRuntimeState,
    EnvironmentStatus,
    ProjectRecord,
    ReleaseSelection,
    ReleaseState,
    RunAction,
    RunStatus,
    RunSummary,
)
from envdeploy.domain.models.template import (
    Capability,
    DeployTemplate,
    DriverType,
    EnvironmentSpec,
    OutputSpec,
    OutputType,
    PresetSpec,
    Provider,
    ProviderDriver,
    SUPPORTED_DEPLOY_SCHEMA_VERSION,
)


__all__ = [
    "ActiveLock",
    "AdapterIssue",
    "AdapterRequest",
    "AdapterResult",
    "ApplyResult",
    "Capability",
    "DeployTemplate",
    "DeploymentRunRecord",
    "DeploymentState",
    "DestroyResult",
    "DomainModel",
    "DriverType",
    "EnvironmentRuntimeState",
    "EnvironmentSpec",
    "EnvironmentStatus",
    "OutputSpec",
    "OutputType",
    "PlanResult",
    "PlannedResourceChange",
    "PresetSpec",
    "ProjectRecord",
    "Provider",
    "ProviderDriver",
    "ReleaseSelection",
    "ReleaseState",
    "ReportResult",
    "RunAction",
    "RunStatus",
    "RunSummary",
    "SUPPORTED_DEPLOY_SCHEMA_VERSION",
    "ValueObject",
    "elapsed_ms",
    "generate_run_id",
    "utc_now",
]
