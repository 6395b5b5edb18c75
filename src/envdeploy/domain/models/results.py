"""Provisioning adapter request and result types."""

from __future__ import annotations

from datetime import datetime

from pydantic import Field

from envdeploy.domain.models.base import ValueObject
from envdeploy.domain.models.state import EnvironmentStatus, RunSummary


class AdapterRequest(ValueObject):
    """Arguments passed to every adapter operation."""

    project_path: str
    environment_id: str
    now: datetime


class AdapterIssue(ValueObject):
    """A warning or error reported by the provisioning backend."""

    code: str
    message: str


class PlannedResourceChange(ValueObject):
    address: str
    actions: list[str] = Field(default_factory=list)
    provider_name: str | None = None
    resource_type: str | None = None


class AdapterResult(ValueObject):
    """Fields shared by every adapter result."""

    status: EnvironmentStatus
    warnings: list[AdapterIssue] = Field(default_factory=list)
    errors: list[AdapterIssue] = Field(default_factory=list)
    logs: list[str] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return len(self.errors) > 0


class PlanResult(AdapterResult):
    summary: RunSummary = Field(default_factory=RunSummary)
    drift_detected: bool = False
    planned_changes: list[PlannedResourceChange] = Field(default_factory=list)


class ApplyResult(AdapterResult):
    summary: RunSummary = Field(default_factory=RunSummary)


class DestroyResult(AdapterResult):
    summary: RunSummary = Field(default_factory=RunSummary)


class ReportResult(AdapterResult):
    drift_detected: bool = False
