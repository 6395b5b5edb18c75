"""Service port interfaces (hexagonal architecture)."""

from __future__ import annotations

from abc import ABC, abstractmethod

from envdeploy.domain.models.results import (
    AdapterRequest,
    ApplyResult,
    DestroyResult,
    PlanResult,
    ReportResult,
)


class ProvisioningAdapter(ABC):
    """Port for the backend that actually runs infrastructure commands."""

    @abstractmethod
    async def plan(self, request: AdapterRequest) -> PlanResult:
        """Compute pending changes and detect drift."""

    @abstractmethod
    async def apply(self, request: AdapterRequest) -> ApplyResult:
        """Apply pending changes."""

    @abstractmethod
    async def destroy(self, request: AdapterRequest) -> DestroyResult:
        """Tear down every resource of the environment."""

    @abstractmethod
    async def report(self, request: AdapterRequest) -> ReportResult:
        """Read current status and drift without changing anything."""
