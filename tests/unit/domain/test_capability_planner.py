"""Unit tests for the capability planner."""

from __future__ import annotations

from typing import Any

import pytest

from envdeploy.domain.models import Capability, EnvironmentSpec
from envdeploy.domain.services.capability_planner import (
    plan_environment_modules,
    UnsupportedCapabilityError,
)


def _env(capabilities: list[str], constraints: dict[str, Any] | None = None) -> EnvironmentSpec:
    return EnvironmentSpec(
        id="staging",
        label="Staging",
        provider="aws",
        capabilities=[Capability(c) for c in capabilities],
        constraints=constraints or {},
        outputs=[],
    )


class TestPlanEnvironmentModules:
    def test_orders_and_deduplicates(self) -> None:
        modules = plan_environment_modules(
            _env(["postgres", "envConfig", "appRuntime", "postgres"])
        )
        assert [m.module_id for m in modules] == [
            "module.appRuntime.v1",
            "module.envConfig.v1",
            "module.postgres.v1",
        ]

    def test_uses_environment_constraints_by_default(self) -> None:
        modules = plan_environment_modules(_env(["appRuntime"], {"size": "s"}))
        assert modules[0].constraints == {"size": "s"}

    def test_effective_constraints_override(self) -> None:
        modules = plan_environment_modules(_env(["appRuntime"], {"size": "s"}), {"size": "l"})
        assert modules[0].constraints == {"size": "l"}

    def test_postgres_requires_app_runtime(self) -> None:
        with pytest.raises(UnsupportedCapabilityError, match="postgres requires appRuntime"):
            plan_environment_modules(_env(["postgres"]))

    def test_dns_requires_domain(self) -> None:
        with pytest.raises(UnsupportedCapabilityError, match="constraints.domain"):
            plan_environment_modules(_env(["appRuntime", "dns"]))

    def test_dns_with_domain(self) -> None:
        modules = plan_environment_modules(_env(["dns", "appRuntime"], {"domain": "x.dev"}))
        assert [m.capability for m in modules] == [Capability.APP_RUNTIME, Capability.DNS]
