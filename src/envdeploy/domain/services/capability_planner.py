"""Maps environment capabilities to provisioning modules."""

from __future__ import annotations

from typing import Any

from pydantic import Field

from envdeploy.domain.errors import TemplateValidationError
from envdeploy.domain.models.base import ValueObject
from envdeploy.domain.models.template import Capability, EnvironmentSpec


CAPABILITY_ORDER: list[Capability] = [
    Capability.APP_RUNTIME,
    Capability.ENV_CONFIG,
    Capability.POSTGRES,
    Capability.DNS,
]

CAPABILITY_MODULES: dict[Capability, str] = {
    Capability.APP_RUNTIME: "module.appRuntime.v1",
    Capability.ENV_CONFIG: "module.envConfig.v1",
    Capability.POSTGRES: "module.postgres.v1",
    Capability.DNS: "module.dns.v1",
}


class PlannedModule(ValueObject):
    capability: Capability
    module_id: str
    constraints: dict[str, Any] = Field(default_factory=dict)


class UnsupportedCapabilityError(TemplateValidationError):
    """Raised when an environment combines capabilities that cannot be provisioned."""


def _check_combination(environment: EnvironmentSpec, source: str) -> None:
    capabilities = set(environment.capabilities)
    if Capability.POSTGRES in capabilities and Capability.APP_RUNTIME not in capabilities:
        raise UnsupportedCapabilityError(
            source,
            f"Unsupported capability combination for '{environment.id}': "
            "postgres requires appRuntime. Add appRuntime or remove postgres.",
        )
    if Capability.DNS in capabilities:
        if Capability.APP_RUNTIME not in capabilities:
            raise UnsupportedCapabilityError(
                source,
                f"Unsupported capability combination for '{environment.id}': "
                "dns requires appRuntime. Add appRuntime or remove dns.",
            )
        domain = environment.constraints.get("domain")
        if not isinstance(domain, str) or not domain.strip():
            raise UnsupportedCapabilityError(
                source,
                f"Invalid constraints for '{environment.id}': dns capability requires "
                "constraints.domain (non-empty string).",
            )


def plan_environment_modules(
    environment: EnvironmentSpec,
    constraints: dict[str, Any] | None = None,
    source: str = "",
) -> list[PlannedModule]:
    """Return one module per distinct capability, in provisioning order."""
    _check_combination(environment, source)
    effective = constraints if constraints is not None else environment.constraints
    ordered = sorted(set(environment.capabilities), key=CAPABILITY_ORDER.index)
    return [
        PlannedModule(
            capability=capability,
            module_id=CAPABILITY_MODULES[capability],
            constraints=effective,
        )
        for capability in ordered
    ]
