"""Provisioning adapter selection."""

from __future__ import annotations

import importlib

import structlog

from envdeploy.domain.errors import EnvdeployError
from envdeploy.domain.ports.services import ProvisioningAdapter
from envdeploy.infrastructure.provisioning.simulated import SimulatedProvisioningAdapter


logger = structlog.get_logger(__name__)

SIMULATED_ADAPTER = "simulated"


class AdapterConfigurationError(EnvdeployError):
    """Raised when the configured adapter cannot be loaded."""

    remediation = "Set WORKSPACE_ADAPTER to 'simulated' or a 'package.module:factory' path."


def create_adapter(reference: str = SIMULATED_ADAPTER) -> ProvisioningAdapter:
    """Build the adapter named by ``reference``.

    ``reference`` is either ``simulated`` or ``module:factory``, where ``factory``
    is a zero-argument callable returning a :class:`ProvisioningAdapter`.
    """
    if reference == SIMULATED_ADAPTER:
        return SimulatedProvisioningAdapter()

    module_name, sep, attr = reference.partition(":")
    if not sep or not module_name or not attr:
        raise AdapterConfigurationError(f"Invalid adapter reference '{reference}'.")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise AdapterConfigurationError(f"Cannot import adapter module '{module_name}': {e}") from e
    factory = getattr(module, attr, None)
    if factory is None or not callable(factory):
        raise AdapterConfigurationError(f"'{reference}' is not a callable adapter factory.")

    adapter = factory()
    if not isinstance(adapter, ProvisioningAdapter):
        raise AdapterConfigurationError(
            f"'{reference}' returned {type(adapter).__name__}, not a ProvisioningAdapter."
        )
    logger.info("adapter_loaded", adapter=reference)
    return adapter
