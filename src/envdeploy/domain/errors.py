"""Domain exception hierarchy.

Precondition failures carry a stable ``code`` (``LOCK_*``, ``PROD_*``,
``DESTROY_*``, ``REPLAN_*``) so callers can render targeted remediation.
"""

from __future__ import annotations


class EnvdeployError(Exception):
    """Base class for all envdeploy errors."""

    remediation: str = ""


class TemplateValidationError(EnvdeployError):
    """Raised when a deploy template is missing or invalid."""

    def __init__(self, path: str, message: str) -> None:
        super().__init__(message)
        self.path = path


class TemplateContractError(EnvdeployError):
    """Raised when a provider's sources do not satisfy the declared outputs."""


class MaterializationError(EnvdeployError):
    """Raised when a deploy workspace cannot be rendered."""


class ProjectNotFoundError(EnvdeployError):
    """Raised when no project record exists for a path."""


class EnvironmentNotFoundError(EnvdeployError):
    """Raised when an environment is not declared in the deploy template."""


class DeploymentsDisabledError(EnvdeployError):
    """Raised when deployments mode is switched off."""

    remediation = "Set DEPLOY_ENABLED=true once the backend has been validated."


class RefreshLoopBusyError(EnvdeployError):
    """Raised when a report refresh loop is already running for an environment."""


class PreconditionError(EnvdeployError):
    """An expected, operator-recoverable condition blocking an action."""

    def __init__(self, code: str, message: str, remediation: str = "") -> None:
        super().__init__(f"{code}: {message}")
        self.code = code
        self.detail = message
        self.remediation = remediation


class ConfirmationError(PreconditionError):
    """Raised when a destroy confirmation is missing or does not match."""


# Stable precondition codes.
LOCK_STALE = "LOCK_STALE"
LOCK_TIMEOUT = "LOCK_TIMEOUT"
PROD_PLAN_REQUIRED = "PROD_PLAN_REQUIRED"
PROD_PLAN_STALE = "PROD_PLAN_STALE"
PROD_DRIFT_CONFIRM_REQUIRED = "PROD_DRIFT_CONFIRM_REQUIRED"
REPLAN_REQUIRED_AFTER_FORCE_UNLOCK = "REPLAN_REQUIRED_AFTER_FORCE_UNLOCK"
DESTROY_CONFIRMATION_REQUIRED = "DESTROY_CONFIRMATION_REQUIRED"
DESTROY_ENVIRONMENT_MISMATCH = "DESTROY_ENVIRONMENT_MISMATCH"
DESTROY_CONFIRMATION_PHRASE_INVALID = "DESTROY_CONFIRMATION_PHRASE_INVALID"
PROD_DESTROY_SECOND_CONFIRM_REQUIRED = "PROD_DESTROY_SECOND_CONFIRM_REQUIRED"
PROD_DESTROY_CONFIRMATION_INVALID = "PROD_DESTROY_CONFIRMATION_INVALID"
