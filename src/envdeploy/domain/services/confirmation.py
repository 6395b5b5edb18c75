"""Confirmation protocol guarding destructive actions."""

from __future__ import annotations

from envdeploy.domain.errors import (
    ConfirmationError,
    DESTROY_CONFIRMATION_PHRASE_INVALID,
    DESTROY_CONFIRMATION_REQUIRED,
    DESTROY_ENVIRONMENT_MISMATCH,
    PROD_DESTROY_CONFIRMATION_INVALID,
    PROD_DESTROY_SECOND_CONFIRM_REQUIRED,
)
from envdeploy.domain.models.base import ValueObject


PROD_DESTROY_PHRASE = "destroy prod permanently"


class DestroyConfirmation(ValueObject):
    """Operator-typed tokens acknowledging a destroy."""

    confirm_environment_id: str
    confirm_phrase: str
    confirm_prod_phrase: str | None = None


def expected_destroy_phrase(environment_id: str) -> str:
    return f"destroy {environment_id}"


def assert_destroy_confirmation(
    environment_id: str,
    confirmation: DestroyConfirmation | None,
    prod_environment_id: str = "prod",
) -> None:
    """Raise :class:`ConfirmationError` unless the confirmation matches exactly.

    The phrase embeds the environment id so a confirmation typed for one
    environment can never destroy another, and the production environment
    needs a second, distinct phrase.
    """
    if confirmation is None:
        raise ConfirmationError(
            DESTROY_CONFIRMATION_REQUIRED,
            "Provide explicit destroy confirmation to continue.",
            remediation=f"Pass --confirm-env {environment_id} and "
            f"--confirm '{expected_destroy_phrase(environment_id)}'.",
        )
    if confirmation.confirm_environment_id != environment_id:
        raise ConfirmationError(
            DESTROY_ENVIRONMENT_MISMATCH,
            f"Confirmation environment '{confirmation.confirm_environment_id}' "
            f"does not match '{environment_id}'.",
        )
    expected = expected_destroy_phrase(environment_id)
    if confirmation.confirm_phrase != expected:
        raise ConfirmationError(
            DESTROY_CONFIRMATION_PHRASE_INVALID,
            f"Expected '{expected}'.",
        )
    if environment_id != prod_environment_id:
        return
    if not confirmation.confirm_prod_phrase:
        raise ConfirmationError(
            PROD_DESTROY_SECOND_CONFIRM_REQUIRED,
            "Provide secondary confirmation for prod destroy.",
            remediation=f"Pass --confirm-prod '{PROD_DESTROY_PHRASE}'.",
        )
    if confirmation.confirm_prod_phrase != PROD_DESTROY_PHRASE:
        raise ConfirmationError(
            PROD_DESTROY_CONFIRMATION_INVALID,
            f"Expected '{PROD_DESTROY_PHRASE}'.",
        )
