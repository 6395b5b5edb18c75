"""Validation of raw deploy template documents.

Validation is fail-fast: the first violated rule raises a
:class:`TemplateValidationError` naming the file, the offending field path
and the rule. The schema version is checked first; the field rules and
cross references are enforced by the template models themselves.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from envdeploy.domain.errors import TemplateValidationError
from envdeploy.domain.models.template import DeployTemplate, SUPPORTED_DEPLOY_SCHEMA_VERSION


def format_location(loc: tuple[int | str, ...]) -> str:
    """Render a pydantic error location as ``environments[0].outputs[1].key``."""
    rendered = ""
    for part in loc:
        if isinstance(part, int):
            rendered += f"[{part}]"
        else:
            rendered += f".{part}" if rendered else part
    return rendered


def describe_error(error: Mapping[str, Any]) -> str:
    location = format_location(error["loc"])
    ctx = error.get("ctx") or {}
    kind = error["type"]

    if kind == "value_error":
        message = str(ctx.get("error", error["msg"]))
        return f"{location} {message}" if location else message
    if kind == "missing":
        rule = "is required."
    elif kind == "string_pattern_mismatch":
        rule = f"must match {ctx['pattern']}."
    elif kind == "enum":
        rule = f"must be one of {ctx['expected']}."
    elif kind == "too_short":
        rule = "must be a non-empty array."
    elif kind == "string_too_short":
        rule = "must be a non-empty string."
    elif kind == "string_type":
        rule = "must be a string."
    elif kind == "bool_type":
        rule = "must be boolean."
    elif kind == "list_type":
        rule = "must be an array."
    elif kind in ("dict_type", "model_type", "model_attributes_type"):
        rule = "must be an object."
    else:
        rule = f"is invalid ({error['msg']})."
    return f"{location} {rule}" if location else rule


def parse_deploy_template(data: Any, path: str) -> DeployTemplate:
    """Validate a raw document and build the deploy template it describes."""
    if not isinstance(data, dict):
        raise TemplateValidationError(path, f"Failed to load deploy config '{path}'.")
    version = data.get("version")
    if not isinstance(version, str) or version.strip() != SUPPORTED_DEPLOY_SCHEMA_VERSION:
        raise TemplateValidationError(
            path,
            f"Invalid deploy config '{path}': version must be '{SUPPORTED_DEPLOY_SCHEMA_VERSION}'.",
        )

    try:
        return DeployTemplate.model_validate(data)
    except ValidationError as e:
        first = e.errors(include_url=False)[0]
        raise TemplateValidationError(
            path, f"Invalid deploy config '{path}': {describe_error(first)}"
        ) from e
