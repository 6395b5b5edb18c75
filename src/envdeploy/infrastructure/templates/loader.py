"""Deploy template file discovery and loading."""

from __future__ import annotations

import json
from pathlib import Path

import structlog
import yaml

from envdeploy.domain.errors import TemplateValidationError
from envdeploy.domain.models.base import ValueObject
from envdeploy.domain.models.template import DeployTemplate
from envdeploy.domain.services.template_validation import parse_deploy_template


logger = structlog.get_logger(__name__)

DEPLOY_TEMPLATE_FILENAMES = ("deploy.yaml", "deploy.yml", "deploy.json")


class TemplateLoadResult(ValueObject):
    """Outcome of loading a deploy template; ``error`` is set when ``config`` is not."""

    path: str
    exists: bool
    config: DeployTemplate | None = None
    error: str | None = None


def find_deploy_template(template_dir: str | Path) -> Path | None:
    """Return the first deploy template file present in ``template_dir``."""
    directory = Path(template_dir)
    for name in DEPLOY_TEMPLATE_FILENAMES:
        candidate = directory / name
        if candidate.is_file():
            return candidate
    return None


def _read_document(path: Path) -> object:
    text = path.read_text(encoding="utf-8")
    if path.suffix == ".json":
        return json.loads(text)
    return yaml.safe_load(text)


def load_deploy_template(path: str | Path) -> TemplateLoadResult:
    """Load and validate a deploy template, reporting the first problem found."""
    template_path = Path(path)
    if not template_path.is_file():
        return TemplateLoadResult(path=str(template_path), exists=False)

    try:
        data = _read_document(template_path)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError, yaml.YAMLError) as e:
        logger.warning("deploy_template_unreadable", path=str(template_path), error=str(e))
        return TemplateLoadResult(
            path=str(template_path),
            exists=True,
            error=f"Failed to load deploy config '{template_path}': {e}",
        )

    try:
        template = parse_deploy_template(data, str(template_path))
    except TemplateValidationError as e:
        logger.warning("deploy_template_invalid", path=str(template_path), error=str(e))
        return TemplateLoadResult(path=str(template_path), exists=True, error=str(e))

    return TemplateLoadResult(path=str(template_path), exists=True, config=template)


def load_template_for_type(templates_dir: str | Path, template_type: str) -> DeployTemplate:
    """Load the deploy template of a project type, raising on any problem."""
    template_dir = Path(templates_dir) / template_type
    template_path = find_deploy_template(template_dir)
    if template_path is None:
        raise TemplateValidationError(
            str(template_dir),
            f"Template '{template_type}' has no deploy.yaml definition. "
            "Add deploy config before deployment.",
        )
    result = load_deploy_template(template_path)
    if result.config is None:
        raise TemplateValidationError(
            result.path,
            f"Template '{template_type}' deploy config is invalid. {result.error}",
        )
    return result.config
