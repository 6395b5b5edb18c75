"""Renders a per-environment deploy workspace from a template's driver sources."""

from __future__ import annotations

import json
import re
import shutil
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import Any

import structlog
from pydantic import Field

from envdeploy.domain.errors import (
    EnvironmentNotFoundError,
    MaterializationError,
    ProjectNotFoundError,
)
from envdeploy.domain.models.base import utc_now, ValueObject
from envdeploy.domain.models.state import ProjectRecord, ReleaseSelection
from envdeploy.domain.models.template import DeployTemplate, EnvironmentSpec, PresetSpec
from envdeploy.domain.ports.repositories import ProjectStore
from envdeploy.domain.services.capability_planner import PlannedModule, plan_environment_modules
from envdeploy.infrastructure.templates.loader import load_template_for_type
from envdeploy.infrastructure.templates.output_contract import validate_output_contract


logger = structlog.get_logger(__name__)

WORKSPACE_MANIFEST = "envdeploy-workspace.json"
PROVISIONING_SUFFIXES = (".tf", ".tf.json", ".tfvars", ".hcl")

_TOKEN = re.compile(r"\{\{\s*tz\.([A-Za-z0-9_.\-]+)\s*\}\}")


class WorkspaceManifest(ValueObject):
    """Summary written next to the rendered sources."""

    environment_id: str
    provider_id: str
    preset_id: str
    release_tag: str | None = None
    image_ref: str | None = None
    constraints: dict[str, Any] = Field(default_factory=dict)
    modules: list[PlannedModule] = Field(default_factory=list)
    files: list[str] = Field(default_factory=list)
    generated_at: datetime


class MaterializedWorkspace(ValueObject):
    directory: str
    manifest_path: str
    manifest: WorkspaceManifest


def effective_constraints(
    environment: EnvironmentSpec,
    preset: PresetSpec,
    selection: ReleaseSelection,
    backend_region: str | None = None,
) -> dict[str, Any]:
    """Merge constraint layers; later layers win and the preset is applied last."""
    merged: dict[str, Any] = dict(environment.constraints)
    region = (backend_region or "").strip()
    if region:
        merged["region"] = region
    image_ref = (selection.selected_image_ref or "").strip()
    if image_ref:
        merged["appImageIdentifier"] = image_ref
        merged["enableAppRunner"] = True
    release_tag = (selection.selected_release_tag or "").strip()
    if release_tag:
        merged["appImageTag"] = release_tag
        merged["enableAppRunner"] = True
    merged.update(preset.constraints)
    return merged


def select_preset(
    template: DeployTemplate, environment_id: str, selection: ReleaseSelection
) -> PresetSpec:
    """Keep the prior preset while it stays compatible, else take the first compatible one."""
    compatible = template.compatible_presets(environment_id)
    if not compatible:
        raise MaterializationError(f"No compatible deploy preset found for '{environment_id}'.")
    selected_id = (selection.selected_deploy_preset_id or "").strip()
    for preset in compatible:
        if preset.id == selected_id:
            return preset
    return compatible[0]


def _lookup(values: dict[str, Any], dotted: str) -> Any:
    current: Any = values
    for part in dotted.split("."):
        if not isinstance(current, dict) or part not in current:
            return None
        current = current[part]
    return current


def _format_value(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value)


def render_tokens(text: str, context: dict[str, Any], file_label: str) -> str:
    """Substitute ``{{ tz.* }}`` tokens, failing on any token that cannot be resolved."""

    def substitute(match: re.Match[str]) -> str:
        token = match.group(1)
        root, _, rest = token.partition(".")
        if root not in context or not rest:
            raise MaterializationError(f"Unknown token '{{{{ tz.{token} }}}}' in {file_label}.")
        value = _lookup(context[root], rest)
        if value is None:
            raise MaterializationError(
                f"Token '{{{{ tz.{token} }}}}' in {file_label} has no value."
            )
        return _format_value(value)

    rendered = _TOKEN.sub(substitute, text)
    leftover = rendered.find("{{")
    if leftover != -1:
        snippet = rendered[leftover:leftover + 40].splitlines()[0]
        raise MaterializationError(f"Unresolved placeholder '{snippet}' in {file_label}.")
    return rendered


class WorkspaceMaterializer:
    """Copies a provider's driver sources into ``<project>/<state_dir>/deploy/<env>/``."""

    def __init__(
        self,
        project_store: ProjectStore,
        templates_dir: str | Path,
        state_dir: str = ".envdeploy",
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._project_store = project_store
        self._templates_dir = Path(templates_dir)
        self._state_dir = state_dir
        self._clock = clock

    def workspace_dir(self, project_path: str, environment_id: str) -> Path:
        return Path(project_path) / self._state_dir / "deploy" / environment_id

    async def _persist_preset(
        self, project_path: str, environment_id: str, preset_id: str, now: datetime
    ) -> None:
        def choose(record: ProjectRecord) -> ProjectRecord:
            selection = record.release_selection(environment_id).model_copy(
                update={"selected_deploy_preset_id": preset_id, "selected_at": now}
            )
            record.release_state.environments[environment_id] = selection
            return record

        await self._project_store.modify(project_path, choose)
        logger.info("deploy_preset_selected", environment_id=environment_id, preset_id=preset_id)

    def _copy_sources(self, source_dir: Path, target_dir: Path) -> None:
        if target_dir.exists():
            shutil.rmtree(target_dir)
        shutil.copytree(source_dir, target_dir)

    async def materialize(
        self,
        project_path: str,
        environment_id: str,
        backend_region: str | None = None,
    ) -> MaterializedWorkspace:
        record = await self._project_store.load(project_path)
        if record is None:
            raise ProjectNotFoundError(f"Project not found: {project_path}")

        template_dir = self._templates_dir / record.type
        template = load_template_for_type(self._templates_dir, record.type)

        environment = template.get_environment(environment_id)
        if environment is None:
            raise EnvironmentNotFoundError(
                f"Environment '{environment_id}' is not defined in deploy.yaml for '{record.type}'."
            )
        provider = template.get_provider(environment.provider)
        if provider is None:
            raise MaterializationError(
                f"Provider '{environment.provider}' is not declared for '{record.type}'."
            )

        validate_output_contract(template, template_dir, record.type)

        now = self._clock()
        selection = record.release_selection(environment_id)
        preset = select_preset(template, environment_id, selection)
        if selection.selected_deploy_preset_id != preset.id:
            await self._persist_preset(project_path, environment_id, preset.id, now)

        constraints = effective_constraints(environment, preset, selection, backend_region)
        modules = plan_environment_modules(environment, constraints, source=str(template_dir))

        source_dir = (template_dir / provider.driver.entry).parent
        target_dir = self.workspace_dir(project_path, environment_id)
        self._copy_sources(source_dir, target_dir)

        context: dict[str, Any] = {
            "environment": {"id": environment.id, "label": environment.label},
            "provider": {"id": provider.id},
            "release": {
                "tag": selection.selected_release_tag,
                "imageRef": selection.selected_image_ref,
            },
            "constraints": constraints,
        }
        rendered: list[str] = []
        for path in sorted(target_dir.rglob("*")):
            if not path.is_file() or not path.name.endswith(PROVISIONING_SUFFIXES):
                continue
            relative = path.relative_to(target_dir).as_posix()
            text = path.read_text(encoding="utf-8")
            path.write_text(render_tokens(text, context, relative), encoding="utf-8")
            rendered.append(relative)

        manifest = WorkspaceManifest(
            environment_id=environment.id,
            provider_id=provider.id,
            preset_id=preset.id,
            release_tag=selection.selected_release_tag,
            image_ref=selection.selected_image_ref,
            constraints=constraints,
            modules=modules,
            files=rendered,
            generated_at=now,
        )
        manifest_path = target_dir / WORKSPACE_MANIFEST
        manifest_path.write_text(manifest.model_dump_json(indent=2), encoding="utf-8")

        logger.info(
            "workspace_materialized",
            environment_id=environment_id,
            preset_id=preset.id,
            files=len(rendered),
        )
        return MaterializedWorkspace(
            directory=str(target_dir),
            manifest_path=str(manifest_path),
            manifest=manifest,
        )
