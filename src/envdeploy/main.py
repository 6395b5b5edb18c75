"""Command-line entrypoint for environment deployments."""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from pathlib import Path
from typing import Annotated, Any, TypeVar

import typer
from rich.console import Console
from rich.table import Table

from envdeploy.dependencies import get_service_container
from envdeploy.domain.errors import EnvdeployError
from envdeploy.domain.models.results import AdapterResult, ReportResult
from envdeploy.domain.models.state import EnvironmentStatus, ProjectRecord, RunSummary
from envdeploy.domain.services.confirmation import DestroyConfirmation
from envdeploy.domain.services.orchestrator import ApplyOptions, ReportRefreshOptions
from envdeploy.infrastructure.observability.logging import setup_logging
from envdeploy.infrastructure.templates.loader import find_deploy_template, load_deploy_template
from envdeploy.infrastructure.templates.output_contract import validate_output_contract


T = TypeVar("T")

app = typer.Typer(add_completion=False, no_args_is_help=True)
deployments_app = typer.Typer(no_args_is_help=True)
templates_app = typer.Typer(no_args_is_help=True)
projects_app = typer.Typer(no_args_is_help=True)
console = Console(soft_wrap=True)

app.add_typer(deployments_app, name="deployments", help="Plan, apply, destroy and report.")
app.add_typer(templates_app, name="templates", help="Validate and render deploy templates.")
app.add_typer(projects_app, name="projects", help="Register projects.")

EnvOption = Annotated[str, typer.Option("--env", help="Target environment id.")]
ProjectOption = Annotated[
    Path,
    typer.Option("--project", help="Project directory (defaults to the current directory)."),
]


@app.callback()
def main() -> None:
    """Guarded deployments for template-defined environments."""
    settings = get_service_container().settings
    setup_logging(settings.observability.log_level, settings.observability.log_format)


def _line(text: str, style: str | None = None) -> None:
    console.print(text, style=style, markup=False, highlight=False)


def _run(coro: Coroutine[Any, Any, T]) -> T:
    """Run a coroutine, turning domain errors into exit code 1."""
    try:
        return asyncio.run(coro)
    except EnvdeployError as e:
        _line(str(e), style="red")
        if e.remediation:
            _line(f"Remediation: {e.remediation}")
        raise typer.Exit(code=1) from e


def _project_path(project: Path) -> str:
    return str(project.resolve())


def _summary_line(label: str, summary: RunSummary) -> str:
    return (
        f"{label} summary: add={summary.add or 0}, change={summary.change or 0}, "
        f"destroy={summary.destroy or 0}"
    )


def _write_errors(result: AdapterResult) -> None:
    _line("Errors:", style="red")
    for issue in result.errors:
        _line(f"- [{issue.code}] {issue.message}")


def _write_report(result: ReportResult) -> None:
    _line(f"Status: {result.status.value}")
    _line(f"Drift detected: {'yes' if result.drift_detected else 'no'}")


def _write_report_remediation(environment_id: str, result: ReportResult) -> None:
    if result.status == EnvironmentStatus.DRIFTED:
        _line(f"Remediation: review plan and apply explicitly for '{environment_id}'.")
    elif result.status == EnvironmentStatus.UNKNOWN:
        _line("Remediation: rerun report after backend/lock health check.")


def _exit_on_errors(result: AdapterResult) -> None:
    if result.has_errors:
        _write_errors(result)
        raise typer.Exit(code=1)


@projects_app.command("init")
def projects_init(
    template_type: Annotated[str, typer.Option("--type", help="Template type of the project.")],
    project: ProjectOption = Path("."),
    name: Annotated[str | None, typer.Option(help="Display name.")] = None,
) -> None:
    """Register a project directory so deployments can track its state."""
    project_path = _project_path(project)
    store = get_service_container().project_store()

    async def register() -> ProjectRecord:
        existing = await store.load(project_path)
        if existing is not None:
            return existing
        record = ProjectRecord(
            name=name or Path(project_path).name,
            path=project_path,
            type=template_type,
        )
        return await store.save(project_path, record)

    record = _run(register())
    _line(f"Project '{record.name}' registered with template '{record.type}'.")


@deployments_app.command("plan")
def deployments_plan(environment_id: EnvOption, project: ProjectOption = Path(".")) -> None:
    """Compute pending changes for an environment."""
    orchestrator = get_service_container().orchestrator()
    result = _run(orchestrator.plan(_project_path(project), environment_id))
    _line(f"Status: {result.status.value}")
    _line(_summary_line("Plan", result.summary))
    _line(f"Drift detected: {'yes' if result.drift_detected else 'no'}")
    _exit_on_errors(result)
    if result.drift_detected:
        _line(f"Next step: envdeploy deployments apply --env {environment_id}")


@deployments_app.command("apply")
def deployments_apply(
    environment_id: EnvOption,
    project: ProjectOption = Path("."),
    confirm_drift: Annotated[
        bool, typer.Option("--confirm-drift", help="Apply even though drift was reported.")
    ] = False,
    confirm_drift_prod: Annotated[
        bool,
        typer.Option("--confirm-drift-prod", help="Confirm a drifted production apply."),
    ] = False,
) -> None:
    """Apply pending changes after a drift preflight."""
    container = get_service_container()
    orchestrator = container.orchestrator()
    project_path = _project_path(project)

    preflight = _run(orchestrator.report(project_path, environment_id))
    if preflight.has_errors:
        _write_report(preflight)
        _exit_on_errors(preflight)

    is_prod = environment_id == container.settings.deployment.prod_environment_id
    confirmed = confirm_drift_prod if is_prod else confirm_drift
    if preflight.status == EnvironmentStatus.DRIFTED and not confirmed:
        flag = "--confirm-drift-prod" if is_prod else "--confirm-drift"
        _line(
            f"Pre-apply drift check failed for '{environment_id}'. "
            f"Run plan/review and retry with {flag} when ready.",
            style="yellow",
        )
        raise typer.Exit(code=1)

    result = _run(
        orchestrator.apply(
            project_path,
            environment_id,
            ApplyOptions(confirm_drift_for_prod=confirm_drift_prod),
        )
    )
    _line(f"Status: {result.status.value}")
    _line(_summary_line("Apply", result.summary))
    _exit_on_errors(result)


@deployments_app.command("destroy")
def deployments_destroy(
    environment_id: EnvOption,
    project: ProjectOption = Path("."),
    confirm_env: Annotated[
        str | None, typer.Option("--confirm-env", help="Repeat the environment id.")
    ] = None,
    confirm: Annotated[
        str | None, typer.Option("--confirm", help="Type 'destroy <env>'.")
    ] = None,
    confirm_prod: Annotated[
        str | None,
        typer.Option("--confirm-prod", help="Second phrase required for production."),
    ] = None,
) -> None:
    """Tear down an environment. Requires typed confirmation."""
    confirmation = None
    if confirm_env is not None or confirm is not None:
        confirmation = DestroyConfirmation(
            confirm_environment_id=confirm_env or "",
            confirm_phrase=confirm or "",
            confirm_prod_phrase=confirm_prod,
        )
    orchestrator = get_service_container().orchestrator()
    result = _run(orchestrator.destroy(_project_path(project), environment_id, confirmation))
    _line(f"Status: {result.status.value}")
    _line(_summary_line("Destroy", result.summary))
    _exit_on_errors(result)


@deployments_app.command("report")
def deployments_report(
    environment_id: EnvOption,
    project: ProjectOption = Path("."),
    watch: Annotated[bool, typer.Option("--watch", help="Refresh several times.")] = False,
    interval_seconds: Annotated[
        float, typer.Option("--interval-seconds", min=0, help="Delay between refreshes.")
    ] = 5.0,
    max_cycles: Annotated[
        int, typer.Option("--max-cycles", min=1, help="Number of refreshes.")
    ] = 3,
) -> None:
    """Show status and drift without taking the environment lock."""
    orchestrator = get_service_container().orchestrator()
    project_path = _project_path(project)

    if not watch:
        result = _run(orchestrator.report(project_path, environment_id))
        _write_report(result)
        _exit_on_errors(result)
        _write_report_remediation(environment_id, result)
        return

    def on_cycle(cycle: int, cycle_result: ReportResult) -> None:
        _line(f"Refresh cycle {cycle}:", style="bold")
        _write_report(cycle_result)
        _write_report_remediation(environment_id, cycle_result)

    results = _run(
        orchestrator.report_refresh_loop(
            project_path,
            environment_id,
            ReportRefreshOptions(
                interval_ms=int(interval_seconds * 1000),
                max_cycles=max_cycles,
            ),
            on_cycle=on_cycle,
        )
    )
    _exit_on_errors(results[-1])


@deployments_app.command("force-unlock")
def deployments_force_unlock(environment_id: EnvOption, project: ProjectOption = Path(".")) -> None:
    """Clear a stuck lock. The next apply will require a fresh plan."""
    orchestrator = get_service_container().orchestrator()
    _run(orchestrator.force_unlock(_project_path(project), environment_id))
    _line(f"Lock cleared for '{environment_id}'. Run plan before the next apply.", style="yellow")


@deployments_app.command("history")
def deployments_history(
    project: ProjectOption = Path("."),
    environment_id: Annotated[
        str | None, typer.Option("--env", help="Only show runs of this environment.")
    ] = None,
    limit: Annotated[int, typer.Option(min=1, help="Maximum number of runs.")] = 20,
) -> None:
    """List recent runs, newest first."""
    orchestrator = get_service_container().orchestrator()
    runs = _run(orchestrator.history(_project_path(project), environment_id))
    if not runs:
        _line("No runs recorded.")
        return
    table = Table(title="Deployment Runs")
    table.add_column("Run ID")
    table.add_column("Environment")
    table.add_column("Action")
    table.add_column("Status")
    table.add_column("Finished")
    for run in runs[:limit]:
        table.add_row(
            run.id,
            run.environment_id,
            run.action.value,
            run.status.value,
            run.finished_at.isoformat(timespec="seconds"),
        )
    console.print(table)


@templates_app.command("validate")
def templates_validate(
    template_type: Annotated[str, typer.Argument(help="Template type directory name.")],
    templates_dir: Annotated[
        Path | None, typer.Option(help="Override the templates directory.")
    ] = None,
) -> None:
    """Validate a deploy template and its provider output contract."""
    root = templates_dir or Path(get_service_container().settings.workspace.templates_dir)
    template_dir = root / template_type
    template_path = find_deploy_template(template_dir)
    if template_path is None:
        _line(f"Template '{template_type}' has no deploy.yaml definition.", style="red")
        raise typer.Exit(code=1)

    result = load_deploy_template(template_path)
    if result.config is None:
        _line(result.error or f"Invalid deploy config '{template_path}'.", style="red")
        raise typer.Exit(code=1)
    try:
        validate_output_contract(result.config, template_dir, template_type)
    except EnvdeployError as e:
        _line(str(e), style="red")
        raise typer.Exit(code=1) from e

    _line(f"Template '{template_type}' is valid.", style="green")
    for environment in result.config.environments:
        presets = ", ".join(p.id for p in result.config.compatible_presets(environment.id))
        _line(f"- {environment.id} ({environment.provider}): presets {presets}")


@templates_app.command("materialize")
def templates_materialize(
    environment_id: EnvOption,
    project: ProjectOption = Path("."),
    region: Annotated[
        str | None, typer.Option("--region", help="Backend region hint.")
    ] = None,
) -> None:
    """Render the deploy workspace of an environment."""
    materializer = get_service_container().materializer()
    workspace = _run(materializer.materialize(_project_path(project), environment_id, region))
    _line(f"Workspace: {workspace.directory}")
    _line(f"Preset: {workspace.manifest.preset_id}")
    for file_name in workspace.manifest.files:
        _line(f"- {file_name}")


if __name__ == "__main__":
    app()
