"""Prometheus metrics for deployment runs."""

from __future__ import annotations

from prometheus_client import Counter

from envdeploy.domain.errors import PreconditionError
from envdeploy.domain.models.state import DeploymentRunRecord


DEPLOYMENT_RUNS_TOTAL = Counter(
    "envdeploy_deployment_runs_total",
    "Total number of orchestrator runs",
    ["action", "status", "environment"],
)

PRECONDITION_FAILURES_TOTAL = Counter(
    "envdeploy_precondition_failures_total",
    "Actions blocked by a precondition",
    ["action", "code"],  # code: LOCK_TIMEOUT, PROD_PLAN_STALE, ...
)


def record_run_metrics(record: DeploymentRunRecord, error: Exception | None) -> None:
    """Run listener counting every recorded run."""
    DEPLOYMENT_RUNS_TOTAL.labels(
        action=record.action.value,
        status=record.status.value,
        environment=record.environment_id,
    ).inc()
    if isinstance(error, PreconditionError):
        PRECONDITION_FAILURES_TOTAL.labels(action=record.action.value, code=error.code).inc()
