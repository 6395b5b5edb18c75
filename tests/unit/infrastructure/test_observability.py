"""Unit tests for logging and metrics."""

from __future__ import annotations

from datetime import datetime

import pytest
import structlog
from prometheus_client import REGISTRY

from envdeploy.domain.errors import LOCK_TIMEOUT, PreconditionError
from envdeploy.domain.models import RunAction, RunStatus
from envdeploy.domain.services.run_history import build_run_record
from envdeploy.infrastructure.observability.logging import setup_logging
from envdeploy.infrastructure.observability.metrics import record_run_metrics


def _sample(name: str, labels: dict[str, str]) -> float:
    return REGISTRY.get_sample_value(name, labels) or 0.0


class TestLogging:
    def test_setup_logging_info(self) -> None:
        setup_logging("INFO")  # Should not raise

    def test_setup_logging_debug_console(self) -> None:
        setup_logging("DEBUG", "console")  # Should not raise

    def test_json_lines_go_to_stderr(self, capsys: pytest.CaptureFixture[str]) -> None:
        setup_logging("INFO", "json")
        structlog.get_logger("test").info("lock_acquired", environment_id="staging")
        captured = capsys.readouterr()
        assert captured.out == ""
        assert '"event": "lock_acquired"' in captured.err
        assert '"environment_id": "staging"' in captured.err

    def test_level_filters(self, capsys: pytest.CaptureFixture[str]) -> None:
        setup_logging("WARNING", "json")
        structlog.get_logger("test").info("quiet_event")
        assert "quiet_event" not in capsys.readouterr().err


class TestRunMetrics:
    def test_counts_runs(self, now: datetime) -> None:
        record = build_run_record(
            run_id="run_1",
            environment_id="metrics-env",
            action=RunAction.PLAN,
            status=RunStatus.SUCCESS,
            now=now,
        )
        labels = {"action": "plan", "status": "success", "environment": "metrics-env"}
        before = _sample("envdeploy_deployment_runs_total", labels)
        record_run_metrics(record, None)
        assert _sample("envdeploy_deployment_runs_total", labels) == before + 1

    def test_counts_precondition_codes(self, now: datetime) -> None:
        record = build_run_record(
            run_id="run_2",
            environment_id="metrics-env",
            action=RunAction.APPLY,
            status=RunStatus.FAILED,
            now=now,
        )
        labels = {"action": "apply", "code": LOCK_TIMEOUT}
        before = _sample("envdeploy_precondition_failures_total", labels)
        record_run_metrics(record, PreconditionError(LOCK_TIMEOUT, "held"))
        record_run_metrics(record, RuntimeError("boom"))
        assert _sample("envdeploy_precondition_failures_total", labels) == before + 1
