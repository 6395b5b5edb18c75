"""Unit tests for domain models."""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from envdeploy.domain.models import (
    ActiveLock,
    EnvironmentRuntimeState,
    EnvironmentStatus,
    ProjectRecord,
    ReleaseSelection,
)
from envdeploy.domain.models.base import elapsed_ms, generate_run_id, utc_now


T0 = datetime(2026, 1, 1, tzinfo=timezone.utc)


class TestRunId:
    def test_format(self) -> None:
        assert re.fullmatch(r"run_\d+_[0-9a-f]{8}", generate_run_id())

    def test_unique(self) -> None:
        ids = {generate_run_id() for _ in range(100)}
        assert len(ids) == 100


class TestTime:
    def test_utc_now_is_aware(self) -> None:
        assert utc_now().tzinfo is not None

    def test_elapsed_ms(self) -> None:
        assert elapsed_ms(T0, T0 + timedelta(minutes=2)) == 120_000
        assert elapsed_ms(T0 + timedelta(seconds=1), T0) == -1000


class TestEnvironmentRuntimeState:
    def test_defaults(self) -> None:
        state = EnvironmentRuntimeState()
        assert state.last_status == EnvironmentStatus.UNKNOWN
        assert state.active_lock is None
        assert not state.is_locked

    def test_is_locked(self) -> None:
        state = EnvironmentRuntimeState(active_lock=ActiveLock(run_id="run_1", acquired_at=T0))
        assert state.is_locked

    def test_drift_observed_at_takes_latest(self) -> None:
        state = EnvironmentRuntimeState(
            last_plan_at=T0, last_reported_at=T0 + timedelta(minutes=5)
        )
        assert state.drift_observed_at == T0 + timedelta(minutes=5)

    def test_drift_observed_at_none(self) -> None:
        assert EnvironmentRuntimeState().drift_observed_at is None

    def test_status_validated_on_assignment(self) -> None:
        state = EnvironmentRuntimeState()
        with pytest.raises(ValidationError):
            state.last_status = "exploded"  # type: ignore[assignment]

    def test_lock_is_immutable(self) -> None:
        lock = ActiveLock(run_id="run_1", acquired_at=T0)
        with pytest.raises(ValidationError):
            lock.run_id = "run_2"  # type: ignore[misc]


class TestProjectRecord:
    def test_missing_environment_defaults(self) -> None:
        record = ProjectRecord(name="demo", path="/p", type="webapp")
        assert record.environment_state("staging") == EnvironmentRuntimeState()
        assert record.release_selection("staging") == ReleaseSelection()
        assert record.deployment_run_history == []

    def test_json_round_trip_keeps_timestamps(self) -> None:
        record = ProjectRecord(name="demo", path="/p", type="webapp")
        record.deployment_state.environments["prod"] = EnvironmentRuntimeState(last_plan_at=T0)
        restored = ProjectRecord.model_validate_json(record.model_dump_json())
        assert restored.environment_state("prod").last_plan_at == T0
