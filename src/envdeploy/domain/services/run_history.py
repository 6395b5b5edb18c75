"""Run record construction, log redaction and retention."""

from __future__ import annotations

import re
from collections.abc import Iterable
from datetime import datetime, timedelta

from envdeploy.domain.models.state import (
    DeploymentRunRecord,
    RunAction,
    RunStatus,
    RunSummary,
)


DEFAULT_RETENTION_DAYS = 30

_URL_CREDENTIALS = re.compile(r"(https?://)([^/\s:@]+):([^@/\s]+)@", re.IGNORECASE)
_ACCESS_TOKENS = re.compile(r"\b(AKIA[0-9A-Z]{16}|ASIA[0-9A-Z]{16}|ghp_[A-Za-z0-9_]{20,})\b")
_SECRET_ASSIGNMENTS = re.compile(
    r"\b(password|passwd|token|secret|api[_-]?key)\b(\s*[:=]\s*)([^\s,;]+)", re.IGNORECASE
)


def redact_log_line(line: str) -> str:
    redacted = _URL_CREDENTIALS.sub(r"\1[REDACTED]:[REDACTED]@", line)
    redacted = _ACCESS_TOKENS.sub("[REDACTED]", redacted)
    return _SECRET_ASSIGNMENTS.sub(r"\1\2[REDACTED]", redacted)


def redact_logs(lines: Iterable[str] | None) -> list[str] | None:
    if lines is None:
        return None
    return [redact_log_line(line) for line in lines]


def build_run_record(
    *,
    run_id: str,
    environment_id: str,
    action: RunAction,
    status: RunStatus,
    now: datetime,
    started_at: datetime | None = None,
    actor: str | None = None,
    summary: RunSummary | None = None,
    logs: Iterable[str] | None = None,
    retention_days: int = DEFAULT_RETENTION_DAYS,
) -> DeploymentRunRecord:
    """Build a history entry with redacted logs and a retention horizon."""
    if not environment_id.strip():
        raise ValueError("environment_id is required")
    return DeploymentRunRecord(
        id=run_id,
        environment_id=environment_id,
        action=action,
        status=status,
        actor=actor,
        summary=summary,
        logs=redact_logs(logs),
        started_at=started_at or now,
        finished_at=now,
        created_at=now,
        expires_at=now + timedelta(days=retention_days),
    )


def prune_expired(
    records: Iterable[DeploymentRunRecord], now: datetime
) -> list[DeploymentRunRecord]:
    """Drop records past their retention horizon, newest first."""
    kept = [record for record in records if record.expires_at > now]
    return sorted(kept, key=lambda r: r.created_at, reverse=True)
