"""Base domain model classes."""

from __future__ import annotations

import secrets
import time
from datetime import datetime, timezone

from pydantic import BaseModel


def generate_run_id() -> str:
    """Generate a sortable run identifier."""
    return f"run_{int(time.time() * 1000)}_{secrets.token_hex(4)}"


def utc_now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(timezone.utc)


def elapsed_ms(start: datetime, end: datetime) -> float:
    """Milliseconds between two timestamps (negative if ``end`` precedes ``start``)."""
    return (end - start).total_seconds() * 1000


class DomainModel(BaseModel):
    """Base class for mutable domain records."""

    model_config = {"frozen": False, "validate_assignment": True}


class ValueObject(BaseModel):
    """Base class for value objects (immutable)."""

    model_config = {"frozen": True}
