"""Shared utility functions."""
from __future__ import annotations

import uuid
from datetime import datetime, timezone


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def short_id() -> str:
    """Return an 8 hex character identifier for candidate runs."""
    return uuid.uuid4().hex[:8]


def simple_name(type_name: str | None) -> str | None:
    """Strip package qualification: ``com.acme.OrderService`` -> ``OrderService``."""
    if not type_name:
        return None
    return type_name.rsplit(".", 1)[-1]
