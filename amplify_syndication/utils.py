from __future__ import annotations

from datetime import datetime, timezone


def as_iso(dt: datetime) -> str:
    """UTC ISO-8601 with a trailing ``Z``, the form OData timestamp literals take."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")
