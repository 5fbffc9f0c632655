"""Time utilities for consistent timestamp handling."""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Return current UTC timestamp (timezone-aware)."""
    return datetime.now(timezone.utc)


def utc_now_iso() -> str:
    """Current UTC timestamp as an ISO-8601 string (JSON-safe)."""
    return utc_now().isoformat()
