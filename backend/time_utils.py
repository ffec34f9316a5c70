"""
Time utilities for the tracker.

Single source of truth for "now", so that row timestamps and token expiry
are computed the same way everywhere.
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """
    Get current UTC time.

    Returns:
        timezone-aware datetime in UTC
    """
    return datetime.now(timezone.utc)
