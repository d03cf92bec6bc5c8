"""Shared request dependencies for report routes."""

from datetime import date, datetime, timezone


def get_today() -> date:
    """Reference date for report windows and WIP aging.

    Resolved once per request so nothing below the HTTP layer reads the clock.
    """

    return datetime.now(timezone.utc).date()
