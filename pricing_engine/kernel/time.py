from __future__ import annotations

from datetime import date, datetime, timedelta


def parse_iso_date(value: str) -> date:
    """Parse a record-store date (`2026-03-31`) or datetime into a calendar date.

    Supports `Z` suffix on datetimes.
    """
    normalized = str(value).strip()
    if len(normalized) == 10:
        return date.fromisoformat(normalized)
    if normalized.endswith("Z"):
        normalized = normalized[:-1] + "+00:00"
    return datetime.fromisoformat(normalized).date()


def add_days_iso(value: str | None, days: int) -> str | None:
    """Shift an ISO date by `days` and render it back as `YYYY-MM-DD`."""
    if not value:
        return None
    return (parse_iso_date(value) + timedelta(days=days)).isoformat()
