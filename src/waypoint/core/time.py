"""
Time helpers.

Position samples carry integer epoch milliseconds (what location platforms report).
Human-facing input/output uses timezone-aware datetimes to avoid mixing naive and
aware values across API/CLI.
"""

from __future__ import annotations

import time
from datetime import datetime
from zoneinfo import ZoneInfo


def now_ms() -> int:
    """Current wall-clock time as epoch milliseconds."""
    return int(time.time() * 1000)


def ensure_tz(dt: datetime, timezone: str) -> datetime:
    """Ensure `dt` has tzinfo; attach `timezone` if naive."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=ZoneInfo(timezone))
    return dt


def parse_datetime(value: str, timezone: str) -> datetime:
    """Parse ISO-8601 datetime string and ensure tzinfo is present.

    Notes:
    - Accepts a trailing `Z` (UTC) and converts it to `+00:00` for `fromisoformat`.
    - If the parsed value is naive, the provided `timezone` is attached.
    """
    value = value.strip()
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    dt = datetime.fromisoformat(value)
    return ensure_tz(dt, timezone)


def epoch_ms_from_iso(value: str, timezone: str) -> int:
    return int(parse_datetime(value, timezone).timestamp() * 1000)


def dt_from_epoch_ms(ms: int, timezone: str) -> datetime:
    """Convert epoch milliseconds to an aware datetime in `timezone`."""
    return datetime.fromtimestamp(ms / 1000.0, tz=ZoneInfo(timezone))
