# Overview: UTC clock, ISO-8601 parsing and serialization helpers shared by models and services.

"""
All timestamps are stored UTC-naive. Aware values coming in over the API are
converted to UTC and stripped; values going out are rendered with a trailing Z.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Optional


_DATE_ONLY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def is_date_only(value: Optional[str]) -> bool:
    """True for a bare YYYY-MM-DD string (no time component)."""
    return bool(value) and bool(_DATE_ONLY_RE.match(value.strip()))


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 date or datetime into a UTC-naive datetime.

    Blank input gives None. Naive input is taken to be UTC already;
    "Z" and numeric offsets are converted. Raises ValueError on junk.
    """
    if value is None:
        return None
    text = value.strip()
    if not text:
        return None

    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"

    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """Render as e.g. 2024-01-10T12:00:00Z (whole seconds)."""
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt.replace(microsecond=0).isoformat() + "Z"


def epoch_millis(dt: Optional[datetime] = None) -> int:
    """Milliseconds since the epoch for a UTC-naive datetime (default: now)."""
    if dt is None:
        dt = utcnow()
    return int(dt.replace(tzinfo=timezone.utc).timestamp() * 1000)
