"""Shared canonical normalization functions for dashboard records.

Single source of truth, imported by the record converters, the CSV
importer, and the lifecycle operations.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any

from lot_mcp.constants import VEHICLE_STATUSES, VIN_RE


def clean_numeric_string(raw: str) -> str:
    """Keep only digits, ``'.'``, and ``'-'``."""
    return "".join(c for c in raw if c.isdigit() or c in {".", "-"})


def parse_amount(value: Any) -> float | None:
    """Best-effort money parsing (``"$28,500"`` → ``28500.0``).  ``None`` if unparseable."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return None
        cleaned = clean_numeric_string(stripped)
        if not cleaned:
            return None
        try:
            return float(cleaned)
        except ValueError:
            return None
    return None


def parse_int(value: Any) -> int | None:
    """Strict integer parsing.  Returns ``None`` for blanks and non-integers."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return None
        try:
            return int(stripped)
        except ValueError:
            return None
    return None


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def normalize_vin(raw: Any) -> str:
    """Uppercase and strip a VIN.  Does not validate."""
    if raw is None:
        return ""
    return str(raw).strip().upper()


def is_valid_vin(vin: str) -> bool:
    return bool(VIN_RE.fullmatch(vin))


def require_valid_vin(raw: Any) -> str:
    """Return the normalized VIN or raise ``ValueError``."""
    vin = normalize_vin(raw)
    if not is_valid_vin(vin):
        raise ValueError(
            "Invalid VIN format. VIN must be exactly 17 characters "
            "(letters and numbers, excluding I, O, Q)."
        )
    return vin


def normalize_status(raw: Any) -> str | None:
    """Lowercase a status token; ``None`` if it is not in the enum."""
    if raw is None:
        return None
    token = str(raw).strip().lower()
    return token if token in VEHICLE_STATUSES else None


def parse_datetime(value: Any) -> datetime | None:
    """Parse a stored timestamp into a naive local-time ``datetime``.

    Accepts ISO-8601 strings (``Z`` suffix included), ``YYYY-MM-DD`` dates,
    ``MM/DD/YYYY`` dates, ``date`` and ``datetime`` objects.  Aware values are
    converted to local time.  Date-only inputs are local calendar dates.
    Returns ``None`` for blanks and unparseable input.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return _to_local_naive(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None

    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        parsed = None
    if parsed is not None:
        return _to_local_naive(parsed)

    for fmt in ("%m/%d/%Y", "%m/%d/%y"):
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def parse_local_date(value: Any) -> date | None:
    parsed = parse_datetime(value)
    return parsed.date() if parsed is not None else None


def local_midnight_iso(value: Any) -> str | None:
    """Turn a calendar date into the UTC ISO timestamp of its local midnight.

    ``"2024-01-15"`` becomes the instant the 15th starts in local time, which
    is how the dashboard stores user-entered in-stock dates.
    """
    day = parse_local_date(value)
    if day is None:
        return None
    local_midnight = datetime(day.year, day.month, day.day).astimezone()
    return _iso_z(local_midnight.astimezone(timezone.utc))


def _iso_z(value: datetime) -> str:
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _to_local_naive(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


def utc_now_iso(now: datetime | None = None) -> str:
    """Current instant as ``YYYY-MM-DDTHH:MM:SS.mmmZ``."""
    moment = now or datetime.now(timezone.utc)
    if moment.tzinfo is None:
        moment = moment.astimezone()
    return _iso_z(moment.astimezone(timezone.utc))
