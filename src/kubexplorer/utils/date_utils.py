import re
from datetime import datetime, timedelta, timezone
from typing import Union

_DURATION_PATTERN = re.compile(r"^(\d+)(s|min|[mhdw])$")


def parse_duration(value: str) -> timedelta:
    """Parses a duration string (e.g., '30s', '10min', '4h', '7d', '2w') into a timedelta.

    A bare 'm' means minutes, matching Prometheus duration syntax.
    """
    match = _DURATION_PATTERN.match((value or "").strip().lower())
    if not match:
        raise ValueError(f"Invalid duration: '{value}'. Use a format like '30s', '10min', '4h', '7d' or '2w'.")

    amount, unit = int(match.group(1)), match.group(2)
    if amount <= 0:
        raise ValueError(f"Duration must be greater than zero, got '{value}'.")
    if unit == "s":
        return timedelta(seconds=amount)
    elif unit in ("m", "min"):
        return timedelta(minutes=amount)
    elif unit == "h":
        return timedelta(hours=amount)
    elif unit == "d":
        return timedelta(days=amount)
    return timedelta(weeks=amount)


def format_duration(delta: timedelta) -> str:
    """Renders a timedelta compactly, e.g. '4h', '1d2h', '90s' -> '1m30s'."""
    total = int(delta.total_seconds())
    if total <= 0:
        return "0s"
    parts = []
    for suffix, size in (("d", 86400), ("h", 3600), ("m", 60), ("s", 1)):
        amount, total = divmod(total, size)
        if amount:
            parts.append(f"{amount}{suffix}")
    return "".join(parts)


def ensure_utc(dt: Union[datetime, float, int]) -> datetime:
    """
    Ensures a datetime object is timezone-aware and in UTC.
    Numbers are treated as Unix timestamps in seconds.
    If input is naive, it assumes UTC.
    """
    if isinstance(dt, (int, float)):
        return datetime.fromtimestamp(dt, tz=timezone.utc)

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    else:
        dt = dt.astimezone(timezone.utc)

    return dt


def to_iso_z(dt: datetime) -> str:
    """
    Converts a datetime to an ISO 8601 string with 'Z' suffix for UTC.
    """
    return ensure_utc(dt).replace(microsecond=0).isoformat().replace("+00:00", "Z")
