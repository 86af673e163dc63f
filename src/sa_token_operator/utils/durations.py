"""Duration and timestamp helpers.

Durations use the Go ``time.ParseDuration`` syntax accepted by Kubernetes
``metav1.Duration`` fields (``"48h"``, ``"1h30m"``, ``"1.5h"``, ``"300ms"``).
Timestamps are RFC3339 in UTC with second precision.
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone

from .errors import ConfigurationError

_UNIT_SECONDS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}

# Largest value a Go time.Duration can hold (int64 nanoseconds)
_MAX_DURATION_SECONDS = (2**63 - 1) / 1e9

_COMPONENT = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")


def parse_duration(text: str) -> timedelta:
    """Parse a Go-style duration string.

    Args:
        text: Duration such as ``"24h"`` or ``"23h59m"``

    Returns:
        Parsed duration

    Raises:
        ConfigurationError: If the string is empty or malformed
    """
    if text is None:
        raise ConfigurationError("duration is required")

    raw = str(text).strip()
    if not raw:
        raise ConfigurationError("duration is required")

    sign = 1
    body = raw
    if body[0] in "+-":
        sign = -1 if body[0] == "-" else 1
        body = body[1:]

    if body == "0":
        return timedelta(0)

    total = 0.0
    pos = 0
    for match in _COMPONENT.finditer(body):
        if match.start() != pos:
            break
        total += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        pos = match.end()

    if pos == 0 or pos != len(body):
        raise ConfigurationError(f"invalid duration {raw!r}")
    if total > _MAX_DURATION_SECONDS:
        raise ConfigurationError(f"invalid duration {raw!r}: out of range")

    try:
        return timedelta(seconds=sign * total)
    except (OverflowError, ValueError) as e:
        raise ConfigurationError(f"invalid duration {raw!r}") from e


def format_duration(value: timedelta) -> str:
    """Render a duration the way Go prints ``time.Duration`` (``23h59m0s``)."""
    total = value.total_seconds()
    if total == 0:
        return "0s"

    sign = "-" if total < 0 else ""
    total = abs(total)
    if total < 1:
        return f"{sign}{round(total * 1000, 3):g}ms"

    hours, remainder = divmod(total, 3600)
    minutes, seconds = divmod(remainder, 60)
    seconds_text = f"{round(seconds, 3):g}s"
    if hours:
        return f"{sign}{int(hours)}h{int(minutes)}m{seconds_text}"
    if minutes:
        return f"{sign}{int(minutes)}m{seconds_text}"
    return f"{sign}{seconds_text}"


def utcnow() -> datetime:
    """Current time, timezone-aware in UTC."""
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Format a datetime as an RFC3339 UTC timestamp with second precision."""
    return value.astimezone(timezone.utc).replace(microsecond=0).strftime("%Y-%m-%dT%H:%M:%SZ")


def parse_timestamp(value: str) -> datetime:
    """Parse an RFC3339 timestamp.

    Raises:
        ValueError: If the value is not a valid timestamp
    """
    parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_optional_timestamp(value: str | None) -> datetime | None:
    """Parse a timestamp that may be absent."""
    if not value:
        return None
    return parse_timestamp(value)
