"""Utility functions for the Service Account Token Operator."""

from .durations import format_duration, format_timestamp, parse_duration, parse_timestamp, utcnow
from .errors import sanitize_exception
from .events import emit_event
from .secrets import get_secret_value

__all__ = [
    "emit_event",
    "format_duration",
    "format_timestamp",
    "get_secret_value",
    "parse_duration",
    "parse_timestamp",
    "sanitize_exception",
    "utcnow",
]
