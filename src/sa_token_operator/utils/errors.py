"""Error types and sanitization utilities for the operator."""

from __future__ import annotations

import re
from typing import Any


class OperatorError(Exception):
    """Base class for errors raised by the renewal core."""


class ConfigurationError(OperatorError):
    """Declared intent is malformed or violates the renewal policy.

    Permanent until the offending annotation or spec field changes.
    """


class UnhandledIdentityError(OperatorError):
    """Identity carries neither a create-secret nor a renew-after annotation."""


class NotFoundError(OperatorError):
    """The target object does not exist."""


class AlreadyExistsError(OperatorError):
    """A create call hit an object that already exists."""


class ConflictError(OperatorError):
    """An update was rejected because the object changed since it was read."""


class MissingRenewalTimestampError(OperatorError):
    """A wake-up was requested but no expiration has ever been recorded."""


class SecretLookupError(OperatorError):
    """The secret holding the external store credential could not be read."""


class ExternalSyncError(OperatorError):
    """The external variable store rejected the rotated credential."""


class ReconcileCancelledError(OperatorError):
    """The caller stopped the reconciliation before the next I/O step."""


# Patterns that might expose credentials
SENSITIVE_PATTERNS = [
    r"(bearer\s+)[A-Za-z0-9\-_\.=]+",
    r"(private[-_]token[:=\s]+)[^\s,;\)]+",
    r"(authorization[:=\s]+)[^\s,;\)]+",
    r"(eyJ)[A-Za-z0-9\-_]+\.[A-Za-z0-9\-_]+\.[A-Za-z0-9\-_]*",
]

# Fields to redact completely
SENSITIVE_FIELDS = {
    "token",
    "password",
    "secret",
    "credentials",
    "value",
}


def sanitize_error_message(message: str) -> str:
    """Sanitize error message to remove credentials.

    Args:
        message: Original error message

    Returns:
        Sanitized error message with credentials redacted
    """
    sanitized = message

    for pattern in SENSITIVE_PATTERNS:
        sanitized = re.sub(pattern, r"\1[REDACTED]", sanitized, flags=re.IGNORECASE)

    for field in SENSITIVE_FIELDS:
        # Replace field: value patterns, keeping prose like "token is valid" intact
        sanitized = re.sub(
            rf"\b{field}\s*[:=]\s*([^\s,;\)]+)",
            rf"{field}: [REDACTED]",
            sanitized,
            flags=re.IGNORECASE,
        )

    return sanitized


def sanitize_exception(error: BaseException) -> str:
    """Sanitize exception message.

    Args:
        error: Exception object

    Returns:
        Sanitized error message
    """
    return sanitize_error_message(str(error))


def sanitize_dict(data: dict[str, Any], sensitive_keys: set[str] | None = None) -> dict[str, Any]:
    """Sanitize dictionary by redacting sensitive fields.

    Args:
        data: Dictionary to sanitize
        sensitive_keys: Additional keys to redact (merged with SENSITIVE_FIELDS)

    Returns:
        Sanitized dictionary with sensitive values redacted
    """
    all_sensitive = SENSITIVE_FIELDS | (sensitive_keys or set())
    sanitized: dict[str, Any] = {}

    for key, value in data.items():
        key_lower = key.lower()
        if any(sensitive in key_lower for sensitive in all_sensitive):
            sanitized[key] = "[REDACTED]"
        elif isinstance(value, dict):
            sanitized[key] = sanitize_dict(value, sensitive_keys)
        elif isinstance(value, str):
            sanitized[key] = sanitize_error_message(value)
        else:
            sanitized[key] = value

    return sanitized


def raise_if_cancelled(stopped: Any) -> None:
    """Fail fast before the next I/O step once the caller has stopped.

    Args:
        stopped: Any truthy-when-stopped flag (e.g. ``kopf.DaemonStopped``) or None

    Raises:
        ReconcileCancelledError: If ``stopped`` is set
    """
    if stopped:
        raise ReconcileCancelledError("reconciliation cancelled")
