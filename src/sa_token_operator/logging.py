"""Structured logging configuration for the Service Account Token Operator."""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from .utils.errors import sanitize_error_message

SECRET_LOG_FIELDS = {"token", "private_token", "access_token", "password"}

# LogRecord attribute carrying the fields added by log_resource_event
RESOURCE_FIELDS_ATTR = "resource_fields"


class JSONFormatter(logging.Formatter):
    """Render each record as a single JSON line.

    Records logged through ``log_resource_event`` carry their resource fields
    in ``extra``; plain ``logger.info(...)`` calls from the renewal core get
    the same envelope without them. Messages and tracebacks are passed
    through ``sanitize_error_message`` so tokens never reach stdout.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "time": datetime.fromtimestamp(record.created, timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ"),
            "level": record.levelname,
            "logger": record.name,
            "message": sanitize_error_message(record.getMessage()),
        }
        log_data.update(getattr(record, RESOURCE_FIELDS_ATTR, {}))
        if record.exc_info:
            log_data["exception"] = sanitize_error_message(self.formatException(record.exc_info))
        return json.dumps(log_data, default=str)


def setup_structured_logging(level: str = "INFO") -> None:
    """Send all logging, kopf's included, to stdout as JSON lines."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())
    logging.basicConfig(level=level, handlers=[handler], force=True)


def log_resource_event(
    logger: logging.Logger,
    controller: str,
    resource_kind: str,
    resource_name: str,
    namespace: str,
    uid: str,
    event: str,
    reason: str,
    message: str,
    level: int = logging.INFO,
    **kwargs: Any,
) -> None:
    """Log a message about one ServiceAccount or TokenRenewalRequest."""
    fields = {
        "controller": controller,
        "resource": resource_kind,
        "name": resource_name,
        "namespace": namespace,
        "uid": uid,
        "event": event,
        "reason": reason,
    }
    fields.update(sanitize_secrets(kwargs))
    logger.log(level, message, extra={RESOURCE_FIELDS_ATTR: fields})


def sanitize_secrets(log_data: dict[str, Any]) -> dict[str, Any]:
    """Redact token fields and scrub credentials embedded in string values."""
    sanitized: dict[str, Any] = {}
    for key, value in log_data.items():
        if key in SECRET_LOG_FIELDS:
            sanitized[key] = "***REDACTED***"
        elif isinstance(value, str):
            sanitized[key] = sanitize_error_message(value)
        else:
            sanitized[key] = value
    return sanitized
