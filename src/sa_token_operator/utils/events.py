"""Utilities for emitting Kubernetes events."""

from __future__ import annotations

from typing import Any

import kopf

from ..constants import (
    EVENT_REASON_RECONCILE_FAILED,
    EVENT_REASON_RECONCILE_STARTED,
    EVENT_REASON_SECRET_CREATED,
    EVENT_REASON_TOKEN_RENEWED,
    EVENT_REASON_VALIDATE_FAILED,
    EVENT_REASON_VARIABLE_SYNCED,
)


def emit_event(
    body: Any,
    reason: str,
    message: str,
    type_: str = "Normal",
) -> None:
    """Emit a Kubernetes event.

    Args:
        body: Resource body the event is attached to
        reason: Event reason
        message: Event message
        type_: Event type (Normal or Warning)
    """
    kopf.event(
        body,
        reason=reason,
        message=message,
        type=type_,
    )


def emit_reconcile_started(body: Any) -> None:
    """Emit reconcile started event."""
    emit_event(body, EVENT_REASON_RECONCILE_STARTED, "Reconciliation started")


def emit_reconcile_failed(body: Any, message: str) -> None:
    """Emit reconcile failed event."""
    emit_event(body, EVENT_REASON_RECONCILE_FAILED, message, type_="Warning")


def emit_validate_failed(body: Any, message: str) -> None:
    """Emit validation failed event."""
    emit_event(body, EVENT_REASON_VALIDATE_FAILED, message, type_="Warning")


def emit_secret_created(body: Any, secret_name: str) -> None:
    """Emit secret created event."""
    emit_event(body, EVENT_REASON_SECRET_CREATED, f"Secret {secret_name} created")


def emit_token_renewed(body: Any, secret_name: str, expires_at: str) -> None:
    """Emit token renewed event."""
    emit_event(body, EVENT_REASON_TOKEN_RENEWED, f"Token in secret {secret_name} renewed, expires at {expires_at}")


def emit_variable_synced(body: Any, variable_key: str, project_id: int) -> None:
    """Emit GitLab variable synced event."""
    emit_event(body, EVENT_REASON_VARIABLE_SYNCED, f"Variable {variable_key} synced to GitLab project {project_id}")
