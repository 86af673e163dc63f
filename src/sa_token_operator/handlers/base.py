"""Base handler class with common functionality for all handlers."""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable

import kopf

from .. import metrics
from ..constants import CONTROLLER_NAME
from ..logging import log_resource_event
from ..models import ReconcileResult
from ..renewal.engine import as_delay_seconds
from ..utils.errors import (
    ConfigurationError,
    ReconcileCancelledError,
    UnhandledIdentityError,
    sanitize_exception,
)
from ..utils.events import emit_reconcile_failed, emit_reconcile_started, emit_validate_failed

WAKE_UP_KEY = "wake_up"

# Errors that only a change to the resource itself can fix
VALIDATION_ERRORS = (ConfigurationError, UnhandledIdentityError)


def get_wake_up_event(memo: Any) -> threading.Event:
    """Per-object event used by handlers to wake the object's daemon."""
    return memo.setdefault(WAKE_UP_KEY, threading.Event())


def wake_up_daemon(memo: Any) -> None:
    """Ask the object's daemon to reconcile now instead of at its next wake-up."""
    get_wake_up_event(memo).set()


def next_backoff(previous: float | None, min_delay: float, max_delay: float) -> float:
    """Exponential backoff: min_delay, then doubling up to max_delay."""
    if previous is None:
        return min_delay
    return min(previous * 2, max_delay)


def wait_for_next_cycle(
    stopped: Any,
    wake_up: threading.Event,
    delay: float | None,
    tick: float = 1.0,
) -> bool:
    """Block until the delay elapses, the daemon is woken, or it is stopped.

    Args:
        stopped: kopf.DaemonStopped flag (truthy once stopped, has ``wait``)
        wake_up: Event set by handlers when the object changed
        delay: Seconds to wait, or None to wait only for a wake-up
        tick: Upper bound for a single wait, so wake-ups are noticed promptly

    Returns:
        True if the next cycle should run, False if the daemon was stopped
    """
    deadline = None if delay is None else time.monotonic() + delay
    while not stopped:
        if wake_up.is_set():
            wake_up.clear()
            return True
        timeout = tick
        if deadline is not None:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return True
            timeout = min(tick, remaining)
        stopped.wait(timeout)
    return False


class BaseHandler:
    """Base class for all handlers with common functionality."""

    def __init__(self, kind: str):
        """Initialize base handler.

        Args:
            kind: The Kubernetes resource kind (e.g., "ServiceAccount")
        """
        self.kind = kind
        self.logger = logging.getLogger(__name__)

    def _get_resource_context(self, meta: dict[str, Any]) -> dict[str, Any]:
        """Extract common resource context from metadata."""
        return {
            "name": meta.get("name", "unknown"),
            "namespace": meta.get("namespace", "default"),
            "uid": meta.get("uid", "unknown"),
        }

    def _log(
        self,
        level: int,
        meta: dict[str, Any],
        message: str,
        event: str,
        reason: str,
        **kwargs: Any,
    ) -> None:
        ctx = self._get_resource_context(meta)
        log_resource_event(
            self.logger,
            controller=CONTROLLER_NAME,
            resource_kind=self.kind,
            resource_name=ctx["name"],
            namespace=ctx["namespace"],
            uid=ctx["uid"],
            event=event,
            reason=reason,
            message=message,
            level=level,
            **kwargs,
        )

    def log_info(
        self,
        meta: dict[str, Any],
        message: str,
        event: str = "info",
        reason: str = "Info",
        **kwargs: Any,
    ) -> None:
        """Log an info-level structured log message.

        Args:
            meta: Kubernetes resource metadata
            message: Log message
            event: Event type (default: "info")
            reason: Reason for the event (default: "Info")
            **kwargs: Additional fields to include in the log
        """
        self._log(logging.INFO, meta, message, event, reason, **kwargs)

    def log_warning(
        self,
        meta: dict[str, Any],
        message: str,
        event: str = "warning",
        reason: str = "Warning",
        **kwargs: Any,
    ) -> None:
        """Log a warning-level structured log message."""
        self._log(logging.WARNING, meta, message, event, reason, **kwargs)

    def log_error(
        self,
        meta: dict[str, Any],
        message: str,
        error: Exception | None = None,
        event: str = "error",
        reason: str = "Error",
        **kwargs: Any,
    ) -> None:
        """Log an error-level structured log message.

        Args:
            meta: Kubernetes resource metadata
            message: Log message
            error: Optional exception to include sanitized error details
            event: Event type (default: "error")
            reason: Reason for the event (default: "Error")
            **kwargs: Additional fields to include in the log
        """
        log_data = kwargs.copy()
        if error is not None:
            log_data["error"] = sanitize_exception(error)
            log_data["error_type"] = type(error).__name__
        self._log(logging.ERROR, meta, message, event, reason, **log_data)

    def report_validation_error(self, body: Any, meta: dict[str, Any], error: Exception) -> None:
        """Log and emit an event for an error that needs the resource to change."""
        sanitized_error = sanitize_exception(error)
        self.log_error(meta, f"Validation failed: {sanitized_error}", error=error, reason="ValidationFailed")
        emit_validate_failed(body, sanitized_error)
        metrics.error_total.labels(kind=self.kind, error_type=type(error).__name__).inc()
        metrics.reconcile_total.labels(kind=self.kind, result="failed").inc()

    def handle_validation_error(self, body: Any, meta: dict[str, Any], error: Exception) -> None:
        """Report a validation error and stop kopf from retrying the handler.

        Raises:
            kopf.PermanentError: Always
        """
        self.report_validation_error(body, meta, error)
        raise kopf.PermanentError(sanitize_exception(error)) from error

    def reconcile_with_metrics(
        self,
        body: Any,
        meta: dict[str, Any],
        reconcile_fn: Callable[[], Any],
    ) -> Any:
        """Execute reconciliation with metrics and error handling.

        Args:
            body: Resource body, for events
            meta: Kubernetes resource metadata
            reconcile_fn: Function to execute for reconciliation

        Returns:
            Whatever ``reconcile_fn`` returns
        """
        emit_reconcile_started(body)
        metrics.reconcile_total.labels(kind=self.kind, result="started").inc()

        start_time = time.time()
        try:
            result = reconcile_fn()
            metrics.reconcile_total.labels(kind=self.kind, result="success").inc()
            return result
        except ReconcileCancelledError:
            metrics.reconcile_total.labels(kind=self.kind, result="cancelled").inc()
            raise
        except VALIDATION_ERRORS as e:
            self.report_validation_error(body, meta, e)
            raise
        except Exception as e:
            sanitized_error = sanitize_exception(e)
            metrics.error_total.labels(kind=self.kind, error_type=type(e).__name__).inc()
            self.log_error(meta, "Reconciliation failed", error=e, reason="ReconciliationFailed")
            emit_reconcile_failed(body, f"Reconciliation failed: {sanitized_error}")
            metrics.reconcile_total.labels(kind=self.kind, result="error").inc()
            raise
        finally:
            duration = time.time() - start_time
            metrics.reconcile_duration_seconds.labels(kind=self.kind).observe(duration)

    def record_next_renewal(self, meta: dict[str, Any], delay: float) -> None:
        """Publish the seconds until the next scheduled cycle."""
        ctx = self._get_resource_context(meta)
        metrics.next_renewal_seconds.labels(kind=self.kind, namespace=ctx["namespace"], name=ctx["name"]).set(delay)

    def clear_next_renewal(self, meta: dict[str, Any]) -> None:
        """Drop the next-renewal series of an object that is no longer scheduled."""
        ctx = self._get_resource_context(meta)
        try:
            metrics.next_renewal_seconds.remove(self.kind, ctx["namespace"], ctx["name"])
        except KeyError:
            # Never scheduled
            return

    def run_renewal_loop(
        self,
        body: Any,
        meta: dict[str, Any],
        memo: Any,
        stopped: Any,
        cycle_fn: Callable[[Any], ReconcileResult | None],
        min_retry_delay: float,
        max_retry_delay: float,
    ) -> None:
        """Run reconcile cycles until the daemon is stopped.

        After a successful cycle the loop sleeps for the returned requeue
        interval (zero when it is not positive). Validation errors wait for
        the object to change; any other error backs off exponentially.
        The next-renewal gauge of the object is dropped when the loop ends.

        Args:
            body: Resource body, for events
            meta: Kubernetes resource metadata
            memo: Per-object kopf memo holding the wake-up event
            stopped: kopf.DaemonStopped flag
            cycle_fn: One reconcile cycle, called with ``stopped``
            min_retry_delay: First backoff delay in seconds
            max_retry_delay: Backoff ceiling in seconds
        """
        wake_up = get_wake_up_event(memo)
        backoff: float | None = None

        try:
            while not stopped:
                delay: float | None
                try:
                    result = self.reconcile_with_metrics(body, meta, lambda: cycle_fn(stopped))
                except ReconcileCancelledError:
                    self.log_info(meta, "Reconciliation cancelled, stopping", reason="Cancelled")
                    return
                except VALIDATION_ERRORS:
                    backoff = None
                    delay = None
                    self.log_info(meta, "Waiting for the resource to change", reason="WaitingForChange")
                except Exception:
                    backoff = next_backoff(backoff, min_retry_delay, max_retry_delay)
                    delay = backoff
                    self.log_warning(meta, f"Retrying in {delay:.0f}s", reason="Backoff")
                else:
                    backoff = None
                    if result is None or result.requeue_after is None:
                        delay = None
                        self.clear_next_renewal(meta)
                    else:
                        delay = as_delay_seconds(result.requeue_after)
                        self.record_next_renewal(meta, delay)
                        self.log_info(meta, f"Next reconciliation in {delay:.0f}s", reason="Requeued")

                if not wait_for_next_cycle(stopped, wake_up, delay):
                    return
        finally:
            self.clear_next_renewal(meta)
