"""Declarative reconciliation of TokenRenewalRequest resources."""

from __future__ import annotations

import logging
from typing import Any

from ..builders.renewal_request import create_renewal_request_from_object, create_renewal_status_from_status
from ..config import RenewalPolicy
from ..constants import STATUS_MESSAGE_VALID
from ..models import Identity, ReconcileResult, RenewalStatus
from ..services.kubernetes.base import IdentityStore, RenewalRequestStore
from ..tracing import trace_span
from ..utils.errors import (
    AlreadyExistsError,
    ConflictError,
    NotFoundError,
    ReconcileCancelledError,
    raise_if_cancelled,
    sanitize_exception,
)
from .engine import RenewalEngine
from .syncer import CredentialSyncer

logger = logging.getLogger(__name__)


class RenewalRequestController:
    """Runs one declarative renewal cycle for a TokenRenewalRequest.

    A cycle is: read request, ensure the ServiceAccount exists, decide,
    renew, sync to GitLab when configured, then write status. Status is
    written on every cycle, failed cycles included. Timestamps only move
    forward on a fully successful cycle, so a failed GitLab sync leaves the
    old expiration in place and the next cycle renews and syncs again.
    """

    def __init__(
        self,
        store: RenewalRequestStore,
        identities: IdentityStore,
        engine: RenewalEngine,
        syncer: CredentialSyncer,
        policy: RenewalPolicy,
    ) -> None:
        self.store = store
        self.identities = identities
        self.engine = engine
        self.syncer = syncer
        self.policy = policy

    def reconcile(self, namespace: str, name: str, stopped: Any = None) -> ReconcileResult | None:
        """Reconcile a TokenRenewalRequest.

        Args:
            namespace: Request namespace
            name: Request name
            stopped: Cancellation flag checked before each I/O step

        Returns:
            The next-cycle instruction, or None if the request is gone

        Raises:
            ConfigurationError: If the spec is invalid (after recording it in status)
            ConflictError: If every attempt hit a concurrent modification
        """
        for attempt in range(1, self.policy.conflict_retries + 1):
            try:
                return self._reconcile_once(namespace, name, stopped)
            except ConflictError:
                if attempt == self.policy.conflict_retries:
                    raise
                logger.info(
                    f"TokenRenewalRequest {namespace}/{name} changed during reconciliation, "
                    f"retrying ({attempt}/{self.policy.conflict_retries})"
                )
        return None

    def _reconcile_once(self, namespace: str, name: str, stopped: Any) -> ReconcileResult | None:
        raise_if_cancelled(stopped)
        obj = self.store.get_renewal_request(namespace, name)
        if obj is None:
            logger.info(f"TokenRenewalRequest {namespace}/{name} no longer exists, nothing to do")
            return None

        previous = create_renewal_status_from_status(obj.get("status"))

        with trace_span(
            "reconcile_token_renewal_request",
            kind="TokenRenewalRequest",
            attributes={"request.name": name, "request.namespace": namespace},
        ):
            try:
                status, result = self._run_cycle(obj, previous, stopped)
            except (ConflictError, ReconcileCancelledError):
                raise
            except Exception as e:
                self._record_failure(obj, previous, e, stopped)
                raise

            raise_if_cancelled(stopped)
            self.store.write_renewal_status(obj, status)
            return result

    def _run_cycle(
        self,
        obj: dict[str, Any],
        previous: RenewalStatus,
        stopped: Any,
    ) -> tuple[RenewalStatus, ReconcileResult]:
        request = create_renewal_request_from_object(obj)
        interval = self.policy.validate_request_interval(request.spec.renewal_after)
        identity = self._ensure_identity(request.namespace, request.spec.service_account_name, stopped)

        expiration = previous.token_expiration_time
        if not self.engine.needs_renewal(expiration):
            status = RenewalStatus(
                last_renewal_time=previous.last_renewal_time,
                token_expiration_time=expiration,
                success=True,
                message=STATUS_MESSAGE_VALID,
            )
            return status, ReconcileResult(
                requeue_after=self.engine.requeue_after(expiration), renewed=False, expires_at=expiration
            )

        renewal = self.engine.renew(identity, interval, flow="request", stopped=stopped)

        gitlab_info = request.spec.gitlab_info
        if gitlab_info is not None:
            raise_if_cancelled(stopped)
            self.syncer.sync(request.namespace, gitlab_info, renewal.token)

        status = RenewalStatus(
            last_renewal_time=renewal.renewed_at,
            token_expiration_time=renewal.expires_at,
            success=True,
            message=STATUS_MESSAGE_VALID,
        )
        requeue_after = self.engine.requeue_after(renewal.expires_at, now=renewal.renewed_at)
        return status, ReconcileResult(requeue_after=requeue_after, renewed=True, expires_at=renewal.expires_at)

    def _ensure_identity(self, namespace: str, name: str, stopped: Any) -> Identity:
        """Get the ServiceAccount, creating a bare one when it is absent."""
        raise_if_cancelled(stopped)
        identity = self.identities.get_identity(namespace, name)
        if identity is not None:
            return identity

        logger.info(f"Service account {namespace}/{name} not found, creating it")
        try:
            return self.identities.create_identity(namespace, name)
        except AlreadyExistsError:
            identity = self.identities.get_identity(namespace, name)
            if identity is None:
                raise NotFoundError(f"service account {namespace}/{name} not found after create conflict")
            return identity

    def _record_failure(
        self,
        obj: dict[str, Any],
        previous: RenewalStatus,
        error: Exception,
        stopped: Any,
    ) -> None:
        """Write a failed status that keeps the previously recorded timestamps.

        A conflict on this write propagates so the whole cycle is retried;
        any other write failure is logged and the original error wins.
        """
        if stopped:
            return

        status = RenewalStatus(
            last_renewal_time=previous.last_renewal_time,
            token_expiration_time=previous.token_expiration_time,
            success=False,
            message=sanitize_exception(error),
        )
        try:
            self.store.write_renewal_status(obj, status)
        except ConflictError:
            raise
        except Exception as write_error:
            metadata = obj.get("metadata", {})
            logger.error(
                f"Failed to record failed status on TokenRenewalRequest "
                f"{metadata.get('namespace')}/{metadata.get('name')}: {sanitize_exception(write_error)}"
            )
