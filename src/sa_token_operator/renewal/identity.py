"""Annotation-driven reconciliation of a single ServiceAccount."""

from __future__ import annotations

import logging
from typing import Any

from ..config import RenewalPolicy
from ..constants import ANNOTATION_LAST_RENEWAL, ANNOTATION_TOKEN_EXPIRATION
from ..models import Identity, LongLivedIntent, ReconcileResult
from ..services.kubernetes.base import IdentityStore
from ..tracing import trace_span
from ..utils.durations import format_timestamp, parse_optional_timestamp
from ..utils.errors import ConflictError, raise_if_cancelled
from .dispatch import resolve_intent
from .engine import RenewalEngine
from .provisioner import LongLivedProvisioner

logger = logging.getLogger(__name__)


class ServiceAccountReconciler:
    """Runs one annotation-flow cycle for a ServiceAccount.

    Each attempt starts from a fresh read; a version conflict on the
    annotation write re-runs the whole cycle up to
    ``policy.conflict_retries`` times.
    """

    def __init__(
        self,
        identities: IdentityStore,
        engine: RenewalEngine,
        provisioner: LongLivedProvisioner,
        policy: RenewalPolicy,
    ) -> None:
        self.identities = identities
        self.engine = engine
        self.provisioner = provisioner
        self.policy = policy

    def reconcile(self, namespace: str, name: str, stopped: Any = None) -> ReconcileResult | None:
        """Reconcile a ServiceAccount.

        Args:
            namespace: ServiceAccount namespace
            name: ServiceAccount name
            stopped: Cancellation flag checked before each I/O step

        Returns:
            The next-cycle instruction, or None if the ServiceAccount is gone

        Raises:
            ConfigurationError: If the renew-after annotation is invalid
            UnhandledIdentityError: If no supported annotation is present
            ConflictError: If every attempt hit a concurrent modification
        """
        for attempt in range(1, self.policy.conflict_retries + 1):
            try:
                return self._reconcile_once(namespace, name, stopped)
            except ConflictError:
                if attempt == self.policy.conflict_retries:
                    raise
                logger.info(
                    f"Service account {namespace}/{name} changed during reconciliation, "
                    f"retrying ({attempt}/{self.policy.conflict_retries})"
                )
        return None

    def _reconcile_once(self, namespace: str, name: str, stopped: Any) -> ReconcileResult | None:
        raise_if_cancelled(stopped)
        identity = self.identities.get_identity(namespace, name)
        if identity is None:
            logger.info(f"Service account {namespace}/{name} no longer exists, nothing to do")
            return None

        intent = resolve_intent(identity.annotations, self.policy, f"{namespace}/{name}")

        if isinstance(intent, LongLivedIntent):
            raise_if_cancelled(stopped)
            self.provisioner.provision(identity)
            return ReconcileResult(requeue_after=None, renewed=False)

        with trace_span(
            "reconcile_service_account",
            kind="ServiceAccount",
            attributes={"serviceaccount.name": name, "serviceaccount.namespace": namespace},
        ):
            expiration = self._recorded_expiration(identity)
            if not self.engine.needs_renewal(expiration):
                return ReconcileResult(
                    requeue_after=self.engine.requeue_after(expiration), renewed=False, expires_at=expiration
                )

            result = self.engine.renew(identity, intent.interval, flow="annotation", stopped=stopped)

            raise_if_cancelled(stopped)
            self.identities.update_identity_annotations(
                identity,
                {
                    ANNOTATION_LAST_RENEWAL: format_timestamp(result.renewed_at),
                    ANNOTATION_TOKEN_EXPIRATION: format_timestamp(result.expires_at),
                },
            )

            return ReconcileResult(
                requeue_after=self.engine.requeue_after(result.expires_at, now=result.renewed_at),
                renewed=True,
                expires_at=result.expires_at,
            )

    def _recorded_expiration(self, identity: Identity):
        raw = identity.annotations.get(ANNOTATION_TOKEN_EXPIRATION)
        try:
            return parse_optional_timestamp(raw)
        except ValueError:
            logger.warning(
                f"Ignoring malformed {ANNOTATION_TOKEN_EXPIRATION} annotation {raw!r} on "
                f"service account {identity.namespace}/{identity.name}"
            )
            return None
