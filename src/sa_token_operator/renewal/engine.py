"""Renewal decision and scheduling engine shared by both flows.

The engine decides whether a token needs renewal from its recorded
expiration, mints and stores a new token when it does, and computes when the
next check must happen. It never schedules anything itself: the wake-up is
returned to the caller as a duration.
"""

from __future__ import annotations

import enum
import logging
from datetime import datetime, timedelta
from typing import Any, Callable

from .. import metrics
from ..config import RenewalPolicy
from ..models import Identity, RenewalResult
from ..services.kubernetes.base import CredentialIssuer
from ..tracing import trace_span
from ..utils.durations import format_duration, utcnow
from ..utils.errors import MissingRenewalTimestampError, raise_if_cancelled
from .materializer import SecretMaterializer

logger = logging.getLogger(__name__)


class RenewalState(enum.Enum):
    """Where a credential stands relative to its recorded expiration."""

    FRESH = "Fresh"
    NEEDS_RENEWAL = "NeedsRenewal"


def as_delay_seconds(requeue_after: timedelta) -> float:
    """Seconds to wait before the next cycle; non-positive means immediately."""
    return max(requeue_after.total_seconds(), 0.0)


class RenewalEngine:
    """Decide, renew and compute the next wake-up for one credential."""

    def __init__(
        self,
        issuer: CredentialIssuer,
        materializer: SecretMaterializer,
        policy: RenewalPolicy,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.issuer = issuer
        self.materializer = materializer
        self.policy = policy
        self.clock = clock

    def evaluate(self, expiration: datetime | None, now: datetime | None = None) -> RenewalState:
        """Classify a credential by its recorded expiration.

        A credential is fresh only while ``now < expiration - threshold``.
        """
        if expiration is None:
            return RenewalState.NEEDS_RENEWAL
        now = now or self.clock()
        if now < expiration - self.policy.renewal_threshold:
            return RenewalState.FRESH
        return RenewalState.NEEDS_RENEWAL

    def needs_renewal(self, expiration: datetime | None, now: datetime | None = None) -> bool:
        """Whether a new token must be minted now."""
        return self.evaluate(expiration, now) is RenewalState.NEEDS_RENEWAL

    def renew(
        self,
        identity: Identity,
        interval: timedelta,
        flow: str,
        stopped: Any = None,
    ) -> RenewalResult:
        """Mint a token valid for ``interval`` and store it in the TokenSecret.

        Nothing is recorded on failure; the caller keeps its previous
        timestamps so the next cycle retries from the same state.

        Args:
            identity: Identity to issue the token for
            interval: Requested token lifetime
            flow: "annotation" or "request", for metrics
            stopped: Cancellation flag checked before each I/O step

        Returns:
            The new token with its renewal and expiration times
        """
        with trace_span(
            "renew_token",
            kind="ServiceAccount",
            attributes={"serviceaccount.name": identity.name, "serviceaccount.namespace": identity.namespace},
        ):
            try:
                raise_if_cancelled(stopped)
                renewed_at = self.clock()
                token = self.issuer.issue_token(identity, interval)

                raise_if_cancelled(stopped)
                operation = self.materializer.write_token(identity, token)
            except Exception:
                metrics.token_renewals_total.labels(flow=flow, result="failed").inc()
                raise

        metrics.token_renewals_total.labels(flow=flow, result="success").inc()
        logger.info(
            f"Renewed token for service account {identity.namespace}/{identity.name} "
            f"({operation} secret {identity.secret_name}, valid for {format_duration(interval)})"
        )
        return RenewalResult(token=token, renewed_at=renewed_at, expires_at=renewed_at + interval)

    def requeue_after(self, expiration: datetime | None, now: datetime | None = None) -> timedelta:
        """Time until the next check: ``expiration - lead time - now``.

        The result may be zero or negative, which callers treat as
        "reconcile again immediately".

        Raises:
            MissingRenewalTimestampError: If no expiration was ever recorded
        """
        if expiration is None:
            raise MissingRenewalTimestampError("unable to find last renewal time, no token expiration recorded")
        now = now or self.clock()
        return expiration - self.policy.requeue_lead_time - now
