"""Models for identities, renewal requests and renewal outcomes."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Union

from .constants import SECRET_NAME_SUFFIX


@dataclass
class Identity:
    """A workload identity (ServiceAccount) that tokens are issued for."""

    name: str
    namespace: str
    uid: str | None = None
    resource_version: str | None = None
    annotations: dict[str, str] = field(default_factory=dict)

    @property
    def secret_name(self) -> str:
        """Name of the TokenSecret derived from this identity."""
        return f"{self.name}{SECRET_NAME_SUFFIX}"


@dataclass(frozen=True)
class LongLivedIntent:
    """Provision a persistent token secret once."""


@dataclass(frozen=True)
class RenewableIntent:
    """Periodically mint a short-lived token valid for ``interval``."""

    interval: timedelta


Intent = Union[LongLivedIntent, RenewableIntent]


@dataclass(frozen=True)
class SecretRef:
    """Reference to a key inside a Secret in the request's namespace."""

    name: str
    key: str = "token"


@dataclass(frozen=True)
class GitLabInfo:
    """External variable store that rotated tokens are mirrored into."""

    gitlab_url: str
    project_id: int
    variable_key: str
    token_secret_ref: SecretRef


@dataclass(frozen=True)
class RenewalRequestSpec:
    """Desired state of a TokenRenewalRequest."""

    service_account_name: str
    renewal_after: timedelta
    gitlab_info: GitLabInfo | None = None


@dataclass(frozen=True)
class RenewalStatus:
    """Observed state of a TokenRenewalRequest."""

    last_renewal_time: datetime | None = None
    token_expiration_time: datetime | None = None
    success: bool = False
    message: str = ""


@dataclass
class RenewalRequest:
    """A TokenRenewalRequest as read from the cluster.

    ``body`` keeps the raw object so status writes can be sent back with
    the resourceVersion it was read at.
    """

    name: str
    namespace: str
    spec: RenewalRequestSpec
    status: RenewalStatus
    resource_version: str | None = None
    body: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RenewalResult:
    """Outcome of a successful token renewal."""

    token: str
    renewed_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class ReconcileResult:
    """What the caller should do after one reconciliation cycle.

    ``requeue_after`` is None when no further wake-up is needed; a
    non-positive value means reconcile again without delay.
    """

    requeue_after: timedelta | None = None
    renewed: bool = False
    expires_at: datetime | None = None
