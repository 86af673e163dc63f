"""Cluster capabilities the renewal core depends on."""

from __future__ import annotations

from datetime import timedelta
from typing import Any, Protocol

from kubernetes import client

from ...models import Identity, RenewalStatus


class CredentialIssuer(Protocol):
    """Mints short-lived tokens for identities."""

    def issue_token(self, identity: Identity, lifetime: timedelta) -> str:
        """Request a new token valid for ``lifetime``."""
        ...


class SecretStore(Protocol):
    """Reads and writes Secrets."""

    def create_secret(self, body: client.V1Secret) -> None:
        """Create a secret. Raises AlreadyExistsError if it exists."""
        ...

    def update_secret(self, body: client.V1Secret) -> None:
        """Replace an existing secret. Raises NotFoundError if it is absent."""
        ...

    def get_secret_value(self, namespace: str, name: str, key: str) -> str:
        """Read and decode one field of a secret."""
        ...


class IdentityStore(Protocol):
    """Reads and writes identities."""

    def get_identity(self, namespace: str, name: str) -> Identity | None:
        """Return the identity or None if it does not exist."""
        ...

    def create_identity(self, namespace: str, name: str) -> Identity:
        """Create a bare identity. Raises AlreadyExistsError if it exists."""
        ...

    def update_identity_annotations(self, identity: Identity, annotations: dict[str, str]) -> Identity:
        """Merge annotations, checked against the identity's resourceVersion.

        Raises:
            ConflictError: If the identity changed since it was read
        """
        ...


class RenewalRequestStore(Protocol):
    """Reads TokenRenewalRequests and writes their status."""

    def get_renewal_request(self, namespace: str, name: str) -> dict[str, Any] | None:
        """Return the raw object or None if it does not exist."""
        ...

    def write_renewal_status(self, obj: dict[str, Any], status: RenewalStatus) -> dict[str, Any]:
        """Replace the status subresource, checked against resourceVersion.

        Raises:
            ConflictError: If the object changed since it was read
        """
        ...
