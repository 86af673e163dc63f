"""Mirror rotated tokens into a GitLab project variable."""

from __future__ import annotations

import logging
from typing import Callable

from .. import metrics
from ..models import GitLabInfo
from ..services.gitlab.base import VariableStore
from ..services.gitlab.client import GitLabAPIError, GitLabClient
from ..services.kubernetes.base import SecretStore
from ..tracing import trace_span
from ..utils.errors import ExternalSyncError, SecretLookupError

logger = logging.getLogger(__name__)

VariableStoreFactory = Callable[[str, str], VariableStore]


def default_store_factory(timeout: float = 30.0) -> VariableStoreFactory:
    """Factory building a GitLab client per call from URL and access token."""

    def build(base_url: str, private_token: str) -> VariableStore:
        return GitLabClient(base_url, private_token, timeout=timeout)

    return build


class CredentialSyncer:
    """Idempotent upsert of a token into an external variable store."""

    def __init__(self, secrets: SecretStore, store_factory: VariableStoreFactory | None = None) -> None:
        """Initialize the syncer.

        Args:
            secrets: Secret reader for the store's own access token
            store_factory: Builds a VariableStore from (base_url, access_token)
        """
        self.secrets = secrets
        self.store_factory = store_factory or default_store_factory()

    def sync(self, namespace: str, target: GitLabInfo, token: str) -> str:
        """Create the variable, falling back to update when the key exists.

        The store's access token is read from its secret on every call.

        Returns:
            "created" or "updated"

        Raises:
            SecretLookupError: If the access token secret cannot be read
            ExternalSyncError: If the store rejects the create or update
        """
        ref = target.token_secret_ref
        with trace_span(
            "sync_gitlab_variable",
            attributes={"gitlab.project_id": target.project_id, "gitlab.variable_key": target.variable_key},
        ):
            try:
                access_token = self.secrets.get_secret_value(namespace, ref.name, ref.key)
            except SecretLookupError as e:
                metrics.external_sync_total.labels(operation="read_access_token", result="error").inc()
                raise SecretLookupError(f"failed to fetch GitLab token secret {ref.name}: {e}") from e

            store = self.store_factory(target.gitlab_url, access_token)
            try:
                return self._upsert(store, target, token)
            finally:
                store.close()

    def _upsert(self, store: VariableStore, target: GitLabInfo, token: str) -> str:
        try:
            store.create_variable(target.project_id, target.variable_key, token)
            metrics.external_sync_total.labels(operation="create", result="success").inc()
            return "created"
        except GitLabAPIError as e:
            if e.status_code != 400:
                metrics.external_sync_total.labels(operation="create", result="error").inc()
                raise ExternalSyncError(f"failed to create variable: {e}") from e
            logger.info(
                f"Variable {target.variable_key} already exists in project {target.project_id}, updating it"
            )

        try:
            store.update_variable(target.project_id, target.variable_key, token)
        except GitLabAPIError as e:
            metrics.external_sync_total.labels(operation="update", result="error").inc()
            raise ExternalSyncError(f"failed to update variable: {e}") from e

        metrics.external_sync_total.labels(operation="update", result="success").inc()
        return "updated"
