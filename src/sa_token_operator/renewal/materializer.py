"""Idempotent writes of TokenSecrets."""

from __future__ import annotations

import logging

from .. import metrics
from ..builders.secret import create_token_secret
from ..models import Identity
from ..services.kubernetes.base import SecretStore
from ..utils.errors import AlreadyExistsError, NotFoundError

logger = logging.getLogger(__name__)

# secret_writes_total operation label per write outcome
_METRIC_OPERATIONS = {"created": "create", "updated": "update"}


class SecretMaterializer:
    """Builds owned TokenSecrets and persists them."""

    def __init__(self, secrets: SecretStore) -> None:
        self.secrets = secrets

    def write_token(self, identity: Identity, token: str) -> str:
        """Store a freshly minted token, updating the secret in place if it exists.

        Update is attempted first so the secret keeps its identity across
        rotations; creation only happens when the secret is absent.

        Returns:
            "updated" or "created"
        """
        body = create_token_secret(identity, token)
        try:
            self.secrets.update_secret(body)
            operation = "updated"
        except NotFoundError:
            logger.info(f"Secret {identity.namespace}/{identity.secret_name} not found, creating it")
            try:
                self.secrets.create_secret(body)
                operation = "created"
            except AlreadyExistsError:
                # Created between our update and create; the update now applies
                self.secrets.update_secret(body)
                operation = "updated"

        metrics.secret_writes_total.labels(operation=_METRIC_OPERATIONS[operation], result="success").inc()
        return operation

    def create_long_lived(self, identity: Identity) -> bool:
        """Create the TokenSecret for cluster-populated long-lived tokens.

        Returns:
            True if the secret was created, False if it already existed
        """
        try:
            self.secrets.create_secret(create_token_secret(identity))
        except AlreadyExistsError:
            metrics.secret_writes_total.labels(operation="create", result="exists").inc()
            return False
        metrics.secret_writes_total.labels(operation="create", result="success").inc()
        return True
