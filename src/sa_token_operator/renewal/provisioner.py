"""One-shot provisioning of long-lived token secrets."""

from __future__ import annotations

import logging

from ..models import Identity
from .materializer import SecretMaterializer

logger = logging.getLogger(__name__)


class LongLivedProvisioner:
    """Creates exactly one TokenSecret per identity; never renews."""

    def __init__(self, materializer: SecretMaterializer) -> None:
        self.materializer = materializer

    def provision(self, identity: Identity) -> bool:
        """Create the identity's TokenSecret unless it already exists.

        Returns:
            True if a secret was created, False if it already existed

        Raises:
            Any creation failure other than "already exists"
        """
        logger.info(f"Attempting to create secret for service account {identity.namespace}/{identity.name}")
        created = self.materializer.create_long_lived(identity)
        if created:
            logger.info(f"Created secret {identity.namespace}/{identity.secret_name}")
        else:
            logger.info(
                f"Secret already exists for service account {identity.namespace}/{identity.name}, skipping creation"
            )
        return created
