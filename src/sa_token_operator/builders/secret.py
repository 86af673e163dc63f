"""Builder for TokenSecret objects."""

from __future__ import annotations

import base64

from kubernetes import client

from ..constants import (
    ANNOTATION_SERVICE_ACCOUNT_NAME,
    KIND_SERVICE_ACCOUNT,
    SECRET_TOKEN_KEY,
    SECRET_TYPE_SERVICE_ACCOUNT_TOKEN,
)
from ..models import Identity


def create_owner_reference(identity: Identity) -> client.V1OwnerReference:
    """Owner reference tying a secret's lifecycle to its identity.

    The secret is cascade-deleted with the identity but never blocks the
    identity's own deletion.
    """
    return client.V1OwnerReference(
        api_version="v1",
        kind=KIND_SERVICE_ACCOUNT,
        name=identity.name,
        uid=identity.uid,
        controller=True,
        block_owner_deletion=False,
    )


def create_token_secret(identity: Identity, token: str | None = None) -> client.V1Secret:
    """Build the TokenSecret for an identity.

    Args:
        identity: Owning identity
        token: Token to store under ``token``; omitted for long-lived secrets
            that the cluster populates itself

    Returns:
        Secret body ready to be created or updated
    """
    data = None
    if token is not None:
        data = {SECRET_TOKEN_KEY: base64.b64encode(token.encode("utf-8")).decode("utf-8")}

    return client.V1Secret(
        api_version="v1",
        kind="Secret",
        metadata=client.V1ObjectMeta(
            name=identity.secret_name,
            namespace=identity.namespace,
            annotations={ANNOTATION_SERVICE_ACCOUNT_NAME: identity.name},
            owner_references=[create_owner_reference(identity)],
        ),
        type=SECRET_TYPE_SERVICE_ACCOUNT_TOKEN,
        data=data,
    )
