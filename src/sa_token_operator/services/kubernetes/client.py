"""Kubernetes API implementation of the cluster capabilities."""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from datetime import timedelta
from typing import Any, Iterator

from kubernetes import client, config

from ... import metrics
from ...builders.identity import create_identity_from_service_account
from ...builders.renewal_request import render_renewal_status
from ...constants import (
    API_GROUP,
    API_VERSION,
    FIELD_MANAGER,
    PLURAL_TOKEN_RENEWAL_REQUESTS,
    TOKEN_AUDIENCE,
)
from ...models import Identity, RenewalStatus
from ...utils.errors import AlreadyExistsError, ConflictError, NotFoundError
from ...utils.secrets import get_secret_value

logger = logging.getLogger(__name__)


def load_kubernetes_config() -> None:
    """Load in-cluster configuration, falling back to the local kubeconfig."""
    try:
        config.load_incluster_config()
    except config.ConfigException:
        config.load_kube_config()


@contextmanager
def track_api_call(operation: str) -> Iterator[None]:
    """Record count and duration of one Kubernetes API call."""
    start_time = time.time()
    result = "success"
    try:
        yield
    except client.exceptions.ApiException as e:
        result = "not_found" if e.status == 404 else "error"
        raise
    except Exception:
        result = "error"
        raise
    finally:
        metrics.api_call_total.labels(api_type="k8s", operation=operation, result=result).inc()
        metrics.api_call_duration_seconds.labels(api_type="k8s", operation=operation).observe(
            time.time() - start_time
        )


class KubernetesCluster:
    """Cluster capabilities backed by the official Kubernetes client.

    Implements CredentialIssuer, SecretStore, IdentityStore and
    RenewalRequestStore.
    """

    def __init__(
        self,
        core_api: client.CoreV1Api | None = None,
        custom_api: client.CustomObjectsApi | None = None,
    ) -> None:
        """Initialize the cluster client.

        Args:
            core_api: CoreV1Api instance (created from config when omitted)
            custom_api: CustomObjectsApi instance (created from config when omitted)
        """
        if core_api is None or custom_api is None:
            load_kubernetes_config()
        self.core_api = core_api or client.CoreV1Api()
        self.custom_api = custom_api or client.CustomObjectsApi()

    # CredentialIssuer

    def issue_token(self, identity: Identity, lifetime: timedelta) -> str:
        """Request a token for the identity through the TokenRequest API."""
        body = client.AuthenticationV1TokenRequest(
            spec=client.V1TokenRequestSpec(
                audiences=[TOKEN_AUDIENCE],
                expiration_seconds=int(lifetime.total_seconds()),
            )
        )
        try:
            with track_api_call("create_token"):
                response = self.core_api.create_namespaced_service_account_token(
                    name=identity.name,
                    namespace=identity.namespace,
                    body=body,
                )
        except client.exceptions.ApiException as e:
            if e.status == 404:
                raise NotFoundError(
                    f"service account {identity.namespace}/{identity.name} not found"
                ) from e
            raise
        return response.status.token

    # SecretStore

    def create_secret(self, body: client.V1Secret) -> None:
        """Create a secret."""
        try:
            with track_api_call("create_secret"):
                self.core_api.create_namespaced_secret(
                    namespace=body.metadata.namespace,
                    body=body,
                    field_manager=FIELD_MANAGER,
                )
        except client.exceptions.ApiException as e:
            if e.status == 409:
                raise AlreadyExistsError(
                    f"secret {body.metadata.namespace}/{body.metadata.name} already exists"
                ) from e
            raise

    def update_secret(self, body: client.V1Secret) -> None:
        """Replace an existing secret in place."""
        try:
            with track_api_call("update_secret"):
                self.core_api.replace_namespaced_secret(
                    name=body.metadata.name,
                    namespace=body.metadata.namespace,
                    body=body,
                    field_manager=FIELD_MANAGER,
                )
        except client.exceptions.ApiException as e:
            if e.status == 404:
                raise NotFoundError(
                    f"secret {body.metadata.namespace}/{body.metadata.name} not found"
                ) from e
            if e.status == 409:
                raise ConflictError(
                    f"secret {body.metadata.namespace}/{body.metadata.name} was modified concurrently"
                ) from e
            raise

    def get_secret_value(self, namespace: str, name: str, key: str) -> str:
        """Read and decode one field of a secret."""
        with track_api_call("read_secret"):
            return get_secret_value(self.core_api, namespace, name, key)

    # IdentityStore

    def get_identity(self, namespace: str, name: str) -> Identity | None:
        """Read a service account."""
        try:
            with track_api_call("read_service_account"):
                service_account = self.core_api.read_namespaced_service_account(name=name, namespace=namespace)
        except client.exceptions.ApiException as e:
            if e.status == 404:
                return None
            raise
        return create_identity_from_service_account(service_account)

    def create_identity(self, namespace: str, name: str) -> Identity:
        """Create a bare service account."""
        body = client.V1ServiceAccount(
            api_version="v1",
            kind="ServiceAccount",
            metadata=client.V1ObjectMeta(name=name, namespace=namespace),
        )
        try:
            with track_api_call("create_service_account"):
                created = self.core_api.create_namespaced_service_account(
                    namespace=namespace,
                    body=body,
                    field_manager=FIELD_MANAGER,
                )
        except client.exceptions.ApiException as e:
            if e.status == 409:
                raise AlreadyExistsError(f"service account {namespace}/{name} already exists") from e
            raise
        return create_identity_from_service_account(created)

    def update_identity_annotations(self, identity: Identity, annotations: dict[str, str]) -> Identity:
        """Merge annotations into the service account.

        The patch carries the resourceVersion the identity was read at, so a
        concurrent modification is rejected instead of merged.
        """
        metadata: dict[str, Any] = {"annotations": annotations}
        if identity.resource_version:
            metadata["resourceVersion"] = identity.resource_version

        try:
            with track_api_call("patch_service_account"):
                updated = self.core_api.patch_namespaced_service_account(
                    name=identity.name,
                    namespace=identity.namespace,
                    body={"metadata": metadata},
                    field_manager=FIELD_MANAGER,
                )
        except client.exceptions.ApiException as e:
            if e.status == 404:
                raise NotFoundError(f"service account {identity.namespace}/{identity.name} not found") from e
            if e.status == 409:
                raise ConflictError(
                    f"service account {identity.namespace}/{identity.name} was modified concurrently"
                ) from e
            raise
        return create_identity_from_service_account(updated)

    # RenewalRequestStore

    def get_renewal_request(self, namespace: str, name: str) -> dict[str, Any] | None:
        """Read a TokenRenewalRequest."""
        try:
            with track_api_call("get_renewal_request"):
                return self.custom_api.get_namespaced_custom_object(
                    group=API_GROUP,
                    version=API_VERSION,
                    namespace=namespace,
                    plural=PLURAL_TOKEN_RENEWAL_REQUESTS,
                    name=name,
                )
        except client.exceptions.ApiException as e:
            if e.status == 404:
                return None
            raise

    def write_renewal_status(self, obj: dict[str, Any], status: RenewalStatus) -> dict[str, Any]:
        """Replace the status subresource of a TokenRenewalRequest.

        The body keeps the metadata.resourceVersion of ``obj``; the API server
        rejects the write with 409 when the object changed in between.
        """
        metadata = obj.get("metadata", {})
        name = metadata.get("name")
        namespace = metadata.get("namespace")
        body = {**obj, "status": render_renewal_status(status)}

        try:
            with track_api_call("replace_renewal_request_status"):
                return self.custom_api.replace_namespaced_custom_object_status(
                    group=API_GROUP,
                    version=API_VERSION,
                    namespace=namespace,
                    plural=PLURAL_TOKEN_RENEWAL_REQUESTS,
                    name=name,
                    body=body,
                )
        except client.exceptions.ApiException as e:
            if e.status == 404:
                raise NotFoundError(f"TokenRenewalRequest {namespace}/{name} not found") from e
            if e.status == 409:
                raise ConflictError(f"TokenRenewalRequest {namespace}/{name} was modified concurrently") from e
            raise
