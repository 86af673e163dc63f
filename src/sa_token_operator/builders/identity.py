"""Builders for Identity models."""

from __future__ import annotations

from typing import Any

from kubernetes import client

from ..models import Identity


def create_identity_from_service_account(service_account: client.V1ServiceAccount) -> Identity:
    """Create an Identity from a ServiceAccount returned by the API.

    Args:
        service_account: ServiceAccount object

    Returns:
        Identity model with a private copy of the annotations
    """
    metadata = service_account.metadata
    return Identity(
        name=metadata.name,
        namespace=metadata.namespace,
        uid=metadata.uid,
        resource_version=metadata.resource_version,
        annotations=dict(metadata.annotations or {}),
    )


def create_identity_from_meta(meta: dict[str, Any]) -> Identity:
    """Create an Identity from kopf handler metadata."""
    return Identity(
        name=meta.get("name", "unknown"),
        namespace=meta.get("namespace", "default"),
        uid=meta.get("uid"),
        resource_version=meta.get("resourceVersion"),
        annotations=dict(meta.get("annotations") or {}),
    )
