"""Utilities for reading Kubernetes secrets."""

from __future__ import annotations

import base64

from kubernetes import client

from .errors import SecretLookupError


def decode_secret_value(value: str | bytes) -> str:
    """Decode a value from ``Secret.data``.

    Handles both base64 strings (normal case) and raw bytes returned by
    some client versions.
    """
    if isinstance(value, bytes):
        return value.decode("utf-8")
    try:
        return base64.b64decode(value, validate=True).decode("utf-8")
    except (ValueError, UnicodeDecodeError):
        # Not base64, assume it's already decoded
        return value


def get_secret_value(
    api: client.CoreV1Api,
    namespace: str,
    secret_name: str,
    key: str,
) -> str:
    """Get a value from a Kubernetes secret.

    Args:
        api: Kubernetes API client
        namespace: Namespace of the secret
        secret_name: Name of the secret
        key: Key in the secret

    Returns:
        Secret value

    Raises:
        SecretLookupError: If the secret cannot be read or lacks the key
    """
    try:
        secret = api.read_namespaced_secret(name=secret_name, namespace=namespace)
    except client.exceptions.ApiException as e:
        if e.status == 404:
            raise SecretLookupError(f"Secret '{secret_name}' not found in namespace '{namespace}'") from e
        raise SecretLookupError(
            f"failed to fetch secret '{secret_name}' in namespace '{namespace}': {e.reason}"
        ) from e

    data = secret.data or {}
    if key not in data or data[key] is None:
        raise SecretLookupError(f"Key '{key}' not found in secret '{secret_name}'")

    return decode_secret_value(data[key])
