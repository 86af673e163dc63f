"""Builders for TokenRenewalRequest models."""

from __future__ import annotations

from typing import Any

from ..constants import DEFAULT_GITLAB_TOKEN_KEY
from ..models import GitLabInfo, RenewalRequest, RenewalRequestSpec, RenewalStatus, SecretRef
from ..utils.durations import format_timestamp, parse_duration, parse_optional_timestamp
from ..utils.errors import ConfigurationError


def create_gitlab_info_from_spec(gitlab_spec: dict[str, Any]) -> GitLabInfo:
    """Create GitLab sync target from the ``gitLabInfo`` block.

    Args:
        gitlab_spec: ``spec.gitLabInfo`` of a TokenRenewalRequest

    Returns:
        Parsed GitLab target

    Raises:
        ConfigurationError: If a required field is missing or invalid
    """
    gitlab_url = gitlab_spec.get("gitlabUrl")
    variable_key = gitlab_spec.get("variableKey")
    project_id = gitlab_spec.get("projectID")
    secret_ref = gitlab_spec.get("gitLabTokenSecretRef") or {}

    if not gitlab_url:
        raise ConfigurationError("gitLabInfo.gitlabUrl is required")
    if not variable_key:
        raise ConfigurationError("gitLabInfo.variableKey is required")
    if project_id is None or isinstance(project_id, bool):
        raise ConfigurationError("gitLabInfo.projectID is required")
    try:
        project_id = int(project_id)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"gitLabInfo.projectID must be an integer, got {project_id!r}") from e
    if not secret_ref.get("name"):
        raise ConfigurationError("gitLabInfo.gitLabTokenSecretRef.name is required")

    return GitLabInfo(
        gitlab_url=gitlab_url,
        project_id=project_id,
        variable_key=variable_key,
        token_secret_ref=SecretRef(
            name=secret_ref["name"],
            key=secret_ref.get("key") or DEFAULT_GITLAB_TOKEN_KEY,
        ),
    )


def create_renewal_spec_from_spec(spec: dict[str, Any]) -> RenewalRequestSpec:
    """Create a renewal spec model from CRD spec.

    Raises:
        ConfigurationError: If a required field is missing or invalid
    """
    service_account_name = spec.get("serviceAccountName")
    if not service_account_name:
        raise ConfigurationError("serviceAccountName is required")

    renewal_after = spec.get("renewalAfter")
    if not renewal_after:
        raise ConfigurationError("renewalAfter is required")

    gitlab_spec = spec.get("gitLabInfo")

    return RenewalRequestSpec(
        service_account_name=service_account_name,
        renewal_after=parse_duration(renewal_after),
        gitlab_info=create_gitlab_info_from_spec(gitlab_spec) if gitlab_spec else None,
    )


def create_renewal_status_from_status(status: dict[str, Any] | None) -> RenewalStatus:
    """Create a status model from the CRD status block.

    Unparseable timestamps are treated as unset so the next cycle renews.
    """
    status = status or {}

    def _timestamp(key: str):
        try:
            return parse_optional_timestamp(status.get(key))
        except ValueError:
            return None

    return RenewalStatus(
        last_renewal_time=_timestamp("lastRenewalTime"),
        token_expiration_time=_timestamp("tokenExpirationTime"),
        success=bool(status.get("success", False)),
        message=status.get("message", "") or "",
    )


def create_renewal_request_from_object(obj: dict[str, Any]) -> RenewalRequest:
    """Create a RenewalRequest model from a raw custom object.

    Raises:
        ConfigurationError: If the spec is invalid
    """
    metadata = obj.get("metadata", {})
    return RenewalRequest(
        name=metadata.get("name", "unknown"),
        namespace=metadata.get("namespace", "default"),
        spec=create_renewal_spec_from_spec(obj.get("spec", {})),
        status=create_renewal_status_from_status(obj.get("status")),
        resource_version=metadata.get("resourceVersion"),
        body=obj,
    )


def render_renewal_status(status: RenewalStatus) -> dict[str, Any]:
    """Render a status model into the CRD status block."""
    rendered: dict[str, Any] = {
        "success": status.success,
        "message": status.message,
    }
    if status.last_renewal_time is not None:
        rendered["lastRenewalTime"] = format_timestamp(status.last_renewal_time)
    if status.token_expiration_time is not None:
        rendered["tokenExpirationTime"] = format_timestamp(status.token_expiration_time)
    return rendered
