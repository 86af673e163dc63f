"""Resolve an identity's declared intent from its annotations."""

from __future__ import annotations

from typing import Mapping

from ..config import RenewalPolicy
from ..constants import ANNOTATION_CREATE_SECRET, ANNOTATION_RENEW_AFTER
from ..models import Intent, LongLivedIntent, RenewableIntent
from ..utils.durations import parse_duration
from ..utils.errors import ConfigurationError, UnhandledIdentityError


def has_long_lived_annotation(annotations: Mapping[str, str] | None) -> bool:
    """Whether the create-secret marker is present."""
    return ANNOTATION_CREATE_SECRET in (annotations or {})


def has_renewal_annotation(annotations: Mapping[str, str] | None) -> bool:
    """Whether a renew-after interval is declared."""
    return ANNOTATION_RENEW_AFTER in (annotations or {})


def resolve_intent(
    annotations: Mapping[str, str] | None,
    policy: RenewalPolicy,
    identity_name: str = "",
) -> Intent:
    """Resolve exactly one intent from an identity's annotations.

    The create-secret marker takes precedence over any renewal interval.

    Args:
        annotations: Identity annotations
        policy: Renewal policy providing the minimum interval
        identity_name: ``namespace/name`` used in error messages

    Returns:
        LongLivedIntent or RenewableIntent

    Raises:
        ConfigurationError: If the renew-after value is malformed or too short
        UnhandledIdentityError: If neither annotation is present
    """
    annotations = annotations or {}

    if has_long_lived_annotation(annotations):
        return LongLivedIntent()

    if has_renewal_annotation(annotations):
        raw = annotations[ANNOTATION_RENEW_AFTER]
        try:
            interval = parse_duration(raw)
        except ConfigurationError as e:
            raise ConfigurationError(f"invalid {ANNOTATION_RENEW_AFTER} annotation: {e}") from e
        return RenewableIntent(interval=policy.validate_annotation_interval(interval))

    raise UnhandledIdentityError(
        f"no handler found for service account {identity_name}, "
        "this might mean that the annotation is not set correctly"
    )
