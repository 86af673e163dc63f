"""Handlers for annotated ServiceAccounts."""

from __future__ import annotations

from typing import Any

import kopf

from ..builders.identity import create_identity_from_meta
from ..constants import ANNOTATION_CREATE_SECRET, ANNOTATION_RENEW_AFTER, KIND_SERVICE_ACCOUNT, SECRET_NAME_SUFFIX
from ..models import LongLivedIntent, ReconcileResult
from ..renewal.dispatch import has_long_lived_annotation, has_renewal_annotation, resolve_intent
from ..utils.durations import format_timestamp
from ..utils.errors import ConfigurationError, UnhandledIdentityError, sanitize_exception
from ..utils.events import emit_secret_created, emit_token_renewed
from .base import BaseHandler, wake_up_daemon
from .shared import get_components


def is_managed(annotations: dict[str, str], **_: Any) -> bool:
    """Whether the ServiceAccount carries any annotation this operator acts on."""
    return has_long_lived_annotation(annotations) or has_renewal_annotation(annotations)


class ServiceAccountHandler(BaseHandler):
    """Handler for ServiceAccount resources."""

    def __init__(self):
        """Initialize service account handler."""
        super().__init__(KIND_SERVICE_ACCOUNT)

    def on_change(self, body: Any, meta: dict[str, Any], memo: Any) -> None:
        """Route a created, changed or resumed ServiceAccount.

        Long-lived secrets are provisioned here; renewable tokens are left to
        the renewal daemon, which is woken up to pick up the change.
        """
        components = get_components()
        identity = create_identity_from_meta(meta)

        try:
            intent = resolve_intent(
                identity.annotations,
                components.config.policy,
                f"{identity.namespace}/{identity.name}",
            )
        except (ConfigurationError, UnhandledIdentityError) as e:
            self.handle_validation_error(body, meta, e)
            return

        if isinstance(intent, LongLivedIntent):
            def provision() -> None:
                if components.provisioner.provision(identity):
                    emit_secret_created(body, identity.secret_name)

            try:
                self.reconcile_with_metrics(body, meta, provision)
            except Exception as e:
                raise kopf.TemporaryError(sanitize_exception(e), delay=components.config.min_retry_delay) from e
            return

        self.log_info(meta, "Renewal interval declared, waking renewal daemon", reason="RenewalScheduled")
        wake_up_daemon(memo)

    def renew_cycle(self, body: Any, meta: dict[str, Any], stopped: Any) -> ReconcileResult | None:
        """One renewal cycle for a ServiceAccount with a renew-after annotation."""
        name = meta.get("name", "unknown")
        namespace = meta.get("namespace", "default")

        result = get_components().service_accounts.reconcile(namespace, name, stopped)
        if result is not None and result.renewed:
            emit_token_renewed(body, f"{name}{SECRET_NAME_SUFFIX}", format_timestamp(result.expires_at))
        return result

    def run_daemon(self, body: Any, meta: dict[str, Any], memo: Any, stopped: Any) -> None:
        """Keep renewing the ServiceAccount's token until the daemon is stopped."""
        config = get_components().config
        self.run_renewal_loop(
            body,
            meta,
            memo,
            stopped,
            lambda flag: self.renew_cycle(body, meta, flag),
            config.min_retry_delay,
            config.max_retry_delay,
        )


_handler = ServiceAccountHandler()


@kopf.on.create("v1", "serviceaccounts", when=is_managed)
@kopf.on.update("v1", "serviceaccounts", when=is_managed)
@kopf.on.resume("v1", "serviceaccounts", when=is_managed)
def handle_service_account(
    body: kopf.Body,
    meta: kopf.Meta,
    memo: kopf.Memo,
    **kwargs: Any,
) -> None:
    """Handle ServiceAccount reconciliation."""
    _handler.on_change(body, dict(meta), memo)


@kopf.daemon(
    "v1",
    "serviceaccounts",
    annotations={ANNOTATION_RENEW_AFTER: kopf.PRESENT, ANNOTATION_CREATE_SECRET: kopf.ABSENT},
    cancellation_timeout=10.0,
)
def renew_service_account_token(
    body: kopf.Body,
    meta: kopf.Meta,
    memo: kopf.Memo,
    stopped: kopf.DaemonStopped,
    **kwargs: Any,
) -> None:
    """Renew the ServiceAccount's token on schedule."""
    _handler.run_daemon(body, dict(meta), memo, stopped)
