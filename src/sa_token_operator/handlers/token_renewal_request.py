"""Handlers for TokenRenewalRequest resources."""

from __future__ import annotations

from typing import Any

import kopf

from ..constants import API_GROUP, API_VERSION, KIND_TOKEN_RENEWAL_REQUEST, PLURAL_TOKEN_RENEWAL_REQUESTS
from ..models import ReconcileResult
from ..utils.durations import format_timestamp
from ..utils.events import emit_token_renewed, emit_variable_synced
from .base import BaseHandler, wake_up_daemon
from .shared import get_components


class TokenRenewalRequestHandler(BaseHandler):
    """Handler for TokenRenewalRequest resources."""

    def __init__(self):
        """Initialize token renewal request handler."""
        super().__init__(KIND_TOKEN_RENEWAL_REQUEST)

    def renew_cycle(
        self,
        body: Any,
        meta: dict[str, Any],
        spec: dict[str, Any],
        stopped: Any,
    ) -> ReconcileResult | None:
        """One declarative renewal cycle."""
        name = meta.get("name", "unknown")
        namespace = meta.get("namespace", "default")

        result = get_components().renewal_requests.reconcile(namespace, name, stopped)
        if result is not None and result.renewed:
            service_account = spec.get("serviceAccountName", "unknown")
            emit_token_renewed(body, f"{service_account}-token", format_timestamp(result.expires_at))

            gitlab_info = spec.get("gitLabInfo")
            if gitlab_info:
                emit_variable_synced(body, gitlab_info.get("variableKey", ""), gitlab_info.get("projectID", 0))
        return result

    def run_daemon(
        self,
        body: Any,
        meta: dict[str, Any],
        spec: dict[str, Any],
        memo: Any,
        stopped: Any,
    ) -> None:
        """Keep the request's token renewed until the daemon is stopped."""
        config = get_components().config
        self.run_renewal_loop(
            body,
            meta,
            memo,
            stopped,
            lambda flag: self.renew_cycle(body, meta, spec, flag),
            config.min_retry_delay,
            config.max_retry_delay,
        )


_handler = TokenRenewalRequestHandler()


@kopf.daemon(API_GROUP, API_VERSION, PLURAL_TOKEN_RENEWAL_REQUESTS, cancellation_timeout=10.0)
def renew_requested_token(
    body: kopf.Body,
    meta: kopf.Meta,
    spec: kopf.Spec,
    memo: kopf.Memo,
    stopped: kopf.DaemonStopped,
    **kwargs: Any,
) -> None:
    """Renew the requested token on schedule."""
    _handler.run_daemon(body, dict(meta), spec, memo, stopped)


@kopf.on.update(API_GROUP, API_VERSION, PLURAL_TOKEN_RENEWAL_REQUESTS, field="spec")
def handle_token_renewal_request_update(meta: kopf.Meta, memo: kopf.Memo, **kwargs: Any) -> None:
    """Wake the daemon when the request's spec changes."""
    _handler.log_info(dict(meta), "Spec changed, waking renewal daemon", reason="SpecChanged")
    wake_up_daemon(memo)
