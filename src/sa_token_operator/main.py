"""Main entry point for the Service Account Token Operator.

Run with ``kopf run -m sa_token_operator.main``.
"""

from __future__ import annotations

import logging
from typing import Any

import kopf

from . import handlers  # noqa: F401
from . import health
from . import logging as structured_logging
from .config import OperatorConfig
from .handlers.shared import init_components
from .tracing import initialize_tracing

logger = logging.getLogger(__name__)


@kopf.on.startup()
def configure(settings: kopf.OperatorSettings, **_: Any) -> None:
    """Configure the operator."""
    config = OperatorConfig.from_env()

    # Set up structured JSON logging
    structured_logging.setup_structured_logging(config.log_level)

    # Use AnnotationsProgressStorage to avoid conflicts with status writes
    settings.persistence.progress_storage = kopf.AnnotationsProgressStorage()
    settings.persistence.diffbase_storage = kopf.AnnotationsDiffBaseStorage()

    settings.posting.level = logging.WARNING
    settings.networking.request_timeout = 30.0
    settings.execution.max_workers = config.max_workers

    initialize_tracing()
    init_components(config)

    # Metrics and health checks share one port
    health.start_health_server(config.metrics_port)
    health.mark_ready()
    logger.info(f"Operator configured, serving metrics and health checks on port {config.metrics_port}")


@kopf.on.cleanup()
def shutdown(**_: Any) -> None:
    """Report not ready while the operator shuts down."""
    health.mark_not_ready()
