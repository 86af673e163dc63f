"""Operator configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Mapping

from .constants import (
    DEFAULT_CONFLICT_RETRIES,
    DEFAULT_MIN_RENEWAL_INTERVAL,
    DEFAULT_RENEWAL_THRESHOLD,
    DEFAULT_REQUEUE_LEAD_TIME,
)
from .utils.durations import format_duration, parse_duration
from .utils.errors import ConfigurationError

_TRUE_VALUES = {"1", "true", "yes", "on"}
_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class RenewalPolicy:
    """Renewal timing rules shared by the annotation and declarative flows."""

    min_renewal_interval: timedelta = DEFAULT_MIN_RENEWAL_INTERVAL
    enforce_min_interval_on_requests: bool = False
    renewal_threshold: timedelta = DEFAULT_RENEWAL_THRESHOLD
    requeue_lead_time: timedelta = DEFAULT_REQUEUE_LEAD_TIME
    conflict_retries: int = DEFAULT_CONFLICT_RETRIES

    def __post_init__(self) -> None:
        # The minimum can be raised but never lowered below 24h
        if self.min_renewal_interval < DEFAULT_MIN_RENEWAL_INTERVAL:
            raise ConfigurationError(
                f"minimum renewal interval cannot be below {format_duration(DEFAULT_MIN_RENEWAL_INTERVAL)}, "
                f"got {format_duration(self.min_renewal_interval)}"
            )

    def validate_annotation_interval(self, interval: timedelta) -> timedelta:
        """Validate a renewal interval declared through identity annotations.

        Raises:
            ConfigurationError: If the interval is below the minimum
        """
        if interval < self.min_renewal_interval:
            raise ConfigurationError(
                f"renewal period must be at least {format_duration(self.min_renewal_interval)}, "
                f"got {format_duration(interval)}"
            )
        return interval

    def validate_request_interval(self, interval: timedelta) -> timedelta:
        """Validate a renewal interval declared on a TokenRenewalRequest.

        The minimum is only applied when ``enforce_min_interval_on_requests``
        is set; non-positive intervals are always rejected.

        Raises:
            ConfigurationError: If the interval is not acceptable
        """
        if interval <= timedelta(0):
            raise ConfigurationError(f"renewalAfter must be positive, got {format_duration(interval)}")
        if self.enforce_min_interval_on_requests:
            return self.validate_annotation_interval(interval)
        return interval


@dataclass(frozen=True)
class OperatorConfig:
    """Runtime settings for the operator process."""

    metrics_port: int = 8080
    max_workers: int = 4
    min_retry_delay: float = 1.0
    max_retry_delay: float = 60.0
    gitlab_request_timeout: float = 30.0
    log_level: str = "INFO"
    policy: RenewalPolicy = field(default_factory=RenewalPolicy)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "OperatorConfig":
        """Build configuration from environment variables.

        Args:
            environ: Mapping to read from (defaults to ``os.environ``)

        Raises:
            ConfigurationError: If a variable holds an invalid value
        """
        env = os.environ if environ is None else environ

        min_renewal_interval = _duration(env, "MIN_RENEWAL_INTERVAL", DEFAULT_MIN_RENEWAL_INTERVAL)
        if min_renewal_interval < DEFAULT_MIN_RENEWAL_INTERVAL:
            raise ConfigurationError(
                f"MIN_RENEWAL_INTERVAL cannot be below {format_duration(DEFAULT_MIN_RENEWAL_INTERVAL)}, "
                f"got {format_duration(min_renewal_interval)}"
            )

        policy = RenewalPolicy(
            min_renewal_interval=min_renewal_interval,
            enforce_min_interval_on_requests=(
                env.get("ENFORCE_MIN_RENEWAL_INTERVAL_ON_REQUESTS", "false").strip().lower() in _TRUE_VALUES
            ),
            renewal_threshold=_duration(env, "RENEWAL_THRESHOLD", DEFAULT_RENEWAL_THRESHOLD),
            requeue_lead_time=_duration(env, "REQUEUE_LEAD_TIME", DEFAULT_REQUEUE_LEAD_TIME),
            conflict_retries=_number(env, "CONFLICT_RETRIES", DEFAULT_CONFLICT_RETRIES, int),
        )
        if policy.conflict_retries < 1:
            raise ConfigurationError("CONFLICT_RETRIES must be at least 1")

        log_level = env.get("LOG_LEVEL", "").strip().upper() or "INFO"
        if log_level not in _LOG_LEVELS:
            raise ConfigurationError(f"LOG_LEVEL must be one of {', '.join(_LOG_LEVELS)}, got {log_level!r}")

        return cls(
            metrics_port=_number(env, "METRICS_PORT", 8080, int),
            max_workers=_number(env, "MAX_WORKERS", 4, int),
            min_retry_delay=_number(env, "MIN_RETRY_DELAY_SECONDS", 1.0, float),
            max_retry_delay=_number(env, "MAX_RETRY_DELAY_SECONDS", 60.0, float),
            gitlab_request_timeout=_number(env, "GITLAB_REQUEST_TIMEOUT_SECONDS", 30.0, float),
            log_level=log_level,
            policy=policy,
        )


def _duration(env: Mapping[str, str], name: str, default: timedelta) -> timedelta:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return parse_duration(raw)
    except ConfigurationError as e:
        raise ConfigurationError(f"{name}: {e}") from e


def _number(env: Mapping[str, str], name: str, default, cast):
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return cast(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from e
