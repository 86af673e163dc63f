"""Prometheus metrics for the Service Account Token Operator."""

from prometheus_client import Counter, Gauge, Histogram

# Reconciliation metrics
reconcile_total = Counter(
    "sa_token_operator_reconcile_total",
    "Total number of reconciliations",
    ["kind", "result"],
)

reconcile_duration_seconds = Histogram(
    "sa_token_operator_reconcile_duration_seconds",
    "Duration of reconciliations in seconds",
    ["kind"],
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0],
)

error_total = Counter(
    "sa_token_operator_error_total",
    "Total number of reconciliation errors",
    ["kind", "error_type"],
)

# Token lifecycle metrics
token_renewals_total = Counter(
    "sa_token_operator_token_renewals_total",
    "Total number of token renewals",
    ["flow", "result"],
)

secret_writes_total = Counter(
    "sa_token_operator_secret_writes_total",
    "Total number of token secret writes",
    ["operation", "result"],
)

next_renewal_seconds = Gauge(
    "sa_token_operator_next_renewal_seconds",
    "Seconds until the next scheduled reconciliation",
    ["kind", "namespace", "name"],
)

# External store metrics
external_sync_total = Counter(
    "sa_token_operator_external_sync_total",
    "Total number of external variable store calls",
    ["operation", "result"],
)

# API call metrics
api_call_total = Counter(
    "sa_token_operator_api_call_total",
    "Total number of API calls",
    ["api_type", "operation", "result"],
)

api_call_duration_seconds = Histogram(
    "sa_token_operator_api_call_duration_seconds",
    "Duration of API calls in seconds",
    ["api_type", "operation"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0],
)
