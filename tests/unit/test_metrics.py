"""Tests for Prometheus metrics."""

from __future__ import annotations

from prometheus_client import REGISTRY

from sa_token_operator.metrics import (
    api_call_duration_seconds,
    api_call_total,
    error_total,
    external_sync_total,
    next_renewal_seconds,
    reconcile_duration_seconds,
    reconcile_total,
    secret_writes_total,
    token_renewals_total,
)


class TestMetricsExist:
    """Test that all expected metrics are defined."""

    def test_counter_names(self):
        """Test counters are registered under the operator prefix."""
        # Prometheus counters don't include "_total" in their _name attribute
        assert reconcile_total._name == "sa_token_operator_reconcile"
        assert error_total._name == "sa_token_operator_error"
        assert token_renewals_total._name == "sa_token_operator_token_renewals"
        assert secret_writes_total._name == "sa_token_operator_secret_writes"
        assert external_sync_total._name == "sa_token_operator_external_sync"
        assert api_call_total._name == "sa_token_operator_api_call"

    def test_histogram_names(self):
        """Test histograms are registered under the operator prefix."""
        assert reconcile_duration_seconds._name == "sa_token_operator_reconcile_duration_seconds"
        assert api_call_duration_seconds._name == "sa_token_operator_api_call_duration_seconds"

    def test_gauge_name(self):
        """Test the next renewal gauge is registered."""
        assert next_renewal_seconds._name == "sa_token_operator_next_renewal_seconds"


class TestMetricsRecording:
    """Test that metrics record values with their labels."""

    def test_token_renewals_increment(self):
        """Test incrementing the renewal counter."""
        labels = {"flow": "annotation", "result": "success"}
        before = REGISTRY.get_sample_value("sa_token_operator_token_renewals_total", labels) or 0.0

        token_renewals_total.labels(**labels).inc()

        assert REGISTRY.get_sample_value("sa_token_operator_token_renewals_total", labels) == before + 1

    def test_next_renewal_gauge_set(self):
        """Test setting the next renewal gauge."""
        labels = {"kind": "ServiceAccount", "namespace": "ns1", "name": "svc-metrics"}

        next_renewal_seconds.labels(**labels).set(172500)

        assert REGISTRY.get_sample_value("sa_token_operator_next_renewal_seconds", labels) == 172500
