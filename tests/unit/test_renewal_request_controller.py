"""Tests for declarative reconciliation of TokenRenewalRequests."""

from __future__ import annotations

from datetime import timedelta

import pytest

from sa_token_operator.config import RenewalPolicy
from sa_token_operator.constants import STATUS_MESSAGE_VALID
from sa_token_operator.renewal.controller import RenewalRequestController
from sa_token_operator.renewal.engine import RenewalEngine
from sa_token_operator.renewal.syncer import CredentialSyncer
from sa_token_operator.services.gitlab.client import GitLabAPIError
from sa_token_operator.utils.durations import format_timestamp
from sa_token_operator.utils.errors import ConfigurationError, ConflictError, ExternalSyncError, SecretLookupError

from conftest import NOW, FakeVariableStore

GITLAB_INFO = {
    "gitlabUrl": "https://gitlab.example.com",
    "projectID": 42,
    "variableKey": "K8S_TOKEN",
    "gitLabTokenSecretRef": {"name": "gitlab-access"},
}


@pytest.fixture
def store():
    return FakeVariableStore()


@pytest.fixture
def controller(cluster, engine, policy, store):
    cluster.secret_values[("ns1", "gitlab-access")] = {"token": "glpat-abc"}
    return RenewalRequestController(cluster, cluster, engine, CredentialSyncer(cluster, store.factory), policy)


def add_request(cluster, status=None, **spec):
    full_spec = {"serviceAccountName": "svc-a", "renewalAfter": "48h", **spec}
    return cluster.add_request("ns1", "req-a", full_spec, status)


class TestFirstRenewal:
    """Test cases for requests without recorded status."""

    def test_empty_status_renews(self, controller, cluster):
        """Test the first cycle renews and records a successful status."""
        cluster.add_identity("ns1", "svc-a")
        add_request(cluster)

        result = controller.reconcile("ns1", "req-a")

        status = cluster.request_status("ns1", "req-a")
        assert status["success"] is True
        assert status["message"] == STATUS_MESSAGE_VALID
        assert status["lastRenewalTime"] == format_timestamp(NOW)
        assert status["tokenExpirationTime"] == format_timestamp(NOW + timedelta(hours=48))
        assert result.renewed is True
        assert result.requeue_after == timedelta(hours=48) - timedelta(minutes=5)
        assert cluster.secret_token("ns1", "svc-a-token") == "token-1"

    def test_missing_service_account_is_created(self, controller, cluster):
        """Test the target ServiceAccount is created when absent."""
        add_request(cluster)

        controller.reconcile("ns1", "req-a")

        assert ("ns1", "svc-a") in cluster.identities
        assert cluster.issued == [("ns1", "svc-a", timedelta(hours=48))]

    def test_service_account_create_race(self, controller, cluster):
        """Test a ServiceAccount created concurrently is re-read, not an error."""
        add_request(cluster)
        cluster.create_identity_race = True

        result = controller.reconcile("ns1", "req-a")

        assert result.renewed is True
        assert cluster.calls.count("get_identity") == 2

    def test_missing_request_is_a_no_op(self, controller, cluster):
        """Test a deleted request ends the cycle quietly."""
        assert controller.reconcile("ns1", "gone") is None
        assert cluster.status_writes == []


class TestRenewalDecision:
    """Test cases for renewal against recorded status."""

    def test_expired_token_is_renewed(self, controller, cluster):
        """Test a token that expired an hour ago is renewed immediately."""
        cluster.add_identity("ns1", "svc-a")
        add_request(
            cluster,
            status={
                "lastRenewalTime": format_timestamp(NOW - timedelta(hours=49)),
                "tokenExpirationTime": format_timestamp(NOW - timedelta(hours=1)),
                "success": True,
            },
        )

        result = controller.reconcile("ns1", "req-a")

        assert result.renewed is True
        assert cluster.request_status("ns1", "req-a")["tokenExpirationTime"] == format_timestamp(
            NOW + timedelta(hours=48)
        )

    def test_fresh_token_keeps_timestamps(self, controller, cluster):
        """Test a fresh token is left alone and status still written."""
        cluster.add_identity("ns1", "svc-a")
        last = format_timestamp(NOW - timedelta(hours=1))
        expiration = format_timestamp(NOW + timedelta(hours=47))
        add_request(cluster, status={"lastRenewalTime": last, "tokenExpirationTime": expiration})

        result = controller.reconcile("ns1", "req-a")

        assert cluster.issued == []
        assert result.renewed is False
        assert result.requeue_after == timedelta(hours=47) - timedelta(minutes=5)
        status = cluster.request_status("ns1", "req-a")
        assert status["lastRenewalTime"] == last
        assert status["tokenExpirationTime"] == expiration
        assert status["success"] is True

    def test_short_interval_is_accepted_by_default(self, controller, cluster):
        """Test the declarative flow does not enforce the 24h minimum by default."""
        cluster.add_identity("ns1", "svc-a")
        add_request(cluster, renewalAfter="1h")

        result = controller.reconcile("ns1", "req-a")

        assert result.renewed is True
        assert cluster.issued[0][2] == timedelta(hours=1)

    def test_short_interval_rejected_when_enforced(self, cluster, materializer, clock, store):
        """Test the shared minimum applies to requests when enabled."""
        policy = RenewalPolicy(enforce_min_interval_on_requests=True)
        engine = RenewalEngine(cluster, materializer, policy, clock=clock)
        controller = RenewalRequestController(cluster, cluster, engine, CredentialSyncer(cluster, store.factory), policy)
        cluster.add_identity("ns1", "svc-a")
        add_request(cluster, renewalAfter="1h")

        with pytest.raises(ConfigurationError):
            controller.reconcile("ns1", "req-a")

        assert cluster.issued == []
        status = cluster.request_status("ns1", "req-a")
        assert status["success"] is False
        assert "at least 24h0m0s" in status["message"]


class TestFailures:
    """Test cases for failed cycles."""

    def test_invalid_spec_records_failed_status(self, controller, cluster):
        """Test a spec without serviceAccountName is recorded as failed."""
        cluster.add_request("ns1", "req-a", {"renewalAfter": "48h"})

        with pytest.raises(ConfigurationError):
            controller.reconcile("ns1", "req-a")

        status = cluster.request_status("ns1", "req-a")
        assert status["success"] is False
        assert "serviceAccountName" in status["message"]

    def test_issue_failure_keeps_prior_timestamps(self, controller, cluster):
        """Test a failed renewal never advances recorded timestamps."""
        cluster.add_identity("ns1", "svc-a")
        expiration = format_timestamp(NOW + timedelta(minutes=10))
        add_request(cluster, status={"tokenExpirationTime": expiration, "success": True})
        cluster.issue_error = RuntimeError("apiserver unavailable")

        with pytest.raises(RuntimeError):
            controller.reconcile("ns1", "req-a")

        status = cluster.request_status("ns1", "req-a")
        assert status["success"] is False
        assert status["tokenExpirationTime"] == expiration
        assert "apiserver unavailable" in status["message"]


class TestGitLabSync:
    """Test cases for mirroring the token into GitLab."""

    def test_renewed_token_is_synced(self, controller, cluster, store):
        """Test the freshly minted token is pushed to GitLab."""
        cluster.add_identity("ns1", "svc-a")
        add_request(cluster, gitLabInfo=GITLAB_INFO)

        controller.reconcile("ns1", "req-a")

        assert store.created == [(42, "K8S_TOKEN", "token-1")]
        assert cluster.request_status("ns1", "req-a")["success"] is True

    def test_fresh_token_is_not_synced(self, controller, cluster, store):
        """Test no sync happens without a renewal."""
        cluster.add_identity("ns1", "svc-a")
        add_request(
            cluster,
            status={"tokenExpirationTime": format_timestamp(NOW + timedelta(hours=10))},
            gitLabInfo=GITLAB_INFO,
        )

        controller.reconcile("ns1", "req-a")

        assert store.created == []

    def test_sync_failure_marks_cycle_failed(self, controller, cluster, store):
        """Test a GitLab failure fails the cycle although the token rotated."""
        cluster.add_identity("ns1", "svc-a")
        add_request(cluster, gitLabInfo=GITLAB_INFO)
        store.create_errors.append(GitLabAPIError("POST: 500 boom", status_code=500))

        with pytest.raises(ExternalSyncError):
            controller.reconcile("ns1", "req-a")

        assert cluster.secret_token("ns1", "svc-a-token") == "token-1"
        status = cluster.request_status("ns1", "req-a")
        assert status["success"] is False
        assert "failed to create variable" in status["message"]
        assert "tokenExpirationTime" not in status

    def test_next_cycle_after_sync_failure_renews_and_syncs(self, controller, cluster, store):
        """Test the cycle after a sync failure re-renews and pushes the new token."""
        cluster.add_identity("ns1", "svc-a")
        add_request(cluster, gitLabInfo=GITLAB_INFO)
        store.create_errors.append(GitLabAPIError("POST: 500 boom", status_code=500))
        with pytest.raises(ExternalSyncError):
            controller.reconcile("ns1", "req-a")

        result = controller.reconcile("ns1", "req-a")

        assert result.renewed is True
        assert len(cluster.issued) == 2
        assert store.created[-1] == (42, "K8S_TOKEN", "token-2")
        assert cluster.request_status("ns1", "req-a")["success"] is True

    def test_missing_gitlab_secret_fails_cycle(self, controller, cluster):
        """Test a missing GitLab access secret is recorded as a lookup failure."""
        cluster.secret_values.clear()
        cluster.add_identity("ns1", "svc-a")
        add_request(cluster, gitLabInfo=GITLAB_INFO)

        with pytest.raises(SecretLookupError):
            controller.reconcile("ns1", "req-a")

        assert "gitlab-access" in cluster.request_status("ns1", "req-a")["message"]


class TestConflicts:
    """Test cases for optimistic concurrency on status writes."""

    def test_status_conflict_reruns_cycle(self, controller, cluster):
        """Test a conflicting status write re-reads the request and retries."""
        cluster.add_identity("ns1", "svc-a")
        add_request(cluster)
        cluster.status_conflicts = 1

        result = controller.reconcile("ns1", "req-a")

        assert result.renewed is True
        assert cluster.calls.count("get_renewal_request") == 2
        assert cluster.request_status("ns1", "req-a")["success"] is True

    def test_conflicts_exhaust_retries(self, controller, cluster, policy):
        """Test persistent conflicts surface after the retry budget."""
        cluster.add_identity("ns1", "svc-a")
        add_request(cluster)
        cluster.status_conflicts = policy.conflict_retries

        with pytest.raises(ConflictError):
            controller.reconcile("ns1", "req-a")

        assert "status" not in cluster.requests[("ns1", "req-a")]
