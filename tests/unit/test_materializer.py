"""Tests for TokenSecret writes."""

from __future__ import annotations

from unittest.mock import Mock

from prometheus_client import REGISTRY

from sa_token_operator.constants import ANNOTATION_SERVICE_ACCOUNT_NAME, SECRET_TYPE_SERVICE_ACCOUNT_TOKEN
from sa_token_operator.models import Identity
from sa_token_operator.renewal.materializer import SecretMaterializer
from sa_token_operator.utils.errors import AlreadyExistsError, NotFoundError


def make_identity() -> Identity:
    return Identity(name="svc-a", namespace="ns1", uid="uid-svc-a")


def secret_writes(operation: str, result: str = "success") -> float:
    value = REGISTRY.get_sample_value(
        "sa_token_operator_secret_writes_total", {"operation": operation, "result": result}
    )
    return value or 0.0


class TestWriteToken:
    """Test cases for update-else-create token writes."""

    def test_creates_when_absent(self, materializer, cluster):
        """Test the secret is created after the update finds nothing."""
        operation = materializer.write_token(make_identity(), "token-1")

        assert operation == "created"
        assert cluster.calls == ["update_secret", "create_secret"]
        assert cluster.secret_token("ns1", "svc-a-token") == "token-1"

    def test_updates_in_place_when_present(self, materializer, cluster):
        """Test an existing secret is updated, never recreated."""
        materializer.write_token(make_identity(), "token-1")
        cluster.calls.clear()

        operation = materializer.write_token(make_identity(), "token-2")

        assert operation == "updated"
        assert cluster.calls == ["update_secret"]
        assert cluster.secret_token("ns1", "svc-a-token") == "token-2"

    def test_create_race_falls_back_to_update(self):
        """Test a secret created concurrently is updated instead."""
        secrets = Mock()
        secrets.update_secret.side_effect = [NotFoundError("gone"), None]
        secrets.create_secret.side_effect = AlreadyExistsError("exists")

        operation = SecretMaterializer(secrets).write_token(make_identity(), "token-1")

        assert operation == "updated"
        assert secrets.update_secret.call_count == 2

    def test_secret_shape(self, materializer, cluster):
        """Test the secret carries type, binding annotation and owner reference."""
        materializer.write_token(make_identity(), "token-1")

        body = cluster.secrets[("ns1", "svc-a-token")]
        assert body.type == SECRET_TYPE_SERVICE_ACCOUNT_TOKEN
        assert body.metadata.annotations == {ANNOTATION_SERVICE_ACCOUNT_NAME: "svc-a"}
        owner = body.metadata.owner_references[0]
        assert owner.kind == "ServiceAccount"
        assert owner.uid == "uid-svc-a"
        assert owner.block_owner_deletion is False


class TestCreateLongLived:
    """Test cases for long-lived secret creation."""

    def test_creates_without_payload(self, materializer, cluster):
        """Test the long-lived secret is left for the cluster to populate."""
        assert materializer.create_long_lived(make_identity()) is True
        assert cluster.secret_token("ns1", "svc-a-token") is None

    def test_existing_secret_is_not_an_error(self, materializer):
        """Test AlreadyExists is reported as not created."""
        materializer.create_long_lived(make_identity())
        assert materializer.create_long_lived(make_identity()) is False


class TestSecretWriteMetrics:
    """Test cases for secret_writes_total labels."""

    def test_both_paths_share_operation_labels(self, materializer):
        """Test renewals and long-lived creates count under create/update."""
        created, updated = secret_writes("create"), secret_writes("update")

        materializer.write_token(make_identity(), "token-1")
        materializer.write_token(make_identity(), "token-2")
        materializer.create_long_lived(Identity(name="svc-b", namespace="ns1", uid="uid-svc-b"))

        assert secret_writes("create") == created + 2
        assert secret_writes("update") == updated + 1
        assert secret_writes("created") == 0.0
        assert secret_writes("updated") == 0.0
