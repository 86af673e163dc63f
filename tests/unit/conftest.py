"""Shared fakes for the cluster and GitLab capabilities."""

from __future__ import annotations

import base64
import copy
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from sa_token_operator.builders.renewal_request import render_renewal_status
from sa_token_operator.config import RenewalPolicy
from sa_token_operator.models import Identity, RenewalStatus
from sa_token_operator.renewal.engine import RenewalEngine
from sa_token_operator.renewal.materializer import SecretMaterializer
from sa_token_operator.renewal.provisioner import LongLivedProvisioner
from sa_token_operator.services.gitlab.client import GitLabAPIError
from sa_token_operator.utils.errors import (
    AlreadyExistsError,
    ConflictError,
    NotFoundError,
    SecretLookupError,
)

NOW = datetime(2026, 10, 18, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Controllable UTC clock."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now = self.now + delta


class FakeCluster:
    """In-memory CredentialIssuer, SecretStore, IdentityStore and RenewalRequestStore."""

    def __init__(self):
        self.identities: dict[tuple[str, str], Identity] = {}
        self.secrets: dict[tuple[str, str], Any] = {}
        self.secret_values: dict[tuple[str, str], dict[str, str]] = {}
        self.requests: dict[tuple[str, str], dict[str, Any]] = {}
        self.issued: list[tuple[str, str, timedelta]] = []
        self.calls: list[str] = []
        self.status_writes: list[RenewalStatus] = []
        self.issue_error: Exception | None = None
        self.annotation_conflicts = 0
        self.status_conflicts = 0
        self.create_identity_race = False
        self._version = 0

    def _next_version(self) -> str:
        self._version += 1
        return str(self._version)

    # Seeding helpers

    def add_identity(self, namespace: str, name: str, annotations: dict[str, str] | None = None) -> Identity:
        identity = Identity(
            name=name,
            namespace=namespace,
            uid=f"uid-{name}",
            resource_version=self._next_version(),
            annotations=dict(annotations or {}),
        )
        self.identities[(namespace, name)] = identity
        return identity

    def add_request(
        self,
        namespace: str,
        name: str,
        spec: dict[str, Any],
        status: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        obj: dict[str, Any] = {
            "apiVersion": "or.io.or.io/v1",
            "kind": "TokenRenewalRequest",
            "metadata": {"name": name, "namespace": namespace, "resourceVersion": self._next_version()},
            "spec": spec,
        }
        if status is not None:
            obj["status"] = status
        self.requests[(namespace, name)] = obj
        return obj

    def request_status(self, namespace: str, name: str) -> dict[str, Any]:
        return self.requests[(namespace, name)].get("status", {})

    def secret_token(self, namespace: str, name: str) -> str | None:
        body = self.secrets[(namespace, name)]
        if not body.data:
            return None
        return base64.b64decode(body.data["token"]).decode("utf-8")

    # CredentialIssuer

    def issue_token(self, identity: Identity, lifetime: timedelta) -> str:
        self.calls.append("issue_token")
        if self.issue_error is not None:
            raise self.issue_error
        self.issued.append((identity.namespace, identity.name, lifetime))
        return f"token-{len(self.issued)}"

    # SecretStore

    def create_secret(self, body) -> None:
        self.calls.append("create_secret")
        key = (body.metadata.namespace, body.metadata.name)
        if key in self.secrets:
            raise AlreadyExistsError(f"secret {key} already exists")
        self.secrets[key] = body

    def update_secret(self, body) -> None:
        self.calls.append("update_secret")
        key = (body.metadata.namespace, body.metadata.name)
        if key not in self.secrets:
            raise NotFoundError(f"secret {key} not found")
        self.secrets[key] = body

    def get_secret_value(self, namespace: str, name: str, key: str) -> str:
        self.calls.append("get_secret_value")
        data = self.secret_values.get((namespace, name))
        if data is None:
            raise SecretLookupError(f"Secret '{name}' not found in namespace '{namespace}'")
        if key not in data:
            raise SecretLookupError(f"Key '{key}' not found in secret '{name}'")
        return data[key]

    # IdentityStore

    def get_identity(self, namespace: str, name: str) -> Identity | None:
        self.calls.append("get_identity")
        identity = self.identities.get((namespace, name))
        return copy.deepcopy(identity)

    def create_identity(self, namespace: str, name: str) -> Identity:
        self.calls.append("create_identity")
        if self.create_identity_race:
            self.create_identity_race = False
            self.add_identity(namespace, name)
            raise AlreadyExistsError(f"service account {namespace}/{name} already exists")
        if (namespace, name) in self.identities:
            raise AlreadyExistsError(f"service account {namespace}/{name} already exists")
        return copy.deepcopy(self.add_identity(namespace, name))

    def update_identity_annotations(self, identity: Identity, annotations: dict[str, str]) -> Identity:
        self.calls.append("update_identity_annotations")
        current = self.identities[(identity.namespace, identity.name)]
        if self.annotation_conflicts:
            self.annotation_conflicts -= 1
            current.resource_version = self._next_version()
            raise ConflictError(f"service account {identity.namespace}/{identity.name} was modified concurrently")
        if current.resource_version != identity.resource_version:
            raise ConflictError(f"service account {identity.namespace}/{identity.name} was modified concurrently")
        current.annotations.update(annotations)
        current.resource_version = self._next_version()
        return copy.deepcopy(current)

    # RenewalRequestStore

    def get_renewal_request(self, namespace: str, name: str) -> dict[str, Any] | None:
        self.calls.append("get_renewal_request")
        obj = self.requests.get((namespace, name))
        return copy.deepcopy(obj)

    def write_renewal_status(self, obj: dict[str, Any], status: RenewalStatus) -> dict[str, Any]:
        self.calls.append("write_renewal_status")
        key = (obj["metadata"]["namespace"], obj["metadata"]["name"])
        current = self.requests[key]
        if self.status_conflicts:
            self.status_conflicts -= 1
            current["metadata"]["resourceVersion"] = self._next_version()
            raise ConflictError(f"TokenRenewalRequest {key} was modified concurrently")
        if current["metadata"]["resourceVersion"] != obj["metadata"]["resourceVersion"]:
            raise ConflictError(f"TokenRenewalRequest {key} was modified concurrently")
        current["status"] = render_renewal_status(status)
        current["metadata"]["resourceVersion"] = self._next_version()
        self.status_writes.append(status)
        return copy.deepcopy(current)


class FakeVariableStore:
    """Records GitLab variable calls and replays scripted failures."""

    def __init__(self, create_errors: list[Exception] | None = None, update_errors: list[Exception] | None = None):
        self.create_errors = list(create_errors or [])
        self.update_errors = list(update_errors or [])
        self.created: list[tuple[int, str, str]] = []
        self.updated: list[tuple[int, str, str]] = []
        self.factory_calls: list[tuple[str, str]] = []
        self.closed = 0

    def factory(self, base_url: str, private_token: str) -> "FakeVariableStore":
        self.factory_calls.append((base_url, private_token))
        return self

    def create_variable(self, project_id: int, key: str, value: str) -> None:
        self.created.append((project_id, key, value))
        if self.create_errors:
            raise self.create_errors.pop(0)

    def update_variable(self, project_id: int, key: str, value: str) -> None:
        self.updated.append((project_id, key, value))
        if self.update_errors:
            raise self.update_errors.pop(0)

    def close(self) -> None:
        self.closed += 1


def duplicate_key_error() -> GitLabAPIError:
    return GitLabAPIError("POST /projects/42/variables: 400 key has already been taken", status_code=400)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cluster() -> FakeCluster:
    return FakeCluster()


@pytest.fixture
def policy() -> RenewalPolicy:
    return RenewalPolicy()


@pytest.fixture
def materializer(cluster: FakeCluster) -> SecretMaterializer:
    return SecretMaterializer(cluster)


@pytest.fixture
def engine(cluster: FakeCluster, materializer: SecretMaterializer, policy: RenewalPolicy, clock: FakeClock) -> RenewalEngine:
    return RenewalEngine(cluster, materializer, policy, clock=clock)


@pytest.fixture
def provisioner(materializer: SecretMaterializer) -> LongLivedProvisioner:
    return LongLivedProvisioner(materializer)
