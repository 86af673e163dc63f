"""Shared components for handlers."""

from __future__ import annotations

import threading
from dataclasses import dataclass

from ..config import OperatorConfig
from ..renewal.controller import RenewalRequestController
from ..renewal.engine import RenewalEngine
from ..renewal.identity import ServiceAccountReconciler
from ..renewal.materializer import SecretMaterializer
from ..renewal.provisioner import LongLivedProvisioner
from ..renewal.syncer import CredentialSyncer, default_store_factory
from ..services.kubernetes.client import KubernetesCluster


@dataclass
class OperatorComponents:
    """Renewal core wired to the cluster, shared by all handlers."""

    config: OperatorConfig
    provisioner: LongLivedProvisioner
    service_accounts: ServiceAccountReconciler
    renewal_requests: RenewalRequestController


_components: OperatorComponents | None = None
_lock = threading.Lock()


def build_components(config: OperatorConfig, cluster: KubernetesCluster | None = None) -> OperatorComponents:
    """Wire the renewal core to a cluster.

    Args:
        config: Operator configuration
        cluster: Cluster capabilities (created from kubeconfig when omitted)

    Returns:
        Components ready for the handlers
    """
    cluster = cluster or KubernetesCluster()
    materializer = SecretMaterializer(cluster)
    engine = RenewalEngine(cluster, materializer, config.policy)
    provisioner = LongLivedProvisioner(materializer)
    syncer = CredentialSyncer(cluster, default_store_factory(config.gitlab_request_timeout))

    return OperatorComponents(
        config=config,
        provisioner=provisioner,
        service_accounts=ServiceAccountReconciler(cluster, engine, provisioner, config.policy),
        renewal_requests=RenewalRequestController(cluster, cluster, engine, syncer, config.policy),
    )


def init_components(config: OperatorConfig, cluster: KubernetesCluster | None = None) -> OperatorComponents:
    """Build and install the shared components."""
    global _components
    with _lock:
        _components = build_components(config, cluster)
        return _components


def get_components() -> OperatorComponents:
    """Get the shared components, building them from the environment on first use."""
    global _components
    with _lock:
        if _components is None:
            _components = build_components(OperatorConfig.from_env())
        return _components


def reset_components() -> None:
    """Drop the shared components."""
    global _components
    with _lock:
        _components = None
