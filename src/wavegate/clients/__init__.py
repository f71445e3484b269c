"""Adapters for the cluster, the GitOps control plane, and secrets."""

from .models import (
    ClusterStatus,
    SyncState,
    HealthState,
    ManagedResourceRef,
    ResourceCondition,
    SyncStatus,
    HealthStatus,
)
from .base import ClusterProvider, ControlPlaneClient, SecretReader
from .kubectl import Kubectl
from .argocd import ArgoApplicationClient
from .minikube import MinikubeProvider
from .git import detect_repo_url, normalize_repo_url

__all__ = [
    "ClusterStatus",
    "SyncState",
    "HealthState",
    "ManagedResourceRef",
    "ResourceCondition",
    "SyncStatus",
    "HealthStatus",
    "ClusterProvider",
    "ControlPlaneClient",
    "SecretReader",
    "Kubectl",
    "ArgoApplicationClient",
    "MinikubeProvider",
    "detect_repo_url",
    "normalize_repo_url",
]
