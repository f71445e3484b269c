"""Interfaces to the cluster, the GitOps control plane, and secret storage."""

from abc import ABC, abstractmethod
from typing import Optional

from .models import ClusterStatus, HealthStatus, ManagedResourceRef, SyncStatus


class ClusterProvider(ABC):
    """Lifecycle operations for the cluster that hosts the control plane."""

    @abstractmethod
    def status(self, profile: str) -> ClusterStatus:
        """Report whether the cluster is running, stopped, or absent.

        Args:
            profile: Cluster profile name

        Returns:
            ClusterStatus
        """
        pass

    @abstractmethod
    def create(self, profile: str, cpus: int, memory: int, driver: str) -> None:
        """Create and start a new cluster.

        Raises:
            CommandError: If creation fails
        """
        pass

    @abstractmethod
    def start(self, profile: str) -> None:
        """Start an existing stopped cluster.

        Raises:
            CommandError: If the cluster fails to start
        """
        pass

    @abstractmethod
    def update_context(self, profile: str) -> None:
        """Point the kube client configuration at the cluster."""
        pass

    @abstractmethod
    def delete(self, profile: str) -> None:
        """Delete the cluster and everything in it.

        Raises:
            CommandError: If deletion fails
        """
        pass

    @abstractmethod
    def is_reachable(self) -> bool:
        """Check whether the cluster API answers requests."""
        pass


class ControlPlaneClient(ABC):
    """Reads and writes managed resources on the GitOps control plane."""

    @abstractmethod
    def get_sync(self, ref: ManagedResourceRef) -> SyncStatus:
        """Fetch the reported sync state and conditions.

        Raises:
            CommandError: If the state could not be read
        """
        pass

    @abstractmethod
    def get_health(self, ref: ManagedResourceRef) -> HealthStatus:
        """Fetch the reported health state and conditions.

        Raises:
            CommandError: If the state could not be read
        """
        pass

    @abstractmethod
    def exists(self, ref: ManagedResourceRef) -> bool:
        """Check whether the resource is registered."""
        pass

    @abstractmethod
    def apply(self, manifest: str) -> None:
        """Apply a manifest document.

        Args:
            manifest: YAML manifest text

        Raises:
            CommandError: If the manifest was rejected
        """
        pass

    @abstractmethod
    def delete(self, ref: ManagedResourceRef, timeout: float) -> None:
        """Delete a resource, ignoring one that is already gone.

        Raises:
            CommandError: If deletion fails
        """
        pass

    @abstractmethod
    def delete_all(self, namespace: str, timeout: float) -> None:
        """Delete every managed resource in a namespace.

        Raises:
            CommandError: If deletion fails
        """
        pass


class SecretReader(ABC):
    """Reads fields from stored secrets."""

    @abstractmethod
    def get_secret_field(self, name: str, namespace: str, field: str) -> Optional[bytes]:
        """Return the decoded value of one secret field, or None if absent."""
        pass
