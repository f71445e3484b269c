"""Argo CD Application access through kubectl."""

from typing import Any, Dict

from wavegate.clients.base import ControlPlaneClient
from wavegate.clients.kubectl import Kubectl
from wavegate.clients.models import (
    HealthState,
    HealthStatus,
    ManagedResourceRef,
    SyncState,
    SyncStatus,
    parse_conditions,
)
from wavegate.utils.logging import get_logger

logger = get_logger(__name__)

APPLICATION_KIND = "applications.argoproj.io"


class ArgoApplicationClient(ControlPlaneClient):
    """Reads Application sync/health status and manages Application objects."""

    def __init__(self, kubectl: Kubectl):
        self.kubectl = kubectl

    def _kind(self, ref: ManagedResourceRef) -> str:
        return APPLICATION_KIND if ref.kind == "application" else ref.kind

    def _status(self, ref: ManagedResourceRef) -> Dict[str, Any]:
        application = self.kubectl.get(self._kind(ref), ref.name, ref.namespace)
        if application is None:
            return {}
        return application.get("status") or {}

    def get_sync(self, ref: ManagedResourceRef) -> SyncStatus:
        status = self._status(ref)
        return SyncStatus(
            state=SyncState.parse((status.get("sync") or {}).get("status")),
            conditions=parse_conditions(status.get("conditions")),
        )

    def get_health(self, ref: ManagedResourceRef) -> HealthStatus:
        status = self._status(ref)
        if not status:
            return HealthStatus(state=HealthState.MISSING)
        return HealthStatus(
            state=HealthState.parse((status.get("health") or {}).get("status")),
            conditions=parse_conditions(status.get("conditions")),
        )

    def exists(self, ref: ManagedResourceRef) -> bool:
        return self.kubectl.exists(self._kind(ref), ref.name, ref.namespace)

    def apply(self, manifest: str) -> None:
        self.kubectl.apply_manifest(manifest)

    def delete(self, ref: ManagedResourceRef, timeout: float) -> None:
        self.kubectl.delete(self._kind(ref), ref.name, ref.namespace, timeout=timeout)

    def delete_all(self, namespace: str, timeout: float) -> None:
        logger.info(f"Deleting all applications in {namespace}")
        self.kubectl.delete_all(APPLICATION_KIND, namespace, timeout=timeout)
