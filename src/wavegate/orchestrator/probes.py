"""Verification probes layered on top of sync/health for each wave."""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from wavegate.clients.kubectl import Kubectl
from wavegate.utils.logging import get_logger
from wavegate.utils.polling import Probe

logger = get_logger(__name__)


@dataclass
class RetryPolicy:
    """Retry applied to each evaluation of a probe whose reads may fail transiently."""
    max_attempts: int = 3
    initial_delay: float = 2.0


@dataclass
class VerificationProbe:
    """A named readiness check with its own time budget.

    Required probes abort the wave when they fail; advisory ones only warn.
    """

    name: str
    check: Probe
    timeout: float = 120.0
    interval: Optional[float] = None
    retry: Optional[RetryPolicy] = None
    settle_delay: float = 0.0
    required: bool = True


def _condition_true(obj: Dict[str, Any], condition_type: str) -> bool:
    conditions = (obj.get("status") or {}).get("conditions") or []
    return any(
        c.get("type") == condition_type and c.get("status") == "True"
        for c in conditions
        if isinstance(c, dict)
    )


def resource_present(
    kubectl: Kubectl,
    kind: str,
    namespace: Optional[str] = None,
    name: Optional[str] = None,
    selector: Optional[str] = None
) -> Probe:
    """Probe that holds once a named object, or any object matching, exists."""
    def check() -> bool:
        if name:
            return kubectl.exists(kind, name, namespace)
        return len(kubectl.list_items(kind, namespace=namespace, selector=selector)) > 0

    return check


def crds_registered(kubectl: Kubectl, names: List[str]) -> Probe:
    """Probe that holds once every named CustomResourceDefinition exists."""
    def check() -> bool:
        missing = [crd for crd in names if not kubectl.exists("crd", crd)]
        if missing:
            logger.debug(f"CRDs not registered yet: {', '.join(missing)}")
        return not missing

    return check


def deployment_available(
    kubectl: Kubectl,
    namespace: str,
    name: Optional[str] = None,
    selector: Optional[str] = None
) -> Probe:
    """Probe that holds once the selected deployments report Available.

    Without a name, every deployment matched in the namespace must be
    available and at least one must exist.
    """
    def check() -> bool:
        if name:
            deployment = kubectl.get("deployment", name, namespace)
            return deployment is not None and _condition_true(deployment, "Available")

        deployments = kubectl.list_items("deployment", namespace=namespace, selector=selector)
        return bool(deployments) and all(_condition_true(d, "Available") for d in deployments)

    return check


def statefulset_ready(kubectl: Kubectl, namespace: str, name: str) -> Probe:
    """Probe that holds once a statefulset has all its replicas ready."""
    def check() -> bool:
        statefulset = kubectl.get("statefulset", name, namespace)
        if statefulset is None:
            return False
        desired = (statefulset.get("spec") or {}).get("replicas", 1)
        ready = (statefulset.get("status") or {}).get("readyReplicas", 0)
        return desired > 0 and ready == desired

    return check


def daemonset_rolled_out(kubectl: Kubectl, namespace: str, selector: str) -> Probe:
    """Probe that holds once the first matching daemonset has every scheduled pod ready."""
    def check() -> bool:
        daemonsets = kubectl.list_items("daemonset", namespace=namespace, selector=selector)
        if not daemonsets:
            return False

        status = daemonsets[0].get("status") or {}
        desired = int(status.get("desiredNumberScheduled", 0) or 0)
        ready = int(status.get("numberReady", 0) or 0)
        logger.info(f"Agent pods ready: {ready}/{desired}")
        return desired > 0 and ready == desired

    return check


def condition_true(kubectl: Kubectl, kind: str, namespace: str, condition_type: str) -> Probe:
    """Probe that holds once the first object of a kind reports a True condition."""
    def check() -> bool:
        items = kubectl.list_items(kind, namespace=namespace)
        return bool(items) and _condition_true(items[0], condition_type)

    return check
