"""minikube-backed cluster lifecycle."""

import json
from typing import Callable

from wavegate.clients.base import ClusterProvider
from wavegate.clients.kubectl import Kubectl
from wavegate.clients.models import ClusterStatus
from wavegate.utils.commands import CommandResult, run_command
from wavegate.utils.logging import get_logger

logger = get_logger(__name__)


class MinikubeProvider(ClusterProvider):
    """Creates, starts, and deletes minikube profiles."""

    def __init__(
        self,
        kubectl: Kubectl,
        binary: str = "minikube",
        runner: Callable[..., CommandResult] = run_command,
        start_timeout: float = 900.0
    ):
        """Initialize minikube provider.

        Args:
            kubectl: kubectl wrapper used for reachability checks
            binary: minikube executable name or path
            runner: Command runner, injectable for tests
            start_timeout: Seconds allowed for create/start/delete
        """
        self.kubectl = kubectl
        self.binary = binary
        self.runner = runner
        self.start_timeout = start_timeout

    def status(self, profile: str) -> ClusterStatus:
        # minikube exits non-zero for stopped profiles but still prints JSON
        result = self.runner([self.binary, "status", "-p", profile, "-o", "json"], timeout=60)
        try:
            payload = json.loads(result.stdout or "{}")
        except ValueError:
            return ClusterStatus.ABSENT

        if isinstance(payload, list):
            payload = payload[0] if payload else {}
        if not isinstance(payload, dict):
            return ClusterStatus.ABSENT
        return ClusterStatus.parse(payload.get("Host"))

    def create(self, profile: str, cpus: int, memory: int, driver: str) -> None:
        logger.info(f"Creating minikube cluster {profile}: {cpus} CPUs, {memory}MB RAM, driver {driver}")
        self.runner(
            [self.binary, "start", "-p", profile,
             f"--cpus={cpus}", f"--memory={memory}", f"--driver={driver}"],
            timeout=self.start_timeout,
        ).check(f"Failed to create minikube cluster {profile}")

    def start(self, profile: str) -> None:
        logger.info(f"Starting minikube cluster {profile}")
        self.runner([self.binary, "start", "-p", profile], timeout=self.start_timeout).check(
            f"Failed to start minikube cluster {profile}"
        )

    def update_context(self, profile: str) -> None:
        self.runner([self.binary, "update-context", "-p", profile], timeout=60).check(
            f"Failed to update kubectl context for {profile}"
        )

    def delete(self, profile: str) -> None:
        logger.info(f"Deleting minikube cluster {profile}")
        self.runner([self.binary, "delete", "-p", profile], timeout=self.start_timeout).check(
            f"Failed to delete minikube cluster {profile}"
        )

    def is_reachable(self) -> bool:
        return self.kubectl.cluster_info()
