"""Post-rollout verification of every managed application."""

from dataclasses import dataclass
from typing import List

from wavegate.clients.base import ClusterProvider, ControlPlaneClient
from wavegate.clients.models import HealthState, ManagedResourceRef, SyncState
from wavegate.orchestrator.steps import RolloutStep
from wavegate.state.context import RunContext
from wavegate.state.stage import Stage
from wavegate.utils.errors import CommandError, ErrorContext, VerificationError
from wavegate.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class ApplicationReport:
    """Observed sync/health of one application."""
    name: str
    sync: SyncState
    health: HealthState

    @property
    def converged(self) -> bool:
        return self.sync == SyncState.SYNCED and self.health == HealthState.HEALTHY


def collect_application_status(
    client: ControlPlaneClient,
    names: List[str],
    namespace: str
) -> List[ApplicationReport]:
    """Read the current sync and health state of each named application.

    Raises:
        CommandError: If the control plane could not be read
    """
    reports = []
    for name in names:
        ref = ManagedResourceRef(name=name, namespace=namespace)
        reports.append(ApplicationReport(
            name=name,
            sync=client.get_sync(ref).state,
            health=client.get_health(ref).state,
        ))
    return reports


class VerificationStep(RolloutStep):
    """Final check that every application converged.

    Applications that are not Synced and Healthy only produce warnings; the
    waves have already gated on each one.
    """

    stage = Stage.VERIFICATION
    title = "Verification"

    def __init__(self, cluster: ClusterProvider, client: ControlPlaneClient):
        self.cluster = cluster
        self.client = client
        self.reports: List[ApplicationReport] = []

    def run(self, ctx: RunContext) -> None:
        if ctx.config.rollout.skip_verify:
            logger.info("Skipping post-rollout verification")
            return

        if not self.cluster.is_reachable():
            raise VerificationError(
                "Cluster API is not reachable",
                context=ErrorContext(operation="cluster-info"),
            )
        logger.info("Cluster is healthy")

        rollout = ctx.config.rollout
        names = [rollout.root_application, *rollout.applications]
        try:
            self.reports = collect_application_status(
                self.client, names, ctx.config.controller.namespace
            )
        except CommandError as e:
            raise VerificationError("Could not read application status", cause=e)

        for report in self.reports:
            if report.sync != SyncState.SYNCED:
                logger.warning(f"Application {report.name} is not Synced (status: {report.sync.value})")
            if report.health != HealthState.HEALTHY:
                logger.warning(f"Application {report.name} is not Healthy (status: {report.health.value})")

        if all(r.converged for r in self.reports):
            logger.info("All applications are Synced and Healthy")
        else:
            logger.warning("Some applications are not in the expected state")
