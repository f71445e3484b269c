"""Wave definitions and the step that watches one wave."""

from dataclasses import dataclass, field
from typing import List, Optional

from wavegate.clients.kubectl import Kubectl
from wavegate.clients.models import ManagedResourceRef
from wavegate.config.models import DeployConfig
from wavegate.orchestrator.probes import (
    RetryPolicy,
    VerificationProbe,
    condition_true,
    crds_registered,
    daemonset_rolled_out,
    deployment_available,
    resource_present,
)
from wavegate.orchestrator.steps import RolloutStep
from wavegate.orchestrator.watcher import WaveResourceWatcher, WaveResult
from wavegate.state.context import RunContext
from wavegate.state.stage import Stage, WAVE_STAGES
from wavegate.utils.logging import LogContext, get_logger

logger = get_logger(__name__)


@dataclass
class WaveSpec:
    """One wave: the application to watch and the checks that gate the next wave."""
    stage: Stage
    name: str
    resource: ManagedResourceRef
    sync_timeout: float
    health_timeout: float
    probes: List[VerificationProbe] = field(default_factory=list)

    def __post_init__(self):
        if self.stage not in WAVE_STAGES:
            raise ValueError(f"{self.stage.name} is not a wave stage")
        if self.sync_timeout <= 0 or self.health_timeout <= 0:
            raise ValueError("Wave timeouts must be > 0")


class WaveStep(RolloutStep):
    """Runs one wave through the resource watcher."""

    def __init__(self, wave: WaveSpec, watcher: WaveResourceWatcher):
        self.wave = wave
        self.watcher = watcher
        self.stage = wave.stage
        self.title = wave.name
        self.result: Optional[WaveResult] = None

    def run(self, ctx: RunContext) -> None:
        with LogContext(logger, stage=self.stage.value, resource_id=str(self.wave.resource)):
            logger.info(f"=== {self.wave.name} ===")
            self.result = self.watcher.watch(ctx, self.wave)
            logger.info(f"{self.wave.name} completed")


def build_default_waves(config: DeployConfig, kubectl: Kubectl) -> List[WaveSpec]:
    """Build the operator, agent and demo application waves.

    Args:
        config: Rollout configuration
        kubectl: kubectl wrapper the verification probes read through

    Returns:
        Wave specs in rollout order
    """
    operator_app, agent_app, demo_app = config.rollout.applications
    controller_ns = config.controller.namespace
    agent_ns = config.credentials.namespace
    demo_ns = config.rollout.demo_namespace
    sync_timeout = config.timeouts.app_sync
    health_timeout = config.timeouts.app_health
    transient = RetryPolicy(max_attempts=3, initial_delay=2.0)

    operator = WaveSpec(
        stage=Stage.WAVE_0,
        name="Wave 0: Datadog Operator",
        resource=ManagedResourceRef(name=operator_app, namespace=controller_ns),
        sync_timeout=sync_timeout,
        health_timeout=health_timeout,
        probes=[
            VerificationProbe(
                name="operator deployment available",
                check=deployment_available(kubectl, agent_ns, name="datadog-operator"),
                timeout=120,
            ),
            VerificationProbe(
                name="Datadog CRDs registered",
                check=crds_registered(kubectl, [
                    "datadogagents.datadoghq.com",
                    "datadogpodautoscalers.datadoghq.com",
                ]),
                timeout=60,
                retry=transient,
            ),
        ],
    )

    agent = WaveSpec(
        stage=Stage.WAVE_1,
        name="Wave 1: DatadogAgent",
        resource=ManagedResourceRef(name=agent_app, namespace=controller_ns),
        sync_timeout=sync_timeout,
        health_timeout=health_timeout,
        probes=[
            VerificationProbe(
                name="DatadogAgent resource present",
                check=resource_present(kubectl, "datadogagent", namespace=agent_ns),
                timeout=60,
                retry=transient,
            ),
            VerificationProbe(
                name="agent daemonset present",
                check=resource_present(kubectl, "daemonset", namespace=agent_ns, selector="app=datadog"),
                timeout=60,
            ),
            VerificationProbe(
                name="agent pods rolled out",
                check=daemonset_rolled_out(kubectl, agent_ns, "app=datadog"),
                timeout=120,
                settle_delay=20,
                required=False,
            ),
            VerificationProbe(
                name="cluster agent available",
                check=deployment_available(kubectl, agent_ns, selector="app=datadog-cluster-agent"),
                timeout=120,
                required=False,
            ),
        ],
    )

    demo = WaveSpec(
        stage=Stage.WAVE_2,
        name="Wave 2: NGINX Demo Application",
        resource=ManagedResourceRef(name=demo_app, namespace=controller_ns),
        sync_timeout=sync_timeout,
        health_timeout=health_timeout,
        probes=[
            VerificationProbe(
                name="demo deployment present",
                check=resource_present(kubectl, "deployment", namespace=demo_ns),
                timeout=60,
            ),
            VerificationProbe(
                name="demo deployment available",
                check=deployment_available(kubectl, demo_ns),
                timeout=180,
            ),
            VerificationProbe(
                name="DatadogPodAutoscaler present",
                check=resource_present(kubectl, "datadogpodautoscaler", namespace=demo_ns),
                timeout=60,
                retry=transient,
            ),
            VerificationProbe(
                name="DatadogPodAutoscaler active",
                check=condition_true(kubectl, "datadogpodautoscaler", demo_ns, "Active"),
                timeout=60,
                settle_delay=10,
                required=False,
            ),
        ],
    )

    return [operator, agent, demo]
