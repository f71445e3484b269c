"""Wave orchestrator that sequences prerequisite steps and rollout waves."""

import time
from dataclasses import dataclass, field
from typing import Callable, List, Mapping, Optional

from wavegate.clients.base import ClusterProvider, ControlPlaneClient
from wavegate.clients.kubectl import Kubectl
from wavegate.config.models import DeployConfig
from wavegate.orchestrator.prerequisites import (
    ClusterStep,
    ControllerStep,
    RootApplicationStep,
    SecretStep,
)
from wavegate.orchestrator.steps import RolloutStep
from wavegate.orchestrator.verification import ApplicationReport, VerificationStep
from wavegate.orchestrator.watcher import WaveResourceWatcher, WaveResult
from wavegate.orchestrator.waves import WaveSpec, WaveStep, build_default_waves
from wavegate.state.context import RunContext
from wavegate.state.stage import Stage
from wavegate.utils.commands import CommandResult, run_command
from wavegate.utils.logging import get_logger
from wavegate.utils.polling import ConditionPoller

logger = get_logger(__name__)


def build_poller(
    config: DeployConfig,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep
) -> ConditionPoller:
    """Create the poller every wait of a rollout shares."""
    timeouts = config.timeouts
    return ConditionPoller(
        interval=timeouts.poll_interval,
        progress_interval=timeouts.progress_interval,
        max_errors=timeouts.max_read_errors,
        clock=clock,
        sleep=sleep,
    )


@dataclass
class RolloutResult:
    """Result of a rollout that reached the end."""
    final_stage: Stage
    duration: float
    wave_results: List[WaveResult] = field(default_factory=list)
    applications: List[ApplicationReport] = field(default_factory=list)
    repo_url: Optional[str] = None
    admin_password: Optional[str] = None

    def warnings(self) -> List[str]:
        """Advisory checks that did not pass, prefixed by their wave."""
        return [f"{r.name}: {w}" for r in self.wave_results for w in r.warnings()]


class WaveOrchestrator:
    """Runs rollout steps strictly in order, aborting on the first failure.

    Before each step starts the stage tracker is advanced to that step's
    stage, so on failure it names the step that failed. Steps after a failed
    one are never run.
    """

    def __init__(self, steps: List[RolloutStep]):
        """Initialize orchestrator.

        Args:
            steps: Steps in rollout order

        Raises:
            ValueError: If step stages are not strictly increasing
        """
        for previous, step in zip(steps, steps[1:]):
            if not step.stage.is_after(previous.stage):
                raise ValueError(
                    f"Step {step!r} must come after {previous!r} in rollout order"
                )
        self.steps = steps

    @classmethod
    def default(
        cls,
        config: DeployConfig,
        kubectl: Kubectl,
        cluster: ClusterProvider,
        client: ControlPlaneClient,
        poller: ConditionPoller,
        sleep: Callable[[float], None] = time.sleep,
        runner: Callable[..., CommandResult] = run_command,
        environ: Optional[Mapping[str, str]] = None,
        waves: Optional[List[WaveSpec]] = None
    ) -> "WaveOrchestrator":
        """Assemble the standard cluster-to-verification rollout.

        Args:
            config: Rollout configuration
            kubectl: kubectl wrapper
            cluster: Cluster lifecycle provider
            client: Control plane client
            poller: Poller shared by every wait
            sleep: Sleep used for retries and probe settle delays
            runner: Command runner for repository detection
            environ: Environment holding the credentials
            waves: Waves to watch, defaults to the operator/agent/demo waves

        Returns:
            WaveOrchestrator
        """
        watcher = WaveResourceWatcher(client, poller, sleep=sleep)
        if waves is None:
            waves = build_default_waves(config, kubectl)

        steps: List[RolloutStep] = [
            ClusterStep(cluster, poller),
            ControllerStep(kubectl, poller, sleep=sleep),
            SecretStep(kubectl, environ=environ),
            RootApplicationStep(client, poller, runner=runner),
        ]
        steps.extend(WaveStep(wave, watcher) for wave in waves)
        steps.append(VerificationStep(cluster, client))
        return cls(steps)

    def run(self, ctx: RunContext) -> RolloutResult:
        """Run every step and finish at the VERIFIED stage.

        Args:
            ctx: Run context; its tracker must not be past the first step

        Returns:
            RolloutResult

        Raises:
            RolloutError: From the first step that fails
        """
        total = len(self.steps)
        for index, step in enumerate(self.steps, 1):
            ctx.tracker.advance(step.stage)
            logger.info(f"Step {index}/{total}: {step.title}")
            step.run(ctx)

        ctx.tracker.advance(Stage.VERIFIED)
        logger.info(f"Rollout completed in {ctx.elapsed():.0f}s")

        return RolloutResult(
            final_stage=ctx.tracker.current,
            duration=ctx.elapsed(),
            wave_results=[s.result for s in self.steps if isinstance(s, WaveStep) and s.result],
            applications=next(
                (s.reports for s in self.steps if isinstance(s, VerificationStep)), []
            ),
            repo_url=ctx.repo_url,
            admin_password=ctx.admin_password,
        )
