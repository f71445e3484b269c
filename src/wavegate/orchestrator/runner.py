"""Top-level rollout run: preflight, orchestration, and guarded cleanup."""

import signal
import time
from dataclasses import dataclass
from typing import Callable, Mapping, Optional

from wavegate.clients.argocd import ArgoApplicationClient
from wavegate.clients.base import ClusterProvider, ControlPlaneClient
from wavegate.clients.kubectl import Kubectl
from wavegate.clients.minikube import MinikubeProvider
from wavegate.config.models import DeployConfig
from wavegate.orchestrator.cleanup import CleanupController, CleanupGuard, CleanupResult
from wavegate.orchestrator.orchestrator import RolloutResult, WaveOrchestrator, build_poller
from wavegate.orchestrator.preflight import PreflightChecker
from wavegate.state.context import ConfirmCallback, RunContext, take_default
from wavegate.state.stage import StageTracker
from wavegate.utils.commands import command_exists
from wavegate.utils.errors import ExitCode, exit_code_for
from wavegate.utils.logging import get_logger

logger = get_logger(__name__)


def _raise_interrupt(signum, frame):
    raise KeyboardInterrupt(f"Received signal {signum}")


@dataclass
class RunOutcome:
    """How a rollout run ended."""
    exit_code: ExitCode
    context: RunContext
    result: Optional[RolloutResult] = None
    cleanup: Optional[CleanupResult] = None

    @property
    def succeeded(self) -> bool:
        return self.exit_code == ExitCode.SUCCESS


class RolloutRunner:
    """Wires the adapters together and runs one rollout end to end.

    Every non-success exit, including Ctrl-C and SIGTERM, goes through the
    cleanup controller exactly once and maps to a stable exit code.
    """

    def __init__(
        self,
        config: DeployConfig,
        kubectl: Optional[Kubectl] = None,
        cluster: Optional[ClusterProvider] = None,
        client: Optional[ControlPlaneClient] = None,
        confirm: ConfirmCallback = take_default,
        environ: Optional[Mapping[str, str]] = None,
        which: Callable[[str], bool] = command_exists,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        orchestrator: Optional[WaveOrchestrator] = None
    ):
        """Initialize rollout runner.

        Args:
            config: Validated rollout configuration
            kubectl: kubectl wrapper (created when omitted)
            cluster: Cluster provider (minikube when omitted)
            client: Control plane client (Argo CD when omitted)
            confirm: Interactive yes/no prompt
            environ: Environment holding the credentials
            which: Predicate telling whether a command is on PATH
            clock: Monotonic clock
            sleep: Sleep function
            orchestrator: Prebuilt orchestrator, assembled from the above when omitted
        """
        self.config = config
        self.kubectl = kubectl or Kubectl()
        self.cluster = cluster or MinikubeProvider(self.kubectl)
        self.client = client or ArgoApplicationClient(self.kubectl)
        self.confirm = confirm
        self.environ = environ
        self.clock = clock
        self.preflight = PreflightChecker(environ=environ, which=which)
        self.cleanup = CleanupController(self.cluster, self.client, self.kubectl)
        self.orchestrator = orchestrator or WaveOrchestrator.default(
            config,
            kubectl=self.kubectl,
            cluster=self.cluster,
            client=self.client,
            poller=build_poller(config, clock=clock, sleep=sleep),
            sleep=sleep,
            environ=environ,
        )

    def new_context(self) -> RunContext:
        return RunContext(
            config=self.config,
            tracker=StageTracker(),
            confirm=self.confirm,
            clock=self.clock,
        )

    def run(self) -> RunOutcome:
        """Run preflight checks and the rollout.

        Returns:
            RunOutcome with the exit code and whichever result applies
        """
        ctx = self.new_context()
        guard = CleanupGuard(self.cleanup, ctx)
        previous_handler = signal.signal(signal.SIGTERM, _raise_interrupt)

        try:
            with guard:
                self.preflight.run(ctx)
                result = self.orchestrator.run(ctx)
            return RunOutcome(exit_code=ExitCode.SUCCESS, context=ctx, result=result)
        except (Exception, KeyboardInterrupt) as e:
            return RunOutcome(exit_code=exit_code_for(e), context=ctx, cleanup=guard.result)
        finally:
            signal.signal(signal.SIGTERM, previous_handler)
