"""Watches a managed resource through sync, health, and verification."""

import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, TYPE_CHECKING

from wavegate.clients.base import ControlPlaneClient
from wavegate.clients.models import (
    HealthState,
    ManagedResourceRef,
    SyncState,
    conditions_payload,
)
from wavegate.orchestrator.probes import VerificationProbe
from wavegate.state.context import RunContext
from wavegate.utils.errors import (
    ErrorContext,
    VerificationError,
    WaveHealthError,
    WaveSyncError,
)
from wavegate.utils.logging import get_logger
from wavegate.utils.polling import ConditionPoller, FatalProbeError, PollOutcome, Probe
from wavegate.utils.retry import RetryStrategy

if TYPE_CHECKING:
    from wavegate.orchestrator.waves import WaveSpec

logger = get_logger(__name__)


def wait_within_deadline(
    poller: ConditionPoller,
    ctx: RunContext,
    description: str,
    probe: Probe,
    timeout: float,
    interval: Optional[float] = None
) -> PollOutcome:
    """Poll with a timeout clamped to what is left of the overall deadline.

    Args:
        poller: Poller performing the wait
        ctx: Run context holding the deadline
        description: What is being waited for
        probe: Condition to wait for
        timeout: Phase timeout in seconds
        interval: Seconds between probes (defaults to the poller interval)

    Returns:
        PollOutcome; TIMED_OUT without polling when no time is left
    """
    budget = ctx.budget(timeout)
    if budget <= 0:
        logger.error(f"Overall rollout deadline exhausted before: {description}")
        return PollOutcome.timed_out(0.0, "overall rollout deadline exhausted")

    interval = min(interval or poller.interval, budget)
    return poller.wait(description, probe, budget, interval=interval)


@dataclass
class ProbeResult:
    """Outcome of one verification probe."""
    name: str
    outcome: PollOutcome
    required: bool = True

    def is_success(self) -> bool:
        return self.outcome.is_success()


@dataclass
class WaveResult:
    """Timings and probe outcomes for one completed wave."""
    name: str
    resource: ManagedResourceRef
    sync_elapsed: float = 0.0
    health_elapsed: float = 0.0
    probe_results: List[ProbeResult] = field(default_factory=list)

    def warnings(self) -> List[str]:
        """Names of advisory probes that did not pass."""
        return [r.name for r in self.probe_results if not r.is_success()]


class WaveResourceWatcher:
    """Drives one wave's resource through sync, health, and verification probes."""

    def __init__(
        self,
        client: ControlPlaneClient,
        poller: ConditionPoller,
        sleep: Callable[[float], None] = time.sleep
    ):
        """Initialize watcher.

        Args:
            client: Control plane client reporting sync/health
            poller: Poller used for every wait
            sleep: Sleep function for probe settle delays, injectable for tests
        """
        self.client = client
        self.poller = poller
        self._sleep = sleep

    def sync_probe(self, ref: ManagedResourceRef) -> Probe:
        """Build the probe that waits for Synced and aborts on sync errors."""
        def check() -> bool:
            status = self.client.get_sync(ref)
            if status.state == SyncState.SYNCED:
                return True
            if status.has_sync_error():
                raise FatalProbeError(
                    f"{ref.name} has sync errors",
                    conditions_payload(status.conditions),
                )
            logger.debug(f"{ref.name} sync status: {status.state.value}")
            return False

        return check

    def health_probe(self, ref: ManagedResourceRef) -> Probe:
        """Build the probe that waits for Healthy and aborts on Degraded."""
        def check() -> bool:
            status = self.client.get_health(ref)
            if status.state == HealthState.HEALTHY:
                return True
            if status.state == HealthState.DEGRADED:
                raise FatalProbeError(
                    f"{ref.name} is degraded",
                    conditions_payload(status.conditions),
                )
            logger.debug(f"{ref.name} health status: {status.state.value}")
            return False

        return check

    def wait_for_sync(self, ctx: RunContext, ref: ManagedResourceRef, timeout: float) -> float:
        """Wait for a resource to report Synced.

        Returns:
            Seconds it took

        Raises:
            WaveSyncError: On a sync error condition or timeout
        """
        outcome = wait_within_deadline(
            self.poller, ctx, f"{ref.name} synced", self.sync_probe(ref), timeout
        )
        if outcome.is_success():
            return outcome.elapsed

        raise WaveSyncError(
            f"{ref.name} failed to sync: {outcome.reason}",
            context=ErrorContext(
                resource_id=str(ref),
                operation="sync",
                elapsed=outcome.elapsed,
                conditions=outcome.diagnostics,
            ),
            suggestions=[
                f"Inspect the application: kubectl describe application {ref.name} -n {ref.namespace}",
                "Check that the repository URL and path in the application source are correct",
            ],
        )

    def wait_for_health(self, ctx: RunContext, ref: ManagedResourceRef, timeout: float) -> float:
        """Wait for a resource to report Healthy.

        Returns:
            Seconds it took

        Raises:
            WaveHealthError: When the resource degrades or times out
        """
        outcome = wait_within_deadline(
            self.poller, ctx, f"{ref.name} healthy", self.health_probe(ref), timeout
        )
        if outcome.is_success():
            return outcome.elapsed

        raise WaveHealthError(
            f"{ref.name} failed health check: {outcome.reason}",
            context=ErrorContext(
                resource_id=str(ref),
                operation="health",
                elapsed=outcome.elapsed,
                conditions=outcome.diagnostics,
            ),
            suggestions=[
                f"Inspect the application: kubectl describe application {ref.name} -n {ref.namespace}",
                "Check pod status in the application's destination namespace",
            ],
        )

    def run_probe(self, ctx: RunContext, probe: VerificationProbe) -> ProbeResult:
        """Evaluate one verification probe within its own timeout."""
        if probe.settle_delay > 0:
            self._sleep(min(probe.settle_delay, ctx.remaining()))

        check = probe.check
        if probe.retry:
            strategy = RetryStrategy(
                max_attempts=probe.retry.max_attempts,
                initial_delay=probe.retry.initial_delay,
                fatal=(FatalProbeError,),
                sleep=self._sleep,
            )

            def check() -> bool:
                return strategy.execute(probe.check)

        outcome = wait_within_deadline(
            self.poller, ctx, probe.name, check, probe.timeout, interval=probe.interval
        )
        return ProbeResult(name=probe.name, outcome=outcome, required=probe.required)

    def run_probes(self, ctx: RunContext, wave: "WaveSpec") -> List[ProbeResult]:
        """Run a wave's probes in order.

        Raises:
            VerificationError: On the first required probe that fails
        """
        results = []
        for probe in wave.probes:
            result = self.run_probe(ctx, probe)
            results.append(result)

            if result.is_success():
                continue
            if not probe.required:
                logger.warning(f"{probe.name} not confirmed ({result.outcome.reason}), continuing")
                continue

            raise VerificationError(
                f"{wave.name}: {probe.name} failed ({result.outcome.reason})",
                context=ErrorContext(
                    resource_id=str(wave.resource),
                    operation=probe.name,
                    elapsed=result.outcome.elapsed,
                    conditions=result.outcome.diagnostics,
                ),
                suggestions=[f"Check resources in the wave's namespaces: kubectl get all -A"],
            )
        return results

    def watch(self, ctx: RunContext, wave: "WaveSpec") -> WaveResult:
        """Watch a wave through sync, health, and its verification probes.

        Args:
            ctx: Run context
            wave: Wave to watch

        Returns:
            WaveResult

        Raises:
            WaveSyncError, WaveHealthError, VerificationError
        """
        ref = wave.resource
        result = WaveResult(name=wave.name, resource=ref)
        result.sync_elapsed = self.wait_for_sync(ctx, ref, wave.sync_timeout)
        result.health_elapsed = self.wait_for_health(ctx, ref, wave.health_timeout)
        result.probe_results = self.run_probes(ctx, wave)
        return result
