"""Orchestrator module for wave-gated rollouts."""

from wavegate.orchestrator.probes import (
    RetryPolicy,
    VerificationProbe,
    condition_true,
    crds_registered,
    daemonset_rolled_out,
    deployment_available,
    resource_present,
    statefulset_ready,
)
from wavegate.orchestrator.watcher import (
    ProbeResult,
    WaveResourceWatcher,
    WaveResult,
    wait_within_deadline,
)
from wavegate.orchestrator.steps import RolloutStep
from wavegate.orchestrator.prerequisites import (
    ClusterStep,
    ControllerStep,
    RootApplicationStep,
    SecretStep,
    patch_repo_url,
)
from wavegate.orchestrator.waves import WaveSpec, WaveStep, build_default_waves
from wavegate.orchestrator.verification import (
    ApplicationReport,
    VerificationStep,
    collect_application_status,
)
from wavegate.orchestrator.orchestrator import RolloutResult, WaveOrchestrator, build_poller
from wavegate.orchestrator.cleanup import CleanupController, CleanupGuard, CleanupResult
from wavegate.orchestrator.preflight import PreflightChecker, looks_like_placeholder
from wavegate.orchestrator.runner import RolloutRunner, RunOutcome

__all__ = [
    # Probes
    'RetryPolicy',
    'VerificationProbe',
    'condition_true',
    'crds_registered',
    'daemonset_rolled_out',
    'deployment_available',
    'resource_present',
    'statefulset_ready',

    # Watching
    'ProbeResult',
    'WaveResourceWatcher',
    'WaveResult',
    'wait_within_deadline',

    # Steps
    'RolloutStep',
    'ClusterStep',
    'ControllerStep',
    'RootApplicationStep',
    'SecretStep',
    'patch_repo_url',
    'WaveSpec',
    'WaveStep',
    'build_default_waves',
    'ApplicationReport',
    'VerificationStep',
    'collect_application_status',

    # Orchestration
    'RolloutResult',
    'WaveOrchestrator',
    'build_poller',
    'PreflightChecker',
    'looks_like_placeholder',
    'RolloutRunner',
    'RunOutcome',

    # Cleanup
    'CleanupController',
    'CleanupGuard',
    'CleanupResult',
]
