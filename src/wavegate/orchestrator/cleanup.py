"""Failure reporting and stage-scoped cleanup."""

from dataclasses import dataclass, field
from typing import List, Optional

from wavegate.clients.base import ClusterProvider, ControlPlaneClient
from wavegate.clients.kubectl import Kubectl
from wavegate.state.context import RunContext
from wavegate.state.stage import Stage
from wavegate.utils.errors import (
    CommandError,
    ExitCode,
    RolloutError,
    error_handler,
    exit_code_for,
)
from wavegate.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class CleanupResult:
    """What a cleanup pass did."""
    stage: Stage
    exit_code: ExitCode
    performed: bool = False
    deleted: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    cluster_deleted: bool = False
    instructions: List[str] = field(default_factory=list)


class CleanupController:
    """Reacts to a failed rollout according to how far it got.

    Resource deletions are best effort: a failed delete is logged and
    recorded, and the remaining deletions still run.
    """

    def __init__(
        self,
        cluster: ClusterProvider,
        client: ControlPlaneClient,
        kubectl: Kubectl,
        delete_timeout: float = 60,
        namespace_timeout: float = 120
    ):
        """Initialize cleanup controller.

        Args:
            cluster: Cluster lifecycle provider
            client: Control plane client owning the application records
            kubectl: kubectl wrapper used for namespace deletion
            delete_timeout: Seconds allowed for deleting applications
            namespace_timeout: Seconds allowed for deleting namespaces
        """
        self.cluster = cluster
        self.client = client
        self.kubectl = kubectl
        self.delete_timeout = delete_timeout
        self.namespace_timeout = namespace_timeout

    @staticmethod
    def manual_instructions(ctx: RunContext) -> List[str]:
        """Commands that remove everything a rollout may have created."""
        namespaces = " ".join(ctx.config.rollout.cleanup_namespaces)
        return [
            f"kubectl delete namespace {namespaces} --ignore-not-found=true",
            f"minikube delete -p {ctx.config.cluster.profile}",
        ]

    def report(self, ctx: RunContext, error: BaseException) -> ExitCode:
        """Log the failed stage, the error and its diagnostics.

        Returns:
            Exit code for the failure
        """
        stage = ctx.tracker.current
        code = exit_code_for(error)
        logger.error(f"Rollout failed at stage: {stage.value} (exit code: {int(code)})")

        rollout_error: RolloutError = (
            error if isinstance(error, RolloutError) else error_handler.handle_exception(error)
        )
        error_handler.log_error(rollout_error)
        return code

    def handle(self, ctx: RunContext, error: BaseException) -> CleanupResult:
        """Report a failure and clean up what the reached stage implies.

        Args:
            ctx: Run context of the failed rollout
            error: Exception that terminated it

        Returns:
            CleanupResult
        """
        code = self.report(ctx, error)
        stage = ctx.tracker.current
        result = CleanupResult(stage=stage, exit_code=code)

        if not ctx.config.rollout.cleanup_on_error:
            result.instructions = self.manual_instructions(ctx)
            logger.info("Cleanup not requested. Resources remain for troubleshooting.")
            logger.info("To clean up manually:")
            for command in result.instructions:
                logger.info(f"  {command}")
            return result

        logger.warning("Cleanup on error is enabled. Cleaning up resources...")
        result.performed = True

        if stage == Stage.INIT:
            logger.info("Nothing was created, nothing to clean up")
        elif stage == Stage.CLUSTER:
            self.delete_cluster(ctx, result)
        else:
            self.teardown(ctx, result)
            if self.confirm_cluster_delete(ctx):
                self.delete_cluster(ctx, result)

        logger.info("Cleanup completed")
        return result

    def teardown(self, ctx: RunContext, result: Optional[CleanupResult] = None) -> CleanupResult:
        """Delete every application record and the owned namespaces.

        Args:
            ctx: Run context
            result: Result to record into, created when omitted

        Returns:
            CleanupResult
        """
        if result is None:
            result = CleanupResult(
                stage=ctx.tracker.current, exit_code=ExitCode.SUCCESS, performed=True
            )

        namespace = ctx.config.controller.namespace
        logger.info("Deleting applications...")
        try:
            self.client.delete_all(namespace, timeout=self.delete_timeout)
            result.deleted.append(f"applications in {namespace}")
        except CommandError as e:
            logger.warning(f"Could not delete applications: {e}")
            result.failed.append(f"applications in {namespace}")

        logger.info("Deleting namespaces...")
        for name in ctx.config.rollout.cleanup_namespaces:
            try:
                self.kubectl.delete_namespaces([name], timeout=self.namespace_timeout)
                result.deleted.append(f"namespace {name}")
            except CommandError as e:
                logger.warning(f"Could not delete namespace {name}: {e}")
                result.failed.append(f"namespace {name}")

        return result

    @staticmethod
    def confirm_cluster_delete(ctx: RunContext) -> bool:
        """Ask whether to delete the cluster, keeping it when no answer can be read."""
        try:
            return ctx.ask("Delete minikube cluster?", default=False)
        except Exception as e:
            logger.warning(f"No answer to cluster deletion prompt ({type(e).__name__}), keeping cluster")
            return False

    def delete_cluster(self, ctx: RunContext, result: CleanupResult) -> None:
        """Delete the cluster, recording the outcome in ``result``."""
        profile = ctx.config.cluster.profile
        try:
            self.cluster.delete(profile)
            result.cluster_deleted = True
            result.deleted.append(f"cluster {profile}")
        except CommandError as e:
            logger.warning(f"Could not delete cluster {profile}: {e}")
            result.failed.append(f"cluster {profile}")


class CleanupGuard:
    """Scope guard that hands any abnormal exit to the cleanup controller once.

    Example:
        with CleanupGuard(controller, ctx) as guard:
            orchestrator.run(ctx)

    The exception is never suppressed; the caller maps it to an exit code.
    """

    def __init__(self, controller: CleanupController, ctx: RunContext):
        self.controller = controller
        self.ctx = ctx
        self.result: Optional[CleanupResult] = None
        self._handled = False

    def __enter__(self) -> "CleanupGuard":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        if exc_val is None or self._handled:
            return False

        self._handled = True
        try:
            self.result = self.controller.handle(self.ctx, exc_val)
        except Exception as e:
            logger.warning(f"Cleanup did not complete: {e}")
            self.result = CleanupResult(
                stage=self.ctx.tracker.current,
                exit_code=exit_code_for(exc_val),
                performed=self.ctx.config.rollout.cleanup_on_error,
                failed=["cleanup"],
            )
        return False
