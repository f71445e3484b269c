"""Steps that prepare the cluster before any wave is watched."""

import os
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional

import yaml

from wavegate.clients.base import ClusterProvider, ControlPlaneClient
from wavegate.clients.git import detect_repo_url
from wavegate.clients.kubectl import Kubectl
from wavegate.clients.models import ClusterStatus, ManagedResourceRef
from wavegate.orchestrator.probes import deployment_available, statefulset_ready
from wavegate.orchestrator.steps import RolloutStep
from wavegate.orchestrator.watcher import wait_within_deadline
from wavegate.state.context import RunContext
from wavegate.state.stage import Stage
from wavegate.utils.commands import CommandResult, run_command
from wavegate.utils.errors import (
    ClusterCreationError,
    ClusterStartError,
    ClusterTimeoutError,
    CommandError,
    ControllerInstallError,
    ControllerTimeoutError,
    ErrorContext,
    ResourceApplicationError,
    SecretProvisioningError,
)
from wavegate.utils.logging import get_logger
from wavegate.utils.polling import ConditionPoller
from wavegate.utils.retry import RetryExhaustedError, RetryStrategy

logger = get_logger(__name__)


class ClusterStep(RolloutStep):
    """Reuse, start, or create the local cluster and wait for its API."""

    stage = Stage.CLUSTER
    title = "Cluster provisioning"

    def __init__(self, cluster: ClusterProvider, poller: ConditionPoller):
        self.cluster = cluster
        self.poller = poller

    def run(self, ctx: RunContext) -> None:
        cfg = ctx.config.cluster
        status = self.cluster.status(cfg.profile)

        if status == ClusterStatus.RUNNING:
            logger.info(f"Cluster {cfg.profile} is already running, reusing it")
            try:
                self.cluster.update_context(cfg.profile)
            except CommandError as e:
                raise ClusterStartError(
                    f"Could not configure kubectl for running cluster {cfg.profile}",
                    cause=e,
                    context=ErrorContext(resource_id=cfg.profile, operation="update-context"),
                )
        elif status == ClusterStatus.STOPPED:
            logger.info(f"Cluster {cfg.profile} exists but is stopped, starting it")
            try:
                self.cluster.start(cfg.profile)
            except CommandError as e:
                raise ClusterStartError(
                    f"Failed to start cluster {cfg.profile}",
                    cause=e,
                    context=ErrorContext(resource_id=cfg.profile, operation="start"),
                    suggestions=[f"Check minikube logs: minikube logs -p {cfg.profile}"],
                )
        else:
            try:
                self.cluster.create(cfg.profile, cfg.cpus, cfg.memory, cfg.driver)
            except CommandError as e:
                raise ClusterCreationError(
                    f"Failed to create cluster {cfg.profile}",
                    cause=e,
                    context=ErrorContext(resource_id=cfg.profile, operation="create"),
                    suggestions=[
                        "Check that Docker (or your chosen driver) is running",
                        "Try a different driver with --driver",
                        f"Check minikube logs: minikube logs -p {cfg.profile}",
                    ],
                )

        outcome = wait_within_deadline(
            self.poller, ctx, "cluster API reachable",
            self.cluster.is_reachable, ctx.config.timeouts.cluster_ready,
        )
        if not outcome.is_success():
            raise ClusterTimeoutError(
                f"Cluster {cfg.profile} did not become ready: {outcome.reason}",
                context=ErrorContext(resource_id=cfg.profile, elapsed=outcome.elapsed),
                suggestions=[f"Check status: minikube status -p {cfg.profile}"],
            )
        logger.info(f"Cluster {cfg.profile} is ready")


class ControllerStep(RolloutStep):
    """Install the GitOps controller and wait for its components."""

    stage = Stage.CONTROLLER
    title = "Controller installation"

    def __init__(
        self,
        kubectl: Kubectl,
        poller: ConditionPoller,
        sleep: Callable[[float], None] = time.sleep
    ):
        """Initialize controller step.

        Args:
            kubectl: kubectl wrapper
            poller: Poller used for readiness waits
            sleep: Sleep between install attempts, injectable for tests
        """
        self.kubectl = kubectl
        self.poller = poller
        self._sleep = sleep

    def run(self, ctx: RunContext) -> None:
        cfg = ctx.config.controller

        if self._installed(cfg.namespace, cfg.server_deployment):
            logger.info("Controller appears to be already installed")
            if not ctx.ask("Reinstall ArgoCD?", default=False):
                logger.info("Skipping controller installation")
                self.retrieve_admin_password(ctx)
                return
            self._remove_installation(ctx)

        self._install(ctx)
        self._wait_for_components(ctx)
        self.retrieve_admin_password(ctx)

    def _installed(self, namespace: str, server_deployment: str) -> bool:
        try:
            return (self.kubectl.namespace_exists(namespace)
                    and self.kubectl.exists("deployment", server_deployment, namespace))
        except CommandError as e:
            raise ControllerInstallError(
                "Could not check for an existing controller installation", cause=e
            )

    def _remove_installation(self, ctx: RunContext) -> None:
        namespace = ctx.config.controller.namespace
        logger.info(f"Deleting existing controller installation in {namespace}")
        try:
            self.kubectl.delete_namespaces([namespace])
        except CommandError as e:
            raise ControllerInstallError(f"Failed to delete namespace {namespace}", cause=e)

        outcome = wait_within_deadline(
            self.poller, ctx, f"namespace {namespace} removed",
            lambda: not self.kubectl.namespace_exists(namespace),
            ctx.config.timeouts.controller_ready,
        )
        if not outcome.is_success():
            raise ControllerInstallError(
                f"Namespace {namespace} was not removed: {outcome.reason}",
                context=ErrorContext(resource_id=namespace, elapsed=outcome.elapsed),
            )

    def _install(self, ctx: RunContext) -> None:
        cfg = ctx.config.controller
        try:
            if not self.kubectl.namespace_exists(cfg.namespace):
                self.kubectl.create_namespace(cfg.namespace)
        except CommandError as e:
            raise ControllerInstallError(f"Failed to create namespace {cfg.namespace}", cause=e)

        logger.info(f"Applying controller manifests from {cfg.manifest_url}")
        strategy = RetryStrategy(
            max_attempts=cfg.install_attempts,
            initial_delay=cfg.install_retry_delay,
            retryable=(CommandError,),
            sleep=self._sleep,
        )
        try:
            strategy.execute(self.kubectl.apply_url, cfg.manifest_url, cfg.namespace)
        except RetryExhaustedError as e:
            raise ControllerInstallError(
                "Failed to install the controller",
                cause=e.last_error,
                context=ErrorContext(
                    operation="apply",
                    additional_info={"manifest": cfg.manifest_url, "attempts": e.attempts},
                ),
                suggestions=["Check network access to the manifest URL"],
            )
        logger.info("Controller manifests applied")

    def _wait_for_components(self, ctx: RunContext) -> None:
        cfg = ctx.config.controller
        timeout = ctx.config.timeouts.controller_ready

        components = [
            (f"deployment/{name}", deployment_available(self.kubectl, cfg.namespace, name))
            for name in cfg.deployments
        ]
        components += [
            (f"statefulset/{name}", statefulset_ready(self.kubectl, cfg.namespace, name))
            for name in cfg.statefulsets
        ]

        for component, probe in components:
            outcome = wait_within_deadline(self.poller, ctx, f"{component} ready", probe, timeout)
            if not outcome.is_success():
                raise ControllerTimeoutError(
                    f"Timeout waiting for {component}: {outcome.reason}",
                    context=ErrorContext(
                        resource_id=f"{cfg.namespace}/{component}", elapsed=outcome.elapsed
                    ),
                    suggestions=[f"Check pod status: kubectl get pods -n {cfg.namespace}"],
                )

        logger.info("All controller components are ready")

    def retrieve_admin_password(self, ctx: RunContext) -> Optional[str]:
        """Read the controller's initial admin password into the context.

        A missing password is not an error; the summary tells the user how to
        read it by hand.
        """
        cfg = ctx.config.controller
        outcome = wait_within_deadline(
            self.poller, ctx, "controller admin secret exists",
            lambda: self.kubectl.exists("secret", cfg.admin_secret, cfg.namespace),
            ctx.config.timeouts.secret_wait,
        )
        if not outcome.is_success():
            logger.warning("Could not retrieve the controller admin password")
            return None

        try:
            raw = self.kubectl.get_secret_field(cfg.admin_secret, cfg.namespace, "password")
        except CommandError as e:
            logger.warning(f"Could not read the controller admin password: {e}")
            return None

        if not raw:
            logger.warning("Retrieved controller admin password is empty")
            return None

        ctx.admin_password = raw.decode("utf-8", errors="replace")
        logger.info("Retrieved controller admin password")
        return ctx.admin_password


class SecretStep(RolloutStep):
    """Provision the credential secret the agents read their keys from."""

    stage = Stage.SECRET
    title = "Credential secret"

    def __init__(self, kubectl: Kubectl, environ: Optional[Mapping[str, str]] = None):
        self.kubectl = kubectl
        self.environ = os.environ if environ is None else environ

    def run(self, ctx: RunContext) -> None:
        cfg = ctx.config.credentials
        try:
            if not self.kubectl.namespace_exists(cfg.namespace):
                self.kubectl.create_namespace(cfg.namespace)
            else:
                logger.info(f"Namespace {cfg.namespace} already exists")

            if self.kubectl.exists("secret", cfg.secret_name, cfg.namespace):
                logger.warning(f"Secret {cfg.secret_name} already exists in {cfg.namespace}")
                if not ctx.ask("Recreate the secret with current credentials?", default=False):
                    logger.info("Keeping existing secret")
                    self.verify(ctx)
                    return
                self.kubectl.delete("secret", cfg.secret_name, cfg.namespace)

            self.kubectl.create_generic_secret(
                cfg.secret_name,
                cfg.namespace,
                {
                    cfg.api_key_field: self._credential(cfg.api_key_env),
                    cfg.app_key_field: self._credential(cfg.app_key_env),
                },
            )
        except CommandError as e:
            raise SecretProvisioningError(
                f"Failed to provision secret {cfg.secret_name}",
                cause=e,
                context=ErrorContext(resource_id=f"{cfg.namespace}/{cfg.secret_name}"),
            )

        logger.info(f"Secret {cfg.secret_name} created")
        self.verify(ctx)

    def _credential(self, env_var: str) -> str:
        value = self.environ.get(env_var)
        if not value:
            raise SecretProvisioningError(f"Environment variable {env_var} is not set")
        return value

    def verify(self, ctx: RunContext) -> None:
        """Check that the secret carries both credential keys.

        Raises:
            SecretProvisioningError: If a key is missing or the secret is unreadable
        """
        cfg = ctx.config.credentials
        fields = [cfg.api_key_field, cfg.app_key_field]
        try:
            missing = [
                f for f in fields
                if not self.kubectl.get_secret_field(cfg.secret_name, cfg.namespace, f)
            ]
        except CommandError as e:
            raise SecretProvisioningError(f"Could not read secret {cfg.secret_name}", cause=e)

        if missing:
            raise SecretProvisioningError(
                f"Secret {cfg.secret_name} is missing required keys: {', '.join(missing)}",
                context=ErrorContext(resource_id=f"{cfg.namespace}/{cfg.secret_name}"),
                suggestions=["Re-run and choose to recreate the secret"],
            )
        logger.info(f"Secret verified with keys: {', '.join(fields)}")


def patch_repo_url(manifest: str, application: str, repo_url: str) -> str:
    """Point an Application's source at ``repo_url``.

    Args:
        manifest: Multi-document YAML text
        application: Name of the Application to patch
        repo_url: Repository URL to set

    Returns:
        Manifest text, re-serialized only when a change was made

    Raises:
        ResourceApplicationError: If the manifest holds no such Application
    """
    documents: List[Dict[str, Any]] = [d for d in yaml.safe_load_all(manifest) if d]
    target = next(
        (d for d in documents
         if d.get("kind") == "Application"
         and (d.get("metadata") or {}).get("name") == application),
        None,
    )
    if target is None:
        raise ResourceApplicationError(f"Manifest does not define Application {application}")

    source = target.setdefault("spec", {}).setdefault("source", {})
    current = source.get("repoURL")
    if current == repo_url:
        logger.info("Repository URL matches manifest, applying directly")
        return manifest

    logger.warning(f"Manifest repository URL ({current}) differs from detected URL ({repo_url})")
    source["repoURL"] = repo_url
    return yaml.safe_dump_all(documents, sort_keys=False)


class RootApplicationStep(RolloutStep):
    """Apply the root application and wait for the wave applications it creates."""

    stage = Stage.ROOT_APPLICATION
    title = "Root application"

    def __init__(
        self,
        client: ControlPlaneClient,
        poller: ConditionPoller,
        runner: Callable[..., CommandResult] = run_command,
        base_dir: Optional[Path] = None
    ):
        """Initialize root application step.

        Args:
            client: Control plane client
            poller: Poller used to wait for applications to appear
            runner: Command runner for repository detection
            base_dir: Directory the root manifest path is relative to
        """
        self.client = client
        self.poller = poller
        self.runner = runner
        self.base_dir = base_dir or Path.cwd()

    def run(self, ctx: RunContext) -> None:
        rollout = ctx.config.rollout
        namespace = ctx.config.controller.namespace

        ctx.repo_url = detect_repo_url(rollout.repo_url, rollout.default_repo_url, self.runner)

        manifest_path = self.base_dir / rollout.root_manifest
        try:
            manifest = manifest_path.read_text()
        except OSError as e:
            raise ResourceApplicationError(
                f"Cannot read root application manifest {manifest_path}",
                cause=e,
                suggestions=["Run from the repository root or set rollout.root_manifest"],
            )

        try:
            manifest = patch_repo_url(manifest, rollout.root_application, ctx.repo_url)
        except yaml.YAMLError as e:
            raise ResourceApplicationError(f"Invalid YAML in {manifest_path}", cause=e)

        try:
            self.client.apply(manifest)
        except CommandError as e:
            raise ResourceApplicationError("Failed to apply root application", cause=e)
        logger.info("Root application applied")

        for name in [rollout.root_application, *rollout.applications]:
            self._wait_exists(ctx, ManagedResourceRef(name=name, namespace=namespace))
        logger.info("All child applications created")

    def _wait_exists(self, ctx: RunContext, ref: ManagedResourceRef) -> None:
        outcome = wait_within_deadline(
            self.poller, ctx, f"application {ref.name} exists",
            lambda: self.client.exists(ref), ctx.config.timeouts.app_exists,
        )
        if not outcome.is_success():
            raise ResourceApplicationError(
                f"Application {ref.name} was not created: {outcome.reason}",
                context=ErrorContext(resource_id=str(ref), elapsed=outcome.elapsed),
                suggestions=[f"Inspect the root application: kubectl describe application -n {ref.namespace}"],
            )
