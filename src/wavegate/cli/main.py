"""Main CLI entry point."""

import sys
from typing import Any, Dict, List, Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from wavegate.clients.argocd import ArgoApplicationClient
from wavegate.clients.kubectl import Kubectl
from wavegate.clients.minikube import MinikubeProvider
from wavegate.config.models import DeployConfig
from wavegate.config.parser import Config, ConfigValidationError
from wavegate.orchestrator.cleanup import CleanupController
from wavegate.orchestrator.orchestrator import RolloutResult
from wavegate.orchestrator.runner import RolloutRunner, RunOutcome
from wavegate.orchestrator.verification import ApplicationReport, collect_application_status
from wavegate.state.context import RunContext
from wavegate.state.stage import Stage, StageTracker
from wavegate.utils.errors import CommandError, ExitCode
from wavegate.utils.logging import setup_logging, get_logger

console = Console()
logger = get_logger(__name__)


@click.group()
@click.option('--log-level', default='info', type=click.Choice(['debug', 'info', 'warning', 'error']))
@click.pass_context
def cli(ctx, log_level):
    """Wave-gated GitOps rollout onto a local minikube cluster."""
    ctx.ensure_object(dict)
    ctx.obj['log_level'] = log_level

    setup_logging(log_level)


def load_config(
    config_path: Optional[str] = None,
    overrides: Optional[Dict[str, Dict[str, Any]]] = None
) -> DeployConfig:
    """Load and validate configuration, exiting on errors."""
    try:
        return Config(config_path).load(overrides=overrides).settings
    except FileNotFoundError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(int(ExitCode.INVALID_VALUE))
    except ConfigValidationError as e:
        console.print("[red]Configuration validation failed:[/red]\n")
        console.print(str(e))
        sys.exit(int(ExitCode.INVALID_VALUE))


def confirm_prompt(question: str, default: bool) -> bool:
    """Ask a yes/no question on the terminal, taking the default on EOF."""
    try:
        return click.confirm(question, default=default)
    except click.Abort:
        console.print()
        return default


def application_table(reports: List[ApplicationReport]) -> Table:
    """Render application sync/health as a table."""
    table = Table(title="Applications")
    table.add_column("Name", style="cyan")
    table.add_column("Sync")
    table.add_column("Health")

    for report in reports:
        sync_style = "green" if report.sync.value == "Synced" else "yellow"
        health_style = "green" if report.health.value == "Healthy" else "yellow"
        table.add_row(
            report.name,
            f"[{sync_style}]{report.sync.value}[/{sync_style}]",
            f"[{health_style}]{report.health.value}[/{health_style}]",
        )
    return table


def print_configuration(config: DeployConfig):
    console.print(Panel.fit(
        f"[bold]Minikube profile:[/bold] {config.cluster.profile}\n"
        f"CPUs: {config.cluster.cpus}\n"
        f"Memory: {config.cluster.memory}MB\n"
        f"Driver: {config.cluster.driver}\n"
        f"Repository URL: {config.rollout.repo_url or '<auto-detect>'}\n"
        f"Cleanup on error: {'enabled' if config.rollout.cleanup_on_error else 'disabled'}",
        title="Rollout Configuration",
        border_style="cyan"
    ))


def print_summary(config: DeployConfig, result: RolloutResult):
    """Print the success summary with access instructions and next steps."""
    profile = config.cluster.profile
    namespace = config.controller.namespace
    demo_ns = config.rollout.demo_namespace
    password = result.admin_password or (
        f"<check manually: kubectl -n {namespace} get secret "
        f"{config.controller.admin_secret} -o jsonpath='{{.data.password}}' | base64 -d>"
    )

    console.print()
    console.print(Panel.fit(
        f"[green]✓ Rollout completed successfully[/green]\n\n"
        f"[bold]Cluster[/bold]\n"
        f"  Profile: {profile}\n"
        f"  CPUs: {config.cluster.cpus}\n"
        f"  Memory: {config.cluster.memory}MB\n"
        f"  Driver: {config.cluster.driver}\n\n"
        f"[bold]ArgoCD access[/bold]\n"
        f"  UI URL: https://localhost:8080\n"
        f"  Username: admin\n"
        f"  Password: {password}\n"
        f"  Port-forward: [yellow]kubectl port-forward svc/{config.controller.server_deployment} "
        f"-n {namespace} 8080:443[/yellow]\n\n"
        f"Repository: {result.repo_url}\n"
        f"Duration: {result.duration:.0f}s",
        title="Rollout Complete",
        border_style="green"
    ))

    if result.wave_results:
        table = Table(title="Waves")
        table.add_column("Wave", style="cyan")
        table.add_column("Synced after", justify="right")
        table.add_column("Healthy after", justify="right")
        table.add_column("Checks")
        for wave in result.wave_results:
            warnings = wave.warnings()
            checks = "[green]all passed[/green]" if not warnings else (
                f"[yellow]not confirmed: {', '.join(warnings)}[/yellow]"
            )
            table.add_row(
                wave.name,
                f"{wave.sync_elapsed:.0f}s",
                f"{wave.health_elapsed:.0f}s",
                checks,
            )
        console.print(table)

    if result.applications:
        console.print(application_table(result.applications))

    console.print("\n[bold]Next steps:[/bold]")
    console.print(f"  1. Check DatadogPodAutoscaler status: [cyan]kubectl get datadogpodautoscaler -n {demo_ns}[/cyan]")
    console.print(f"  2. View autoscaler details: [cyan]kubectl describe datadogpodautoscaler -n {demo_ns}[/cyan]")
    console.print(f"  3. Watch the demo deployment scale: [cyan]kubectl get deployment -n {demo_ns} -w[/cyan]")
    console.print(f"  4. View agent logs: [cyan]kubectl logs -n {config.credentials.namespace} -l app=datadog --tail=50[/cyan]")
    console.print(f"  5. Delete the cluster when done: [cyan]minikube delete -p {profile}[/cyan]")


def print_failure(outcome: RunOutcome):
    """Print the failure panel for an aborted rollout."""
    stage = outcome.context.tracker.current
    lines = [
        f"[red]✗ Rollout failed[/red]\n",
        f"Stage: {stage.value}",
        f"Exit code: {int(outcome.exit_code)}",
    ]

    cleanup = outcome.cleanup
    if cleanup and cleanup.performed:
        if cleanup.deleted:
            lines.append(f"Deleted: {', '.join(cleanup.deleted)}")
        if cleanup.failed:
            lines.append(f"[yellow]Could not delete: {', '.join(cleanup.failed)}[/yellow]")
    elif cleanup and cleanup.instructions:
        lines.append("\nResources were kept for troubleshooting. To clean up manually:")
        lines.extend(f"  [cyan]{command}[/cyan]" for command in cleanup.instructions)

    console.print()
    console.print(Panel.fit("\n".join(lines), title="Rollout Failed", border_style="red"))


@cli.command()
@click.option('--profile', help='Minikube profile name')
@click.option('--cpus', type=int, help='CPUs for a new cluster')
@click.option('--memory', type=int, help='Memory in MB for a new cluster')
@click.option('--driver', help='Minikube driver')
@click.option('--repo-url', help='Repository URL the root application tracks')
@click.option('--cleanup-on-error', is_flag=True, help='Delete created resources on failure')
@click.option('--skip-verify', is_flag=True, help='Skip post-rollout verification')
@click.option('--non-interactive', is_flag=True, help='Never prompt; take the default answer')
@click.option('--config', default=None, help='Path to configuration file')
def deploy(profile, cpus, memory, driver, repo_url, cleanup_on_error, skip_verify, non_interactive, config):
    """Provision the cluster and roll out every wave."""
    settings = load_config(config, overrides={
        'cluster': {'profile': profile, 'cpus': cpus, 'memory': memory, 'driver': driver},
        'rollout': {
            'repo_url': repo_url,
            'cleanup_on_error': cleanup_on_error or None,
            'skip_verify': skip_verify or None,
            'interactive': False if non_interactive else None,
        },
    })

    print_configuration(settings)

    try:
        outcome = RolloutRunner(settings, confirm=confirm_prompt).run()
    except Exception as e:
        logger.exception("Unexpected error during rollout")
        console.print(f"[red]Unexpected error:[/red] {e}")
        sys.exit(int(ExitCode.INTERNAL_ERROR))

    if outcome.succeeded:
        print_summary(settings, outcome.result)
    else:
        print_failure(outcome)
    sys.exit(int(outcome.exit_code))


@cli.command()
@click.option('--config', default=None, help='Path to configuration file')
def status(config):
    """Show sync and health of the managed applications."""
    settings = load_config(config)
    kubectl = Kubectl()
    client = ArgoApplicationClient(kubectl)
    rollout = settings.rollout

    try:
        reports = collect_application_status(
            client,
            [rollout.root_application, *rollout.applications],
            settings.controller.namespace,
        )
    except CommandError as e:
        console.print(f"[red]Could not read application status:[/red] {e}")
        sys.exit(1)

    console.print(application_table(reports))
    if not all(r.converged for r in reports):
        sys.exit(1)


@cli.command()
@click.option('--delete-cluster', is_flag=True, help='Also delete the minikube cluster')
@click.option('--yes', '-y', is_flag=True, help='Skip confirmation prompt')
@click.option('--config', default=None, help='Path to configuration file')
def cleanup(delete_cluster, yes, config):
    """Delete applications, namespaces and optionally the cluster."""
    settings = load_config(config)
    namespaces = ", ".join(settings.rollout.cleanup_namespaces)

    if not yes:
        target = f"applications and namespaces ({namespaces})"
        if delete_cluster:
            target += f" and cluster {settings.cluster.profile}"
        if not click.confirm(f"Delete {target}?"):
            console.print("Cancelled")
            return

    kubectl = Kubectl()
    cluster = MinikubeProvider(kubectl)
    controller = CleanupController(cluster, ArgoApplicationClient(kubectl), kubectl)
    ctx = RunContext(config=settings, tracker=StageTracker(Stage.VERIFIED))

    result = controller.teardown(ctx)
    if delete_cluster:
        controller.delete_cluster(ctx, result)

    for item in result.deleted:
        console.print(f"  [green]✓[/green] {item}")
    for item in result.failed:
        console.print(f"  [red]✗[/red] {item}")

    if result.failed:
        sys.exit(1)


if __name__ == '__main__':
    cli()
