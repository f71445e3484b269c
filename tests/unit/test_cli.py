"""Tests for the command-line interface."""

import click
import pytest
from click.testing import CliRunner

from wavegate.cli import main
from wavegate.clients.models import HealthState, SyncState
from wavegate.orchestrator.cleanup import CleanupResult
from wavegate.orchestrator.orchestrator import RolloutResult
from wavegate.orchestrator.runner import RunOutcome
from wavegate.orchestrator.verification import ApplicationReport
from wavegate.state.context import RunContext
from wavegate.state.stage import Stage, StageTracker
from wavegate.utils.errors import ExitCode


class StubRunner:
    """Stands in for RolloutRunner and returns a prepared outcome."""

    instances = []
    exit_code = ExitCode.SUCCESS

    def __init__(self, config, confirm=None, **kwargs):
        self.config = config
        self.confirm = confirm
        StubRunner.instances.append(self)

    def run(self):
        stage = Stage.VERIFIED if self.exit_code == ExitCode.SUCCESS else Stage.WAVE_1
        ctx = RunContext(config=self.config, tracker=StageTracker(stage))
        if self.exit_code == ExitCode.SUCCESS:
            return RunOutcome(
                exit_code=self.exit_code,
                context=ctx,
                result=RolloutResult(
                    final_stage=Stage.VERIFIED,
                    duration=42.0,
                    repo_url="https://github.com/example/fork",
                    admin_password="s3cret-pass",
                ),
            )
        return RunOutcome(
            exit_code=self.exit_code,
            context=ctx,
            cleanup=CleanupResult(
                stage=stage,
                exit_code=self.exit_code,
                instructions=["minikube delete -p dka-demo"],
            ),
        )


@pytest.fixture(autouse=True)
def isolated(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    for variable in ("MINIKUBE_PROFILE", "MINIKUBE_CPUS", "MINIKUBE_MEMORY", "MINIKUBE_DRIVER",
                     "REPO_URL", "CLEANUP_ON_ERROR", "SKIP_VERIFY"):
        monkeypatch.delenv(variable, raising=False)
    monkeypatch.setattr(main, "setup_logging", lambda log_level: None)
    StubRunner.instances = []
    StubRunner.exit_code = ExitCode.SUCCESS
    monkeypatch.setattr(main, "RolloutRunner", StubRunner)


@pytest.fixture
def runner():
    return CliRunner()


def test_deploy_success_prints_summary(runner):
    result = runner.invoke(main.cli, ["deploy", "--non-interactive"])

    assert result.exit_code == 0
    assert "Rollout completed successfully" in result.output
    assert "s3cret-pass" in result.output


def test_deploy_options_override_configuration(runner):
    result = runner.invoke(main.cli, [
        "deploy", "--profile", "ci", "--cpus", "2", "--memory", "4096", "--driver", "podman",
        "--repo-url", "https://github.com/example/fork", "--cleanup-on-error", "--skip-verify",
        "--non-interactive",
    ])

    assert result.exit_code == 0
    config = StubRunner.instances[0].config
    assert config.cluster.profile == "ci"
    assert config.cluster.cpus == 2
    assert config.cluster.memory == 4096
    assert config.cluster.driver == "podman"
    assert config.rollout.repo_url == "https://github.com/example/fork"
    assert config.rollout.cleanup_on_error is True
    assert config.rollout.skip_verify is True
    assert config.rollout.interactive is False


def test_deploy_without_flags_keeps_file_values(runner, tmp_path):
    (tmp_path / "wavegate.yaml").write_text("rollout:\n  cleanup_on_error: true\n")

    result = runner.invoke(main.cli, ["deploy"])

    assert result.exit_code == 0
    config = StubRunner.instances[0].config
    assert config.rollout.cleanup_on_error is True
    assert config.rollout.interactive is True
    assert StubRunner.instances[0].confirm is main.confirm_prompt


def test_deploy_failure_exits_with_rollout_code(runner):
    StubRunner.exit_code = ExitCode.APP_SYNC_FAILED

    result = runner.invoke(main.cli, ["deploy", "--non-interactive"])

    assert result.exit_code == 41
    assert "Rollout failed" in result.output
    assert "wave_1" in result.output
    assert "minikube delete -p dka-demo" in result.output


def test_deploy_missing_config_file_exits_invalid_value(runner):
    result = runner.invoke(main.cli, ["deploy", "--config", "absent.yaml"])

    assert result.exit_code == 3
    assert StubRunner.instances == []


def test_deploy_invalid_option_value_exits_invalid_value(runner):
    result = runner.invoke(main.cli, ["deploy", "--cpus", "0"])

    assert result.exit_code == 3
    assert "cpus" in result.output


def test_status_all_converged(runner, monkeypatch):
    reports = [
        ApplicationReport(name, SyncState.SYNCED, HealthState.HEALTHY)
        for name in ("root-app", "datadog-operator", "datadog-agent", "nginx-dka-demo")
    ]
    monkeypatch.setattr(main, "collect_application_status", lambda client, names, namespace: reports)

    result = runner.invoke(main.cli, ["status"])

    assert result.exit_code == 0
    assert "nginx-dka-demo" in result.output


def test_status_not_converged_exits_one(runner, monkeypatch):
    reports = [ApplicationReport("datadog-agent", SyncState.OUT_OF_SYNC, HealthState.PROGRESSING)]
    monkeypatch.setattr(main, "collect_application_status", lambda client, names, namespace: reports)

    result = runner.invoke(main.cli, ["status"])

    assert result.exit_code == 1
    assert "OutOfSync" in result.output


def test_cleanup_cancelled(runner, monkeypatch, kubectl):
    monkeypatch.setattr(main, "Kubectl", lambda: kubectl)

    result = runner.invoke(main.cli, ["cleanup"], input="n\n")

    assert result.exit_code == 0
    assert "Cancelled" in result.output
    assert kubectl.calls == []


def test_cleanup_deletes_applications_and_namespaces(runner, monkeypatch, kubectl):
    monkeypatch.setattr(main, "Kubectl", lambda: kubectl)

    result = runner.invoke(main.cli, ["cleanup", "--yes"])

    assert result.exit_code == 0
    assert ("delete_all", "applications.argoproj.io", "argocd") in kubectl.calls
    assert [c[1] for c in kubectl.calls if c[0] == "delete_namespaces"] == [
        ("datadog",), ("nginx-dka-demo",), ("argocd",),
    ]


def test_cleanup_reports_failures(runner, monkeypatch, kubectl):
    kubectl.fail_deletes = ["argocd"]
    monkeypatch.setattr(main, "Kubectl", lambda: kubectl)

    result = runner.invoke(main.cli, ["cleanup", "-y"])

    assert result.exit_code == 1
    assert "namespace argocd" in result.output


def test_confirm_prompt_takes_default_on_eof(monkeypatch):
    def aborted(question, default):
        raise click.Abort()

    monkeypatch.setattr(main.click, "confirm", aborted)

    assert main.confirm_prompt("Delete minikube cluster?", False) is False
    assert main.confirm_prompt("Continue anyway?", True) is True
