"""Unit tests for stage-scoped cleanup."""

import click
import pytest

from wavegate.clients.models import ClusterStatus
from wavegate.orchestrator.cleanup import CleanupController, CleanupGuard
from wavegate.state.stage import Stage
from wavegate.utils.errors import ExitCode, VerificationError, WaveHealthError, WaveSyncError


@pytest.fixture
def controller(cluster, control_plane, kubectl):
    cluster.current = ClusterStatus.RUNNING
    return CleanupController(cluster, control_plane, kubectl)


@pytest.fixture
def cleanup_ctx(ctx):
    ctx.config.rollout.cleanup_on_error = True
    return ctx


def _namespace_deletes(kubectl):
    return [c[1][0] for c in kubectl.calls if c[0] == "delete_namespaces"]


def test_disabled_cleanup_only_prints_instructions(controller, ctx, cluster, control_plane, kubectl):
    ctx.tracker.advance(Stage.WAVE_1)

    result = controller.handle(ctx, WaveHealthError("datadog-agent degraded"))

    assert result.exit_code == ExitCode.APP_HEALTH_FAILED
    assert not result.performed
    assert result.instructions == [
        "kubectl delete namespace datadog nginx-dka-demo argocd --ignore-not-found=true",
        "minikube delete -p dka-demo",
    ]
    assert cluster.calls == []
    assert control_plane.calls == []
    assert kubectl.calls == []


def test_init_stage_deletes_nothing(controller, cleanup_ctx, cluster, kubectl):
    result = controller.handle(cleanup_ctx, RuntimeError("boom"))

    assert result.performed
    assert result.exit_code == ExitCode.INTERNAL_ERROR
    assert result.deleted == []
    assert cluster.calls == []
    assert kubectl.calls == []


def test_cluster_stage_deletes_only_cluster(controller, cleanup_ctx, cluster, control_plane, kubectl):
    cleanup_ctx.tracker.advance(Stage.CLUSTER)

    result = controller.handle(cleanup_ctx, RuntimeError("boom"))

    assert result.cluster_deleted
    assert cluster.calls == [("delete", "dka-demo")]
    assert control_plane.calls == []
    assert kubectl.calls == []


def test_wave_stage_deletes_applications_and_namespaces(controller, cleanup_ctx, cluster, control_plane, kubectl):
    cleanup_ctx.tracker.advance(Stage.WAVE_2)

    result = controller.handle(cleanup_ctx, WaveHealthError("nginx-dka-demo degraded"))

    assert control_plane.calls == [("delete_all", "argocd")]
    assert _namespace_deletes(kubectl) == ["datadog", "nginx-dka-demo", "argocd"]
    assert result.deleted == [
        "applications in argocd",
        "namespace datadog",
        "namespace nginx-dka-demo",
        "namespace argocd",
    ]
    assert not result.cluster_deleted
    assert cluster.calls == []


def test_cluster_deleted_when_confirmed(controller, cleanup_ctx, cluster):
    cleanup_ctx.config.rollout.interactive = True
    questions = []
    cleanup_ctx.confirm = lambda question, default: questions.append(question) or True
    cleanup_ctx.tracker.advance(Stage.SECRET)

    result = controller.handle(cleanup_ctx, RuntimeError("boom"))

    assert questions == ["Delete minikube cluster?"]
    assert result.cluster_deleted
    assert cluster.current == ClusterStatus.ABSENT


def test_failed_deletions_do_not_stop_remaining_ones(controller, cleanup_ctx, control_plane, kubectl):
    cleanup_ctx.tracker.advance(Stage.VERIFICATION)
    control_plane.fail_delete_all = True
    kubectl.fail_deletes = ["nginx-dka-demo"]

    result = controller.handle(cleanup_ctx, VerificationError("cluster unreachable"))

    assert _namespace_deletes(kubectl) == ["datadog", "nginx-dka-demo", "argocd"]
    assert result.failed == ["applications in argocd", "namespace nginx-dka-demo"]
    assert result.deleted == ["namespace datadog", "namespace argocd"]


def test_failed_cluster_delete_is_recorded(controller, cleanup_ctx, cluster):
    cleanup_ctx.tracker.advance(Stage.CLUSTER)
    cluster.fail["delete"] = True

    result = controller.handle(cleanup_ctx, RuntimeError("boom"))

    assert not result.cluster_deleted
    assert result.failed == ["cluster dka-demo"]


def test_guard_handles_once_and_reraises(controller, cleanup_ctx, cluster):
    cleanup_ctx.tracker.advance(Stage.CLUSTER)
    guard = CleanupGuard(controller, cleanup_ctx)

    with pytest.raises(KeyboardInterrupt):
        with guard:
            raise KeyboardInterrupt()
    with pytest.raises(RuntimeError):
        with guard:
            raise RuntimeError("again")

    assert guard.result.exit_code == ExitCode.INTERRUPTED
    assert cluster.calls == [("delete", "dka-demo")]


def test_guard_does_nothing_on_success(controller, cleanup_ctx, cluster):
    with CleanupGuard(controller, cleanup_ctx) as guard:
        pass

    assert guard.result is None
    assert cluster.calls == []


def test_report_logs_failed_stage(controller, ctx, caplog):
    caplog.set_level("ERROR")
    ctx.tracker.advance(Stage.WAVE_0)

    code = controller.report(ctx, WaveHealthError("datadog-operator degraded"))

    assert code == ExitCode.APP_HEALTH_FAILED
    assert "Rollout failed at stage: wave_0 (exit code: 42)" in caplog.text


def test_unanswered_cluster_prompt_keeps_cluster(controller, cleanup_ctx, cluster, kubectl):
    cleanup_ctx.config.rollout.interactive = True
    cleanup_ctx.tracker.advance(Stage.WAVE_1)

    def no_answer(question, default):
        raise click.Abort()

    cleanup_ctx.confirm = no_answer

    result = controller.handle(cleanup_ctx, WaveHealthError("datadog-agent degraded"))

    assert result.exit_code == ExitCode.APP_HEALTH_FAILED
    assert result.performed
    assert not result.cluster_deleted
    assert _namespace_deletes(kubectl) == ["datadog", "nginx-dka-demo", "argocd"]
    assert cluster.calls == []


def test_guard_keeps_original_error_when_cleanup_fails(controller, cleanup_ctx, monkeypatch):
    cleanup_ctx.tracker.advance(Stage.WAVE_1)

    def broken_handle(ctx, error):
        raise RuntimeError("kubectl vanished")

    monkeypatch.setattr(controller, "handle", broken_handle)
    guard = CleanupGuard(controller, cleanup_ctx)

    with pytest.raises(WaveSyncError):
        with guard:
            raise WaveSyncError("datadog-agent failed to sync")

    assert guard.result.exit_code == ExitCode.APP_SYNC_FAILED
    assert guard.result.stage == Stage.WAVE_1
    assert guard.result.failed == ["cleanup"]
