"""Tests for configuration loading and validation."""

import pytest

from wavegate.config.models import DeployConfig
from wavegate.config.parser import Config, ConfigValidationError


def test_defaults_without_config_file(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    settings = Config().load(environ={}).settings

    assert settings.cluster.profile == "dka-demo"
    assert settings.cluster.cpus == 4
    assert settings.cluster.memory == 8192
    assert settings.cluster.driver == "docker"
    assert settings.timeouts.app_sync == 600
    assert settings.timeouts.total == 1800
    assert settings.rollout.applications == ["datadog-operator", "datadog-agent", "nginx-dka-demo"]
    assert settings.rollout.cleanup_on_error is False
    assert settings.rollout.interactive is True


def test_yaml_file_values_are_loaded(tmp_path):
    path = tmp_path / "wavegate.yaml"
    path.write_text(
        "cluster:\n"
        "  profile: ci\n"
        "  cpus: 2\n"
        "timeouts:\n"
        "  app_sync: 300\n"
    )

    settings = Config(str(path)).load(environ={}).settings

    assert settings.cluster.profile == "ci"
    assert settings.cluster.cpus == 2
    assert settings.timeouts.app_sync == 300
    assert settings.timeouts.app_health == 600


def test_environment_overrides_file(tmp_path):
    path = tmp_path / "wavegate.yaml"
    path.write_text("cluster:\n  profile: from-file\n")

    settings = Config(str(path)).load(environ={
        "MINIKUBE_PROFILE": "from-env",
        "MINIKUBE_MEMORY": "4096",
        "CLEANUP_ON_ERROR": "true",
        "REPO_URL": "https://github.com/example/fork",
    }).settings

    assert settings.cluster.profile == "from-env"
    assert settings.cluster.memory == 4096
    assert settings.rollout.cleanup_on_error is True
    assert settings.rollout.repo_url == "https://github.com/example/fork"


def test_explicit_overrides_win_and_none_is_ignored(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    settings = Config().load(
        environ={"MINIKUBE_CPUS": "6", "MINIKUBE_DRIVER": "podman"},
        overrides={"cluster": {"cpus": 8, "driver": None}},
    ).settings

    assert settings.cluster.cpus == 8
    assert settings.cluster.driver == "podman"


def test_missing_explicit_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        Config(str(tmp_path / "absent.yaml")).load(environ={})


def test_invalid_values_reported_with_location(tmp_path):
    path = tmp_path / "wavegate.yaml"
    path.write_text("cluster:\n  cpus: 0\n")

    with pytest.raises(ConfigValidationError) as exc_info:
        Config(str(path)).load(environ={})

    assert exc_info.value.errors[0]["loc"] == ["cluster", "cpus"]
    assert "cluster -> cpus" in str(exc_info.value)


def test_non_mapping_root_rejected(tmp_path):
    path = tmp_path / "wavegate.yaml"
    path.write_text("- just\n- a list\n")

    with pytest.raises(ConfigValidationError):
        Config(str(path)).load(environ={})


def test_malformed_yaml_rejected(tmp_path):
    path = tmp_path / "wavegate.yaml"
    path.write_text("cluster: [unclosed\n")

    with pytest.raises(ConfigValidationError):
        Config(str(path)).load(environ={})


def test_comment_only_section_accepts_overrides(tmp_path):
    path = tmp_path / "wavegate.yaml"
    path.write_text("cluster:\n  # profile: dev\nrollout:\n")

    settings = Config(str(path)).load(
        environ={"MINIKUBE_PROFILE": "ci"},
        overrides={"rollout": {"skip_verify": True}},
    ).settings

    assert settings.cluster.profile == "ci"
    assert settings.cluster.cpus == 4
    assert settings.rollout.skip_verify is True


def test_scalar_section_rejected(tmp_path):
    path = tmp_path / "wavegate.yaml"
    path.write_text("cluster: minikube\n")

    with pytest.raises(ConfigValidationError) as exc_info:
        Config(str(path)).load(environ={"MINIKUBE_PROFILE": "ci"})

    assert exc_info.value.errors[0]["loc"] == ["cluster"]


def test_poll_interval_must_fit_every_timeout():
    with pytest.raises(ValueError):
        DeployConfig(timeouts={"poll_interval": 90, "secret_wait": 60})


@pytest.mark.parametrize("applications", [
    ["datadog-operator", "datadog-agent"],
    ["datadog-operator", "datadog-operator", "nginx-dka-demo"],
])
def test_wave_applications_validated(applications):
    with pytest.raises(ValueError):
        DeployConfig(rollout={"applications": applications})
