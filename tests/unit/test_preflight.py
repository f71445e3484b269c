"""Tests for preflight checks."""

import pytest

from wavegate.orchestrator.preflight import PreflightChecker, looks_like_placeholder
from wavegate.utils.errors import (
    ExitCode,
    InvalidCredentialError,
    MissingCredentialError,
    MissingDependencyError,
)


def test_all_prerequisites_met(ctx, credentials):
    PreflightChecker(environ=credentials, which=lambda command: True).run(ctx)


def test_missing_commands_listed_together(ctx, credentials):
    checker = PreflightChecker(environ=credentials, which=lambda command: command == "git")

    with pytest.raises(MissingDependencyError) as exc_info:
        checker.run(ctx)

    error = exc_info.value
    assert error.exit_code == ExitCode.MISSING_COMMAND
    assert error.context.additional_info == {"missing": ["minikube", "kubectl"]}
    assert len(error.suggestions) == 2


@pytest.mark.parametrize("variable", ["DD_API_KEY", "DD_APP_KEY"])
def test_missing_credential(ctx, credentials, variable):
    credentials[variable] = ""

    with pytest.raises(MissingCredentialError) as exc_info:
        PreflightChecker(environ=credentials, which=lambda command: True).run(ctx)

    assert exc_info.value.exit_code == ExitCode.MISSING_ENV_VAR
    assert variable in exc_info.value.message


def test_placeholder_declined_by_default(ctx, credentials):
    credentials["DD_API_KEY"] = "your-key"

    with pytest.raises(InvalidCredentialError) as exc_info:
        PreflightChecker(environ=credentials, which=lambda command: True).run(ctx)

    assert exc_info.value.exit_code == ExitCode.INVALID_VALUE


def test_placeholder_accepted_when_confirmed(ctx, credentials):
    credentials["DD_APP_KEY"] = "short"
    ctx.config.rollout.interactive = True
    questions = []
    ctx.confirm = lambda question, default: questions.append((question, default)) or True

    PreflightChecker(environ=credentials, which=lambda command: True).run(ctx)

    assert questions == [("Continue anyway?", False)]


@pytest.mark.parametrize("value,expected", [
    ("xxx", True),
    ("REPLACE", True),
    ("placeholder", True),
    ("123456789", True),
    ("0123456789", False),
    ("a" * 32, False),
])
def test_looks_like_placeholder(value, expected):
    assert looks_like_placeholder(value) is expected
