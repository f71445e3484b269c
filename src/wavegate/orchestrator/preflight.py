"""Checks run before anything is created."""

import os
from typing import Callable, Dict, List, Mapping, Optional

from wavegate.state.context import RunContext
from wavegate.utils.commands import command_exists
from wavegate.utils.errors import (
    ErrorContext,
    InvalidCredentialError,
    MissingCredentialError,
    MissingDependencyError,
)
from wavegate.utils.logging import get_logger

logger = get_logger(__name__)

# command -> install hint
REQUIRED_COMMANDS: Dict[str, str] = {
    "minikube": "https://minikube.sigs.k8s.io/docs/start/",
    "kubectl": "https://kubernetes.io/docs/tasks/tools/",
    "git": "https://git-scm.com/downloads",
}

PLACEHOLDER_VALUES = frozenset({"xxx", "yyy", "your-key", "placeholder", "REPLACE"})
MIN_CREDENTIAL_LENGTH = 10


def looks_like_placeholder(value: str) -> bool:
    """Check whether a credential is a known placeholder or too short to be real."""
    return value in PLACEHOLDER_VALUES or len(value) < MIN_CREDENTIAL_LENGTH


class PreflightChecker:
    """Fails fast on a missing tool or credential before any remote state exists."""

    def __init__(
        self,
        environ: Optional[Mapping[str, str]] = None,
        which: Callable[[str], bool] = command_exists
    ):
        """Initialize preflight checker.

        Args:
            environ: Environment holding the credentials, defaults to os.environ
            which: Predicate telling whether a command is on PATH
        """
        self.environ = os.environ if environ is None else environ
        self.which = which

    def check_commands(self) -> None:
        """Raises MissingDependencyError listing every missing command."""
        missing: List[str] = []
        for command, hint in REQUIRED_COMMANDS.items():
            if self.which(command):
                logger.info(f"Found: {command}")
            else:
                logger.error(f"Required command not found: {command}")
                missing.append(command)

        if missing:
            raise MissingDependencyError(
                f"Missing required commands: {', '.join(missing)}",
                context=ErrorContext(additional_info={"missing": missing}),
                suggestions=[f"Install {c}: {REQUIRED_COMMANDS[c]}" for c in missing],
            )

    def check_credentials(self, ctx: RunContext) -> None:
        """Check that both credentials are set and plausible.

        Raises:
            MissingCredentialError: If a credential variable is unset or empty
            InvalidCredentialError: If a placeholder value was not confirmed
        """
        cfg = ctx.config.credentials
        for env_var in (cfg.api_key_env, cfg.app_key_env):
            if not self.environ.get(env_var):
                raise MissingCredentialError(
                    f"{env_var} environment variable is not set",
                    suggestions=[f"Set it with: export {env_var}=<value>"],
                )

        for env_var in (cfg.api_key_env, cfg.app_key_env):
            value = self.environ[env_var]
            if looks_like_placeholder(value):
                logger.warning(f"{env_var} appears to be a placeholder value")
                if not ctx.ask("Continue anyway?", default=False):
                    raise InvalidCredentialError(
                        f"{env_var} appears to be a placeholder value",
                        suggestions=[f"Set a valid {env_var}"],
                    )
            logger.info(f"{env_var} is set ({len(value)} characters)")

    def run(self, ctx: RunContext) -> None:
        """Run every check.

        Raises:
            PreflightError: On the first failed check
        """
        self.check_commands()
        self.check_credentials(ctx)
        logger.info("All prerequisites met")
