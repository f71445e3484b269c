"""Subprocess execution for the external command-line tools."""

import shutil
import subprocess
from dataclasses import dataclass
from typing import List, Optional

from wavegate.utils.errors import CommandError, ErrorContext
from wavegate.utils.logging import get_logger

logger = get_logger(__name__)

# Return codes used when the process never produced one
RC_NOT_FOUND = 127
RC_TIMEOUT = 124


@dataclass
class CommandResult:
    """Captured result of one external command."""

    argv: List[str]
    returncode: int
    stdout: str = ''
    stderr: str = ''

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def command(self) -> str:
        return ' '.join(self.argv)

    def check(self, message: Optional[str] = None) -> "CommandResult":
        """Raise CommandError unless the command succeeded.

        Args:
            message: Error message to use instead of the default

        Returns:
            Self, for chaining

        Raises:
            CommandError: If the return code is non-zero
        """
        if not self.ok:
            raise CommandError(
                message or f"Command failed ({self.returncode}): {self.command}",
                returncode=self.returncode,
                stderr=self.stderr.strip(),
                context=ErrorContext(command=self.command),
            )
        return self


def run_command(
    argv: List[str],
    timeout: float = 60.0,
    input_text: Optional[str] = None
) -> CommandResult:
    """Run a command capturing stdout/stderr.

    A missing binary or an expired timeout is reported through the result's
    return code rather than raised, so callers handle every failure the same
    way.

    Args:
        argv: Command and arguments
        timeout: Seconds before the process is killed
        input_text: Text written to the process's stdin

    Returns:
        CommandResult
    """
    logger.debug(f"Running: {' '.join(argv)}")

    try:
        completed = subprocess.run(
            argv,
            input=input_text,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except FileNotFoundError as e:
        return CommandResult(argv=argv, returncode=RC_NOT_FOUND, stderr=str(e))
    except subprocess.TimeoutExpired as e:
        stdout = e.stdout if isinstance(e.stdout, str) else ''
        stderr = e.stderr if isinstance(e.stderr, str) else ''
        return CommandResult(
            argv=argv,
            returncode=RC_TIMEOUT,
            stdout=stdout,
            stderr=stderr or f"timed out after {timeout:.0f}s",
        )

    if completed.returncode != 0:
        logger.debug(f"Command exited {completed.returncode}: {completed.stderr.strip()}")

    return CommandResult(
        argv=argv,
        returncode=completed.returncode,
        stdout=completed.stdout,
        stderr=completed.stderr,
    )


def command_exists(name: str) -> bool:
    """Check whether an executable is available on PATH."""
    return shutil.which(name) is not None
