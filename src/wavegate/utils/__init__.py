"""Utility modules for logging, errors, retry, polling, and subprocess helpers."""

from wavegate.utils.retry import RetryStrategy, RetryExhaustedError, with_retry
from wavegate.utils.polling import (
    ConditionPoller,
    FatalProbeError,
    PollOutcome,
    PollStatus,
)
from wavegate.utils.errors import (
    ExitCode,
    ErrorCategory,
    ErrorSeverity,
    ErrorContext,
    RolloutError,
    PreflightError,
    MissingDependencyError,
    MissingCredentialError,
    InvalidCredentialError,
    CommandError,
    ClusterCreationError,
    ClusterStartError,
    ClusterTimeoutError,
    ControllerInstallError,
    ControllerTimeoutError,
    SecretProvisioningError,
    ResourceApplicationError,
    WaveSyncError,
    WaveHealthError,
    VerificationError,
    ErrorHandler,
    error_handler,
    exit_code_for,
)
from wavegate.utils.commands import CommandResult, run_command, command_exists
from wavegate.utils.logging import get_logger, setup_logging, LogContext

__all__ = [
    # Retry
    'RetryStrategy',
    'RetryExhaustedError',
    'with_retry',

    # Polling
    'ConditionPoller',
    'FatalProbeError',
    'PollOutcome',
    'PollStatus',

    # Errors
    'ExitCode',
    'ErrorCategory',
    'ErrorSeverity',
    'ErrorContext',
    'RolloutError',
    'PreflightError',
    'MissingDependencyError',
    'MissingCredentialError',
    'InvalidCredentialError',
    'CommandError',
    'ClusterCreationError',
    'ClusterStartError',
    'ClusterTimeoutError',
    'ControllerInstallError',
    'ControllerTimeoutError',
    'SecretProvisioningError',
    'ResourceApplicationError',
    'WaveSyncError',
    'WaveHealthError',
    'VerificationError',
    'ErrorHandler',
    'error_handler',
    'exit_code_for',

    # Commands
    'CommandResult',
    'run_command',
    'command_exists',

    # Logging
    'get_logger',
    'setup_logging',
    'LogContext',
]
