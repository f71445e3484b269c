"""Error taxonomy and exit codes for rollout operations."""

from typing import Optional, Dict, Any, List
from enum import Enum, IntEnum
from dataclasses import dataclass, field
from wavegate.utils.logging import get_logger

logger = get_logger(__name__)


class ExitCode(IntEnum):
    """Process exit codes, one per failure class.

    These values are part of the public interface: automation branches on
    them, so existing values must never be renumbered.
    """
    SUCCESS = 0
    MISSING_COMMAND = 1
    MISSING_ENV_VAR = 2
    INVALID_VALUE = 3
    CLUSTER_CREATION_FAILED = 10
    CLUSTER_START_FAILED = 11
    CLUSTER_TIMEOUT = 12
    CONTROLLER_INSTALL_FAILED = 20
    CONTROLLER_TIMEOUT = 21
    SECRET_CREATION_FAILED = 30
    APP_DEPLOYMENT_FAILED = 40
    APP_SYNC_FAILED = 41
    APP_HEALTH_FAILED = 42
    VERIFICATION_FAILED = 50
    INTERNAL_ERROR = 99
    INTERRUPTED = 130


class ErrorCategory(Enum):
    """Categories of errors that can occur during a rollout."""
    PREFLIGHT = "preflight"
    INFRASTRUCTURE = "infrastructure"
    TIMEOUT = "timeout"
    REMOTE_FAILURE = "remote_failure"
    VERIFICATION = "verification"
    UNKNOWN = "unknown"


class ErrorSeverity(Enum):
    """Severity levels for errors."""
    CRITICAL = "critical"  # Rollout cannot continue
    ERROR = "error"  # Step failed
    WARNING = "warning"  # Non-fatal issue
    INFO = "info"  # Informational message


@dataclass
class ErrorContext:
    """Context information for an error."""
    resource_id: Optional[str] = None
    operation: Optional[str] = None
    command: Optional[str] = None
    elapsed: Optional[float] = None
    conditions: List[Dict[str, Any]] = field(default_factory=list)
    additional_info: Optional[Dict[str, Any]] = None


class RolloutError(Exception):
    """Base exception for terminal rollout failures.

    Subclasses bind an exit code and a category so callers never have to
    map exception types to process exit codes themselves.
    """

    exit_code: ExitCode = ExitCode.INTERNAL_ERROR
    category: ErrorCategory = ErrorCategory.UNKNOWN

    def __init__(
        self,
        message: str,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: Optional[ErrorContext] = None,
        cause: Optional[Exception] = None,
        suggestions: Optional[List[str]] = None
    ):
        """Initialize rollout error.

        Args:
            message: Human-readable error message
            severity: Error severity
            context: Additional context about the error
            cause: Original exception that caused this error
            suggestions: List of suggested fixes
        """
        super().__init__(message)
        self.message = message
        self.severity = severity
        self.context = context or ErrorContext()
        self.cause = cause
        self.suggestions = suggestions or []

    def to_user_message(self) -> str:
        """Convert error to user-friendly message.

        Returns:
            Formatted error message for display to user
        """
        lines = []

        lines.append(f"❌ {self.severity.value.upper()}: {self.message}")

        if self.context.resource_id:
            lines.append(f"   Resource: {self.context.resource_id}")
        if self.context.operation:
            lines.append(f"   Operation: {self.context.operation}")
        if self.context.elapsed is not None:
            lines.append(f"   Elapsed: {self.context.elapsed:.0f}s")

        if self.cause:
            lines.append(f"   Cause: {str(self.cause)}")

        if self.context.conditions:
            lines.append("   Reported conditions:")
            for condition in self.context.conditions:
                lines.append(
                    f"     - {condition.get('type', 'Unknown')}: {condition.get('message', '')}"
                )

        if self.suggestions:
            lines.append("\n💡 Suggested fixes:")
            for i, suggestion in enumerate(self.suggestions, 1):
                lines.append(f"   {i}. {suggestion}")

        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for logging/serialization.

        Returns:
            Dictionary representation of the error
        """
        return {
            'message': self.message,
            'exit_code': int(self.exit_code),
            'category': self.category.value,
            'severity': self.severity.value,
            'context': {
                'resource_id': self.context.resource_id,
                'operation': self.context.operation,
                'command': self.context.command,
                'elapsed': self.context.elapsed,
                'conditions': self.context.conditions,
                'additional_info': self.context.additional_info
            },
            'cause': str(self.cause) if self.cause else None,
            'suggestions': self.suggestions
        }


class PreflightError(RolloutError):
    """Error detected before any remote state is created."""

    category = ErrorCategory.PREFLIGHT

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault('severity', ErrorSeverity.CRITICAL)
        super().__init__(message, **kwargs)


class MissingDependencyError(PreflightError):
    """A required command-line tool is not installed."""
    exit_code = ExitCode.MISSING_COMMAND


class MissingCredentialError(PreflightError):
    """A required credential environment variable is not set."""
    exit_code = ExitCode.MISSING_ENV_VAR


class InvalidCredentialError(PreflightError):
    """A credential looks like a placeholder and the user declined to continue."""
    exit_code = ExitCode.INVALID_VALUE


class CommandError(RolloutError):
    """An external command failed; usually transient and safe to retry."""

    category = ErrorCategory.INFRASTRUCTURE

    def __init__(self, message: str, returncode: Optional[int] = None, stderr: str = '', **kwargs):
        super().__init__(message, **kwargs)
        self.returncode = returncode
        self.stderr = stderr


class ClusterCreationError(RolloutError):
    """The cluster could not be created."""
    exit_code = ExitCode.CLUSTER_CREATION_FAILED
    category = ErrorCategory.INFRASTRUCTURE


class ClusterStartError(RolloutError):
    """An existing stopped cluster could not be started."""
    exit_code = ExitCode.CLUSTER_START_FAILED
    category = ErrorCategory.INFRASTRUCTURE


class ClusterTimeoutError(RolloutError):
    """The cluster API never became reachable."""
    exit_code = ExitCode.CLUSTER_TIMEOUT
    category = ErrorCategory.TIMEOUT


class ControllerInstallError(RolloutError):
    """The GitOps controller manifests could not be applied."""
    exit_code = ExitCode.CONTROLLER_INSTALL_FAILED
    category = ErrorCategory.INFRASTRUCTURE


class ControllerTimeoutError(RolloutError):
    """GitOps controller components never became ready."""
    exit_code = ExitCode.CONTROLLER_TIMEOUT
    category = ErrorCategory.TIMEOUT


class SecretProvisioningError(RolloutError):
    """The credential secret could not be created or verified."""
    exit_code = ExitCode.SECRET_CREATION_FAILED
    category = ErrorCategory.INFRASTRUCTURE


class ResourceApplicationError(RolloutError):
    """The root application could not be applied or its children never appeared."""
    exit_code = ExitCode.APP_DEPLOYMENT_FAILED
    category = ErrorCategory.INFRASTRUCTURE


class WaveSyncError(RolloutError):
    """A wave's application reported a sync error or never synced."""
    exit_code = ExitCode.APP_SYNC_FAILED
    category = ErrorCategory.REMOTE_FAILURE


class WaveHealthError(RolloutError):
    """A wave's application degraded or never became healthy."""
    exit_code = ExitCode.APP_HEALTH_FAILED
    category = ErrorCategory.REMOTE_FAILURE


class VerificationError(RolloutError):
    """An expected artifact never appeared even though sync/health succeeded."""
    exit_code = ExitCode.VERIFICATION_FAILED
    category = ErrorCategory.VERIFICATION


def exit_code_for(error: BaseException) -> ExitCode:
    """Map any exception reaching the top of the run to an exit code.

    Args:
        error: The exception that terminated the rollout

    Returns:
        ExitCode for the failure class
    """
    if isinstance(error, RolloutError):
        return error.exit_code
    if isinstance(error, KeyboardInterrupt):
        return ExitCode.INTERRUPTED
    return ExitCode.INTERNAL_ERROR


class ErrorHandler:
    """Converts arbitrary exceptions into rollout errors and logs them."""

    def __init__(self):
        """Initialize error handler."""
        self.logger = get_logger(__name__)

    def handle_exception(
        self,
        error: BaseException,
        context: Optional[ErrorContext] = None
    ) -> RolloutError:
        """Handle an exception and convert to RolloutError.

        Args:
            error: The exception to handle
            context: Additional context about where the error occurred

        Returns:
            RolloutError with categorization and suggestions
        """
        if isinstance(error, RolloutError):
            return error

        context = context or ErrorContext()

        if isinstance(error, KeyboardInterrupt):
            return RolloutError(
                message='Rollout interrupted',
                severity=ErrorSeverity.WARNING,
                context=context,
                suggestions=['Re-run the deploy command to resume from a fresh state']
            )

        return RolloutError(
            message=str(error) or type(error).__name__,
            context=context,
            cause=error if isinstance(error, Exception) else None,
            suggestions=['Check logs under .wavegate/logs for more details']
        )

    def log_error(self, error: RolloutError):
        """Log an error with appropriate level.

        Args:
            error: The error to log
        """
        log_message = error.to_user_message()

        if error.severity in (ErrorSeverity.CRITICAL, ErrorSeverity.ERROR):
            self.logger.error(log_message)
        elif error.severity == ErrorSeverity.WARNING:
            self.logger.warning(log_message)
        else:
            self.logger.info(log_message)

        self.logger.debug(f"Error details: {error.to_dict()}")


# Global error handler instance
error_handler = ErrorHandler()
