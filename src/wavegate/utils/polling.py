"""Bounded wait-until-true polling over boolean probes."""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from wavegate.utils.logging import get_logger

logger = get_logger(__name__)

# A probe observes remote state and reports whether the awaited condition holds
Probe = Callable[[], bool]


class FatalProbeError(Exception):
    """Raised by a probe when the awaited condition can never become true.

    The poller stops immediately instead of waiting out its timeout.
    """

    def __init__(self, reason: str, diagnostics: Optional[List[Dict[str, Any]]] = None):
        super().__init__(reason)
        self.reason = reason
        self.diagnostics = diagnostics or []


class PollStatus(Enum):
    """Terminal status of one bounded wait."""
    SUCCEEDED = "succeeded"
    TIMED_OUT = "timed_out"
    FATAL = "fatal"


@dataclass
class PollOutcome:
    """Result of one bounded wait."""

    status: PollStatus
    elapsed: float
    reason: Optional[str] = None
    diagnostics: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def succeeded(cls, elapsed: float) -> "PollOutcome":
        return cls(status=PollStatus.SUCCEEDED, elapsed=elapsed)

    @classmethod
    def timed_out(cls, elapsed: float, reason: Optional[str] = None) -> "PollOutcome":
        return cls(status=PollStatus.TIMED_OUT, elapsed=elapsed, reason=reason)

    @classmethod
    def fatal(
        cls,
        elapsed: float,
        reason: str,
        diagnostics: Optional[List[Dict[str, Any]]] = None
    ) -> "PollOutcome":
        return cls(
            status=PollStatus.FATAL,
            elapsed=elapsed,
            reason=reason,
            diagnostics=diagnostics or []
        )

    def is_success(self) -> bool:
        """Check if the condition was met."""
        return self.status == PollStatus.SUCCEEDED

    def is_timeout(self) -> bool:
        """Check if the wait ran out of time."""
        return self.status == PollStatus.TIMED_OUT

    def is_fatal(self) -> bool:
        """Check if the probe reported an unrecoverable condition."""
        return self.status == PollStatus.FATAL


class ConditionPoller:
    """Repeatedly invokes a probe at a fixed interval until it holds or time runs out.

    The probe is evaluated at elapsed 0, then after every ``interval`` sleep
    while elapsed time is below the timeout. A condition that becomes true
    at time t is therefore observed at some elapsed time in [t, t + interval).
    There is no backoff here; transient operation failures belong to
    RetryStrategy.
    """

    def __init__(
        self,
        interval: float = 10.0,
        progress_interval: float = 60.0,
        max_errors: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep
    ):
        """Initialize condition poller.

        Args:
            interval: Default seconds between probe invocations
            progress_interval: Emit a progress line each time elapsed time
                crosses a multiple of this many seconds
            max_errors: Consecutive probe exceptions tolerated before the wait
                becomes fatal; None treats every exception as "not yet"
            clock: Monotonic clock, injectable for tests
            sleep: Sleep function, injectable for tests
        """
        if interval <= 0:
            raise ValueError(f"interval must be > 0, got {interval}")
        if progress_interval <= 0:
            raise ValueError(f"progress_interval must be > 0, got {progress_interval}")

        self.interval = interval
        self.progress_interval = progress_interval
        self.max_errors = max_errors
        self._clock = clock
        self._sleep = sleep

    def wait(
        self,
        description: str,
        probe: Probe,
        timeout: float,
        interval: Optional[float] = None
    ) -> PollOutcome:
        """Wait until ``probe`` returns True.

        Args:
            description: What is being waited for, used in log lines
            probe: Side-effect-free observation returning True when satisfied
            timeout: Seconds to wait before giving up (> 0)
            interval: Seconds between probes (defaults to the poller interval)

        Returns:
            PollOutcome describing how the wait ended
        """
        interval = self.interval if interval is None else interval

        if timeout <= 0:
            raise ValueError(f"timeout must be > 0, got {timeout}")
        if interval <= 0 or interval > timeout:
            raise ValueError(f"interval must be in (0, timeout], got {interval} (timeout {timeout})")

        logger.info(f"Waiting for: {description} (timeout: {timeout:.0f}s)")

        start = self._clock()
        elapsed = 0.0
        next_progress = self.progress_interval
        consecutive_errors = 0

        while elapsed < timeout:
            try:
                satisfied = probe()
                consecutive_errors = 0
            except FatalProbeError as e:
                logger.error(f"{description}: {e.reason} ({elapsed:.0f}s elapsed)")
                return PollOutcome.fatal(elapsed, e.reason, e.diagnostics)
            except Exception as e:
                consecutive_errors += 1
                logger.debug(f"Probe for '{description}' could not be evaluated: {e}")
                if self.max_errors is not None and consecutive_errors >= self.max_errors:
                    reason = f"probe failed {consecutive_errors} consecutive times: {e}"
                    logger.error(f"{description}: {reason}")
                    return PollOutcome.fatal(elapsed, reason)
                satisfied = False

            if satisfied:
                logger.info(f"{description} ({elapsed:.0f}s elapsed)")
                return PollOutcome.succeeded(elapsed)

            self._sleep(interval)
            elapsed = self._clock() - start

            if elapsed >= next_progress:
                logger.info(f"Still waiting for: {description} ({elapsed:.0f}s elapsed)")
                while next_progress <= elapsed:
                    next_progress += self.progress_interval

        logger.error(f"Timeout waiting for: {description} ({elapsed:.0f}s elapsed)")
        return PollOutcome.timed_out(elapsed, f"timed out after {elapsed:.0f}s")
