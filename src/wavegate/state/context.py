"""Process-wide state for one rollout run."""

import time
from dataclasses import dataclass, field
from typing import Callable, Optional

from wavegate.config.models import DeployConfig
from wavegate.state.stage import StageTracker

# (question, default) -> answer
ConfirmCallback = Callable[[str, bool], bool]


def take_default(question: str, default: bool) -> bool:
    return default


@dataclass
class RunContext:
    """State shared by every component for the lifetime of one run.

    The orchestrator owns the context; other components receive it per call
    and never keep a reference.
    """

    config: DeployConfig
    tracker: StageTracker = field(default_factory=StageTracker)
    confirm: ConfirmCallback = take_default
    clock: Callable[[], float] = time.monotonic
    repo_url: Optional[str] = None
    admin_password: Optional[str] = None
    started_at: float = field(init=False)
    deadline: float = field(init=False)

    def __post_init__(self):
        self.started_at = self.clock()
        self.deadline = self.started_at + self.config.timeouts.total

    def elapsed(self) -> float:
        """Seconds since the run started."""
        return self.clock() - self.started_at

    def remaining(self) -> float:
        """Seconds left before the overall deadline (never negative)."""
        return max(0.0, self.deadline - self.clock())

    def budget(self, timeout: float) -> float:
        """Clamp a phase timeout to the time left in the overall deadline."""
        return min(timeout, self.remaining())

    def ask(self, question: str, default: bool = False) -> bool:
        """Ask for confirmation, or take the default when running non-interactively."""
        if not self.config.rollout.interactive:
            return default
        return self.confirm(question, default)
