"""Rollout stages and the monotonic stage tracker."""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Tuple

from wavegate.utils.logging import get_logger

logger = get_logger(__name__)


class Stage(Enum):
    """Ordered rollout stages.

    A stage names the step that has been entered. Declaration order is the
    rollout order.
    """
    INIT = "initialization"
    CLUSTER = "cluster_provisioning"
    CONTROLLER = "controller_installation"
    SECRET = "secret_provisioning"
    ROOT_APPLICATION = "root_application"
    WAVE_0 = "wave_0"
    WAVE_1 = "wave_1"
    WAVE_2 = "wave_2"
    VERIFICATION = "verification"
    VERIFIED = "verified"

    @property
    def position(self) -> int:
        """Zero-based position in the rollout order."""
        return _ORDER.index(self)

    def is_after(self, other: "Stage") -> bool:
        return self.position > other.position

    def __lt__(self, other: "Stage") -> bool:
        if not isinstance(other, Stage):
            return NotImplemented
        return self.position < other.position

    def __le__(self, other: "Stage") -> bool:
        if not isinstance(other, Stage):
            return NotImplemented
        return self.position <= other.position


_ORDER: List[Stage] = list(Stage)

WAVE_STAGES: Tuple[Stage, ...] = (Stage.WAVE_0, Stage.WAVE_1, Stage.WAVE_2)


class StageTransitionError(Exception):
    """Raised when a stage transition would move backwards or stand still."""

    pass


class StageTracker:
    """Records the furthest stage reached by a rollout.

    Only the orchestrator advances the tracker; everything else reads
    ``current``. Transitions must move strictly forward.
    """

    def __init__(self, initial: Stage = Stage.INIT):
        self._current = initial
        self._history: List[Tuple[Stage, datetime]] = [(initial, datetime.now(timezone.utc))]

    @property
    def current(self) -> Stage:
        return self._current

    @property
    def history(self) -> List[Tuple[Stage, datetime]]:
        """Stages entered so far with their entry timestamps."""
        return list(self._history)

    def advance(self, stage: Stage) -> None:
        """Move to a strictly later stage.

        Args:
            stage: Stage being entered

        Raises:
            StageTransitionError: If ``stage`` is not after the current stage
        """
        if not stage.is_after(self._current):
            raise StageTransitionError(
                f"Cannot move from stage '{self._current.value}' to '{stage.value}'"
            )

        logger.debug(f"Stage {self._current.value} -> {stage.value}")
        self._current = stage
        self._history.append((stage, datetime.now(timezone.utc)))

    def reached(self, stage: Stage) -> bool:
        """Check whether the rollout has entered ``stage`` or gone past it."""
        return self._current.position >= stage.position
