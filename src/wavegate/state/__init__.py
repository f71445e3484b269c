"""Rollout stage tracking and run context."""

from .stage import Stage, StageTracker, StageTransitionError, WAVE_STAGES
from .context import RunContext, ConfirmCallback, take_default

__all__ = [
    "Stage",
    "StageTracker",
    "StageTransitionError",
    "WAVE_STAGES",
    "RunContext",
    "ConfirmCallback",
    "take_default",
]
