"""Base interface for the ordered steps of a rollout."""

from abc import ABC, abstractmethod

from wavegate.state.context import RunContext
from wavegate.state.stage import Stage


class RolloutStep(ABC):
    """One step the orchestrator runs in sequence.

    Each step is bound to the stage the tracker enters before the step
    starts. Steps report failure by raising a RolloutError subclass.
    """

    stage: Stage
    title: str

    @abstractmethod
    def run(self, ctx: RunContext) -> None:
        """Execute the step.

        Args:
            ctx: Run context for the current rollout

        Raises:
            RolloutError: If the step cannot complete
        """
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}(stage={self.stage.name})"
