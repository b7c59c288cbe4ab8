"""
Base stage class for the turn processing pipeline.

All pipeline stages inherit from TurnStage.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .context import PipelineContext


class TurnStage(ABC):
    """
    Abstract base class for pipeline stages.

    Each stage implements process(), which reads what earlier stages put on
    the PipelineContext, adds its own output and returns the context.
    """

    @abstractmethod
    async def process(self, context: "PipelineContext") -> "PipelineContext":
        """
        Process this stage, update context, return modified context.

        Args:
            context: Current turn context with all accumulated state

        Returns:
            Modified context with stage results added
        """
        pass

    @property
    def stage_name(self) -> str:
        """Return the stage name for logging."""
        return self.__class__.__name__
