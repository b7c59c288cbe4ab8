"""
Turn processing pipeline.

Composable stages for processing one journaling turn: load state, save the
utterance, extract, update state and decide, generate and save a reply.
"""

from .base import TurnStage
from .context import PipelineContext
from .pipeline import TurnPipeline
from .result import TurnResult

__all__ = [
    "TurnStage",
    "PipelineContext",
    "TurnPipeline",
    "TurnResult",
]
