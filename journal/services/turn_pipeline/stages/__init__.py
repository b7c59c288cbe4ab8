"""
Pipeline stages for turn processing.

Each stage encapsulates one logical step of a turn. Stages execute
sequentially in the TurnPipeline orchestrator.
"""

from .state_loading_stage import StateLoadingStage
from .utterance_saving_stage import UtteranceSavingStage
from .extraction_stage import ExtractionStage
from .state_update_stage import StateUpdateStage
from .response_generation_stage import ResponseGenerationStage
from .response_saving_stage import ResponseSavingStage

__all__ = [
    "StateLoadingStage",
    "UtteranceSavingStage",
    "ExtractionStage",
    "StateUpdateStage",
    "ResponseGenerationStage",
    "ResponseSavingStage",
]
