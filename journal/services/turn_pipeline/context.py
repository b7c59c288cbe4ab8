"""
Turn processing pipeline context.

Carries one user turn through the stages. Inputs are set by the caller;
every other field is filled by the stage that owns it:

- StateLoadingStage: state, history, last_question (when not supplied)
- UtteranceSavingStage: user_utterance
- ExtractionStage: extraction
- StateUpdateStage: updates, next_move, memory_enriched, state (persisted)
- ResponseGenerationStage: reply
- ResponseSavingStage: assistant_utterance
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from journal.domain.models.conversation_state import ConversationState
from journal.domain.models.extraction import ExtractionResult, NextAIMove
from journal.domain.models.utterance import Utterance


@dataclass
class PipelineContext:
    """Mutable state accumulated across one turn."""

    # =============================================================================
    # Input parameters
    # =============================================================================
    session_id: str
    date: str
    user_input: str
    last_question: Optional[str] = None

    # =============================================================================
    # Stage outputs
    # =============================================================================
    state: Optional[ConversationState] = None
    history: List[Dict[str, str]] = field(default_factory=list)
    user_utterance: Optional[Utterance] = None
    extraction: Optional[ExtractionResult] = None
    updates: Dict[str, Any] = field(default_factory=dict)
    next_move: Optional[NextAIMove] = None
    memory_enriched: bool = False
    reply: Optional[str] = None
    reply_source: Optional[str] = None
    assistant_utterance: Optional[Utterance] = None

    # Stage timings in ms, keyed by stage name
    stage_timings: Dict[str, float] = field(default_factory=dict)

    def require_state(self) -> ConversationState:
        """State loaded by StateLoadingStage."""
        if self.state is None:
            raise RuntimeError("state accessed before StateLoadingStage completed")
        return self.state

    def require_extraction(self) -> ExtractionResult:
        """Extraction produced by ExtractionStage."""
        if self.extraction is None:
            raise RuntimeError("extraction accessed before ExtractionStage completed")
        return self.extraction
