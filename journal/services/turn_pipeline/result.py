"""
Result object for the turn processing pipeline.

Returned by the pipeline after all stages complete.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional

from journal.domain.models.conversation_state import ConversationState
from journal.domain.models.extraction import ExtractionResult, NextAIMove


@dataclass
class TurnResult:
    """Result of processing a single user turn."""

    state: ConversationState
    extraction: ExtractionResult
    next_move: NextAIMove
    reply: Optional[str] = None  # Only set when the pipeline generates a reply
    reply_source: Optional[str] = None  # greeting | farewell | llm | template
    memory_enriched: bool = False
    updated_fields: list = field(default_factory=list)
    latency_ms: int = 0
    stage_timings: Dict[str, float] = field(default_factory=dict)
