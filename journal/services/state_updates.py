"""State updater: turns an ExtractionResult into conversation state deltas.

build_state_updates() is pure. Persistence happens in
ConversationStateService, which merges these deltas (plus last_ai_action)
into the cached record as one write.

Rules, in order:
    1. Anchor sticky-write: set only while anchor is None
    2. Theme bookkeeping: a newly touched theme moves unexplored -> explored
    3. Tone overwrite when a tone was detected
    4. Question log: append last_question unless already logged
    5. Conversation mode, only in questioning/closed phase:
       long -> deepening; short with an explored theme -> exploring
"""

from typing import Any, Dict, Optional

from journal.domain.models.conversation_state import (
    ConversationMode,
    ConversationState,
    SessionPhase,
)
from journal.domain.models.extraction import ExtractionResult, MessageLength


MODE_UPDATE_PHASES = (SessionPhase.QUESTIONING, SessionPhase.CLOSED)


def theme_move(state: ConversationState, theme: Optional[str]) -> Dict[str, Any]:
    """Deltas that move theme from unexplored to explored (empty if already moved)."""
    if not theme or theme in state.explored_themes:
        return {}
    return {
        "explored_themes": [*state.explored_themes, theme],
        "unexplored_themes": [t for t in state.unexplored_themes if t != theme],
    }


def build_state_updates(
    state: ConversationState,
    extraction: ExtractionResult,
    last_question: Optional[str] = None,
) -> Dict[str, Any]:
    """Compute the field updates one turn applies to the state.

    Args:
        state: Current persisted state
        extraction: This turn's extraction
        last_question: Question the assistant asked before this message

    Returns:
        Dict of field name -> new value (empty when nothing changes)
    """
    updates: Dict[str, Any] = {}

    if extraction.touched_theme:
        if state.anchor is None:
            updates["anchor"] = extraction.touched_theme
        updates.update(theme_move(state, extraction.touched_theme))

    if extraction.tone:
        updates["tone"] = extraction.tone

    if last_question and last_question not in state.asked_questions:
        updates["asked_questions"] = [*state.asked_questions, last_question]

    if state.session_phase in MODE_UPDATE_PHASES:
        if extraction.message_length == MessageLength.LONG:
            updates["conversation_mode"] = ConversationMode.DEEPENING
        elif extraction.message_length == MessageLength.SHORT and state.explored_themes:
            updates["conversation_mode"] = ConversationMode.EXPLORING

    return updates
