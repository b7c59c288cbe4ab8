"""
Stage 4: Update state, decide the next move, persist once.

Order within the stage:
    1. Build field updates from the extraction
    2. Decide the next move on the state as loaded, before this turn's
       updates, so a theme touched for the first time still counts as
       unexplored
    3. If the anchor was set this turn, fold theme memories into the context
    4. Write updates + last_ai_action as a single record write

The write replaces the record loaded by StateLoadingStage without a lock,
so two concurrent turns on one session can lose an update (last write wins).
"""

from typing import TYPE_CHECKING, Optional

import structlog

from ..base import TurnStage
from journal.persistence.repositories.conversation_state_repo import (
    ConversationStateRepository,
)
from journal.services.decision_service import decide_next_move
from journal.services.memory_service import MemoryService
from journal.services.state_updates import build_state_updates

if TYPE_CHECKING:
    from ..context import PipelineContext

log = structlog.get_logger(__name__)


class StateUpdateStage(TurnStage):
    """Populates updates, next_move, memory_enriched and the persisted state."""

    def __init__(
        self,
        state_repo: ConversationStateRepository,
        memory_service: Optional[MemoryService] = None,
    ):
        self.state_repo = state_repo
        self.memory_service = memory_service

    async def process(self, context: "PipelineContext") -> "PipelineContext":
        state = context.require_state()
        extraction = context.require_extraction()

        updates = build_state_updates(state, extraction, context.last_question)
        next_move = decide_next_move(extraction, state)

        new_anchor = updates.get("anchor")
        if new_anchor and self.memory_service is not None:
            enriched = await self.memory_service.enrich_context(
                state.yesterday_context, new_anchor, state.user_id
            )
            if enriched != state.yesterday_context:
                updates["yesterday_context"] = enriched
                context.memory_enriched = True

        updates["last_ai_action"] = next_move.action.value

        context.state = await self.state_repo.save(state.merged(updates))
        context.updates = updates
        context.next_move = next_move

        log.info(
            "state_updated",
            session_id=context.session_id,
            fields=sorted(updates),
            action=next_move.action.value,
            memory_enriched=context.memory_enriched,
        )
        return context
