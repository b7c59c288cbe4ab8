"""
Stage 1: Load conversation state and recent transcript.

Outputs PipelineContext.state, .history and, when the caller did not pass
one, .last_question taken from the assistant's previous reply.
"""

from typing import TYPE_CHECKING, List, Optional

import aiosqlite
import structlog

from ..base import TurnStage
from journal.core.exceptions import ConversationStateNotFoundError
from journal.domain.models.utterance import Speaker, Utterance
from journal.persistence.repositories.conversation_state_repo import (
    ConversationStateRepository,
)
from journal.persistence.repositories.utterance_repo import UtteranceRepository

if TYPE_CHECKING:
    from ..context import PipelineContext

log = structlog.get_logger(__name__)


def last_assistant_question(history: List[Utterance]) -> Optional[str]:
    """Final question sentence of the assistant's latest line, if it asked one."""
    for utterance in reversed(history):
        if utterance.speaker != Speaker.ASSISTANT:
            continue
        text = utterance.text.strip()
        if not text.endswith("?"):
            return None
        for separator in (". ", "! "):
            text = text.rsplit(separator, 1)[-1]
        return text
    return None


class StateLoadingStage(TurnStage):
    """Load the persisted state; optionally the transcript so far."""

    def __init__(
        self,
        state_repo: ConversationStateRepository,
        utterance_repo: Optional[UtteranceRepository] = None,
        history_limit: int = 20,
    ):
        self.state_repo = state_repo
        self.utterance_repo = utterance_repo
        self.history_limit = history_limit

    async def process(self, context: "PipelineContext") -> "PipelineContext":
        """
        Load state for (session_id, date).

        Raises:
            ConversationStateNotFoundError: If the state was never initialized
        """
        state = await self.state_repo.get(context.session_id, context.date)
        if state is None:
            raise ConversationStateNotFoundError(context.session_id, context.date)
        context.state = state

        if self.utterance_repo is None:
            return context

        try:
            transcript = await self.utterance_repo.get_transcript(
                context.session_id, context.date
            )
        except (aiosqlite.Error, OSError) as e:
            log.warning("transcript_load_failed", error=str(e))
            transcript = []

        recent = transcript[-self.history_limit :]
        context.history = [{"role": u.speaker.value, "content": u.text} for u in recent]
        if context.last_question is None:
            context.last_question = last_assistant_question(recent)

        log.debug(
            "state_loaded",
            session_id=context.session_id,
            phase=state.session_phase.value,
            history_turns=len(context.history),
        )
        return context
