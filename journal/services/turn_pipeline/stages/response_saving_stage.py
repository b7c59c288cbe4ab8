"""
Stage 6: Save the assistant's reply to the transcript (best-effort).
"""

from typing import TYPE_CHECKING
from uuid import uuid4

import aiosqlite
import structlog

from ..base import TurnStage
from journal.domain.models.utterance import Speaker, Utterance
from journal.persistence.repositories.utterance_repo import UtteranceRepository

if TYPE_CHECKING:
    from ..context import PipelineContext

log = structlog.get_logger(__name__)


class ResponseSavingStage(TurnStage):
    """Populates PipelineContext.assistant_utterance."""

    def __init__(self, utterance_repo: UtteranceRepository):
        self.utterance_repo = utterance_repo

    async def process(self, context: "PipelineContext") -> "PipelineContext":
        if not context.reply:
            return context

        utterance = Utterance(
            id=str(uuid4()),
            session_id=context.session_id,
            date=context.date,
            speaker=Speaker.ASSISTANT,
            text=context.reply,
        )
        try:
            context.assistant_utterance = await self.utterance_repo.save(utterance)
        except (aiosqlite.Error, OSError, ValueError) as e:
            log.warning("assistant_utterance_save_failed", error=str(e))
        return context
