"""
Stage 2: Save user utterance.

Appends the user's message to the transcript. Transcript writes are
best-effort: a database failure is logged and the turn continues.
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


class UtteranceSavingStage(TurnStage):
    """
    Save user utterance to the database.

    Populates PipelineContext.user_utterance.
    """

    def __init__(self, utterance_repo: UtteranceRepository):
        self.utterance_repo = utterance_repo

    async def process(self, context: "PipelineContext") -> "PipelineContext":
        utterance = Utterance(
            id=str(uuid4()),
            session_id=context.session_id,
            date=context.date,
            speaker=Speaker.USER,
            text=context.user_input,
        )
        try:
            context.user_utterance = await self.utterance_repo.save(utterance)
        except (aiosqlite.Error, OSError, ValueError) as e:
            log.warning("user_utterance_save_failed", error=str(e))
            return context

        log.debug(
            "user_utterance_saved",
            session_id=context.session_id,
            utterance_id=utterance.id,
            text_length=len(context.user_input),
        )
        return context
