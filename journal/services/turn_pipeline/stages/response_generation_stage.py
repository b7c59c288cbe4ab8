"""
Stage 5: Generate the assistant's reply.
"""

from typing import TYPE_CHECKING

from ..base import TurnStage
from journal.services.response_service import ResponseService

if TYPE_CHECKING:
    from ..context import PipelineContext


class ResponseGenerationStage(TurnStage):
    """Populates PipelineContext.reply and reply_source."""

    def __init__(self, response_service: ResponseService):
        self.response_service = response_service

    async def process(self, context: "PipelineContext") -> "PipelineContext":
        reply = await self.response_service.generate(
            message=context.user_input,
            state=context.require_state(),
            extraction=context.require_extraction(),
            next_move=context.next_move,
            history=context.history,
        )
        context.reply = reply.text
        context.reply_source = reply.source
        return context
