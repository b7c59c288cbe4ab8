"""
Stage 3: Rule-based extraction.

Classifies the user message into theme, tone, answered flag and length.
"""

from typing import TYPE_CHECKING, Optional

import structlog

from ..base import TurnStage
from journal.core.config import ExtractionConfig
from journal.services.extraction_service import extract_from_message

if TYPE_CHECKING:
    from ..context import PipelineContext

log = structlog.get_logger(__name__)


class ExtractionStage(TurnStage):
    """Populates PipelineContext.extraction."""

    def __init__(self, config: Optional[ExtractionConfig] = None):
        self.config = config

    async def process(self, context: "PipelineContext") -> "PipelineContext":
        context.extraction = extract_from_message(
            context.user_input, context.last_question, self.config
        )
        log.info(
            "message_extracted",
            session_id=context.session_id,
            touched_theme=context.extraction.touched_theme,
            tone=context.extraction.tone,
            message_length=context.extraction.message_length.value,
            answered_previous=context.extraction.answered_previous,
        )
        return context
