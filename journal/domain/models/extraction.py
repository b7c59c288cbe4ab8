"""Per-turn extraction and decision models.

Both models are ephemeral: they are produced for a single user turn and
never persisted.

Core Models:
    - ExtractionResult: rule-based classification of a user message
    - NextAIMove: recommended assistant action for the current turn
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from journal.domain.models.conversation_state import JournalTheme


class MessageLength(str, Enum):
    """Word-count bucket of a user message."""

    SHORT = "short"
    MEDIUM = "medium"
    LONG = "long"


class ExtractionResult(BaseModel):
    """Structured signal extracted from one user utterance.

    Fields:
        - touched_theme: strongest matching theme, None when nothing matched
        - answered_previous: heuristic for "the user answered the last question"
        - tone: strongest matching tone label, None when nothing matched
        - message_length: short / medium / long bucket
    """

    touched_theme: Optional[JournalTheme] = None
    answered_previous: bool = False
    tone: Optional[str] = None
    message_length: MessageLength = MessageLength.SHORT


class AIAction(str, Enum):
    """Actions the conversational agent can take next."""

    REFLECT = "reflect"
    ASK_GENTLE = "ask_gentle"
    OFFER_CHOICE = "offer_choice"
    REFRAME = "reframe"
    CLOSE = "close"


class NextAIMove(BaseModel):
    """Decision for the assistant's next turn.

    question / reflection are optional and depend on the action;
    themes_to_suggest is only populated for offer_choice.
    """

    action: AIAction
    question: Optional[str] = None
    reflection: Optional[str] = None
    themes_to_suggest: List[JournalTheme] = Field(default_factory=list, max_length=2)
