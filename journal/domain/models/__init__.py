"""Domain models package."""

from .conversation_state import (
    JOURNAL_THEMES,
    PHASE_ORDER,
    ConversationMode,
    ConversationState,
    JournalTheme,
    ReflectionMode,
    SessionPhase,
)
from .extraction import AIAction, ExtractionResult, MessageLength, NextAIMove
from .utterance import Speaker, Utterance

__all__ = [
    "JOURNAL_THEMES",
    "PHASE_ORDER",
    "ConversationMode",
    "ConversationState",
    "JournalTheme",
    "ReflectionMode",
    "SessionPhase",
    "AIAction",
    "ExtractionResult",
    "MessageLength",
    "NextAIMove",
    "Speaker",
    "Utterance",
]
