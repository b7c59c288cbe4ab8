"""Repository implementations."""

from journal.persistence.repositories.conversation_state_repo import (
    ConversationStateRepository,
    conversation_key,
)
from journal.persistence.repositories.session_context_repo import (
    MemoryUsageTracker,
    SessionContextRepository,
)
from journal.persistence.repositories.utterance_repo import UtteranceRepository

__all__ = [
    "ConversationStateRepository",
    "conversation_key",
    "MemoryUsageTracker",
    "SessionContextRepository",
    "UtteranceRepository",
]
