# noqa
from journal.services.conversation_service import ChatTurnResult, ConversationStateService
from journal.services.events import ConversationEventBus
from journal.services.memory_service import MemoryService
from journal.services.response_service import ResponseService

__all__ = [
    "ChatTurnResult",
    "ConversationStateService",
    "ConversationEventBus",
    "MemoryService",
    "ResponseService",
]
