"""Dependency injection for API routes."""

from functools import lru_cache
from typing import Annotated, Optional

from fastapi import Depends
import structlog

from journal.core.config import settings
from journal.core.exceptions import ConfigurationError
from journal.llm.client import LLMClient, get_generation_llm_client
from journal.persistence.cache import get_redis
from journal.persistence.repositories.conversation_state_repo import (
    ConversationStateRepository,
)
from journal.persistence.repositories.session_context_repo import (
    SessionContextRepository,
)
from journal.persistence.repositories.utterance_repo import UtteranceRepository
from journal.services.conversation_service import ConversationStateService
from journal.services.events import ConversationEventBus
from journal.services.memory_service import MemoryService
from journal.services.response_service import ResponseService

log = structlog.get_logger(__name__)


def get_state_repository() -> ConversationStateRepository:
    """FastAPI dependency injection for ConversationStateRepository.

    Uses the process-wide Redis client and the configured state TTL.
    """
    return ConversationStateRepository(
        get_redis(), ttl_seconds=settings.conversation_state_ttl_seconds
    )


def get_context_repository() -> SessionContextRepository:
    """FastAPI dependency injection for SessionContextRepository."""
    return SessionContextRepository(
        get_redis(),
        context_ttl_seconds=settings.session_context_ttl_seconds,
        tracker_ttl_seconds=settings.memory_tracker_ttl_seconds,
    )


def get_utterance_repository() -> UtteranceRepository:
    """FastAPI dependency injection for UtteranceRepository.

    Each request gets a new repository pointed at the configured database.
    """
    return UtteranceRepository(str(settings.database_path))


@lru_cache(maxsize=1)
def get_shared_memory_service() -> MemoryService:
    """Cached memory service, so the mem0 client is created once per process."""
    return MemoryService(context_repo=get_context_repository())


@lru_cache(maxsize=1)
def get_shared_generation_client() -> Optional[LLMClient]:
    """Cached LLM client for reply generation.

    Returns None when no provider key is configured; replies then fall back
    to templates.
    """
    try:
        return get_generation_llm_client()
    except ConfigurationError as e:
        log.warning("generation_client_unavailable", error=e.message)
        return None


@lru_cache(maxsize=1)
def get_event_bus() -> ConversationEventBus:
    """Process-wide conversation event bus."""
    return ConversationEventBus()


StateRepoDep = Annotated[ConversationStateRepository, Depends(get_state_repository)]
ContextRepoDep = Annotated[SessionContextRepository, Depends(get_context_repository)]
UtteranceRepoDep = Annotated[UtteranceRepository, Depends(get_utterance_repository)]
MemoryServiceDep = Annotated[MemoryService, Depends(get_shared_memory_service)]
GenerationClientDep = Annotated[Optional[LLMClient], Depends(get_shared_generation_client)]
EventBusDep = Annotated[ConversationEventBus, Depends(get_event_bus)]


def get_conversation_service(
    state_repo: StateRepoDep,
    context_repo: ContextRepoDep,
    utterance_repo: UtteranceRepoDep,
    memory_service: MemoryServiceDep,
    llm_client: GenerationClientDep,
    event_bus: EventBusDep,
) -> ConversationStateService:
    """FastAPI dependency injection for ConversationStateService."""
    return ConversationStateService(
        state_repo=state_repo,
        utterance_repo=utterance_repo,
        memory_service=memory_service,
        response_service=ResponseService(llm_client=llm_client, context_repo=context_repo),
        context_repo=context_repo,
        event_bus=event_bus,
    )


ConversationServiceDep = Annotated[
    ConversationStateService, Depends(get_conversation_service)
]
