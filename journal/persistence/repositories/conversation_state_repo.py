"""Conversation state repository backed by Redis.

Records live under ``conversation:{date}:{session_id}`` as JSON with a TTL
that is refreshed on every write. Redis failures surface as
CacheUnavailableError.
"""

from typing import List, Optional

import redis.asyncio as redis
import structlog

from journal.domain.models.conversation_state import ConversationState
from journal.persistence.cache import cache_errors

log = structlog.get_logger(__name__)

KEY_PREFIX = "conversation"


def conversation_key(session_id: str, date: str) -> str:
    """Cache key for a (session_id, date) pair."""
    return f"{KEY_PREFIX}:{date}:{session_id}"


class ConversationStateRepository:
    """Repository for conversation state records."""

    def __init__(self, client: redis.Redis, ttl_seconds: int):
        self.client = client
        self.ttl_seconds = ttl_seconds

    async def get(self, session_id: str, date: str) -> Optional[ConversationState]:
        """Load state, or None when the key is absent or expired."""
        async with cache_errors("get"):
            raw = await self.client.get(conversation_key(session_id, date))
        if raw is None:
            return None
        return ConversationState.from_cache(raw)

    async def save(self, state: ConversationState) -> ConversationState:
        """Write the full record and refresh its TTL."""
        async with cache_errors("set"):
            await self.client.set(
                conversation_key(state.session_id, state.date),
                state.to_cache(),
                ex=self.ttl_seconds,
            )
        log.debug("conversation_state_saved", session_id=state.session_id, date=state.date)
        return state

    async def delete(self, session_id: str, date: str) -> bool:
        """Delete a record. Returns True if a key was removed."""
        async with cache_errors("delete"):
            removed = await self.client.delete(conversation_key(session_id, date))
        return bool(removed)

    async def keys_for_date(self, date: str) -> List[str]:
        """All conversation keys stored for a date."""
        keys = []
        async with cache_errors("scan"):
            async for key in self.client.scan_iter(match=f"{KEY_PREFIX}:{date}:*", count=100):
                keys.append(key)
        return keys

    async def delete_for_date(self, date: str) -> int:
        """Delete every session's record for a date. Returns the number removed."""
        keys = await self.keys_for_date(date)
        if not keys:
            return 0
        async with cache_errors("delete"):
            return await self.client.delete(*keys)
