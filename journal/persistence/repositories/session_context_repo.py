"""Session-scoped cache entries that are not the conversation state itself.

- Session context: memories loaded for a date (``session:{date}:context``)
- Memory usage tracker: last memory mentioned and turns since
  (``memory:usage:{user_id}:{date}``)
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional

import redis.asyncio as redis

from journal.domain.models.conversation_state import now_ms
from journal.persistence.cache import cache_errors, get_json, set_json


@dataclass
class MemoryUsageTracker:
    """Controls how often the assistant may mention a stored memory."""

    last_memory_title: Optional[str] = None
    turns_since_last_mention: int = 0
    last_updated: int = field(default_factory=now_ms)


class SessionContextRepository:
    """Repository for session context and memory-usage tracking."""

    def __init__(
        self,
        client: redis.Redis,
        context_ttl_seconds: int,
        tracker_ttl_seconds: int,
    ):
        self.client = client
        self.context_ttl_seconds = context_ttl_seconds
        self.tracker_ttl_seconds = tracker_ttl_seconds

    @staticmethod
    def context_key(date: str) -> str:
        return f"session:{date}:context"

    @staticmethod
    def tracker_key(user_id: str, date: str) -> str:
        return f"memory:usage:{user_id}:{date}"

    async def get_context(self, date: str) -> Optional[Dict[str, Any]]:
        data = await get_json(self.client, self.context_key(date))
        return data if isinstance(data, dict) else None

    async def set_context(self, date: str, context: Dict[str, Any]) -> None:
        await set_json(self.client, self.context_key(date), context, self.context_ttl_seconds)

    async def delete_context(self, date: str) -> None:
        async with cache_errors("delete"):
            await self.client.delete(self.context_key(date))

    async def get_tracker(self, user_id: str, date: str) -> MemoryUsageTracker:
        """Load the tracker, or a fresh one when absent."""
        data = await get_json(self.client, self.tracker_key(user_id, date))
        if not isinstance(data, dict):
            return MemoryUsageTracker()
        return MemoryUsageTracker(
            last_memory_title=data.get("last_memory_title"),
            turns_since_last_mention=int(data.get("turns_since_last_mention", 0)),
            last_updated=int(data.get("last_updated", now_ms())),
        )

    async def record_turn(
        self,
        user_id: str,
        date: str,
        memory_title: Optional[str],
        mentioned: bool,
    ) -> MemoryUsageTracker:
        """Reset the gap counter on a mention, otherwise increment it."""
        tracker = await self.get_tracker(user_id, date)
        if mentioned:
            tracker.last_memory_title = memory_title
            tracker.turns_since_last_mention = 0
        else:
            tracker.turns_since_last_mention += 1
        tracker.last_updated = now_ms()

        await set_json(
            self.client,
            self.tracker_key(user_id, date),
            asdict(tracker),
            self.tracker_ttl_seconds,
        )
        return tracker

    async def delete_tracker(self, user_id: str, date: str) -> None:
        async with cache_errors("delete"):
            await self.client.delete(self.tracker_key(user_id, date))
