"""Long-term memory access backed by mem0.

Two uses:
    - Theme enrichment: when a theme is first anchored, one topic-scoped
      query is folded into the state's bounded context list
    - Session context: every stored memory, formatted as
      ``[mood][date] content`` and cached for the day before a given date

The mem0 SDK is synchronous, so calls run in the default executor. Every
failure degrades to an empty result; memory never blocks a turn.
"""

import asyncio
from datetime import date as date_type, datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence

import structlog
from mem0 import MemoryClient

from journal.core.config import MemoryConfig, conversation_config, settings
from journal.core.exceptions import MemoryStoreError, ValidationError
from journal.persistence.repositories.session_context_repo import (
    SessionContextRepository,
)

log = structlog.get_logger(__name__)


def theme_query(anchor: str) -> str:
    """Query string used for topic-scoped memory search."""
    return f"memories about {anchor}, {anchor} challenges, {anchor} experiences"


def memory_content(memory: Any) -> str:
    """Text of a mem0 record (``memory`` or ``content`` key)."""
    if isinstance(memory, dict):
        return memory.get("memory") or memory.get("content") or ""
    return str(memory or "")


def memory_metadata(memory: Any) -> Dict[str, Any]:
    if isinstance(memory, dict) and isinstance(memory.get("metadata"), dict):
        return memory["metadata"]
    return {}


def _as_list(results: Any) -> List[Any]:
    # Platform API returns either a bare list or {"results": [...]}
    if isinstance(results, list):
        return results
    if isinstance(results, dict):
        return list(results.get("results") or [])
    return []


def filter_by_anchor(memories: Sequence[Any], anchor: str) -> List[Any]:
    """Memories whose content or tags mention any anchor word.

    Content hits are ranked before tag-only hits; order is otherwise kept.
    """
    anchor_words = anchor.lower().split()

    def in_content(memory: Any) -> bool:
        content = memory_content(memory).lower()
        return any(word in content for word in anchor_words)

    def in_tags(memory: Any) -> bool:
        tags = [str(tag).lower() for tag in memory_metadata(memory).get("tags") or []]
        return any(word in tag for word in anchor_words for tag in tags)

    matched = [m for m in memories if in_content(m) or in_tags(m)]
    return sorted(matched, key=lambda m: 0 if in_content(m) else 1)


def merge_context(existing: Sequence[str], new: Sequence[str], limit: int) -> List[str]:
    """New snippets first, then existing ones not already present, capped."""
    merged = list(new) + [item for item in existing if item not in new]
    deduped: List[str] = []
    for item in merged:
        if item not in deduped:
            deduped.append(item)
    return deduped[:limit]


def previous_day(date: str) -> str:
    """YYYY-MM-DD of the day before date."""
    try:
        parsed: date_type = datetime.strptime(date, "%Y-%m-%d").date()
    except ValueError as e:
        raise ValidationError(f"date must be YYYY-MM-DD, got {date!r}") from e
    return (parsed - timedelta(days=1)).isoformat()


def format_context_line(memory: Dict[str, Any]) -> str:
    """``[mood][date] content`` with empty brackets omitted."""
    mood_part = f"[{memory['mood']}]" if memory.get("mood") else ""
    date_part = f"[{memory['date']}]" if memory.get("date") else ""
    return f"{mood_part}{date_part} {memory.get('content', '')}".strip()


class MemoryService:
    """Async facade over the mem0 client."""

    def __init__(
        self,
        client: Optional[Any] = None,
        api_key: Optional[str] = None,
        config: Optional[MemoryConfig] = None,
        context_repo: Optional[SessionContextRepository] = None,
    ):
        """
        Args:
            client: Object exposing mem0's ``search`` / ``get_all``. Built
                lazily from api_key when omitted.
            api_key: mem0 API key (defaults to settings.mem0_api_key)
            config: Search/context limits
            context_repo: Cache for session context; when None, context is
                loaded from mem0 on every call
        """
        self._client = client
        self._api_key = api_key if api_key is not None else settings.mem0_api_key
        self._initialized = client is not None
        self.config = config or conversation_config.memory
        self.context_repo = context_repo

    def _get_client(self) -> Optional[Any]:
        if self._initialized:
            return self._client
        self._initialized = True
        if not self._api_key:
            log.info("memory_store_disabled", reason="MEM0_API_KEY not set")
            return None
        try:
            self._client = MemoryClient(api_key=self._api_key)
            log.info("memory_client_initialized")
        except Exception as e:
            log.warning("memory_client_init_failed", error=str(e))
            self._client = None
        return self._client

    async def _call(self, method: str, *args: Any, **kwargs: Any) -> Any:
        client = self._get_client()
        if client is None:
            return []
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(
                None, lambda: getattr(client, method)(*args, **kwargs)
            )
        except Exception as e:
            raise MemoryStoreError(f"mem0 {method} failed: {e}") from e

    async def list_memories(self, user_id: str) -> List[Any]:
        """Every stored memory for the user ([] on failure)."""
        try:
            return _as_list(await self._call("get_all", user_id=user_id))
        except MemoryStoreError as e:
            log.warning("memory_list_failed", user_id=user_id, error=str(e))
            return []

    async def search_theme_memories(self, anchor: str, user_id: str) -> List[str]:
        """Top snippets related to a theme.

        Tries semantic search first; if that raises, lists all memories and
        filters them by the anchor's words. Never raises.
        """
        limit = self.config.search_limit
        query = theme_query(anchor)

        try:
            results = _as_list(await self._call("search", query, user_id=user_id, limit=limit))
        except MemoryStoreError as e:
            log.warning("memory_search_failed", anchor=anchor, error=str(e))
            results = filter_by_anchor(await self.list_memories(user_id), anchor)

        snippets = [memory_content(m) for m in results[:limit]]
        snippets = [s for s in snippets if s.strip()]
        log.info("theme_memories_loaded", anchor=anchor, count=len(snippets))
        return snippets

    async def enrich_context(
        self, existing: Sequence[str], anchor: str, user_id: str
    ) -> List[str]:
        """Fold theme snippets into an existing context list."""
        snippets = await self.search_theme_memories(anchor, user_id)
        if not snippets:
            return list(existing)
        return merge_context(existing, snippets, self.config.context_limit)

    async def load_session_context(self, date: str, user_id: str) -> Dict[str, Any]:
        """Context for a session starting on date.

        Keyed by the previous day. Served from the cache when it already
        holds memories, otherwise rebuilt from every stored memory.

        Returns:
            Dict with date, memories (previous day only), all_memories,
            all_context, yesterday_context, summary and source
        """
        yesterday = previous_day(date)

        if self.context_repo is not None:
            cached = await self.context_repo.get_context(yesterday)
            if cached and cached.get("all_memories"):
                log.debug("session_context_cache_hit", date=yesterday)
                return {**cached, "source": "cache"}

        formatted = [
            {
                "content": memory_content(m),
                "tags": list(memory_metadata(m).get("tags") or []),
                "date": memory_metadata(m).get("date") or "",
                "mood": memory_metadata(m).get("mood") or "",
            }
            for m in await self.list_memories(user_id)
        ]
        yesterday_memories = [m for m in formatted if m["date"] == yesterday]

        summary = (
            f"Loaded {len(formatted)} total memories from your journal history."
            if formatted
            else "No memories found."
        )
        context: Dict[str, Any] = {
            "date": yesterday,
            "memories": yesterday_memories,
            "all_memories": formatted,
            "all_context": [format_context_line(m) for m in formatted],
            "yesterday_context": [m["content"] for m in yesterday_memories],
            "summary": summary,
        }

        if self.context_repo is not None and formatted:
            await self.context_repo.set_context(yesterday, context)

        log.info("session_context_loaded", date=yesterday, memories=len(formatted))
        return {**context, "source": "memory_store"}
