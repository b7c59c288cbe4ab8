"""
Conversational response generation.

Produces the assistant's spoken reply for a user turn:
    - Greeting fast path (first message of a session is a hello)
    - Farewell fast path (brief, warm, no question)
    - Otherwise an LLM reply that must pass structure validation:
        1. A reaction precedes the question (not a bare question)
        2. An explicit memory clause is at most N words
        3. No memory mention unless one is allowed this turn
      Each failed pass triggers one regeneration with a corrective hint.
    - Any LLM failure falls back to a templated reply built from the
      turn's NextAIMove

Memory mentions are rate-limited through the MemoryUsageTracker: a
snippet may be named only if it relates to the message, differs from the
last one named, and enough turns have passed since.
"""

import random
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import httpx
import structlog

from journal.core.config import ResponseConfig, conversation_config
from journal.core.exceptions import LLMError
from journal.domain.models.conversation_state import ConversationState
from journal.domain.models.extraction import ExtractionResult, NextAIMove
from journal.llm.client import LLMClient
from journal.llm.prompts.response import (
    LONG_MEMORY_CORRECTION,
    MISSING_REACTION_CORRECTION,
    NO_MEMORY_CORRECTION,
    get_response_system_prompt,
    get_response_user_prompt,
)
from journal.persistence.repositories.session_context_repo import (
    MemoryUsageTracker,
    SessionContextRepository,
)
from journal.services.extraction_service import THEME_KEYWORDS

log = structlog.get_logger(__name__)


GREETING_REPLY = "How is your mood? Tell me everything that happened during the day."
FAREWELL_REPLIES = (
    "Sounds good! Talk to you later. Take care.",
    "Bye! Have a great day.",
    "Take care! Talk soon.",
    "See you later!",
)
FALLBACK_REPLY = "Thanks for sharing. What would you like to explore?"

GREETINGS = ("hello", "hi", "hey")
FAREWELL_PHRASES = (
    "bye",
    "talk later",
    "talk to you later",
    "see you",
    "gotta go",
    "have to go",
    "catch you later",
)
MEMORY_MARKERS = ("remember", "last time", "mentioned before", "like when", "similar to")

QUESTION_OPENER = re.compile(
    r"^(What|How|Why|When|Where|Which|Who|Tell me|Can you|Do you|Did you|Are you|Is it|Was it)",
    re.IGNORECASE,
)
SENTENCE_SPLIT = re.compile(r"[.!?]")


@dataclass
class GeneratedReply:
    """Reply text plus how it was produced."""

    text: str
    source: str  # greeting | farewell | llm | template
    memory_mentioned: bool = False
    regenerations: int = 0


# =============================================================================
# Message classification
# =============================================================================


def is_greeting(message: str) -> bool:
    normalized = message.lower().strip()
    return normalized in GREETINGS or normalized.startswith("hello")


def is_farewell(message: str) -> bool:
    normalized = message.lower().strip()
    if any(phrase in normalized for phrase in FAREWELL_PHRASES):
        return True
    return "alrighty" in normalized and ("later" in normalized or "talk" in normalized)


def is_casual(message: str, max_chars: int = 50) -> bool:
    """Short single-sentence statement that deserves a light reply."""
    return len(message) < max_chars and "?" not in message and ".." not in message


# =============================================================================
# Reply validation
# =============================================================================


def _sentences(text: str) -> List[str]:
    return [s for s in SENTENCE_SPLIT.split(text) if s.strip()]


def lacks_reaction(reply: str) -> bool:
    """True when the reply opens with a question or is only a question."""
    stripped = reply.strip()
    if QUESTION_OPENER.match(stripped):
        return True
    return "?" in stripped and len(_sentences(stripped)) == 1


def mentions_memory(reply: str) -> bool:
    lowered = reply.lower()
    return any(marker in lowered for marker in MEMORY_MARKERS)


def memory_clause_word_count(reply: str) -> int:
    """Words in the first memory clause (up to the first comma), 0 if none."""
    for sentence in SENTENCE_SPLIT.split(reply):
        if mentions_memory(sentence):
            clause = sentence.split(",")[0].strip()
            return len(clause.split())
    return 0


# =============================================================================
# Memory selection
# =============================================================================


def relevant_memory(
    message: str, extraction: ExtractionResult, context: Sequence[str]
) -> Optional[str]:
    """First context snippet sharing a theme keyword with the message.

    Returns None when the message touches no theme or no snippet relates.
    """
    theme = extraction.touched_theme
    if not theme:
        return None
    lowered_message = message.lower()
    keywords = [k for k in THEME_KEYWORDS[theme] if k in lowered_message] or [theme]
    for snippet in context:
        lowered = snippet.lower()
        if any(keyword in lowered for keyword in keywords):
            return snippet
    return None


def may_mention(
    memory: Optional[str], tracker: MemoryUsageTracker, min_gap_turns: int
) -> bool:
    return (
        memory is not None
        and memory != tracker.last_memory_title
        and tracker.turns_since_last_mention >= min_gap_turns
    )


def template_reply(next_move: Optional[NextAIMove]) -> str:
    """Reflection and question of the move, or the static fallback."""
    if next_move is None:
        return FALLBACK_REPLY
    parts = [p for p in (next_move.reflection, next_move.question) if p]
    return " ".join(parts) if parts else FALLBACK_REPLY


# =============================================================================
# Service
# =============================================================================


class ResponseService:
    """Generates replies for the chat turn."""

    def __init__(
        self,
        llm_client: Optional[LLMClient],
        context_repo: Optional[SessionContextRepository] = None,
        config: Optional[ResponseConfig] = None,
    ):
        """
        Args:
            llm_client: Generation client; None means templated replies only
            context_repo: Memory-usage tracker store
            config: Response constraints (defaults to conversation_config.response)
        """
        self.llm_client = llm_client
        self.context_repo = context_repo
        self.config = config or conversation_config.response

    async def generate(
        self,
        message: str,
        state: ConversationState,
        extraction: ExtractionResult,
        next_move: Optional[NextAIMove] = None,
        history: Optional[List[Dict[str, str]]] = None,
    ) -> GeneratedReply:
        """
        Produce the reply for one user message.

        Args:
            message: Raw user message
            state: State after this turn's updates
            extraction: This turn's extraction
            next_move: This turn's decision (drives the templated fallback)
            history: Earlier turns, oldest first

        Returns:
            GeneratedReply
        """
        if is_greeting(message) and not history:
            return GeneratedReply(text=GREETING_REPLY, source="greeting")

        if is_farewell(message):
            return GeneratedReply(text=random.choice(FAREWELL_REPLIES), source="farewell")

        if self.llm_client is None:
            return GeneratedReply(text=template_reply(next_move), source="template")

        memory = relevant_memory(message, extraction, state.yesterday_context)
        tracker = MemoryUsageTracker()
        if self.context_repo is not None:
            tracker = await self.context_repo.get_tracker(state.user_id, state.date)
        allowed = may_mention(memory, tracker, self.config.memory_mention_min_gap_turns)

        try:
            reply = await self._generate_validated(
                message, state, next_move, history, memory if allowed else None
            )
        except (LLMError, httpx.HTTPError) as e:
            log.warning("reply_generation_failed", error=str(e), error_type=type(e).__name__)
            return GeneratedReply(text=template_reply(next_move), source="template")

        mentioned = mentions_memory(reply.text) and allowed
        reply.memory_mentioned = mentioned
        if self.context_repo is not None:
            await self.context_repo.record_turn(
                state.user_id, state.date, memory if mentioned else None, mentioned
            )
        return reply

    async def _generate_validated(
        self,
        message: str,
        state: ConversationState,
        next_move: Optional[NextAIMove],
        history: Optional[List[Dict[str, str]]],
        memory_to_mention: Optional[str],
    ) -> GeneratedReply:
        max_words = self.config.memory_mention_max_words
        casual = is_casual(message, self.config.casual_message_max_chars)

        async def ask(correction: Optional[str] = None) -> str:
            prompt = get_response_user_prompt(
                message=message,
                context=state.yesterday_context,
                memory_to_mention=memory_to_mention,
                is_casual=casual,
                next_move=next_move,
                max_memory_words=max_words,
                correction=correction,
            )
            response = await self.llm_client.complete(
                prompt=prompt,
                system=get_response_system_prompt(max_words),
                history=history,
            )
            return response.content

        text = await ask()
        regenerations = 0

        if lacks_reaction(text):
            log.info("reply_regenerated", reason="missing_reaction")
            text = await ask(MISSING_REACTION_CORRECTION)
            regenerations += 1

        if memory_to_mention and memory_clause_word_count(text) > max_words:
            log.info("reply_regenerated", reason="memory_clause_too_long")
            text = await ask(LONG_MEMORY_CORRECTION.format(max_words=max_words))
            regenerations += 1

        if memory_to_mention is None and mentions_memory(text):
            log.info("reply_regenerated", reason="memory_not_allowed")
            text = await ask(NO_MEMORY_CORRECTION)
            regenerations += 1

        return GeneratedReply(text=text, source="llm", regenerations=regenerations)
