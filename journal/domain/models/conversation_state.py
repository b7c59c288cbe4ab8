"""Conversation state domain models for the journaling flow.

This module defines the per-session record that the conversation state
machine reads and writes on every user turn.

Core Models:
    - ConversationState: Cached record keyed by (session_id, date)
    - SessionPhase: Coarse stage of the journaling conversation
    - ConversationMode: How deeply the assistant should probe

Key Concepts:
    - Theme partition: every theme of the fixed vocabulary is in exactly one
      of explored_themes / unexplored_themes
    - Anchor: first theme detected in the session, never overwritten
    - Phase monotonicity: phases only move forward along PHASE_ORDER

State Lifecycle:
    1. Created by ConversationStateService.initialize() with every theme unexplored
    2. Mutated by the state updater on each turn (single merged write)
    3. Expires via the cache TTL, or removed by an explicit clear
"""

import time
from enum import Enum
from typing import List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator


# Fixed, ordered vocabulary. Order matters: extractor ties favour earlier themes
# and offer_choice suggests the first unexplored entries.
JOURNAL_THEMES: Tuple[str, ...] = (
    "focus",
    "energy",
    "motivation",
    "self-control",
    "routine",
    "gym",
    "work",
    "projects",
    "emotions",
    "guilt",
    "progress",
    "distractions",
)

JournalTheme = Literal[
    "focus",
    "energy",
    "motivation",
    "self-control",
    "routine",
    "gym",
    "work",
    "projects",
    "emotions",
    "guilt",
    "progress",
    "distractions",
]


class SessionPhase(str, Enum):
    """Stage of the journaling conversation.

    Values (in transition order):
        - LISTENING: User shares freely, assistant stays silent
        - MOOD_CONFIRMATION: Assistant asks how the user feels
        - REFLECTING: Assistant follows along after the initial share
        - QUESTIONING: Turn-by-turn exploration of themes
        - CLOSED: Terminal, session wrapped up
    """

    LISTENING = "listening"
    MOOD_CONFIRMATION = "mood_confirmation"
    REFLECTING = "reflecting"
    QUESTIONING = "questioning"
    CLOSED = "closed"

    @property
    def rank(self) -> int:
        """Position in the transition chain."""
        return PHASE_ORDER.index(self)

    def can_transition_to(self, target: "SessionPhase") -> bool:
        """True unless the move would go backwards."""
        return target.rank >= self.rank


PHASE_ORDER: Tuple[SessionPhase, ...] = (
    SessionPhase.LISTENING,
    SessionPhase.MOOD_CONFIRMATION,
    SessionPhase.REFLECTING,
    SessionPhase.QUESTIONING,
    SessionPhase.CLOSED,
)


class ConversationMode(str, Enum):
    """Coarse signal for how deeply to probe."""

    LISTENER = "listener"
    EXPLORING = "exploring"
    DEEPENING = "deepening"
    CLOSING = "closing"


class ReflectionMode(str, Enum):
    """Reflection style chosen for the session."""

    NEUTRAL = "neutral"
    COACHING = "coaching"
    LEARNING = "learning"


def now_ms() -> int:
    """Milliseconds since epoch."""
    return int(time.time() * 1000)


class ConversationState(BaseModel):
    """Per-session conversation state stored in the cache.

    Serialized with camelCase identity keys (sessionId, userId, createdAt,
    lastUpdated) and snake_case control fields, matching the cache layout
    shared with the voice client.

    Key Attributes:
        - session_phase: drives which behaviours are legal
        - anchor: sticky first theme
        - explored_themes / unexplored_themes: disjoint partition of JOURNAL_THEMES
        - asked_questions: append-only, no duplicates
        - yesterday_context: memory-derived snippets for the response generator
    """

    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(alias="sessionId")
    date: str = Field(pattern=r"^\d{4}-\d{2}-\d{2}$", description="YYYY-MM-DD")
    user_id: str = Field(default="default-user", alias="userId")
    created_at: int = Field(default_factory=now_ms, alias="createdAt")
    last_updated: int = Field(default_factory=now_ms, alias="lastUpdated")

    yesterday_context: List[str] = Field(default_factory=list)

    anchor: Optional[JournalTheme] = None
    explored_themes: List[JournalTheme] = Field(default_factory=list)
    unexplored_themes: List[JournalTheme] = Field(
        default_factory=lambda: list(JOURNAL_THEMES)
    )
    asked_questions: List[str] = Field(default_factory=list)
    tone: Optional[str] = None
    conversation_mode: ConversationMode = ConversationMode.LISTENER
    last_ai_action: Optional[str] = None
    reflection_mode: ReflectionMode = ReflectionMode.NEUTRAL
    session_phase: SessionPhase = SessionPhase.LISTENING
    user_initial_sharing: Optional[str] = None
    mood: Optional[str] = None

    @model_validator(mode="after")
    def check_invariants(self) -> "ConversationState":
        """Reject records that break the theme partition or repeat questions."""
        explored = set(self.explored_themes)
        unexplored = set(self.unexplored_themes)

        if len(explored) != len(self.explored_themes) or len(unexplored) != len(
            self.unexplored_themes
        ):
            raise ValueError("theme lists must not contain duplicates")
        if explored & unexplored:
            raise ValueError(
                f"themes both explored and unexplored: {sorted(explored & unexplored)}"
            )
        if explored | unexplored != set(JOURNAL_THEMES):
            missing = set(JOURNAL_THEMES) - (explored | unexplored)
            raise ValueError(f"themes missing from partition: {sorted(missing)}")
        if len(set(self.asked_questions)) != len(self.asked_questions):
            raise ValueError("asked_questions must not contain duplicates")
        return self

    @classmethod
    def initial(
        cls,
        session_id: str,
        date: str,
        user_id: str = "default-user",
        context: Optional[List[str]] = None,
    ) -> "ConversationState":
        """Fresh state: empty collections, every theme unexplored, listening phase."""
        timestamp = now_ms()
        return cls(
            session_id=session_id,
            date=date,
            user_id=user_id,
            created_at=timestamp,
            last_updated=timestamp,
            yesterday_context=list(context or []),
        )

    def to_cache(self) -> str:
        """Serialize for the cache (alias keys, enum values)."""
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_cache(cls, raw: str | bytes) -> "ConversationState":
        """Parse a cached JSON record."""
        return cls.model_validate_json(raw)

    def to_wire(self) -> dict:
        """JSON-compatible dict for API responses."""
        return self.model_dump(mode="json", by_alias=True)

    def merged(self, updates: dict) -> "ConversationState":
        """Return a validated copy with updates applied and last_updated refreshed.

        Updates may use either field names or aliases. Field-level last
        write wins; nothing else is merged.
        """
        data = self.model_dump(by_alias=False)
        data.update(normalize_update_keys(updates))
        data["last_updated"] = now_ms()
        return ConversationState.model_validate(data)


def normalize_update_keys(updates: dict) -> dict:
    """Map alias keys (sessionId, lastUpdated, ...) onto field names."""
    alias_to_field = {
        field.alias: name
        for name, field in ConversationState.model_fields.items()
        if field.alias
    }
    return {alias_to_field.get(key, key): value for key, value in updates.items()}
