"""
API request/response schemas.

Pydantic models for API validation and serialization. Requests accept
both the camelCase keys used by the voice client (sessionId, userMessage,
...) and snake_case field names.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from journal.domain.models.conversation_state import SessionPhase
from journal.domain.models.extraction import ExtractionResult, NextAIMove

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"


class SessionKey(BaseModel):
    """Identifies one conversation state record."""

    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(..., min_length=1, alias="sessionId")
    date: str = Field(..., pattern=DATE_PATTERN, description="YYYY-MM-DD")


# ============ STATE SCHEMAS ============


class InitializeStateRequest(SessionKey):
    """Request to create the state for a session and date."""

    user_id: Optional[str] = Field(default=None, alias="userId")
    yesterday_context: Optional[List[str]] = Field(default=None, alias="yesterdayContext")


class StateResponse(BaseModel):
    """State record (null when absent) in wire layout."""

    state: Optional[Dict[str, Any]] = None
    created: Optional[bool] = None


class PatchStateRequest(SessionKey):
    """Partial field update for an existing record."""

    updates: Dict[str, Any] = Field(..., description="Field name or alias -> new value")


class ClearStateResponse(BaseModel):
    success: bool = True
    removed: bool


# ============ TURN SCHEMAS ============


class ProcessMessageRequest(SessionKey):
    """One user message for the rule-based state machine."""

    user_message: str = Field(..., min_length=1, max_length=5000, alias="userMessage")
    last_question: Optional[str] = Field(default=None, alias="lastQuestion")


class ProcessMessageResponse(BaseModel):
    """Persisted state, next move and refreshed agent instructions."""

    updated_state: Dict[str, Any]
    next_move: NextAIMove
    extraction: ExtractionResult
    instructions: str
    memory_enriched: bool = False
    latency_ms: int = 0


class FinishSharingRequest(SessionKey):
    """The user's complete initial share."""

    full_sharing: str = Field(..., min_length=1, max_length=20000, alias="fullSharing")
    mood: Optional[str] = None


class FinishSharingResponse(BaseModel):
    updated_state: Dict[str, Any]
    anchor: Optional[str] = None
    tone: Optional[str] = None
    instructions: str


class PhaseRequest(SessionKey):
    phase: SessionPhase


class RespondRequest(SessionKey):
    """One chat message that should get a spoken reply."""

    message: str = Field(..., min_length=1, max_length=5000)
    last_question: Optional[str] = Field(default=None, alias="lastQuestion")


class RespondResponse(BaseModel):
    reply: str
    source: str
    degraded: bool = False
    updated_state: Optional[Dict[str, Any]] = None
    next_move: Optional[NextAIMove] = None


# ============ TRANSCRIPT / MAINTENANCE SCHEMAS ============


class UtteranceSchema(BaseModel):
    id: str
    speaker: str
    text: str
    created_at: str


class TranscriptResponse(BaseModel):
    session_id: str
    date: str
    utterances: List[UtteranceSchema]


class ClearDateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    date: str = Field(..., pattern=DATE_PATTERN)
    user_id: Optional[str] = Field(default=None, alias="userId")


class ClearDateResponse(BaseModel):
    date: str
    conversations: int
    utterances: int


# ============ CONTEXT SCHEMAS ============


class SessionContextResponse(BaseModel):
    """Memories loaded for the day before the requested date."""

    success: bool = True
    source: str
    date: str
    context: Dict[str, Any]
