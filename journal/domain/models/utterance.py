"""Utterance domain models for conversation transcripts.

This module defines the Utterance model that represents one line of a
journaling conversation, keyed by session and date.

Core Concepts:
    - Speaker identification: USER vs ASSISTANT for role tracking
    - Ordering: created_at gives transcript order within a (session, date)
    - Best-effort persistence: transcript writes never fail a turn
"""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field


class Speaker(str, Enum):
    """Speaker role for utterance attribution.

    Values:
        - USER: Journaling user
        - ASSISTANT: Reflective assistant reply
    """

    USER = "user"
    ASSISTANT = "assistant"


class Utterance(BaseModel):
    """Single transcript line stored in the utterances table."""

    id: str
    session_id: str
    date: str
    speaker: Speaker
    text: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = {"from_attributes": True}
